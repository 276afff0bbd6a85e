"""Transport layer for the Yeelight control protocol.

Public API:
- Bulb: control connection with poller, line reader and music mode
- MusicModeBulb: fire-and-forget command surface handed to music mode sessions
- TCPConnection: asyncio stream wrapper with timeouts
- Reply strategies and transport exceptions
"""

from yeelight_lan.transport.bulb import Bulb
from yeelight_lan.transport.bulb_base import BulbBase
from yeelight_lan.transport.exceptions import (
    CommandTimeoutError,
    DeviceOffError,
    DiscoveryTimeoutError,
    MusicModeError,
    UnsupportedMethodError,
    YeelightConnectionError,
)
from yeelight_lan.transport.music_mode import MusicModeBulb, MusicModeState
from yeelight_lan.transport.reply_strategy import CorrelatedReplies, FireAndForgetReplies, ReplyStrategy
from yeelight_lan.transport.socket_abstraction import TCPConnection

__all__ = [
    "Bulb",
    "BulbBase",
    "CommandTimeoutError",
    "CorrelatedReplies",
    "DeviceOffError",
    "DiscoveryTimeoutError",
    "FireAndForgetReplies",
    "MusicModeBulb",
    "MusicModeError",
    "MusicModeState",
    "ReplyStrategy",
    "TCPConnection",
    "UnsupportedMethodError",
    "YeelightConnectionError",
]
