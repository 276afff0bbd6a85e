"""Yeelight protocol package - message encoding, decoding, and line framing.

Public API:
- Method constants (METHOD_*)
- Enums (PowerStatus, ColorMode, Effect)
- Message dataclasses (Command, CommandResult, Notification)
- Protocol encoder/decoder (YeelightProtocol)
"""

from yeelight_lan.protocol.line_framer import LineFramer
from yeelight_lan.protocol.message_types import (
    METHOD_GET_PROP,
    METHOD_SET_BRIGHT,
    METHOD_SET_CT_ABX,
    METHOD_SET_DEFAULT,
    METHOD_SET_MUSIC,
    METHOD_SET_POWER,
    METHOD_SET_RGB,
    METHOD_START_CF,
    METHOD_TOGGLE,
    ColorMode,
    Command,
    CommandError,
    CommandResult,
    Effect,
    Notification,
    PowerStatus,
)
from yeelight_lan.protocol.yeelight_protocol import YeelightProtocol

__all__ = [
    # Protocol encoder/decoder
    "YeelightProtocol",
    "LineFramer",
    # Method constants
    "METHOD_GET_PROP",
    "METHOD_SET_POWER",
    "METHOD_TOGGLE",
    "METHOD_SET_BRIGHT",
    "METHOD_SET_RGB",
    "METHOD_SET_CT_ABX",
    "METHOD_START_CF",
    "METHOD_SET_MUSIC",
    "METHOD_SET_DEFAULT",
    # Enums
    "ColorMode",
    "Effect",
    "PowerStatus",
    # Dataclasses
    "Command",
    "CommandError",
    "CommandResult",
    "Notification",
]
