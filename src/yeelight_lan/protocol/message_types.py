"""Yeelight control protocol constants, enums and message dataclasses.

Message Overview:
- Command (client → device): {"id": int, "method": str, "params": [...]}
- CommandResult (device → client): {"id": int, "result": [str, ...]}
  or {"id": int, "error": {"code": int, "message": str}}
- Notification (device → client): {"method": "props", "params": {name: value}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

# Method catalog
METHOD_GET_PROP = "get_prop"
METHOD_SET_POWER = "set_power"
METHOD_TOGGLE = "toggle"
METHOD_SET_BRIGHT = "set_bright"
METHOD_SET_RGB = "set_rgb"
METHOD_SET_CT_ABX = "set_ct_abx"
METHOD_START_CF = "start_cf"
METHOD_SET_MUSIC = "set_music"
METHOD_SET_DEFAULT = "set_default"

# Methods the device accepts while powered off
POWER_UNGUARDED_METHODS = frozenset(
    {
        METHOD_SET_POWER,
        METHOD_TOGGLE,
        METHOD_SET_DEFAULT,
        METHOD_SET_MUSIC,
        METHOD_GET_PROP,
    },
)

NOTIFICATION_METHOD_PROPS = "props"
RESULT_OK = "ok"


class PowerStatus(str, Enum):
    """Power state as reported by the device."""

    ON = "on"
    OFF = "off"


class ColorMode(IntEnum):
    """Active color mode."""

    RGB = 1
    COLOR_TEMPERATURE = 2
    HSV = 3


class Effect(str, Enum):
    """Transition style for commands that accept one."""

    SUDDEN = "sudden"
    SMOOTH = "smooth"


@dataclass
class Command:
    """Outgoing command.

    Attributes:
        id: Per-connection correlation id (starts at 1)
        method: Method name from the device's support list
        params: Ordered positional parameters

    """

    id: int
    method: str
    params: list[Any] = field(default_factory=list)


@dataclass
class CommandError:
    """Error object carried by a failed CommandResult."""

    code: int
    message: str


@dataclass
class CommandResult:
    """Reply to a Command, matched by id."""

    id: int
    result: list[str] | None = None
    error: CommandError | None = None


@dataclass
class Notification:
    """Unsolicited property push from the device."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)
