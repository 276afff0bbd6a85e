"""Device record for a single Yeelight bulb.

This module provides DeviceInfo, the identity plus property snapshot of one
bulb, and the property decoders shared by discovery, polling and push
notifications.

Consistency model:
    Polled properties and pushed notifications are both applied immediately
    through DeviceInfo.update(), which replaces the frozen DeviceState under a
    single lock. There is no sequencing between the two sources, so the
    snapshot is eventually consistent with last-writer-wins per field.
"""

from __future__ import annotations

import ipaddress
import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, fields, replace
from typing import Any
from urllib.parse import urlsplit

from yeelight_lan.protocol.colors import int_to_rgb
from yeelight_lan.protocol.message_types import ColorMode, PowerStatus

logger = logging.getLogger(__name__)

# Properties requested by the poller. Reply values are matched to these names
# by position, so the order is part of the contract.
POLLED_PROPERTIES: tuple[str, ...] = (
    "power",
    "bright",
    "color_mode",
    "ct",
    "rgb",
    "hue",
    "sat",
    "name",
)


def parse_uint(value: Any, bits: int) -> int:
    """Parse an unsigned integer that must fit in `bits` bits.

    Accepts ints, integral floats (JSON numbers) and decimal strings.

    Raises:
        ValueError: If the value is not an unsigned integer or overflows

    """
    if isinstance(value, bool):
        error_msg = f"expected unsigned integer, got {value!r}"
        raise ValueError(error_msg)
    if isinstance(value, float):
        if not value.is_integer():
            error_msg = f"expected unsigned integer, got {value!r}"
            raise ValueError(error_msg)
        number = int(value)
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        error_msg = f"expected unsigned integer, got {value!r}"
        raise ValueError(error_msg)

    if not 0 <= number < (1 << bits):
        error_msg = f"{number} does not fit in {bits} bits"
        raise ValueError(error_msg)
    return number


def _uint8(value: Any) -> int:
    return parse_uint(value, 8)


def _uint16(value: Any) -> int:
    return parse_uint(value, 16)


def _uint32(value: Any) -> int:
    return parse_uint(value, 32)


def _power(value: Any) -> PowerStatus:
    return PowerStatus(str(value).strip())


def _color_mode(value: Any) -> ColorMode:
    return ColorMode(parse_uint(value, 8))


# wire name -> (DeviceState attribute, decoder)
PROPERTY_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "power": ("power", _power),
    "bright": ("brightness", _uint8),
    "color_mode": ("color_mode", _color_mode),
    "ct": ("color_temperature", _uint16),
    "rgb": ("rgb", _uint32),
    "hue": ("hue", _uint16),
    "sat": ("saturation", _uint8),
    "name": ("name", str),
}


def decode_property(name: str, value: Any) -> tuple[str, Any]:
    """Decode one wire property into (DeviceState attribute, typed value).

    Raises:
        KeyError: If the property is not tracked
        ValueError: If the value does not parse

    """
    attribute, decoder = PROPERTY_FIELDS[name]
    return attribute, decoder(value)


@dataclass(frozen=True)
class DeviceAddress:
    """IP address and control port of a bulb."""

    ip: ipaddress.IPv4Address | ipaddress.IPv6Address
    port: int

    @classmethod
    def parse_location(cls, location: str) -> DeviceAddress:
        """Parse a `<scheme>://ip:port` discovery location.

        Raises:
            ValueError: If the location has no valid IP address or port

        """
        parts = urlsplit(location.strip())
        if not parts.scheme or not parts.hostname:
            error_msg = f"invalid location: {location!r}"
            raise ValueError(error_msg)
        port = parts.port  # raises ValueError when out of range
        if port is None:
            error_msg = f"location has no port: {location!r}"
            raise ValueError(error_msg)
        return cls(ip=ipaddress.ip_address(parts.hostname), port=port)

    @property
    def host(self) -> str:
        return str(self.ip)

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class DeviceState:
    """Immutable snapshot of the observed device properties."""

    power: PowerStatus = PowerStatus.OFF
    brightness: int = 0
    color_mode: ColorMode | None = None
    color_temperature: int = 0
    rgb: int = 0
    hue: int = 0
    saturation: int = 0
    name: str = ""


_STATE_FIELDS = frozenset(f.name for f in fields(DeviceState))


class DeviceInfo:
    """Identity plus property snapshot of one bulb.

    Identity (address, id, model, firmware, supported methods) is fixed at
    construction. The snapshot is a frozen DeviceState replaced atomically by
    update(); readers always see a self-consistent state.

    Attributes:
        address: Control address parsed from the discovery Location header
        device_id: Device identifier (hex string from discovery)
        model: Model name (e.g. "color")
        firmware_version: Firmware version string
        support: Methods the device advertises, in advertised order

    """

    def __init__(
        self,
        address: DeviceAddress,
        device_id: str = "",
        model: str = "",
        firmware_version: str = "",
        support: Iterable[str] = (),
        state: DeviceState | None = None,
    ) -> None:
        self.address: DeviceAddress = address
        self.device_id: str = device_id
        self.model: str = model
        self.firmware_version: str = firmware_version
        self.support: tuple[str, ...] = tuple(support)
        self._state: DeviceState = state or DeviceState()
        self._lock = threading.Lock()

    def supports(self, method: str) -> bool:
        """Check whether the device advertises `method`."""
        return method in self.support

    @property
    def state(self) -> DeviceState:
        """Current snapshot."""
        return self._state

    def update(self, **changes: Any) -> DeviceState:
        """Apply field changes under the record lock and return the new snapshot.

        Raises:
            TypeError: If a change names an unknown field

        """
        unknown = set(changes) - _STATE_FIELDS
        if unknown:
            error_msg = f"unknown device state fields: {sorted(unknown)}"
            raise TypeError(error_msg)
        with self._lock:
            self._state = replace(self._state, **changes)
            return self._state

    def apply_properties(self, properties: Mapping[str, Any], source: str) -> dict[str, Any]:
        """Decode and apply wire properties, skipping any that fail to parse.

        Args:
            properties: Wire property names to raw values
            source: Where the values came from ("poll" or "notification"), for logs

        Returns:
            The DeviceState attributes that were applied

        """
        changes: dict[str, Any] = {}
        for name, value in properties.items():
            try:
                attribute, decoded = decode_property(name, value)
            except KeyError:
                logger.debug(
                    "Ignoring untracked property %s",
                    name,
                    extra={"device_id": self.device_id, "property": name, "source": source},
                )
                continue
            except ValueError as e:
                logger.warning(
                    "Failed to convert property %s",
                    name,
                    extra={
                        "device_id": self.device_id,
                        "property": name,
                        "value": value,
                        "source": source,
                        "error": str(e),
                    },
                )
                continue
            changes[attribute] = decoded

        if changes:
            self.update(**changes)
        return changes

    def apply_polled(self, values: Sequence[str]) -> dict[str, Any]:
        """Apply a get_prop reply for POLLED_PROPERTIES, matched by position.

        Extra values beyond the requested list are ignored; missing trailing
        values leave their fields untouched.
        """
        if len(values) != len(POLLED_PROPERTIES):
            logger.warning(
                "Poll reply has %d values for %d properties",
                len(values),
                len(POLLED_PROPERTIES),
                extra={"device_id": self.device_id},
            )
        return self.apply_properties(dict(zip(POLLED_PROPERTIES, values)), source="poll")

    # Snapshot accessors

    @property
    def power(self) -> PowerStatus:
        return self._state.power

    @property
    def is_on(self) -> bool:
        return self._state.power is PowerStatus.ON

    @property
    def brightness(self) -> int:
        return self._state.brightness

    @property
    def color_mode(self) -> ColorMode | None:
        return self._state.color_mode

    @property
    def color_temperature(self) -> int:
        return self._state.color_temperature

    @property
    def rgb(self) -> tuple[int, int, int]:
        return int_to_rgb(self._state.rgb)

    @property
    def hue(self) -> int:
        return self._state.hue

    @property
    def saturation(self) -> int:
        return self._state.saturation

    @property
    def name(self) -> str:
        return self._state.name

    def __repr__(self) -> str:
        """String representation for logging and debugging."""
        return (
            f"DeviceInfo(id={self.device_id or '?'}, address={self.address}, "
            f"model={self.model or '?'}, power={self._state.power.value}, "
            f"brightness={self._state.brightness})"
        )
