"""Device records and discovery."""

from yeelight_lan.devices.device_info import (
    POLLED_PROPERTIES,
    DeviceAddress,
    DeviceInfo,
    DeviceState,
)
from yeelight_lan.devices.discovery import discover, parse_discovery_response

__all__ = [
    "POLLED_PROPERTIES",
    "DeviceAddress",
    "DeviceInfo",
    "DeviceState",
    "discover",
    "parse_discovery_response",
]
