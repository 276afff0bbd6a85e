"""Color conversions used by the color commands."""

from __future__ import annotations

import colorsys

MAX_PACKED_RGB = 0xFFFFFF


def rgb_to_int(red: int, green: int, blue: int) -> int:
    """Pack an RGB triple as R*65536 + G*256 + B."""
    for channel in (red, green, blue):
        if not 0 <= channel <= 255:
            error_msg = f"RGB channel must be between 0 and 255, got {channel}"
            raise ValueError(error_msg)
    return red * 65536 + green * 256 + blue


def int_to_rgb(rgb: int) -> tuple[int, int, int]:
    """Unpack a packed RGB integer."""
    return (rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF


def hsv_to_rgb(hue: int, saturation: int) -> tuple[int, int, int]:
    """Convert hue (0-359) and saturation (0-100) at full value to RGB.

    Brightness is carried separately by the device, so value is fixed at 1.
    """
    red, green, blue = colorsys.hsv_to_rgb(hue / 360.0, saturation / 100.0, 1.0)
    return round(red * 255), round(green * 255), round(blue * 255)


def hsv_to_int(hue: int, saturation: int) -> int:
    """Convert hue and saturation straight to a packed RGB integer."""
    return rgb_to_int(*hsv_to_rgb(hue, saturation))
