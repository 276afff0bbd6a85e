"""Custom exception types for Yeelight protocol errors.

This module defines the exception hierarchy for protocol-related errors,
following the "No Nullability" principle where errors raise exceptions
instead of returning None.
"""

from __future__ import annotations


class YeelightProtocolError(Exception):
    """Base exception for all Yeelight protocol errors.

    All protocol and transport exceptions inherit from this base class,
    enabling catch-all error handling when needed while maintaining
    specific exception types for detailed handling.
    """


class MessageDecodeError(YeelightProtocolError):
    """A control-channel line cannot be decoded.

    Raised when a line is not valid JSON, is not a JSON object, or does not
    look like either a command result or a notification.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_json", "unknown_message")
        line_preview: First 64 characters of the offending line

    """

    def __init__(self, reason: str, line: str = "") -> None:
        """Initialize decode error with reason and a truncated copy of the line."""
        self.reason: str = reason
        self.line_preview: str = line[:64]
        super().__init__(f"Message decode failed: {reason}")


class DiscoveryParseError(YeelightProtocolError):
    """Discovery reply contains a malformed field.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_number", "invalid_location")
        field: Header key that failed to parse
        value: Raw header value

    """

    def __init__(self, reason: str, field: str, value: str) -> None:
        """Initialize discovery parse error."""
        self.reason: str = reason
        self.field: str = field
        self.value: str = value
        super().__init__(f"Discovery parse failed: {reason} ({field}={value!r})")


class DeviceError(YeelightProtocolError):
    """Device answered a command with an error object.

    Attributes:
        code: Device-reported error code
        message: Device-reported error message
        method: Method of the command that failed

    """

    def __init__(self, code: int, message: str, method: str = "") -> None:
        """Initialize device error from the reply's error object."""
        self.code: int = code
        self.message: str = message
        self.method: str = method
        super().__init__(f"Device error {code}: {message} (method: {method or 'unknown'})")
