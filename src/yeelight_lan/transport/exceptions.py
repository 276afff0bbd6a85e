"""Custom exception types for transport layer errors.

This module defines the exception hierarchy for connection, dispatch and
music mode errors, extending the protocol exceptions.
"""

from __future__ import annotations

from yeelight_lan.protocol.exceptions import YeelightProtocolError


class YeelightConnectionError(YeelightProtocolError):
    """Network error on a device connection or discovery socket.

    Raised when:
    - Opening, writing to or reading from a socket fails
    - The device closes the control connection
    - A command is issued on a connection that already failed

    Note: Named YeelightConnectionError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        reason: Specific failure reason
        state: Connection state when error occurred

    """

    def __init__(self, reason: str, state: str = "unknown") -> None:
        """Initialize connection error with reason and state."""
        self.reason: str = reason
        self.state: str = state
        super().__init__(f"Connection error: {reason} (state: {state})")


class CommandTimeoutError(YeelightProtocolError, TimeoutError):
    """No matching result arrived within the command timeout.

    Attributes:
        method: Method of the command that timed out
        command_id: Correlation id of the command
        timeout_seconds: Timeout value that was exceeded

    """

    def __init__(self, method: str, command_id: int, timeout_seconds: float) -> None:
        """Initialize command timeout error."""
        self.method: str = method
        self.command_id: int = command_id
        self.timeout_seconds: float = timeout_seconds
        super().__init__(f"Command {method} (id {command_id}) timed out after {timeout_seconds}s")


class DiscoveryTimeoutError(YeelightProtocolError, TimeoutError):
    """No discovery reply arrived within the timeout.

    Attributes:
        timeout_seconds: Timeout value that was exceeded

    """

    def __init__(self, timeout_seconds: float) -> None:
        """Initialize discovery timeout error."""
        self.timeout_seconds: float = timeout_seconds
        super().__init__(f"No discovery reply within {timeout_seconds}s")


class UnsupportedMethodError(YeelightProtocolError):
    """Method is not in the device's advertised support list.

    Attributes:
        method: Rejected method name

    """

    def __init__(self, method: str) -> None:
        """Initialize unsupported method error."""
        self.method: str = method
        super().__init__(f"Method not supported: {method}")


class DeviceOffError(YeelightProtocolError):
    """Command requires the device to be powered on.

    Attributes:
        method: Rejected method name

    """

    def __init__(self, method: str) -> None:
        """Initialize powered-off error."""
        self.method: str = method
        super().__init__(f"Tried to execute {method} on a bulb that is powered off")


class MusicModeError(YeelightProtocolError):
    """Music mode cannot be entered in the current state.

    Attributes:
        reason: Specific failure reason
        state: Music mode state when error occurred

    """

    def __init__(self, reason: str, state: str) -> None:
        """Initialize music mode error with reason and state."""
        self.reason: str = reason
        self.state: str = state
        super().__init__(f"Music mode error: {reason} (state: {state})")
