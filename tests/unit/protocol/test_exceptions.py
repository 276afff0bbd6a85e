"""Unit tests for protocol and transport exception types."""

from __future__ import annotations

import pytest

from yeelight_lan.protocol.exceptions import (
    DeviceError,
    DiscoveryParseError,
    MessageDecodeError,
    YeelightProtocolError,
)
from yeelight_lan.transport.exceptions import (
    CommandTimeoutError,
    DeviceOffError,
    DiscoveryTimeoutError,
    MusicModeError,
    UnsupportedMethodError,
    YeelightConnectionError,
)


class TestExceptionHierarchy:
    """Every error is catchable as YeelightProtocolError."""

    @pytest.mark.parametrize(
        "error",
        [
            MessageDecodeError("invalid_json", "x"),
            DiscoveryParseError("bad", field="bright", value="x"),
            DeviceError(-1, "unsupported method", "set_bright"),
            YeelightConnectionError("connect_timeout", state="connecting"),
            CommandTimeoutError("toggle", 1, 3.0),
            DiscoveryTimeoutError(3.0),
            UnsupportedMethodError("set_scene"),
            DeviceOffError("set_bright"),
            MusicModeError("already_active", "active"),
        ],
    )
    def test_base_class(self, error: Exception) -> None:
        assert isinstance(error, YeelightProtocolError)

    def test_timeouts_are_timeout_errors(self) -> None:
        assert isinstance(CommandTimeoutError("toggle", 1, 3.0), TimeoutError)
        assert isinstance(DiscoveryTimeoutError(3.0), TimeoutError)

    def test_connection_error_does_not_shadow_builtin(self) -> None:
        assert not isinstance(YeelightConnectionError("x"), ConnectionError)


class TestExceptionAttributes:
    """Exceptions carry structured context."""

    def test_message_decode_error(self) -> None:
        error = MessageDecodeError("unknown_message", '{"foo":1}')

        assert error.reason == "unknown_message"
        assert error.line_preview == '{"foo":1}'
        assert "unknown_message" in str(error)

    def test_discovery_parse_error(self) -> None:
        error = DiscoveryParseError("not a number", field="bright", value="abc")

        assert error.field == "bright"
        assert error.value == "abc"
        assert error.reason == "not a number"

    def test_device_error(self) -> None:
        error = DeviceError(-5000, "general error", "set_rgb")

        assert error.code == -5000
        assert error.message == "general error"
        assert error.method == "set_rgb"

    def test_connection_error(self) -> None:
        error = YeelightConnectionError("closed_by_peer", state="connected")

        assert error.reason == "closed_by_peer"
        assert error.state == "connected"
        assert str(error) == "Connection error: closed_by_peer (state: connected)"

    def test_command_timeout_error(self) -> None:
        error = CommandTimeoutError("get_prop", 12, 3.0)

        assert error.method == "get_prop"
        assert error.command_id == 12
        assert error.timeout_seconds == 3.0

    def test_method_errors(self) -> None:
        assert UnsupportedMethodError("set_scene").method == "set_scene"
        assert DeviceOffError("set_bright").method == "set_bright"
        assert "powered off" in str(DeviceOffError("set_bright"))

    def test_music_mode_error(self) -> None:
        error = MusicModeError("already_active", "awaiting_peer")

        assert error.reason == "already_active"
        assert error.state == "awaiting_peer"
