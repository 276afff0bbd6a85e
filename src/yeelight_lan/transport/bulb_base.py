"""Command dispatch and the command surface shared by every bulb connection.

BulbBase implements execute(): capability check, power guard, id allocation,
framing and the reply wait delegated to a ReplyStrategy. The high-level
operations (power, brightness, color) are built on execute() and apply their
changes to the DeviceInfo optimistically once the command succeeds.

Optimistic updates:
    A successful reply means the device accepted the command, not that the
    light reached the requested state. If the device later fails to apply it,
    the snapshot stays wrong until the next notification or poll cycle
    overwrites the field.
"""

from __future__ import annotations

import logging
import time

from yeelight_lan.const import DEFAULT_COMMAND_TIMEOUT
from yeelight_lan.devices.device_info import DeviceInfo, DeviceState
from yeelight_lan.metrics import registry
from yeelight_lan.protocol.colors import hsv_to_int, rgb_to_int
from yeelight_lan.protocol.exceptions import DeviceError, MessageDecodeError
from yeelight_lan.protocol.message_types import (
    METHOD_SET_BRIGHT,
    METHOD_SET_CT_ABX,
    METHOD_SET_POWER,
    METHOD_SET_RGB,
    METHOD_START_CF,
    METHOD_TOGGLE,
    POWER_UNGUARDED_METHODS,
    RESULT_OK,
    ColorMode,
    Command,
    CommandResult,
    Effect,
    PowerStatus,
)
from yeelight_lan.protocol.yeelight_protocol import YeelightProtocol
from yeelight_lan.transport.exceptions import (
    CommandTimeoutError,
    DeviceOffError,
    UnsupportedMethodError,
    YeelightConnectionError,
)
from yeelight_lan.transport.reply_strategy import ReplyStrategy
from yeelight_lan.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)

# Value ranges accepted by the device
MIN_BRIGHTNESS = 1
MAX_BRIGHTNESS = 100
MAX_HUE = 359
MAX_SATURATION = 100
MIN_COLOR_TEMPERATURE = 1700
MAX_COLOR_TEMPERATURE = 6500

# start_cf: run once, stay at the final state, color transition mode
_FLOW_COUNT = 1
_FLOW_ACTION_STAY = 1
_FLOW_MODE_COLOR = 1

DEFAULT_DURATION_MS = 500


class BulbBase:
    """Command surface over one connection to a bulb.

    Attributes:
        info: Shared device record (identity + snapshot)
        conn: Connection the commands are written to
        replies: How replies are obtained (correlated or fire-and-forget)
        command_timeout: Seconds to wait for a correlated reply

    """

    def __init__(
        self,
        info: DeviceInfo,
        connection: TCPConnection | None,
        replies: ReplyStrategy,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self.info: DeviceInfo = info
        self.conn: TCPConnection | None = connection
        self.replies: ReplyStrategy = replies
        self.command_timeout: float = command_timeout
        self._last_command_id = 0
        self._failure: YeelightConnectionError | None = None
        self.logger_prefix = "[Bulb]"

    @property
    def power(self) -> PowerStatus:
        return self.info.power

    @property
    def state(self) -> DeviceState:
        return self.info.state

    def _next_command_id(self) -> int:
        self._last_command_id += 1
        return self._last_command_id

    async def execute(self, method: str, *params: object) -> list[str] | None:
        """Execute a command and return its normalized result.

        Args:
            method: Method name (must be in the device's support list)
            *params: Positional parameters

        Returns:
            None for a bare "ok" reply (and always for fire-and-forget
            connections), otherwise the result list unchanged

        Raises:
            UnsupportedMethodError: Method not advertised by the device (nothing written)
            DeviceOffError: Guarded method while powered off (nothing written)
            YeelightConnectionError: Connection missing, failed, or write failed
            CommandTimeoutError: No matching result within command_timeout
            DeviceError: The device replied with an error object
            MessageDecodeError: The matching result line was malformed

        """
        device_id = self.info.device_id
        if not self.info.supports(method):
            registry.record_command(device_id, method, "unsupported")
            raise UnsupportedMethodError(method)

        if method not in POWER_UNGUARDED_METHODS and not self.info.is_on:
            registry.record_command(device_id, method, "powered_off")
            raise DeviceOffError(method)

        if self._failure is not None:
            raise YeelightConnectionError(self._failure.reason, state="failed") from self._failure
        if self.conn is None:
            raise YeelightConnectionError("not_connected", state="disconnected")

        conn = self.conn
        command = Command(id=self._next_command_id(), method=method, params=list(params))
        frame = YeelightProtocol.encode_command(command)

        logger.debug(
            "→ Executing command",
            extra={
                "logger_prefix": self.logger_prefix,
                "device_id": device_id,
                "command_id": command.id,
                "method": method,
                "frame": frame.decode("utf-8").rstrip(),
            },
        )

        start_time = time.perf_counter()
        try:
            result = await self.replies.dispatch(
                command,
                lambda: conn.send(frame),
                self.command_timeout,
            )
        except CommandTimeoutError:
            logger.warning(
                "✗ Command timed out",
                extra={
                    "logger_prefix": self.logger_prefix,
                    "device_id": device_id,
                    "command_id": command.id,
                    "method": method,
                    "timeout": self.command_timeout,
                },
            )
            registry.record_command(device_id, method, "timeout")
            raise
        except YeelightConnectionError:
            registry.record_command(device_id, method, "connection_error")
            raise
        except MessageDecodeError:
            registry.record_command(device_id, method, "decode_error")
            raise

        registry.record_command_latency(device_id, method, time.perf_counter() - start_time)
        return self._normalize_result(command, result)

    def _normalize_result(self, command: Command, result: CommandResult | None) -> list[str] | None:
        device_id = self.info.device_id
        if result is None:
            registry.record_command(device_id, command.method, "sent")
            return None

        if result.error is not None:
            logger.error(
                "✗ Device rejected command",
                extra={
                    "logger_prefix": self.logger_prefix,
                    "device_id": device_id,
                    "command_id": command.id,
                    "method": command.method,
                    "params": command.params,
                    "code": result.error.code,
                    "error_message": result.error.message,
                },
            )
            registry.record_command(device_id, command.method, "device_error")
            raise DeviceError(result.error.code, result.error.message, command.method)

        registry.record_command(device_id, command.method, "success")
        values = result.result or []
        if values == [RESULT_OK]:
            return None
        return values

    # Power

    async def turn_on(self, effect: Effect = Effect.SMOOTH, duration: int = DEFAULT_DURATION_MS) -> None:
        await self.execute(METHOD_SET_POWER, PowerStatus.ON, effect, duration)
        self.info.update(power=PowerStatus.ON)

    async def turn_off(self, effect: Effect = Effect.SMOOTH, duration: int = DEFAULT_DURATION_MS) -> None:
        await self.execute(METHOD_SET_POWER, PowerStatus.OFF, effect, duration)
        self.info.update(power=PowerStatus.OFF)

    async def toggle(self, effect: Effect = Effect.SMOOTH, duration: int = DEFAULT_DURATION_MS) -> None:
        previous = self.info.power
        await self.execute(METHOD_TOGGLE, effect, duration)
        self.info.update(power=PowerStatus.OFF if previous is PowerStatus.ON else PowerStatus.ON)

    # Brightness and color

    async def set_brightness(
        self,
        brightness: int,
        effect: Effect = Effect.SMOOTH,
        duration: int = DEFAULT_DURATION_MS,
    ) -> None:
        """Set brightness (1-100)."""
        if not MIN_BRIGHTNESS <= brightness <= MAX_BRIGHTNESS:
            error_msg = f"brightness must be between {MIN_BRIGHTNESS} and {MAX_BRIGHTNESS}"
            raise ValueError(error_msg)
        await self.execute(METHOD_SET_BRIGHT, brightness, effect, duration)
        self.info.update(brightness=brightness)

    async def set_rgb(
        self,
        red: int,
        green: int,
        blue: int,
        effect: Effect = Effect.SMOOTH,
        duration: int = DEFAULT_DURATION_MS,
    ) -> None:
        rgb = rgb_to_int(red, green, blue)
        await self.execute(METHOD_SET_RGB, rgb, effect, duration)
        self.info.update(rgb=rgb, color_mode=ColorMode.RGB)

    async def set_hsv(
        self,
        hue: int,
        saturation: int,
        value: int,
        duration: int = DEFAULT_DURATION_MS,
    ) -> None:
        """Set hue, saturation and brightness in one transition.

        The device's set_hsv method has no brightness component, so the color
        is sent as a one-step color flow whose single transition carries the
        packed RGB equivalent of (hue, saturation) at full value plus the
        brightness.
        """
        if not 0 <= hue <= MAX_HUE:
            error_msg = f"hue must be between 0 and {MAX_HUE}"
            raise ValueError(error_msg)
        if not 0 <= saturation <= MAX_SATURATION:
            error_msg = f"saturation must be between 0 and {MAX_SATURATION}"
            raise ValueError(error_msg)
        if not MIN_BRIGHTNESS <= value <= MAX_BRIGHTNESS:
            error_msg = f"brightness must be between {MIN_BRIGHTNESS} and {MAX_BRIGHTNESS}"
            raise ValueError(error_msg)

        rgb = hsv_to_int(hue, saturation)
        flow = f"{duration},{_FLOW_MODE_COLOR},{rgb},{value}"
        await self.execute(METHOD_START_CF, _FLOW_COUNT, _FLOW_ACTION_STAY, flow)
        self.info.update(hue=hue, saturation=saturation, brightness=value, rgb=rgb)

    async def set_color_temperature(
        self,
        kelvin: int,
        effect: Effect = Effect.SMOOTH,
        duration: int = DEFAULT_DURATION_MS,
    ) -> None:
        """Set white color temperature (1700-6500K)."""
        if not MIN_COLOR_TEMPERATURE <= kelvin <= MAX_COLOR_TEMPERATURE:
            error_msg = (
                f"color temperature must be between {MIN_COLOR_TEMPERATURE} "
                f"and {MAX_COLOR_TEMPERATURE}"
            )
            raise ValueError(error_msg)
        await self.execute(METHOD_SET_CT_ABX, kelvin, effect, duration)
        self.info.update(color_temperature=kelvin, color_mode=ColorMode.COLOR_TEMPERATURE)
