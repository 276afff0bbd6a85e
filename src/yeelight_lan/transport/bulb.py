"""Control connection to a Yeelight bulb.

Bulb owns one TCP connection and two background tasks:

- line reader: splits incoming bytes into lines, resolves in-flight commands
  with their results and applies "props" notifications to the DeviceInfo
- poller: every poll_interval seconds requests POLLED_PROPERTIES and applies
  the reply by position

Any read failure other than our own close is terminal for the connection:
in-flight commands fail, the poller stops and later commands raise.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from uuid_extensions import uuid7

from yeelight_lan.const import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
)
from yeelight_lan.devices.device_info import POLLED_PROPERTIES, DeviceInfo
from yeelight_lan.metrics import registry
from yeelight_lan.protocol.exceptions import DeviceError, MessageDecodeError
from yeelight_lan.protocol.line_framer import LineFramer
from yeelight_lan.protocol.message_types import (
    METHOD_GET_PROP,
    METHOD_SET_DEFAULT,
    NOTIFICATION_METHOD_PROPS,
    CommandResult,
    Notification,
)
from yeelight_lan.protocol.yeelight_protocol import YeelightProtocol
from yeelight_lan.transport.bulb_base import BulbBase
from yeelight_lan.transport.exceptions import (
    CommandTimeoutError,
    UnsupportedMethodError,
    YeelightConnectionError,
)
from yeelight_lan.transport.music_mode import MusicModeBulb, MusicModeManager, MusicModeState
from yeelight_lan.transport.reply_strategy import CorrelatedReplies
from yeelight_lan.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Bulb(BulbBase):
    """Persistent control session with one bulb."""

    def __init__(
        self,
        info: DeviceInfo,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        super().__init__(info, None, CorrelatedReplies(), command_timeout)
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self.session_id = ""
        self.framer = LineFramer()
        self._reader_task: asyncio.Task | None = None
        self._poller_task: asyncio.Task | None = None
        self._closing = False
        self._music = MusicModeManager(self)

    def _log_extra(self, **extra: object) -> dict[str, object]:
        return {
            "logger_prefix": self.logger_prefix,
            "device_id": self.info.device_id,
            "session_id": self.session_id,
            **extra,
        }

    # Lifecycle

    async def connect(self) -> None:
        """Open the control connection and start the line reader and poller.

        Raises:
            YeelightConnectionError: If already connected, or the connection
                cannot be established

        """
        if self.is_connected:
            raise YeelightConnectionError("already_connected", state="connected")

        if self.conn is not None:
            # Left open by a failed session
            stale, self.conn = self.conn, None
            await stale.close()

        device_id = self.info.device_id
        self.session_id = str(uuid7())
        registry.record_connection_state(device_id, "connecting")
        conn = TCPConnection(
            self.info.address.host,
            self.info.address.port,
            connect_timeout=self.connect_timeout,
            io_timeout=self.command_timeout,
        )
        try:
            await conn.connect()
        except YeelightConnectionError:
            registry.record_connection_state(device_id, "failed")
            raise

        self.conn = conn
        self.framer = LineFramer()
        self._failure = None
        self._closing = False
        self._last_command_id = 0
        self._reader_task = asyncio.create_task(self._line_reader(), name=f"yeelight-reader-{device_id}")
        self._poller_task = asyncio.create_task(self._poller(), name=f"yeelight-poller-{device_id}")
        registry.record_connection_state(device_id, "connected")
        logger.info("✓ Bulb connected", extra=self._log_extra(address=str(self.info.address)))

    async def disconnect(self) -> None:
        """Stop the background tasks and close the connection."""
        self._closing = True
        tasks = [t for t in (self._poller_task, self._reader_task) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._poller_task = None
        self._reader_task = None

        if self.conn is not None:
            await self.conn.close()
        self.replies.fail_all(YeelightConnectionError("disconnected", state="disconnected"))
        registry.record_connection_state(self.info.device_id, "disconnected")
        logger.info("Bulb disconnected", extra=self._log_extra())

    async def __aenter__(self) -> Bulb:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.conn is not None and self.conn.is_connected and self._failure is None

    def _fail_connection(self, error: YeelightConnectionError) -> None:
        """Mark the connection failed; every in-flight and later command raises."""
        self._failure = error
        logger.error(
            "✗ Control connection failed: %s",
            error.reason,
            extra=self._log_extra(reason=error.reason, in_flight=self.replies.in_flight),
        )
        registry.record_connection_state(self.info.device_id, "failed")
        self.replies.fail_all(error)
        if self._poller_task is not None and not self._poller_task.done():
            self._poller_task.cancel()

    # Line reader

    async def _line_reader(self) -> None:
        conn = self.conn
        if conn is None:
            return
        logger.debug("→ Line reader started", extra=self._log_extra())
        try:
            while True:
                data = await conn.recv()
                if not data:
                    raise YeelightConnectionError("closed_by_peer", state="connected")
                for line in self.framer.feed(data):
                    self._route_line(line)
        except YeelightConnectionError as e:
            if self._closing:
                return
            self._fail_connection(e)

    def _route_line(self, line: str) -> None:
        device_id = self.info.device_id
        try:
            message = YeelightProtocol.decode_line(line)
        except MessageDecodeError as e:
            registry.record_decode_error(device_id, e.reason)
            command_id = YeelightProtocol.result_id(line)
            if command_id is not None and self.replies.reject(command_id, e):
                logger.error(
                    "✗ Malformed result for in-flight command",
                    extra=self._log_extra(command_id=command_id, reason=e.reason, line=e.line_preview),
                )
                return
            logger.warning(
                "Skipping undecodable line",
                extra=self._log_extra(reason=e.reason, line=e.line_preview),
            )
            return

        if isinstance(message, CommandResult):
            if not self.replies.resolve(message):
                registry.record_unmatched_result(device_id)
                logger.warning(
                    "Unmatched result",
                    extra=self._log_extra(command_id=message.id),
                )
            return

        self._apply_notification(message)

    def _apply_notification(self, notification: Notification) -> None:
        registry.record_notification(self.info.device_id, notification.method)
        if notification.method != NOTIFICATION_METHOD_PROPS:
            logger.debug(
                "Ignoring notification",
                extra=self._log_extra(method=notification.method),
            )
            return
        applied = self.info.apply_properties(notification.params, source="notification")
        logger.debug("Applied notification", extra=self._log_extra(changes=applied))

    # Poller

    async def _poller(self) -> None:
        device_id = self.info.device_id
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                values = await self.execute(METHOD_GET_PROP, *POLLED_PROPERTIES)
            except UnsupportedMethodError:
                logger.warning("Device does not support get_prop; polling stopped", extra=self._log_extra())
                registry.record_poll(device_id, "unsupported")
                return
            except YeelightConnectionError as e:
                logger.info("Polling stopped: %s", e.reason, extra=self._log_extra())
                registry.record_poll(device_id, "connection_error")
                return
            except (DeviceError, CommandTimeoutError, MessageDecodeError) as e:
                logger.error(
                    "✗ Property poll failed: %s",
                    e,
                    extra=self._log_extra(error=str(e), error_type=type(e).__name__),
                )
                registry.record_poll(device_id, "error")
                continue

            self.info.apply_polled(values or [])
            registry.record_poll(device_id, "success")

    # Operations only available on the control connection

    async def set_default(self) -> None:
        """Save the current state as the power-on default."""
        await self.execute(METHOD_SET_DEFAULT)

    async def get_properties(self, *names: str) -> dict[str, str]:
        """Request properties by name; values are returned as the device sent them."""
        values = await self.execute(METHOD_GET_PROP, *names) or []
        return dict(zip(names, values))

    # Music mode

    @property
    def music_mode_state(self) -> MusicModeState:
        return self._music.state

    async def enable_music_mode(
        self,
        port: int,
        session: Callable[[MusicModeBulb], Awaitable[T]],
    ) -> T | None:
        """Run `session` with a MusicModeBulb connected through music mode.

        Music mode is torn down when the session returns, raises or is
        cancelled. See MusicModeManager.run().
        """
        return await self._music.run(port, session)

    async def disable_music_mode(self) -> None:
        """Abort a music mode handshake or session, or send `set_music 0` when idle."""
        await self._music.stop()

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"Bulb({self.info.device_id or '?'} at {self.info.address}, {status})"
