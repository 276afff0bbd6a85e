"""Music mode: reversed connection for high-rate, reply-less commands.

Handshake (driven over the control connection):

    IDLE → REQUESTING      listen on the control connection's local IP,
                           send `set_music 1 <ip> <port>`
         → AWAITING_PEER   wait for the device to dial in (no timeout,
                           stop() aborts the wait)
         → ACTIVE          run the caller's session with a MusicModeBulb
         → CLOSING         `set_music 0`, close inbound connection + listener
         → IDLE

Teardown is best effort: failures are logged and never replace the
session's own result or exception.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from yeelight_lan.const import DEFAULT_COMMAND_TIMEOUT
from yeelight_lan.devices.device_info import DeviceInfo
from yeelight_lan.metrics import registry
from yeelight_lan.protocol.exceptions import YeelightProtocolError
from yeelight_lan.protocol.message_types import METHOD_SET_MUSIC
from yeelight_lan.transport.bulb_base import BulbBase
from yeelight_lan.transport.exceptions import MusicModeError, YeelightConnectionError
from yeelight_lan.transport.reply_strategy import FireAndForgetReplies
from yeelight_lan.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

MUSIC_MODE_ON = 1
MUSIC_MODE_OFF = 0


class MusicModeState(Enum):
    """Music mode lifecycle states."""

    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_PEER = "awaiting_peer"
    ACTIVE = "active"
    CLOSING = "closing"


class MusicModeBulb(BulbBase):
    """Command surface over the device's inbound music mode connection.

    Shares the DeviceInfo (and so the support list and snapshot) with the
    control Bulb. There is no poller and no line reader: commands are written
    and considered done, and their changes are applied optimistically.
    """

    def __init__(
        self,
        info: DeviceInfo,
        connection: TCPConnection,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        super().__init__(info, connection, FireAndForgetReplies(), command_timeout)
        self.logger_prefix = "[MusicMode]"

    async def disconnect(self) -> None:
        if self.conn is not None:
            await self.conn.close()


class MusicModeManager:
    """Runs the music mode handshake and session for one control Bulb."""

    def __init__(self, control: BulbBase) -> None:
        self.control = control
        self.state = MusicModeState.IDLE
        self._session_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self.lp = "[MusicMode]"

    def _set_state(self, state: MusicModeState) -> None:
        logger.debug(
            "%s %s → %s",
            self.lp,
            self.state.value,
            state.value,
            extra={"device_id": self.control.info.device_id, "state": state.value},
        )
        self.state = state

    async def run(self, port: int, session: Callable[[MusicModeBulb], Awaitable[T]]) -> T | None:
        """Enter music mode, run `session(music_bulb)` and tear down.

        Returns:
            The session's result, or None if it was stopped by stop()

        Raises:
            MusicModeError: If music mode is not IDLE
            YeelightConnectionError: If the listener cannot be started or the
                control connection fails during the handshake
            Any error raised by `session` or by `set_music 1`

        """
        if self.state is not MusicModeState.IDLE:
            raise MusicModeError("already_active", self.state.value)

        device_id = self.control.info.device_id
        self._set_state(MusicModeState.REQUESTING)
        server: asyncio.Server | None = None
        music_bulb: MusicModeBulb | None = None
        requested = False
        outcome = "error"
        accepted: asyncio.Future[tuple[asyncio.StreamReader, asyncio.StreamWriter]] | None = None

        try:
            if self.control.conn is None:
                raise YeelightConnectionError("not_connected", state="disconnected")
            local_ip, _ = self.control.conn.local_address

            accepted = asyncio.get_running_loop().create_future()

            def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
                if accepted is None or accepted.done():
                    logger.warning(
                        "%s Rejecting extra inbound connection",
                        self.lp,
                        extra={"device_id": device_id, "peer": writer.get_extra_info("peername")},
                    )
                    writer.close()
                    return
                accepted.set_result((reader, writer))

            try:
                server = await asyncio.start_server(on_connect, host=local_ip, port=port)
            except OSError as e:
                raise YeelightConnectionError(f"listen_failed: {e}", state="requesting") from e
            # port 0 binds an ephemeral port; advertise the one actually bound
            port = server.sockets[0].getsockname()[1]

            logger.info(
                "%s → Requesting music mode on %s:%d",
                self.lp,
                local_ip,
                port,
                extra={"device_id": device_id, "ip": local_ip, "port": port},
            )
            requested = True
            await self.control.execute(METHOD_SET_MUSIC, MUSIC_MODE_ON, local_ip, port)

            self._set_state(MusicModeState.AWAITING_PEER)
            if not await self._wait_for_peer(accepted):
                outcome = "stopped"
                return None
            reader, writer = accepted.result()
            music_bulb = MusicModeBulb(
                self.control.info,
                TCPConnection.from_streams(reader, writer, io_timeout=self.control.command_timeout),
                command_timeout=self.control.command_timeout,
            )

            self._set_state(MusicModeState.ACTIVE)
            logger.info(
                "%s ✓ Music mode active",
                self.lp,
                extra={"device_id": device_id, "peer": music_bulb.conn.host if music_bulb.conn else None},
            )
            self._session_task = asyncio.create_task(session(music_bulb))
            try:
                result = await self._session_task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if self._stop_event.is_set() and current is not None and not current.cancelling():
                    outcome = "stopped"
                    return None
                outcome = "cancelled"
                raise
            outcome = "success"
            return result
        finally:
            self._set_state(MusicModeState.CLOSING)
            if music_bulb is None and accepted is not None and accepted.done() and not accepted.cancelled():
                # Peer dialed in after the session was abandoned
                _, stray_writer = accepted.result()
                stray_writer.close()
            elif accepted is not None and not accepted.done():
                accepted.cancel()
            await self._teardown(server, music_bulb, requested=requested)
            self._session_task = None
            self._stop_event.clear()
            self._set_state(MusicModeState.IDLE)
            registry.record_music_mode_session(device_id, outcome)
            logger.info(
                "%s Music mode ended",
                self.lp,
                extra={"device_id": device_id, "outcome": outcome},
            )

    async def _wait_for_peer(self, accepted: asyncio.Future) -> bool:
        """Wait for the device to dial in. Returns False if stop() came first."""
        stopped = asyncio.ensure_future(self._stop_event.wait())
        try:
            _ = await asyncio.wait({accepted, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            _ = stopped.cancel()
        return not self._stop_event.is_set()

    async def _teardown(
        self,
        server: asyncio.Server | None,
        music_bulb: MusicModeBulb | None,
        *,
        requested: bool,
    ) -> None:
        device_id = self.control.info.device_id
        if requested:
            try:
                await self.control.execute(METHOD_SET_MUSIC, MUSIC_MODE_OFF)
            except (YeelightProtocolError, OSError) as e:
                logger.warning(
                    "%s Failed to disable music mode: %s",
                    self.lp,
                    e,
                    extra={"device_id": device_id, "error": str(e), "error_type": type(e).__name__},
                )

        if music_bulb is not None:
            await music_bulb.disconnect()

        if server is not None:
            server.close()
            try:
                await server.wait_closed()
            except OSError as e:
                logger.warning(
                    "%s Error closing music mode listener: %s",
                    self.lp,
                    e,
                    extra={"device_id": device_id, "error": str(e)},
                )

    async def stop(self) -> None:
        """Abort a handshake or stop an active session.

        When music mode is idle, sends `set_music 0` so a device left in
        music mode by an earlier client drops it.
        """
        if self.state is MusicModeState.IDLE:
            await self.control.execute(METHOD_SET_MUSIC, MUSIC_MODE_OFF)
            return
        logger.info(
            "%s Stopping music mode",
            self.lp,
            extra={"device_id": self.control.info.device_id, "state": self.state.value},
        )
        self._stop_event.set()
        if self._session_task is not None and not self._session_task.done():
            self._session_task.cancel()
