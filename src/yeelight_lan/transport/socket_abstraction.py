"""Asyncio TCP socket abstraction with deadlines and instrumentation."""

from __future__ import annotations

import asyncio
import logging
import time

from yeelight_lan.transport.exceptions import YeelightConnectionError

logger = logging.getLogger(__name__)


class TCPConnection:
    """Async TCP connection with timeouts, serialized writes and instrumentation."""

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 3.0,
        io_timeout: float = 3.0,
        max_read_size: int = 65536,
    ) -> None:
        """
        Initialize TCP connection parameters.

        Args:
            host: Target host
            port: Target port
            connect_timeout: Connection timeout in seconds
            io_timeout: Write (drain) timeout in seconds
            max_read_size: Maximum bytes to read in one operation
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected = False
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_streams(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        io_timeout: float = 3.0,
    ) -> TCPConnection:
        """Wrap an already-established stream pair (e.g. an accepted inbound connection)."""
        peer = writer.get_extra_info("peername") or ("unknown", 0)
        conn = cls(host=str(peer[0]), port=int(peer[1]), io_timeout=io_timeout)
        conn.reader = reader
        conn.writer = writer
        conn._connected = True
        return conn

    async def connect(self) -> None:
        """
        Establish TCP connection with timeout.

        Raises:
            YeelightConnectionError: If the connection times out or is refused
        """
        start_time = time.perf_counter()
        logger.info(
            "Connecting to %s:%d (timeout: %.1fs)",
            self.host,
            self.port,
            self.connect_timeout,
            extra={"host": self.host, "port": self.port, "timeout": self.connect_timeout},
        )
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except TimeoutError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Connection to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={
                    "host": self.host,
                    "port": self.port,
                    "elapsed_ms": elapsed_ms,
                    "error": "timeout",
                },
            )
            raise YeelightConnectionError("connect_timeout", state="connecting") from e
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Connection to %s:%d failed after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={
                    "host": self.host,
                    "port": self.port,
                    "elapsed_ms": elapsed_ms,
                    "error": str(e),
                },
            )
            raise YeelightConnectionError(f"connect_failed: {e}", state="connecting") from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._connected = True
        logger.info(
            "Connected to %s:%d in %.1fms",
            self.host,
            self.port,
            elapsed_ms,
            extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms},
        )

    async def send(self, data: bytes) -> None:
        """
        Send one frame with timeout.

        Frames are written under a lock so concurrent senders never interleave.

        Args:
            data: Bytes to send

        Raises:
            YeelightConnectionError: If not connected, or the write fails or times out
        """
        if not self._connected or not self.writer:
            logger.error(
                "Cannot send: not connected",
                extra={"host": self.host, "port": self.port},
            )
            raise YeelightConnectionError("not_connected", state="disconnected")

        start_time = time.perf_counter()
        try:
            async with self._write_lock:
                logger.debug(
                    "Sending %d bytes to %s:%d",
                    len(data),
                    self.host,
                    self.port,
                    extra={"bytes": len(data), "host": self.host, "port": self.port},
                )
                self.writer.write(data)
                await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
        except TimeoutError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Send to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={
                    "host": self.host,
                    "port": self.port,
                    "elapsed_ms": elapsed_ms,
                    "error": "timeout",
                },
            )
            raise YeelightConnectionError("send_timeout", state="connected") from e
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Send to %s:%d failed after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={
                    "host": self.host,
                    "port": self.port,
                    "elapsed_ms": elapsed_ms,
                    "error": str(e),
                },
            )
            raise YeelightConnectionError(f"send_failed: {e}", state="connected") from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Sent %d bytes to %s:%d in %.1fms",
            len(data),
            self.host,
            self.port,
            elapsed_ms,
            extra={
                "bytes": len(data),
                "host": self.host,
                "port": self.port,
                "elapsed_ms": elapsed_ms,
            },
        )

    async def recv(self, max_bytes: int | None = None) -> bytes:
        """
        Receive the next chunk of data, waiting as long as it takes.

        Args:
            max_bytes: Maximum bytes to read (default: self.max_read_size)

        Returns:
            Received bytes, or b"" when the peer closed the connection

        Raises:
            YeelightConnectionError: If not connected or the read fails
        """
        if not self._connected or not self.reader:
            logger.error(
                "Cannot receive: not connected",
                extra={"host": self.host, "port": self.port},
            )
            raise YeelightConnectionError("not_connected", state="disconnected")

        if max_bytes is None:
            max_bytes = self.max_read_size

        try:
            data = await self.reader.read(max_bytes)
        except OSError as e:
            logger.exception(
                "Receive from %s:%d failed",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port, "error": str(e)},
            )
            raise YeelightConnectionError(f"recv_failed: {e}", state="connected") from e

        if not data:
            logger.warning(
                "Connection closed by %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            self._connected = False
            return b""

        logger.debug(
            "Received %d bytes from %s:%d",
            len(data),
            self.host,
            self.port,
            extra={"bytes": len(data), "host": self.host, "port": self.port},
        )
        return data

    @property
    def local_address(self) -> tuple[str, int]:
        """Local (ip, port) of the socket.

        Raises:
            YeelightConnectionError: If not connected
        """
        sockname = self.writer.get_extra_info("sockname") if self.writer else None
        if not sockname:
            raise YeelightConnectionError("no_local_address", state="disconnected")
        return str(sockname[0]), int(sockname[1])

    async def close(self) -> None:
        """Close the connection."""
        if self.writer:
            logger.info(
                "Closing connection to %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            try:
                self.writer.close()
                await self.writer.wait_closed()
            except (OSError, ConnectionError) as e:
                logger.warning(
                    "Error closing connection: %s",
                    e,
                    extra={
                        "host": self.host,
                        "port": self.port,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
            finally:
                self._connected = False
                self.writer = None
                self.reader = None

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
