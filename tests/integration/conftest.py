"""Fixtures for integration tests."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest

from yeelight_lan.devices.device_info import DeviceAddress, DeviceInfo, DeviceState
from yeelight_lan.protocol.message_types import PowerStatus

logger = logging.getLogger(__name__)

SUPPORT = (
    "get_prop",
    "set_default",
    "set_power",
    "toggle",
    "set_bright",
    "start_cf",
    "set_ct_abx",
    "set_rgb",
    "set_music",
)


class MockYeelightDevice:
    """Mock Yeelight bulb speaking the JSON-lines control protocol."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0, device_id: str = "0xMOCK"):
        """Initialize mock device.

        Args:
            host: Host to bind to
            port: Port to bind to (0 = OS assigns)
            device_id: Identifier reported in DeviceInfo

        """
        self.host = host
        self.port = port
        self.device_id = device_id
        self.server: asyncio.Server | None = None
        self.props: dict[str, str] = {
            "power": "off",
            "bright": "50",
            "color_mode": "2",
            "ct": "4000",
            "rgb": "16777215",
            "hue": "0",
            "sat": "0",
            "name": "mock",
        }
        self.received: list[dict[str, Any]] = []
        self.music_received: list[dict[str, Any]] = []
        self.silent_methods: set[str] = set()
        self.error_methods: dict[str, tuple[int, str]] = {}
        self.dial_back = True
        self._writers: list[asyncio.StreamWriter] = []
        self._tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start listening for control connections."""
        self.server = await asyncio.start_server(self._handle_client, self.host, self.port)
        if self.port == 0:
            self.port = self.server.sockets[0].getsockname()[1]
        logger.info("Mock Yeelight device started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Close every connection and stop listening."""
        await self.close_clients()
        for task in list(self._tasks):
            task.cancel()
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("Mock Yeelight device stopped")

    def info(self, *, power: PowerStatus = PowerStatus.OFF) -> DeviceInfo:
        """DeviceInfo as discovery would report it."""
        return DeviceInfo(
            DeviceAddress.parse_location(f"yeelight://{self.host}:{self.port}"),
            device_id=self.device_id,
            model="color",
            firmware_version="18",
            support=SUPPORT,
            state=DeviceState(power=power),
        )

    def methods(self) -> list[str]:
        return [frame["method"] for frame in self.received]

    async def push(self, params: dict[str, str]) -> None:
        """Send a props notification to every connected client."""
        self.props.update(params)
        line = json.dumps({"method": "props", "params": params}).encode() + b"\r\n"
        for writer in self._writers:
            writer.write(line)
            await writer.drain()

    async def close_clients(self) -> None:
        """Close the device side of every control connection."""
        for writer in list(self._writers):
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.warning("Error closing writer: %s", e)
        self._writers.clear()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _apply(self, method: str, params: list[Any]) -> list[str]:
        if method == "get_prop":
            return [self.props.get(name, "") for name in params]
        if method == "set_power":
            self.props["power"] = params[0]
        elif method == "toggle":
            self.props["power"] = "off" if self.props["power"] == "on" else "on"
        elif method == "set_bright":
            self.props["bright"] = str(params[0])
        elif method == "set_music" and params[0] == 1 and self.dial_back:
            self._spawn(self._music_connection(params[1], params[2]))
        return ["ok"]

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Answer commands on one control connection until EOF."""
        self._writers.append(writer)
        try:
            while line := await reader.readline():
                frame = json.loads(line)
                self.received.append(frame)
                method = frame["method"]
                if method in self.silent_methods:
                    continue
                if method in self.error_methods:
                    code, message = self.error_methods[method]
                    reply: dict[str, Any] = {"id": frame["id"], "error": {"code": code, "message": message}}
                else:
                    reply = {"id": frame["id"], "result": self._apply(method, frame["params"])}
                writer.write(json.dumps(reply).encode() + b"\r\n")
                await writer.drain()
                if method in ("set_power", "toggle", "set_bright"):
                    await self.push({"power": self.props["power"], "bright": self.props["bright"]})
        except (ConnectionError, OSError) as e:
            logger.info("Control connection ended: %s", e)
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()

    async def _music_connection(self, ip: str, port: int) -> None:
        """Dial back to the client and record music mode frames until EOF."""
        reader, writer = await asyncio.open_connection(ip, port)
        try:
            while line := await reader.readline():
                self.music_received.append(json.loads(line))
        finally:
            writer.close()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll `predicate` until it holds or `timeout` expires."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture
async def mock_device() -> AsyncGenerator[MockYeelightDevice]:
    """Fixture providing a running mock Yeelight device."""
    device = MockYeelightDevice()
    await device.start()
    yield device
    await device.stop()
