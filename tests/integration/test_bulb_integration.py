"""Integration tests for Bulb against a mock device over real sockets."""

from __future__ import annotations

import asyncio

import pytest

from yeelight_lan.protocol.exceptions import DeviceError
from yeelight_lan.protocol.message_types import PowerStatus
from yeelight_lan.transport import Bulb, MusicModeBulb, MusicModeState
from yeelight_lan.transport.exceptions import (
    CommandTimeoutError,
    DeviceOffError,
    MusicModeError,
    YeelightConnectionError,
)

from .conftest import MockYeelightDevice, wait_until

pytestmark = pytest.mark.integration


class TestControlConnection:
    """Commands, notifications and polling."""

    @pytest.mark.asyncio
    async def test_commands_round_trip(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            await bulb.turn_on()
            await bulb.set_brightness(30)

        assert mock_device.methods() == ["set_power", "set_bright"]
        assert [frame["id"] for frame in mock_device.received] == [1, 2]
        assert mock_device.props["power"] == "on"
        assert mock_device.props["bright"] == "30"

    @pytest.mark.asyncio
    async def test_guarded_command_while_off_not_sent(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            with pytest.raises(DeviceOffError):
                await bulb.set_brightness(30)

        assert mock_device.received == []

    @pytest.mark.asyncio
    async def test_notification_updates_snapshot(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            await mock_device.push({"power": "on", "bright": "33", "ct": "2700"})

            await wait_until(lambda: bulb.info.brightness == 33)

            assert bulb.power is PowerStatus.ON
            assert bulb.info.color_temperature == 2700

    @pytest.mark.asyncio
    async def test_poll_updates_snapshot(self, mock_device: MockYeelightDevice) -> None:
        mock_device.props.update({"power": "on", "bright": "77", "name": "porch"})

        async with Bulb(mock_device.info(), poll_interval=0.05) as bulb:
            await wait_until(lambda: bulb.info.brightness == 77)

            assert bulb.info.name == "porch"
            assert "get_prop" in mock_device.methods()

    @pytest.mark.asyncio
    async def test_get_properties(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            props = await bulb.get_properties("power", "ct", "flowing")

        assert props == {"power": "off", "ct": "4000", "flowing": ""}

    @pytest.mark.asyncio
    async def test_device_error(self, mock_device: MockYeelightDevice) -> None:
        mock_device.error_methods["set_default"] = (-1, "unsupported method")

        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            with pytest.raises(DeviceError) as exc_info:
                await bulb.set_default()

        assert exc_info.value.code == -1

    @pytest.mark.asyncio
    async def test_timeout_leaves_connection_usable(self, mock_device: MockYeelightDevice) -> None:
        mock_device.silent_methods.add("toggle")

        async with Bulb(mock_device.info(), poll_interval=60.0, command_timeout=0.1) as bulb:
            with pytest.raises(CommandTimeoutError):
                await bulb.toggle()

            await bulb.turn_on()

            assert bulb.is_connected is True
        assert [frame["id"] for frame in mock_device.received] == [1, 2]

    @pytest.mark.asyncio
    async def test_concurrent_commands_matched_by_id(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            results = await asyncio.gather(
                bulb.get_properties("power"),
                bulb.get_properties("bright"),
                bulb.get_properties("name"),
            )

        assert results == [{"power": "off"}, {"bright": "50"}, {"name": "mock"}]

    @pytest.mark.asyncio
    async def test_peer_close_is_terminal(self, mock_device: MockYeelightDevice) -> None:
        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            await mock_device.close_clients()

            await wait_until(lambda: not bulb.is_connected)

            with pytest.raises(YeelightConnectionError) as exc_info:
                await bulb.turn_on()
            assert exc_info.value.reason == "closed_by_peer"

    @pytest.mark.asyncio
    async def test_connect_refused(self) -> None:
        device = MockYeelightDevice()
        await device.start()
        info = device.info()
        await device.stop()

        with pytest.raises(YeelightConnectionError):
            await Bulb(info, connect_timeout=1.0).connect()


class TestMusicMode:
    """Music mode handshake and teardown."""

    @pytest.mark.asyncio
    async def test_session_round_trip(self, mock_device: MockYeelightDevice) -> None:
        async def session(music: MusicModeBulb) -> str:
            await music.set_hsv(120, 100, 80)
            await music.set_brightness(10)
            return "done"

        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            result = await bulb.enable_music_mode(0, session)

            assert result == "done"
            assert bulb.music_mode_state is MusicModeState.IDLE
            assert bulb.info.brightness == 10
            await wait_until(lambda: len(mock_device.music_received) == 2)

            # Control connection still works after teardown
            assert await bulb.get_properties("power") == {"power": "off"}

        assert [f["method"] for f in mock_device.music_received] == ["start_cf", "set_bright"]
        assert mock_device.music_received[0]["params"] == [1, 1, "500,1,65280,80"]

        set_music = [f["params"] for f in mock_device.received if f["method"] == "set_music"]
        assert set_music[0][:2] == [1, "127.0.0.1"]
        assert set_music[0][2] > 0
        assert set_music[1] == [0]

    @pytest.mark.asyncio
    async def test_stop_ends_session(self, mock_device: MockYeelightDevice) -> None:
        started = asyncio.Event()

        async def session(music: MusicModeBulb) -> None:
            started.set()
            await asyncio.Event().wait()

        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            task = asyncio.create_task(bulb.enable_music_mode(0, session))
            await asyncio.wait_for(started.wait(), timeout=2.0)
            assert bulb.music_mode_state is MusicModeState.ACTIVE

            await bulb.disable_music_mode()

            assert await asyncio.wait_for(task, timeout=2.0) is None
            assert bulb.music_mode_state is MusicModeState.IDLE
            await bulb.toggle()

    @pytest.mark.asyncio
    async def test_second_session_rejected(self, mock_device: MockYeelightDevice) -> None:
        started = asyncio.Event()

        async def session(music: MusicModeBulb) -> None:
            started.set()
            await asyncio.Event().wait()

        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            task = asyncio.create_task(bulb.enable_music_mode(0, session))
            await asyncio.wait_for(started.wait(), timeout=2.0)

            with pytest.raises(MusicModeError) as exc_info:
                await bulb.enable_music_mode(0, session)
            assert exc_info.value.state == "active"

            await bulb.disable_music_mode()
            await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_cancel_while_awaiting_peer_cleans_up(self, mock_device: MockYeelightDevice) -> None:
        mock_device.dial_back = False

        async def session(music: MusicModeBulb) -> None:
            pytest.fail("session must not start without a peer")

        async with Bulb(mock_device.info(), poll_interval=60.0) as bulb:
            task = asyncio.create_task(bulb.enable_music_mode(0, session))
            await wait_until(lambda: bulb.music_mode_state is MusicModeState.AWAITING_PEER)

            _ = task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            assert bulb.music_mode_state is MusicModeState.IDLE
            set_music = [f["params"] for f in mock_device.received if f["method"] == "set_music"]
            assert set_music[-1] == [0]

            # Listener is closed
            port = set_music[0][2]
            with pytest.raises(OSError):
                _ = await asyncio.open_connection("127.0.0.1", port)

            # Control connection still usable
            await bulb.turn_on()
            assert mock_device.props["power"] == "on"

    @pytest.mark.asyncio
    async def test_disable_while_awaiting_peer_returns_to_idle(self, mock_device: MockYeelightDevice) -> None:
        mock_device.dial_back = False

        async def session(music: MusicModeBulb) -> None:
            pytest.fail("session must not start without a peer")

        async def second_session(music: MusicModeBulb) -> str:
            await music.set_brightness(20)
            return "second"

        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            task = asyncio.create_task(bulb.enable_music_mode(0, session))
            await wait_until(lambda: bulb.music_mode_state is MusicModeState.AWAITING_PEER)

            await bulb.disable_music_mode()

            assert await asyncio.wait_for(task, timeout=2.0) is None
            assert bulb.music_mode_state is MusicModeState.IDLE
            set_music = [f["params"] for f in mock_device.received if f["method"] == "set_music"]
            assert set_music.count([0]) == 1

            # A new session can start afterwards
            mock_device.dial_back = True
            assert await bulb.enable_music_mode(0, second_session) == "second"

    @pytest.mark.asyncio
    async def test_session_error_propagates_after_teardown(self, mock_device: MockYeelightDevice) -> None:
        async def session(music: MusicModeBulb) -> None:
            error_msg = "bad frame"
            raise ValueError(error_msg)

        async with Bulb(mock_device.info(power=PowerStatus.ON), poll_interval=60.0) as bulb:
            with pytest.raises(ValueError, match="bad frame"):
                await bulb.enable_music_mode(0, session)

            assert bulb.music_mode_state is MusicModeState.IDLE

        set_music = [f["params"] for f in mock_device.received if f["method"] == "set_music"]
        assert set_music[-1] == [0]
