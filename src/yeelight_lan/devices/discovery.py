"""SSDP-style discovery of Yeelight bulbs on the local network.

A single M-SEARCH probe is multicast to 239.255.255.250:1982; bulbs reply by
unicast to the probing socket with an HTTP-like header block:

    HTTP/1.1 200 OK
    Location: yeelight://10.0.0.5:55443
    id: 0x000000000015243f
    model: color
    fw_ver: 18
    support: get_prop set_default set_power toggle set_bright ...
    power: on
    bright: 100
    ...
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from yeelight_lan.const import (
    DEFAULT_DISCOVERY_TIMEOUT,
    DISCOVERY_MESSAGE,
    SSDP_HOST,
    SSDP_PORT,
)
from yeelight_lan.devices.device_info import DeviceAddress, DeviceInfo, DeviceState, decode_property
from yeelight_lan.metrics import registry
from yeelight_lan.protocol.exceptions import DiscoveryParseError
from yeelight_lan.transport.exceptions import DiscoveryTimeoutError, YeelightConnectionError

logger = logging.getLogger(__name__)

_LOCATION_KEY = "location"
_IDENTITY_KEYS = {
    "id": "device_id",
    "model": "model",
    "fw_ver": "firmware_version",
}


class _Record:
    """Discovery fields collected for one Location block."""

    def __init__(self, address: DeviceAddress) -> None:
        self.address = address
        self.identity: dict[str, str] = {}
        self.support: tuple[str, ...] = ()
        self.state: dict[str, Any] = {}

    def build(self) -> DeviceInfo:
        return DeviceInfo(
            address=self.address,
            support=self.support,
            state=DeviceState(**self.state),
            **self.identity,
        )


def parse_discovery_response(text: str) -> list[DeviceInfo]:
    """Parse a discovery reply into DeviceInfo records.

    Each `Location` header starts a new record; the headers that follow it
    fill that record. Headers before the first Location are ignored.

    Raises:
        DiscoveryParseError: If a Location or numeric property is malformed

    """
    records: list[_Record] = []

    for raw_line in text.split("\r\n"):
        key, sep, value = raw_line.partition(":")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        lowered = key.casefold()

        if lowered == _LOCATION_KEY:
            try:
                address = DeviceAddress.parse_location(value)
            except ValueError as e:
                raise DiscoveryParseError(str(e), field=key, value=value) from e
            records.append(_Record(address))
            continue

        if not records:
            logger.debug(
                "Ignoring discovery header before Location",
                extra={"header": key},
            )
            continue
        record = records[-1]

        if key in _IDENTITY_KEYS:
            record.identity[_IDENTITY_KEYS[key]] = value
        elif key == "support":
            record.support = tuple(value.split())
        else:
            try:
                attribute, decoded = decode_property(key, value)
            except KeyError:
                continue
            except ValueError as e:
                if key == "power":
                    # Only address and numeric fields are fatal
                    logger.warning(
                        "Ignoring unknown discovery power value %r",
                        value,
                        extra={"address": str(record.address), "value": value},
                    )
                    continue
                raise DiscoveryParseError(str(e), field=key, value=value) from e
            record.state[attribute] = decoded

    return [record.build() for record in records]


class DiscoveryProtocol(asyncio.DatagramProtocol):
    """Queues every received datagram for discover()."""

    def __init__(self) -> None:
        self.transport: asyncio.DatagramTransport | None = None
        self.datagrams: asyncio.Queue[tuple[bytes, tuple[str, int]]] = asyncio.Queue()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        logger.debug(
            "Received %d bytes from %s:%d",
            len(data),
            addr[0],
            addr[1],
            extra={"bytes": len(data), "host": addr[0], "port": addr[1]},
        )
        self.datagrams.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        logger.warning("Discovery socket error: %s", exc, extra={"error": str(exc)})


async def discover(
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    *,
    collect_all: bool = False,
) -> list[DeviceInfo]:
    """Probe the network for bulbs.

    Args:
        timeout: Seconds to wait for replies
        collect_all: Keep reading until `timeout` and merge every reply
            (de-duplicated by device id) instead of returning after the first

    Returns:
        Bulbs parsed from the received replies

    Raises:
        YeelightConnectionError: If the UDP socket cannot be opened or written
        DiscoveryTimeoutError: If no reply arrives within `timeout`
        DiscoveryParseError: If a reply is malformed

    """
    loop = asyncio.get_running_loop()
    logger.info(
        "→ Discovering bulbs (timeout: %.1fs)",
        timeout,
        extra={"timeout": timeout, "collect_all": collect_all},
    )

    try:
        transport, protocol = await loop.create_datagram_endpoint(
            DiscoveryProtocol,
            local_addr=("0.0.0.0", 0),
        )
    except OSError as e:
        registry.record_discovery("error")
        raise YeelightConnectionError(f"discovery_socket_failed: {e}", state="discovering") from e

    try:
        try:
            transport.sendto(DISCOVERY_MESSAGE, (SSDP_HOST, SSDP_PORT))
        except OSError as e:
            registry.record_discovery("error")
            raise YeelightConnectionError(f"discovery_send_failed: {e}", state="discovering") from e

        bulbs = await _collect(protocol, timeout, collect_all=collect_all)
    finally:
        transport.close()

    registry.record_discovery("success")
    logger.info(
        "✓ Discovered %d bulb(s)",
        len(bulbs),
        extra={"count": len(bulbs), "bulbs": [repr(b) for b in bulbs]},
    )
    return bulbs


async def _collect(protocol: DiscoveryProtocol, timeout: float, *, collect_all: bool) -> list[DeviceInfo]:
    if not collect_all:
        try:
            data, _ = await asyncio.wait_for(protocol.datagrams.get(), timeout=timeout)
        except TimeoutError as e:
            registry.record_discovery("timeout")
            raise DiscoveryTimeoutError(timeout) from e
        return _parse_datagram(data)

    bulbs: dict[str, DeviceInfo] = {}
    received = False
    deadline = asyncio.get_running_loop().time() + timeout
    with contextlib.suppress(TimeoutError):
        async with asyncio.timeout_at(deadline):
            while True:
                data, addr = await protocol.datagrams.get()
                received = True
                for bulb in _parse_datagram(data):
                    key = bulb.device_id or f"{addr[0]}:{bulb.address.port}"
                    bulbs[key] = bulb

    if not received:
        registry.record_discovery("timeout")
        raise DiscoveryTimeoutError(timeout)
    return list(bulbs.values())


def _parse_datagram(data: bytes) -> list[DeviceInfo]:
    try:
        return parse_discovery_response(data.decode("utf-8", errors="replace"))
    except DiscoveryParseError:
        registry.record_discovery("parse_error")
        raise
