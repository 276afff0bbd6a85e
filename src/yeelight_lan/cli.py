"""Command-line interface for yeelight-lan.

Examples:
    yeelight-lan discover --all
    yeelight-lan --host 10.0.0.5 on
    yeelight-lan --host 10.0.0.5 hsv 120 100 80
    producer | yeelight-lan --host 10.0.0.5 stream

Device commands discover bulbs first (the control protocol needs the
advertised method list) and pick the one at --host, or the first reply.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import cast

import dotenv
import uvloop

from yeelight_lan import __version__
from yeelight_lan.const import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_MUSIC_MODE_PORT,
    DEFAULT_POLL_INTERVAL,
    env_bool,
    env_float,
    env_int,
    env_str,
)
from yeelight_lan.devices import POLLED_PROPERTIES, DeviceInfo, discover
from yeelight_lan.logging_abstraction import setup_logging
from yeelight_lan.metrics import start_metrics_server
from yeelight_lan.protocol.exceptions import YeelightProtocolError
from yeelight_lan.protocol.message_types import Effect
from yeelight_lan.transport import Bulb, MusicModeBulb, YeelightConnectionError

logger = logging.getLogger(__name__)


def _load_env(env_file: Path | None) -> None:
    """Load a .env file (explicit path, or ./.env when present) into os.environ."""
    if env_file is None:
        dotenv.load_dotenv()
        return
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        print(f"Environment file not found: {env_path}", file=sys.stderr)
        return
    dotenv.load_dotenv(env_path, override=True)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; defaults come from the (dotenv-loaded) environment."""
    debug = env_bool("YEELIGHT_DEBUG", False)

    parser = argparse.ArgumentParser(
        prog="yeelight-lan",
        description="Control Yeelight bulbs on the local network",
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument("--env", type=Path, default=None, help="Path to an environment file")
    _ = parser.add_argument("--host", default=None, help="Bulb IP address (default: first discovered)")
    _ = parser.add_argument(
        "--log-level",
        default="DEBUG" if debug else "INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    _ = parser.add_argument(
        "--log-format",
        default=env_str("YEELIGHT_LOG_FORMAT", "human"),
        choices=["human", "json"],
        help="Log output format (default: human)",
    )
    _ = parser.add_argument(
        "--metrics-port",
        type=int,
        default=env_int("YEELIGHT_METRICS_PORT", 0),
        help="Prometheus metrics port, 0 to disable (default: 0)",
    )
    _ = parser.add_argument(
        "--timeout",
        type=float,
        default=env_float("YEELIGHT_DISCOVERY_TIMEOUT", DEFAULT_DISCOVERY_TIMEOUT),
        help="Discovery timeout in seconds (default: 3.0)",
    )
    _ = parser.add_argument(
        "--effect",
        default=Effect.SMOOTH.value,
        choices=[e.value for e in Effect],
        help="Transition effect (default: smooth)",
    )
    _ = parser.add_argument(
        "--duration",
        type=int,
        default=500,
        help="Transition duration in milliseconds (default: 500)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    discover_parser = sub.add_parser("discover", help="List bulbs on the network")
    _ = discover_parser.add_argument(
        "--all",
        action="store_true",
        dest="collect_all",
        help="Wait for the full timeout and list every bulb that replies",
    )

    _ = sub.add_parser("props", help="Print the bulb's current properties")
    _ = sub.add_parser("on", help="Turn the bulb on")
    _ = sub.add_parser("off", help="Turn the bulb off")
    _ = sub.add_parser("toggle", help="Toggle power")
    _ = sub.add_parser("default", help="Save the current state as power-on default")

    brightness_parser = sub.add_parser("brightness", help="Set brightness (1-100)")
    _ = brightness_parser.add_argument("brightness", type=int)

    rgb_parser = sub.add_parser("rgb", help="Set RGB color (0-255 each)")
    for channel in ("red", "green", "blue"):
        _ = rgb_parser.add_argument(channel, type=int)

    hsv_parser = sub.add_parser("hsv", help="Set hue (0-359), saturation (0-100), brightness (1-100)")
    for component in ("hue", "saturation", "value"):
        _ = hsv_parser.add_argument(component, type=int)

    ct_parser = sub.add_parser("ct", help="Set color temperature (1700-6500K)")
    _ = ct_parser.add_argument("kelvin", type=int)

    stream_parser = sub.add_parser(
        "stream",
        help="Enter music mode and apply 'h s v' lines read from stdin",
    )
    _ = stream_parser.add_argument(
        "--music-port",
        type=int,
        default=env_int("YEELIGHT_MUSIC_MODE_PORT", DEFAULT_MUSIC_MODE_PORT),
        help="Local port the bulb connects back to (default: 54321)",
    )

    return parser


async def find_bulb(host: str | None, timeout: float) -> DeviceInfo:
    """Discover bulbs and return the one at `host` (or the first one)."""
    bulbs = await discover(timeout, collect_all=host is not None)
    if not bulbs:
        raise YeelightConnectionError("no_bulbs_found", state="discovering")
    if host is None:
        return bulbs[0]
    for info in bulbs:
        if info.address.host == host:
            return info
    error_msg = f"no bulb at {host} replied to discovery"
    raise YeelightConnectionError(error_msg, state="discovering")


def _state_as_dict(info: DeviceInfo) -> dict[str, object]:
    state = {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(info.state).items()}
    return {
        "id": info.device_id,
        "address": str(info.address),
        "model": info.model,
        "firmware_version": info.firmware_version,
        **state,
    }


async def stream_frames(music: MusicModeBulb, duration: int) -> int:
    """Apply `h s v` (or `on` / `off`) lines from stdin until EOF.

    Returns:
        Number of frames sent

    """
    sent = 0
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return sent
        tokens = line.split()
        if not tokens:
            continue
        try:
            if tokens == ["on"]:
                await music.turn_on(Effect.SUDDEN, 0)
            elif tokens == ["off"]:
                await music.turn_off(Effect.SUDDEN, 0)
            else:
                hue, saturation, value = (int(token) for token in tokens)
                await music.set_hsv(hue, saturation, value, duration=duration)
        except ValueError as e:
            logger.warning("Skipping malformed frame: %s", line.strip(), extra={"error": str(e)})
            continue
        sent += 1


async def run_device_command(args: argparse.Namespace) -> int:
    """Connect to the selected bulb and run one device command."""
    info = await find_bulb(args.host, args.timeout)
    effect = Effect(args.effect)
    duration: int = args.duration

    async with Bulb(
        info,
        poll_interval=env_float("YEELIGHT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        command_timeout=env_float("YEELIGHT_COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT),
        connect_timeout=env_float("YEELIGHT_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
    ) as bulb:
        if args.command == "props":
            info.apply_properties(await bulb.get_properties(*POLLED_PROPERTIES), source="poll")
            print(json.dumps(_state_as_dict(info), indent=2))
        elif args.command == "on":
            await bulb.turn_on(effect, duration)
        elif args.command == "off":
            await bulb.turn_off(effect, duration)
        elif args.command == "toggle":
            await bulb.toggle(effect, duration)
        elif args.command == "default":
            await bulb.set_default()
        elif args.command == "brightness":
            await bulb.set_brightness(args.brightness, effect, duration)
        elif args.command == "rgb":
            await bulb.set_rgb(args.red, args.green, args.blue, effect, duration)
        elif args.command == "hsv":
            await bulb.set_hsv(args.hue, args.saturation, args.value, duration)
        elif args.command == "ct":
            await bulb.set_color_temperature(args.kelvin, effect, duration)
        elif args.command == "stream":
            try:
                await bulb.disable_music_mode()
            except YeelightProtocolError as e:
                logger.warning("Failed to disable music mode (probably not active): %s", e)
            sent = await bulb.enable_music_mode(
                args.music_port,
                lambda music: stream_frames(music, duration),
            )
            logger.info("Stream finished", extra={"frames": sent})
    return 0


async def main_async(args: argparse.Namespace) -> int:
    """Async main entry point."""
    metrics_port = cast(int, args.metrics_port)
    if metrics_port > 0:
        try:
            start_metrics_server(metrics_port)
        except OSError as e:
            logger.exception(
                "Failed to start metrics server",
                extra={"port": metrics_port, "error": str(e), "error_type": type(e).__name__},
            )
            return 1

    try:
        if args.command == "discover":
            bulbs = await discover(args.timeout, collect_all=args.collect_all)
            for info in bulbs:
                print(json.dumps(_state_as_dict(info)))
            return 0
        return await run_device_command(args)
    except YeelightProtocolError as e:
        logger.error("✗ %s failed: %s", args.command, e, extra={"error_type": type(e).__name__})
        return 1
    except ValueError as e:
        logger.error("✗ Invalid argument: %s", e)
        return 2


def main(argv: list[str] | None = None) -> int:
    """Run the yeelight-lan CLI."""
    pre_parser = argparse.ArgumentParser(add_help=False)
    _ = pre_parser.add_argument("--env", type=Path, default=None)
    pre_args, _ = pre_parser.parse_known_args(argv)
    _load_env(pre_args.env)

    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    try:
        return uvloop.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
