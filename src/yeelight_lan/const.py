import os

__all__ = [
    "DEFAULT_COMMAND_TIMEOUT",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_DISCOVERY_TIMEOUT",
    "DEFAULT_MUSIC_MODE_PORT",
    "DEFAULT_POLL_INTERVAL",
    "DISCOVERY_MESSAGE",
    "SSDP_HOST",
    "SSDP_PORT",
    "YES_ANSWER",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", "on")

SSDP_HOST: str = "239.255.255.250"
SSDP_PORT: int = 1982
DISCOVERY_MESSAGE: bytes = (
    b"M-SEARCH * HTTP/1.1\r\n"
    b" HOST:239.255.255.250:1982\r\n"
    b' MAN:"ssdp:discover"\r\n'
    b" ST:wifi_bulb\r\n"
)

# Library defaults. The environment is only consulted by the CLI, after it
# has loaded any .env file (see cli.build_parser and cli.run_device_command).
DEFAULT_MUSIC_MODE_PORT: int = 54321
# seconds
DEFAULT_POLL_INTERVAL: float = 2.0
DEFAULT_COMMAND_TIMEOUT: float = 3.0
DEFAULT_CONNECT_TIMEOUT: float = 3.0
DEFAULT_DISCOVERY_TIMEOUT: float = 3.0


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if not raw:
        return default
    return raw.casefold() in YES_ANSWER


def env_str(name: str, default: str) -> str:
    return (os.environ.get(name) or default).casefold()
