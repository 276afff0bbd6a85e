"""Prometheus metrics registry for the Yeelight LAN client."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Command metrics
yeelight_command_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_command_total",
    "Total commands sent",
    ["device_id", "method", "outcome"],
)

yeelight_command_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "yeelight_command_latency_seconds",
    "Command round-trip latency in seconds",
    ["device_id", "method"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 3.0),
)

yeelight_unmatched_result_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_unmatched_result_total",
    "Results received with no waiting command",
    ["device_id"],
)

# Inbound traffic metrics
yeelight_notification_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_notification_total",
    "Total notifications received",
    ["device_id", "method"],
)

yeelight_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_decode_errors_total",
    "Total decode errors",
    ["device_id", "reason"],
)

yeelight_poll_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_poll_total",
    "Total property poll cycles",
    ["device_id", "outcome"],
)

# Connection metrics
yeelight_connection_state: Final = Gauge(  # type: ignore[assignment]
    "yeelight_connection_state",
    "Current connection state",
    ["device_id", "state"],
)

yeelight_discovery_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_discovery_total",
    "Total discovery runs",
    ["outcome"],
)

yeelight_music_mode_session_total: Final = Counter(  # type: ignore[assignment]
    "yeelight_music_mode_session_total",
    "Total music mode sessions",
    ["device_id", "outcome"],
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "connected", "failed")

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command(device_id: str, method: str, outcome: str) -> None:
    """Record a command outcome."""
    yeelight_command_total.labels(device_id=device_id, method=method, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command_latency(device_id: str, method: str, latency_seconds: float) -> None:
    """Record command latency."""
    yeelight_command_latency_seconds.labels(device_id=device_id, method=method).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_unmatched_result(device_id: str) -> None:
    """Record a result that no command was waiting for."""
    yeelight_unmatched_result_total.labels(device_id=device_id).inc()  # type: ignore[no-untyped-call]


def record_notification(device_id: str, method: str) -> None:
    """Record a notification."""
    yeelight_notification_total.labels(device_id=device_id, method=method).inc()  # type: ignore[no-untyped-call]


def record_decode_error(device_id: str, reason: str) -> None:
    """Record a decode error."""
    yeelight_decode_errors_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_poll(device_id: str, outcome: str) -> None:
    """Record a poll cycle."""
    yeelight_poll_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device_id: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        yeelight_connection_state.labels(device_id=device_id, state=s).set(value)  # type: ignore[no-untyped-call]


def record_discovery(outcome: str) -> None:
    """Record a discovery run."""
    yeelight_discovery_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_music_mode_session(device_id: str, outcome: str) -> None:
    """Record a music mode session outcome."""
    yeelight_music_mode_session_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]
