"""Metrics module."""

from .registry import (
    record_command,
    record_command_latency,
    record_connection_state,
    record_decode_error,
    record_discovery,
    record_music_mode_session,
    record_notification,
    record_poll,
    record_unmatched_result,
    start_metrics_server,
)

__all__ = [
    "record_command",
    "record_command_latency",
    "record_connection_state",
    "record_decode_error",
    "record_discovery",
    "record_music_mode_session",
    "record_notification",
    "record_poll",
    "record_unmatched_result",
    "start_metrics_server",
]
