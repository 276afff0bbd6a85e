"""Logging setup for yeelight-lan.

Modules log through `logging.getLogger(__name__)` and pass structured context
with `extra={...}`. The formatters here render that context either as JSON
(one object per line) or appended to a human-readable line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing_extensions import override

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "extra_fields",
    "setup_logging",
]

# Attributes every LogRecord carries; anything else came from `extra`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__,
) | {"message", "asctime", "taskName"}

# Rendered in the line prefix, not repeated in the context
_PREFIX_FIELDS = frozenset({"logger_prefix", "session_tag", "prefix_tag"})


def extra_fields(record: logging.LogRecord) -> dict[str, object]:
    """Structured context attached to a record through `extra`."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and key not in _PREFIX_FIELDS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        context = extra_fields(record)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with the session id."""

    def __init__(self) -> None:
        # Format: timestamp level [module:line] session > message
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(session_tag)s > %(prefix_tag)s%(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        session_id = getattr(record, "session_id", "")
        record.session_tag = f"[{str(session_id)[-8:]}]" if session_id else "[--------]"
        prefix = getattr(record, "logger_prefix", "")
        record.prefix_tag = f"{prefix} " if prefix else ""

        formatted = super().format(record)

        context = {k: v for k, v in extra_fields(record).items() if k != "session_id"}
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            formatted = f"{formatted} | {context_str}"

        return formatted


def setup_logging(log_level: str, log_format: str = "human") -> None:
    """Configure the root logger.

    Args:
        log_level: Level name ("DEBUG", "INFO", ...)
        log_format: "json" for one JSON object per line, anything else for
            human-readable output

    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else HumanReadableFormatter())
    handler.setLevel(level)
    root_logger.addHandler(handler)
