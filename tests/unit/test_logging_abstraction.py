"""Unit tests for log formatters and setup."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from yeelight_lan.logging_abstraction import (
    HumanReadableFormatter,
    JSONFormatter,
    extra_fields,
    setup_logging,
)


def make_record(msg: str = "hello %s", args: tuple = ("world",), **extra: object) -> logging.LogRecord:
    return logging.getLogger("yeelight_lan.test").makeRecord(
        "yeelight_lan.test",
        logging.INFO,
        "bulb.py",
        42,
        msg,
        args,
        None,
        extra=extra or None,
    )


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestExtraFields:
    """Context extraction from `extra`."""

    def test_only_extra_keys_returned(self) -> None:
        record = make_record(device_id="d1", command_id=3)

        assert extra_fields(record) == {"device_id": "d1", "command_id": 3}

    def test_prefix_fields_excluded(self) -> None:
        record = make_record(logger_prefix="[Bulb]", device_id="d1")

        assert extra_fields(record) == {"device_id": "d1"}


class TestJSONFormatter:
    """Structured JSON output."""

    def test_basic_fields(self) -> None:
        output = json.loads(JSONFormatter().format(make_record(device_id="d1")))

        assert output["level"] == "INFO"
        assert output["logger"] == "yeelight_lan.test"
        assert output["line"] == 42
        assert output["message"] == "hello world"
        assert output["context"] == {"device_id": "d1"}
        assert "timestamp" in output

    def test_no_context_key_without_extra(self) -> None:
        output = json.loads(JSONFormatter().format(make_record()))

        assert "context" not in output

    def test_non_serializable_extra_rendered_as_string(self) -> None:
        output = json.loads(JSONFormatter().format(make_record(address=object())))

        assert output["context"]["address"].startswith("<object object")

    def test_exception_included(self) -> None:
        try:
            error_msg = "boom"
            raise RuntimeError(error_msg)
        except RuntimeError:
            record = logging.getLogger("t").makeRecord(
                "t", logging.ERROR, "x.py", 1, "failed", (), sys.exc_info(),
            )

        output = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in output["exception"]


class TestHumanReadableFormatter:
    """Human-readable output."""

    def test_without_session(self) -> None:
        line = HumanReadableFormatter().format(make_record())

        assert "INFO" in line
        assert "[--------] > hello world" in line

    def test_session_tag_and_prefix(self) -> None:
        record = make_record(
            session_id="0190b1a2-7c3d-7e4f-8a9b-0123456789ab",
            logger_prefix="[Bulb]",
            device_id="d1",
        )

        line = HumanReadableFormatter().format(record)

        assert "[456789ab] > [Bulb] hello world" in line
        assert line.endswith(" | device_id=d1")
        assert "session_id=" not in line


class TestSetupLogging:
    """Root logger configuration."""

    @pytest.mark.usefixtures("restore_root_logger")
    def test_single_handler_with_level(self) -> None:
        setup_logging("debug", "json")
        setup_logging("WARNING", "json")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    @pytest.mark.usefixtures("restore_root_logger")
    def test_human_format_default(self) -> None:
        setup_logging("INFO")

        assert isinstance(logging.getLogger().handlers[0].formatter, HumanReadableFormatter)
