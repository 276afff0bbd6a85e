"""Yeelight protocol encoder/decoder implementation.

This module implements command encoding and line decoding for the Yeelight
JSON-lines control protocol.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from yeelight_lan.protocol.exceptions import MessageDecodeError
from yeelight_lan.protocol.line_framer import LINE_ENDING
from yeelight_lan.protocol.message_types import (
    Command,
    CommandError,
    CommandResult,
    Notification,
)

logger = logging.getLogger(__name__)


def _wire_value(value: Any) -> Any:
    """Convert enum params to their wire values."""
    if isinstance(value, Enum):
        return value.value
    return value


class YeelightProtocol:
    """Yeelight protocol encoder/decoder.

    Provides static methods for encoding commands and decoding received lines.
    All methods are stateless - no instance state maintained.
    """

    @staticmethod
    def encode_command(command: Command) -> bytes:
        """Encode a command as one compact JSON line terminated by CRLF.

        Example:
            >>> YeelightProtocol.encode_command(Command(1, "toggle", []))
            b'{"id":1,"method":"toggle","params":[]}\\r\\n'

        """
        payload = {
            "id": command.id,
            "method": command.method,
            "params": [_wire_value(p) for p in command.params],
        }
        return json.dumps(payload, separators=(",", ":")).encode("utf-8") + LINE_ENDING

    @staticmethod
    def decode_line(line: str) -> CommandResult | Notification:
        """Decode one received line into a CommandResult or Notification.

        A line with an "id" key is a result; a line with a "method" key is a
        notification.

        Raises:
            MessageDecodeError: If the line is not valid JSON or has neither key

        """
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise MessageDecodeError("invalid_json", line) from e

        if not isinstance(data, dict):
            raise MessageDecodeError("not_an_object", line)

        if "id" in data:
            return YeelightProtocol._decode_result(data, line)
        if "method" in data:
            return YeelightProtocol._decode_notification(data, line)

        raise MessageDecodeError("unknown_message", line)

    @staticmethod
    def _decode_result(data: dict[str, Any], line: str) -> CommandResult:
        command_id = data["id"]
        if not isinstance(command_id, int) or isinstance(command_id, bool):
            raise MessageDecodeError("invalid_id", line)

        error = data.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise MessageDecodeError("invalid_error", line)
            try:
                code = int(error.get("code", 0))
            except (TypeError, ValueError) as e:
                raise MessageDecodeError("invalid_error_code", line) from e
            return CommandResult(
                id=command_id,
                error=CommandError(code=code, message=str(error.get("message", ""))),
            )

        result = data.get("result")
        if not isinstance(result, list):
            raise MessageDecodeError("invalid_result", line)

        return CommandResult(id=command_id, result=[str(item) for item in result])

    @staticmethod
    def _decode_notification(data: dict[str, Any], line: str) -> Notification:
        params = data.get("params", {})
        if not isinstance(params, dict):
            raise MessageDecodeError("invalid_params", line)
        return Notification(method=str(data["method"]), params=params)

    @staticmethod
    def result_id(line: str) -> int | None:
        """Best-effort extraction of the id from a line that failed to decode."""
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            return None
        if isinstance(data, dict):
            command_id = data.get("id")
            if isinstance(command_id, int) and not isinstance(command_id, bool):
                return command_id
        return None
