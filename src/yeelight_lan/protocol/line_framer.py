"""CRLF line framing for the Yeelight control channel.

This module provides LineFramer for extracting complete lines from TCP byte streams,
handling partial lines, multi-line reads, and protecting against buffer exhaustion.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

LINE_ENDING = b"\r\n"


class LineFramer:
    r"""Extract complete CRLF-terminated lines from a TCP byte stream.

    TCP reads may return partial lines, several lines, or exact boundaries.
    LineFramer buffers incoming bytes and returns every complete line, decoded
    as UTF-8, with the terminator stripped. Empty lines are dropped.

    Security: when the buffer grows past MAX_LINE_SIZE without a terminator the
    buffer is discarded, so a peer that never sends CRLF cannot exhaust memory.

    Example:
        framer = LineFramer()
        assert framer.feed(b'{"id":1,"res') == []
        assert framer.feed(b'ult":["ok"]}\r\n') == ['{"id":1,"result":["ok"]}']

    """

    MAX_LINE_SIZE: int = 16384

    def __init__(self) -> None:
        """Initialize line framer with empty buffer."""
        self.buffer: bytearray = bytearray()

    def feed(self, data: bytes) -> list[str]:
        """Add data to buffer and return list of complete lines.

        Args:
            data: Incoming bytes from TCP read

        Returns:
            List of complete lines (may be empty if no complete line yet)

        """
        self.buffer.extend(data)
        lines: list[str] = []

        while True:
            end = self.buffer.find(LINE_ENDING)
            if end < 0:
                break
            raw = bytes(self.buffer[:end])
            del self.buffer[: end + len(LINE_ENDING)]
            if not raw.strip():
                continue
            lines.append(raw.decode("utf-8", errors="replace"))

        if len(self.buffer) > self.MAX_LINE_SIZE:
            logger.warning(
                "Line exceeds %d bytes without terminator, discarding buffer",
                self.MAX_LINE_SIZE,
                extra={"buffer_size": len(self.buffer)},
            )
            self.buffer = bytearray()

        return lines
