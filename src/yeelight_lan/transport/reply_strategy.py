"""Reply strategies for command dispatch.

A connection picks its strategy at construction time:

- CorrelatedReplies: the normal control connection. Every in-flight command
  registers a future keyed by its id; the line reader resolves the matching
  future. Any number of commands may be in flight at once.
- FireAndForgetReplies: the music mode connection. The device sends no
  replies on this channel, so dispatch returns as soon as the frame is written.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from yeelight_lan.protocol.message_types import Command, CommandResult
from yeelight_lan.transport.exceptions import CommandTimeoutError

logger = logging.getLogger(__name__)


class ReplyStrategy(ABC):
    """How a connection obtains the reply to a command it sent."""

    @abstractmethod
    async def dispatch(
        self,
        command: Command,
        send: Callable[[], Awaitable[None]],
        timeout: float,
    ) -> CommandResult | None:
        """Send the command via `send` and return its result, if this strategy waits for one."""

    def resolve(self, result: CommandResult) -> bool:
        """Hand a received result to its waiting command.

        Returns:
            True if a waiting command consumed the result, False if it was unmatched
        """
        return False

    def reject(self, command_id: int, error: BaseException) -> bool:
        """Fail the waiting command with `command_id`, if any."""
        return False

    def fail_all(self, error: BaseException) -> None:
        """Fail every waiting command (terminal connection failure)."""

    @property
    def in_flight(self) -> int:
        return 0


class CorrelatedReplies(ReplyStrategy):
    """Wait for the result whose id matches the command id."""

    def __init__(self) -> None:
        self._pending: dict[int, asyncio.Future[CommandResult]] = {}

    async def dispatch(
        self,
        command: Command,
        send: Callable[[], Awaitable[None]],
        timeout: float,
    ) -> CommandResult | None:
        future: asyncio.Future[CommandResult] = asyncio.get_running_loop().create_future()
        # Register before writing so a fast reply cannot arrive unmatched
        self._pending[command.id] = future
        try:
            await send()
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except TimeoutError as e:
                raise CommandTimeoutError(command.method, command.id, timeout) from e
        finally:
            self._pending.pop(command.id, None)

    def resolve(self, result: CommandResult) -> bool:
        future = self._pending.get(result.id)
        if future is None or future.done():
            return False
        future.set_result(result)
        return True

    def reject(self, command_id: int, error: BaseException) -> bool:
        future = self._pending.get(command_id)
        if future is None or future.done():
            return False
        future.set_exception(error)
        return True

    def fail_all(self, error: BaseException) -> None:
        for command_id, future in list(self._pending.items()):
            if not future.done():
                logger.debug(
                    "Failing in-flight command",
                    extra={"command_id": command_id, "error": str(error)},
                )
                future.set_exception(error)

    @property
    def in_flight(self) -> int:
        return len(self._pending)


class FireAndForgetReplies(ReplyStrategy):
    """Write the command and return immediately; no reply is expected."""

    async def dispatch(
        self,
        command: Command,
        send: Callable[[], Awaitable[None]],
        timeout: float,
    ) -> CommandResult | None:
        await send()
        return None
