"""
Pending Command Queue Module

Every command sent on a Connection is parked here until the server's
terminal line for it arrives. Because a single connection answers pipelined
commands in the order it received them, the queue is strictly FIFO: the
oldest pending command is always the one the next terminal line belongs to.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

# Converts the raw result of a command into the caller's value.
# Called as handler(key, result); an exception it raises rejects the future.
ResultHandler = Callable[[str, Optional[str]], Any]


class KeyedFuture(asyncio.Future):
    """An asyncio future that remembers the cache key it was created for."""

    def __init__(self, key: str, *, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__(loop=loop)
        self.key = key


class Deferred:
    """
    Single-settlement completion handle for one command.

    The future is settled by the first call to resolve() or reject();
    later calls are ignored, as are calls after the caller cancelled
    the future.
    """

    def __init__(self, key: str, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.key = key
        self.future = KeyedFuture(key, loop=loop or asyncio.get_running_loop())

    @property
    def settled(self) -> bool:
        return self.future.done()

    def resolve(self, value: Any = None) -> None:
        if self.future.done():
            return
        self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if self.future.done():
            return
        self.future.set_exception(error)


def defer(key: str) -> Deferred:
    """Create a Deferred for key bound to the running event loop."""
    return Deferred(key)


def _passthrough(key: str, result: Optional[str]) -> Optional[str]:
    return result


@dataclass
class PendingCommand:
    """
    A command awaiting its terminal response line.

    Attributes:
        key: Correlation key (cache key or a synthetic tag)
        deferred: Completion handle settled when the response arrives
        payload: Encoded wire chunks, kept so the command can be re-sent
        handler: Converts the raw result into the caller's value
    """
    key: str
    deferred: Deferred
    payload: Tuple[bytes, ...] = ()
    handler: ResultHandler = field(default=_passthrough)

    @property
    def future(self) -> KeyedFuture:
        return self.deferred.future

    def resolve(self, result: Optional[str]) -> None:
        """Run the result handler and settle the future with its outcome."""
        try:
            value = self.handler(self.key, result)
        except Exception as exc:
            self.deferred.reject(exc)
        else:
            self.deferred.resolve(value)

    def reject(self, error: BaseException) -> None:
        self.deferred.reject(error)


class CommandQueue:
    """FIFO queue of PendingCommand objects in issue order."""

    def __init__(self):
        self._commands: Deque[PendingCommand] = deque()

    def push(self, command: PendingCommand) -> None:
        self._commands.append(command)

    def peek(self) -> Optional[PendingCommand]:
        """Return the oldest pending command without removing it."""
        return self._commands[0] if self._commands else None

    def popleft(self) -> Optional[PendingCommand]:
        """Remove and return the oldest pending command, or None if empty."""
        return self._commands.popleft() if self._commands else None

    def payloads(self) -> Iterator[bytes]:
        """Yield the wire chunks of every pending command in queue order."""
        for command in self._commands:
            yield from command.payload

    def reject_all(self, error: BaseException) -> int:
        """
        Reject and remove every pending command.

        Args:
            error: Exception every pending future is rejected with

        Returns:
            Number of commands rejected
        """
        count = 0
        while self._commands:
            self._commands.popleft().reject(error)
            count += 1
        if count:
            logger.debug(f"Rejected {count} pending command(s): {error}")
        return count

    def __len__(self) -> int:
        return len(self._commands)
