"""
Write Buffer Module

Outbound chunks pass through a WriteBuffer on their way to the socket.
While the connection is down the chunks are held in order; once a writer
is attached they are flushed, so nothing is lost or reordered across a
reconnect.
"""

import logging
from asyncio import StreamWriter
from collections import deque
from typing import Deque, Iterable, Optional

from ..config.settings import settings

logger = logging.getLogger(__name__)


class WriteBuffer:
    """
    FIFO queue of outbound chunks bound to at most one live writer.

    A chunk written while a writer is attached and nothing is queued goes
    straight to the socket. Otherwise it is queued behind the chunks that
    are already waiting.
    """

    def __init__(self, terminator: bytes = None):
        self.terminator = terminator if terminator is not None else settings.LINE_TERMINATOR
        self._chunks: Deque[bytes] = deque()
        self._writer: Optional[StreamWriter] = None

    @property
    def attached(self) -> bool:
        return self._writer is not None

    def attach(self, writer: StreamWriter) -> None:
        """Bind the buffer to a connected writer. Does not flush."""
        self._writer = writer

    def detach(self) -> None:
        self._writer = None

    def write(self, chunk: bytes) -> None:
        """
        Queue chunk plus a line terminator, sending it now if possible.

        Args:
            chunk: Raw bytes of one protocol line
        """
        data = chunk + self.terminator
        if self._writer is not None and not self._chunks:
            self._writer.write(data)
            return

        self._chunks.append(data)
        if self._writer is not None:
            self.flush()

    def flush(self) -> int:
        """
        Send queued chunks in order until the buffer is empty.

        Returns:
            Number of chunks written to the socket
        """
        if self._writer is None or not self._chunks:
            return 0

        logger.debug(f"Flushing {len(self._chunks)} buffered chunk(s)")
        sent = 0
        while self._chunks:
            self._writer.write(self._chunks.popleft())
            sent += 1
        return sent

    def replace(self, chunks: Iterable[bytes]) -> None:
        """Discard queued data and queue chunks (without terminators) instead."""
        self._chunks = deque(chunk + self.terminator for chunk in chunks)

    def clear(self) -> None:
        self._chunks.clear()

    def __len__(self) -> int:
        return len(self._chunks)
