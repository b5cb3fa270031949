"""
Response Parser Module

This module consumes the lines a memcache server sends back and matches
each terminal line to the oldest pending command.

Response Format:
    set/delete:  <STATUS>\r\n                               (one terminal line)
    get:         VALUE <key> <flags> <bytes>\r\n<data>\r\nEND\r\n
    get (miss):  END\r\n
    config:      CONFIG cluster 0 <bytes>\r\n<version>\n<nodes>\n\r\nEND\r\n

Metadata headers are discarded and data lines are held in a single slot
until the terminal line that follows them, so one pass over the stream
threads pipelined commands of mixed types without per-command parsing.
"""

import logging
from enum import Enum, auto
from typing import Optional

from ..errors import ProtocolError
from .commands import LINE_TOKENS, LineType
from .pending import CommandQueue

logger = logging.getLogger(__name__)


def classify(line: str) -> LineType:
    """
    Classify a protocol line (terminator already stripped) by its first token.

    Examples:
        >>> classify("STORED")
        <LineType.STORED: 4>
        >>> classify("VALUE k 0 1")
        <LineType.VALUE: 2>
        >>> classify("hello")
        <LineType.DATA: 7>
    """
    if not line:
        return LineType.EMPTY
    token = line.split(" ", 1)[0]
    return LINE_TOKENS.get(token, LineType.DATA)


class ParserState(Enum):
    """Whether a data line is waiting for its terminal line."""
    IDLE = auto()
    ACCUMULATING = auto()


class ResponseParser:
    """
    Two-state correlator between inbound lines and pending commands.

    In IDLE no data line is held. A data line moves the parser to
    ACCUMULATING and is kept until a terminal line pops the head of the
    queue; completing a command always returns the parser to IDLE.

    Attributes:
        queue: The CommandQueue shared with the owning Connection
        state: Current ParserState
    """

    def __init__(self, queue: CommandQueue):
        self.queue = queue
        self.state = ParserState.IDLE
        self._value: Optional[str] = None

    @property
    def pending_value(self) -> Optional[str]:
        """The held data line while ACCUMULATING, otherwise None."""
        if self.state == ParserState.ACCUMULATING:
            return self._value
        return None

    def reset(self) -> None:
        """Drop any held data line and return to IDLE."""
        self.state = ParserState.IDLE
        self._value = None

    def feed(self, line: str) -> None:
        """
        Process one inbound line.

        Args:
            line: A protocol line with its terminator stripped
        """
        kind = classify(line)
        logger.debug(f"Got {kind.name} line: {line!r}")

        if kind == LineType.EMPTY:
            return

        if kind == LineType.VALUE:
            return

        if kind == LineType.DATA:
            self._value = line
            self.state = ParserState.ACCUMULATING
            return

        if kind == LineType.ERROR:
            command = self.queue.popleft()
            if command is None:
                logger.warning(f"Dropping {line!r}: no command is awaiting a response")
                self.reset()
                return
            # memcached sends CLIENT_ERROR <reason> then ERROR for one command
            held = self.pending_value
            if held is not None and held.startswith("CLIENT_ERROR"):
                line = held
            command.reject(ProtocolError(line, command.key))
            self.reset()
            return

        command = self.queue.popleft()
        if command is None:
            logger.warning(f"Dropping {line!r}: no command is awaiting a response")
            self.reset()
            return

        if kind == LineType.END:
            command.resolve(self.pending_value)
        else:
            command.resolve(line)
        self.reset()
