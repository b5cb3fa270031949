"""
Exceptions raised by memcache-conn.

Validation problems are raised synchronously at the call site. Protocol
problems and connection shutdown surface through the future returned by
the affected command.
"""

from typing import Optional


class MemcacheError(Exception):
    """Base class for all memcache-conn errors."""


class InvalidArgumentError(MemcacheError, ValueError):
    """A command argument (key, value or ttl) was rejected before sending."""


class ProtocolError(MemcacheError):
    """
    The server answered a command with an error or an unusable response.

    Attributes:
        line: The raw protocol line that caused the error
        key: Correlation key of the command the line was matched to
    """

    def __init__(self, line: str, key: Optional[str] = None, message: Optional[str] = None):
        self.line = line
        self.key = key
        if message is None:
            message = f"Memcache returned an error: {line}"
            if key is not None:
                message += f" (key {key})"
        super().__init__(message)


class UnexpectedResponseError(ProtocolError):
    """A command completed with a terminal line other than the one it expects."""

    def __init__(self, line: str, key: Optional[str] = None, expected: str = ""):
        self.expected = expected
        super().__init__(
            line,
            key,
            message=f"Expected {expected} for key {key}, got {line!r}",
        )


class ConnectionClosedError(MemcacheError):
    """The connection was closed before the command could complete."""
