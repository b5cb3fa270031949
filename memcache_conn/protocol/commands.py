"""
Protocol Command and Response Line Definitions

This module defines the commands a Connection sends and the classification
of the lines a memcache server sends back.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Tuple

from ..config.settings import settings


# Correlation key used for commands that do not target a cache key
AUTODISCOVERY_KEY = "autodiscovery"


class CommandType(Enum):
    """Enumeration of supported command types."""
    SET = auto()
    GET = auto()
    DELETE = auto()
    CONFIG_GET_CLUSTER = auto()


class LineType(Enum):
    """Enumeration of inbound protocol line kinds."""
    ERROR = auto()
    VALUE = auto()
    END = auto()
    STORED = auto()
    DELETED = auto()
    NOT_FOUND = auto()
    DATA = auto()
    EMPTY = auto()


# First token of a line -> its kind. Anything else is a data line.
# CLIENT_ERROR is data: memcached follows it with ERROR, which settles the command.
LINE_TOKENS = {
    "ERROR": LineType.ERROR,
    "SERVER_ERROR": LineType.ERROR,
    "VALUE": LineType.VALUE,
    "CONFIG": LineType.VALUE,
    "END": LineType.END,
    "STORED": LineType.STORED,
    "DELETED": LineType.DELETED,
    "NOT_FOUND": LineType.NOT_FOUND,
    "NOT_STORED": LineType.NOT_FOUND,
    "EXISTS": LineType.NOT_FOUND,
}


@dataclass
class Command:
    """
    Represents an outbound protocol command.

    Attributes:
        type: The type of command (SET, GET, DELETE, CONFIG_GET_CLUSTER)
        key: The cache key the command targets (empty for CONFIG_GET_CLUSTER)
        value: The encoded value for SET
        ttl: Expiration time in seconds for SET (0 = never expires)
    """
    type: CommandType
    key: str = ""
    value: bytes = b""
    ttl: int = 0

    @property
    def correlation_key(self) -> str:
        """Key used to match the command with its response in diagnostics."""
        if self.type == CommandType.CONFIG_GET_CLUSTER:
            return AUTODISCOVERY_KEY
        return self.key

    def encode(self) -> Tuple[bytes, ...]:
        """
        Encode the command into wire chunks, without line terminators.

        Returns:
            Tuple of chunks. SET produces a header chunk and a data chunk,
            every other command a single chunk.

        Examples:
            >>> Command(CommandType.GET, key="k").encode()
            (b'get k',)
            >>> Command(CommandType.SET, key="k", value=b"v", ttl=5).encode()
            (b'set k 0 5 1', b'v')
        """
        if self.type == CommandType.SET:
            header = f"set {self.key} 0 {self.ttl} {len(self.value)}"
            return (header.encode(settings.ENCODING), self.value)
        if self.type == CommandType.GET:
            return (f"get {self.key}".encode(settings.ENCODING),)
        if self.type == CommandType.DELETE:
            return (f"delete {self.key}".encode(settings.ENCODING),)
        return (b"config get cluster",)
