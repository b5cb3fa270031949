"""
memcache-conn: Pipelined Memcache Connection

A client-side connection to a memcache server built with Python asyncio.
Commands are pipelined over a single TCP socket, matched to their
responses in FIFO order, and survive reconnects with exponential backoff.
"""

from .errors import (
    ConnectionClosedError,
    InvalidArgumentError,
    MemcacheError,
    ProtocolError,
    UnexpectedResponseError,
)
from .network.connection import Connection

__version__ = "1.0.0"

__all__ = [
    "Connection",
    "ConnectionClosedError",
    "InvalidArgumentError",
    "MemcacheError",
    "ProtocolError",
    "UnexpectedResponseError",
]
