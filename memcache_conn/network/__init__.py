"""Network module for memcache-conn."""

from .backoff import Backoff
from .connection import Connection
from .write_buffer import WriteBuffer

__all__ = ["Backoff", "Connection", "WriteBuffer"]
