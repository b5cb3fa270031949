"""Protocol module for memcache-conn."""

from .commands import AUTODISCOVERY_KEY, Command, CommandType, LineType
from .parser import ParserState, ResponseParser, classify
from .pending import CommandQueue, Deferred, KeyedFuture, PendingCommand, defer

__all__ = [
    "AUTODISCOVERY_KEY",
    "Command",
    "CommandType",
    "LineType",
    "ParserState",
    "ResponseParser",
    "classify",
    "CommandQueue",
    "Deferred",
    "KeyedFuture",
    "PendingCommand",
    "defer",
]
