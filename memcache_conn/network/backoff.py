"""Exponential reconnect backoff."""

from ..config.settings import settings
from ..errors import InvalidArgumentError


class Backoff:
    """
    Reconnect delay in milliseconds.

    Each failed or closed connection doubles the delay up to maximum;
    a successful connect resets it to initial.

    Usage:
        backoff = Backoff(initial=10)
        backoff.next()   # 20
        backoff.next()   # 40
        backoff.reset()  # back to 10
    """

    def __init__(self, initial: int = None, maximum: int = None):
        # 0 and None both mean "use the default"
        self.initial = initial or settings.INITIAL_BACKOFF_MS
        self.maximum = maximum if maximum is not None else settings.MAX_BACKOFF_MS
        if self.initial < 0:
            raise InvalidArgumentError(f"Initial backoff must be positive, got {self.initial}")
        self.current = self.initial

    def next(self) -> int:
        """Double the delay (capped at maximum) and return it."""
        self.current = min(self.current * 2, self.maximum)
        return self.current

    def reset(self) -> None:
        self.current = self.initial

    @property
    def seconds(self) -> float:
        return self.current / 1000

    def __repr__(self) -> str:
        return f"Backoff(current={self.current}, initial={self.initial}, maximum={self.maximum})"
