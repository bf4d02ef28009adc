"""
Timestamped value cell that expires after a fixed time-to-live.
"""
import time
from typing import Callable, Generic, Optional, TypeVar

from eoi_telemetry.constants import DEFAULT_TTL_SECONDS

T = TypeVar('T')


class StaleValue(Generic[T]):
    """Holds the latest value of one telemetry field and when it arrived.

    Staleness is evaluated when the value is read: ``get()`` returns ``None``
    once ``ttl`` seconds have passed since the last ``update()``, although the
    value itself is kept. A cell that was never updated reads the same as one
    that expired.

    Attributes:
        ttl: Time-to-live in seconds
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        """Initialize an empty cell.

        Args:
            ttl: Seconds after which the value is treated as absent
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.ttl = ttl
        self._clock = clock
        self._value: Optional[T] = None
        self._last_updated: float = clock()

    def update(self, value: T) -> None:
        """Replace the value and refresh its timestamp unconditionally."""
        self._value = value
        self._last_updated = self._clock()

    def is_valid(self) -> bool:
        return self._value is not None and (self._clock() - self._last_updated) < self.ttl

    def get(self, default: Optional[T] = None) -> Optional[T]:
        """Return the value if it is still fresh, otherwise ``default``."""
        if self.is_valid():
            return self._value
        return default

    def __repr__(self) -> str:
        return f"StaleValue(value={self._value!r}, valid={self.is_valid()})"
