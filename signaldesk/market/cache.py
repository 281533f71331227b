"""Time-to-live cache with an injectable clock — no I/O.

Entries expire ``ttl_seconds`` after they were stored, measured by the
clock the cache was built with (``time.monotonic`` by default), so tests
can drive expiry deterministically.
"""

import time
from typing import Callable, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """In-memory key/value cache with per-entry expiry.

    Args:
        ttl_seconds: Lifetime of each entry.
        clock: Zero-argument callable returning the current time in seconds.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[V, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: Hashable) -> Optional[V]:
        """Return the live value for *key*, or ``None`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = (value, self._clock() + self._ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._entries.values() if now < expires_at)
