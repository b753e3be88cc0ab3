"""Process-wide time-to-live cache.

No locking: concurrent misses for the same key each fetch and write the same
value (last write wins), which costs a redundant round trip but never
corrupts an entry.
"""

import time
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """get/put/invalidate with a fixed time-to-live per entry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[V, float]] = {}

    def get(self, key: Hashable) -> Optional[V]:
        """Cached value, or None when missing or older than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, fetched_at = entry
        if self._clock() - fetched_at >= self.ttl_seconds:
            return None
        return value

    def put(self, key: Hashable, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or all entries when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
