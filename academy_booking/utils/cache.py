"""Short-lived read-through caches fronting repository lookups."""

from __future__ import annotations

import time
from threading import RLock
from typing import Callable, Generic, Hashable, Optional, TypeVar

from academy_booking.utils.logger import get_logger


logger = get_logger(__name__)

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Thread-safe key/value cache with a fixed time-to-live per entry.

    Entries are stored as immutable ``(value, expires_at)`` tuples and are only
    ever replaced, so a concurrent reader sees either the old or the new entry.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._name = name
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[Hashable, tuple[V, float]] = {}
        self._lock = RLock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + self._ttl_seconds)

    def get_or_load(self, key: Hashable, loader: Callable[[Hashable], Optional[V]]) -> Optional[V]:
        """Return a cached value, falling back to ``loader`` on miss or expiry.

        ``None`` results are not cached so a record created after a miss is
        visible on the next lookup.
        """
        with self._lock:
            cached = self.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1

        value = loader(key)
        if value is not None:
            self.set(key, value)
        logger.debug(
            "Cache miss | cache=%s | key=%s | loaded=%s",
            self._name,
            key,
            value is not None,
        )
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
