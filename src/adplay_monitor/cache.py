"""In-process TTL cache for aggregation results.

Results are derived and reconstructible from the store, so losing the cache
only costs latency. Entries are checked and evicted lazily on read; there is
no size bound and no background sweep.
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its insertion time."""

    value: Any
    inserted_at: float


@dataclass
class CacheStats:
    """Statistics for cache performance monitoring."""

    hits: int = 0
    misses: int = 0
    size: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return stats as a dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
        }


@dataclass
class EphemeralCache:
    """
    Map from string key to (value, insertion time) with per-read TTL.

    The TTL is supplied on each read rather than fixed per cache, so one
    instance can serve short-lived per-device lookups and longer-lived
    cross-device aggregates side by side.

    An entry is fresh while ``clock() - inserted_at <= ttl``. Stale entries
    are evicted when read. ``None`` is never stored: it signals absence.

    Args:
        clock: Monotonic seconds source (injectable for tests)
    """

    clock: Callable[[], float] = time.monotonic

    _entries: dict[str, CacheEntry] = field(init=False, default_factory=dict)
    _hits: int = field(init=False, default=0)
    _misses: int = field(init=False, default=0)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def get(self, key: str, ttl: float) -> Any | None:
        """
        Return the cached value for ``key`` if it is at most ``ttl`` seconds old.

        Stale entries are removed and reported as absent (None).
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self.clock() - entry.inserted_at > ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, resetting its insertion time."""
        if value is None:
            raise ValueError("cannot cache None")
        with self._lock:
            self._entries[key] = CacheEntry(value=value, inserted_at=self.clock())

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        fetch_fn: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
    ) -> Any:
        """
        Get a value, fetching and caching it on a miss.

        The lock is not held while fetching: concurrent misses on the same key
        each fetch and the last write wins.

        Args:
            key: Cache key
            ttl: Maximum age in seconds for a cached value to be reused
            fetch_fn: Async function producing the value on a miss
            force_refresh: Skip the lookup and repopulate unconditionally

        Returns:
            The cached or freshly fetched value
        """
        if not force_refresh:
            cached = self.get(key, ttl)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        logger.debug("Cache %s for %s", "refresh" if force_refresh else "miss", key)
        value = await fetch_fn()
        self.put(key, value)
        return value

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def get_stats(self) -> CacheStats:
        """
        Get cache performance statistics.

        Returns:
            CacheStats with hits, misses and current size
        """
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))
