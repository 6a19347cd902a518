"""Tests for the ephemeral result cache."""

import pytest

from adplay_monitor.cache import CacheStats, EphemeralCache


class TestGetPut:
    """Tests for get/put freshness."""

    def test_fresh_value_returned(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("k", {"plays": 5})
        clock.advance(10)
        assert cache.get("k", ttl=30) == {"plays": 5}

    def test_value_at_exact_ttl_is_fresh(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("k", 1)
        clock.advance(30)
        assert cache.get("k", ttl=30) == 1

    def test_stale_value_absent_and_evicted(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("k", 1)
        clock.advance(30.5)
        assert cache.get("k", ttl=30) is None
        assert cache.get_stats().size == 0

    def test_ttl_is_per_read(self, clock) -> None:
        """The same entry can be fresh for a long TTL and stale for a short one."""
        cache = EphemeralCache(clock=clock)
        cache.put("k", 1)
        clock.advance(45)
        assert cache.get("k", ttl=60) == 1
        assert cache.get("k", ttl=30) is None

    def test_missing_key(self, clock) -> None:
        assert EphemeralCache(clock=clock).get("nope", ttl=30) is None

    def test_put_resets_insertion_time(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("k", 1)
        clock.advance(25)
        cache.put("k", 2)
        clock.advance(25)
        assert cache.get("k", ttl=30) == 2

    def test_none_rejected(self, clock) -> None:
        with pytest.raises(ValueError, match="None"):
            EphemeralCache(clock=clock).put("k", None)

    def test_falsy_values_are_cached(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("empty", [])
        assert cache.get("empty", ttl=30) == []


class TestGetOrFetch:
    """Tests for the fetch-on-miss path."""

    async def test_second_call_served_from_cache(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        calls = []

        async def fetch():
            calls.append(1)
            return len(calls)

        assert await cache.get_or_fetch("k", 30, fetch) == 1
        assert await cache.get_or_fetch("k", 30, fetch) == 1
        assert len(calls) == 1

    async def test_refetches_after_expiry(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        calls = []

        async def fetch():
            calls.append(1)
            return len(calls)

        await cache.get_or_fetch("k", 30, fetch)
        clock.advance(31)
        assert await cache.get_or_fetch("k", 30, fetch) == 2

    async def test_force_refresh_bypasses_fresh_entry(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("k", "old")

        async def fetch():
            return "new"

        assert await cache.get_or_fetch("k", 30, fetch, force_refresh=True) == "new"
        assert cache.get("k", ttl=30) == "new"

    async def test_fetch_error_leaves_cache_untouched(self, clock) -> None:
        cache = EphemeralCache(clock=clock)

        async def fetch():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", 30, fetch)
        assert cache.get_stats().size == 0


class TestInvalidateAndStats:
    """Tests for invalidation and counters."""

    def test_invalidate_one(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.get("a", ttl=30) is None
        assert cache.get("b", ttl=30) == 2

    def test_invalidate_all(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate()
        assert cache.get_stats().size == 0

    def test_invalidate_unknown_key_is_noop(self, clock) -> None:
        EphemeralCache(clock=clock).invalidate("missing")

    def test_hits_and_misses_counted(self, clock) -> None:
        cache = EphemeralCache(clock=clock)
        cache.get("a", ttl=30)
        cache.put("a", 1)
        cache.get("a", ttl=30)
        cache.get("a", ttl=30)

        assert cache.get_stats() == CacheStats(hits=2, misses=1, size=1)
        assert cache.get_stats().as_dict() == {"hits": 2, "misses": 1, "size": 1}
