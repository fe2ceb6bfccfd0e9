"""Tests for the TTL response cache."""

from __future__ import annotations

import asyncio

import pytest

from jota_adapters.network.cache import DEFAULT_TTL_MS, CacheEntry, TTLCache


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class TestCacheEntry:
    """Tests for entry freshness."""

    def test_fresh_within_ttl(self) -> None:
        """An entry should be fresh up to and including its TTL."""
        entry = CacheEntry(data=1, cached_at=0.0, ttl=50.0)

        assert entry.is_fresh(50.0)
        assert not entry.is_fresh(50.1)

    def test_max_age_overrides_ttl(self) -> None:
        """max_age_ms should replace the stored TTL for one check."""
        entry = CacheEntry(data=1, cached_at=0.0, ttl=1000.0)

        assert not entry.is_fresh(100.0, max_age_ms=50.0)
        assert entry.is_fresh(100.0, max_age_ms=500.0)

    def test_wire_shape(self) -> None:
        """to_dict should use the data/cachedAt/ttl field names."""
        entry = CacheEntry(data=[1], cached_at=5.0, ttl=10.0)

        assert entry.to_dict() == {"data": [1], "cachedAt": 5.0, "ttl": 10.0}


class TestTTLCache:
    """Tests for read-time expiry."""

    def test_default_ttl_is_one_hour(self) -> None:
        """Without configuration the TTL should be one hour."""
        assert TTLCache().default_ttl_ms == DEFAULT_TTL_MS == 3_600_000

    def test_default_ttl_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """JOTA_CACHE_TTL_MS should set the default TTL."""
        monkeypatch.setenv("JOTA_CACHE_TTL_MS", "250")

        assert TTLCache().default_ttl_ms == 250.0
        assert TTLCache(default_ttl_ms=10).default_ttl_ms == 10

    def test_zero_default_ttl_is_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit zero TTL should not fall back to the configured default."""
        monkeypatch.setenv("JOTA_CACHE_TTL_MS", "250")
        clock = FakeClock()
        cache = TTLCache(default_ttl_ms=0, clock=clock)
        cache.set("/x", 42)

        assert cache.default_ttl_ms == 0
        clock.advance(1)
        assert cache.get("/x") is None

    def test_stale_entry_is_evicted_on_read(self) -> None:
        """Reading a stale entry should return None and remove it."""
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("/x", 42, ttl_ms=50)

        assert cache.get("/x") == 42
        clock.advance(51)

        assert cache.get("/x") is None
        assert "/x" not in cache
        assert cache.peek("/x") is None

    def test_max_age_at_read_time(self) -> None:
        """A read with a shorter max age should treat the entry as stale."""
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("/books", ["gen"])
        clock.advance(100)

        assert cache.get("/books", max_age_ms=1000) == ["gen"]
        assert cache.get("/books", max_age_ms=50) is None
        assert len(cache) == 0

    def test_invalidate_and_clear(self) -> None:
        """invalidate should drop one entry and clear should drop all."""
        cache = TTLCache()
        cache.set("/a", 1)
        cache.set("/b", 2)

        cache.invalidate("/a")
        assert cache.get("/a") is None
        assert cache.get("/b") == 2

        cache.clear()
        assert len(cache) == 0

    def test_peek_does_not_check_freshness(self) -> None:
        """peek should return the raw entry even when stale."""
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("/x", 1, ttl_ms=10)
        clock.advance(100)

        entry = cache.peek("/x")

        assert entry is not None
        assert entry.data == 1
        assert entry.ttl == 10

    @pytest.mark.asyncio
    async def test_real_clock_expiry(self) -> None:
        """With the wall clock an entry should expire after its TTL."""
        cache = TTLCache()
        cache.set("/x", 42, ttl_ms=50)
        assert cache.get("/x") == 42

        await asyncio.sleep(0.08)

        assert cache.get("/x") is None
        assert "/x" not in cache
