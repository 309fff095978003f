"""Tests for weather_mcp.clients.cache — TTLCache with expiry, FIFO eviction, metrics and sweep."""

import asyncio

import pytest

from weather_mcp.clients.cache import (
    CACHE_CONFIGS,
    STATS_WINDOW,
    CacheConfig,
    CacheMetrics,
    TTLCache,
)


def _cache(clock, **overrides) -> TTLCache:
    config = {"default_ttl": 60.0, "max_size": 10, "cleanup_interval": 30.0}
    config.update(overrides)
    return TTLCache("test", CacheConfig(**config), clock=clock)


class TestCacheMetrics:
    def test_initial_state(self):
        m = CacheMetrics()
        assert m.hits == 0
        assert m.misses == 0
        assert m.hit_rate == 0.0

    def test_hit_rate_calculation(self):
        m = CacheMetrics()
        for hit in (True, True, True, False):
            m.record(hit)
        assert m.hit_rate == 0.75

    def test_counters_halved_past_window(self):
        m = CacheMetrics()
        for _ in range(STATS_WINDOW):
            m.record(True)
        m.record(False)  # 101 observations
        assert m.hits == STATS_WINDOW // 2
        assert m.misses == 0

    def test_halving_keeps_recent_ratio_meaningful(self):
        m = CacheMetrics()
        for _ in range(STATS_WINDOW + 1):
            m.record(False)
        for _ in range(60):
            m.record(True)
        assert m.hits + m.misses <= STATS_WINDOW
        assert m.hit_rate > 0.5


class TestTTLCacheReadWrite:
    def test_get_on_empty_returns_none(self, clock):
        assert _cache(clock).get("missing") is None

    def test_set_and_get_within_ttl(self, clock):
        cache = _cache(clock)
        cache.set("k1", "v1")
        assert cache.get("k1") == "v1"

    def test_expires_after_ttl_and_is_removed(self, clock):
        cache = _cache(clock, default_ttl=0.1)
        cache.set("madrid", {"lat": 40.4, "lon": -3.7})

        clock.advance(0.05)
        assert cache.get("madrid") == {"lat": 40.4, "lon": -3.7}

        clock.advance(0.1)
        assert cache.get("madrid") is None
        assert cache.size == 0

    def test_entry_at_exact_ttl_is_still_live(self, clock):
        cache = _cache(clock, default_ttl=10)
        cache.set("k", "v")
        clock.advance(10)
        assert cache.get("k") == "v"

    def test_per_entry_ttl_overrides_default(self, clock):
        cache = _cache(clock, default_ttl=60)
        cache.set("short", 1, ttl=5)
        cache.set("long", 2)
        clock.advance(6)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_overwrite_resets_age_and_ttl(self, clock):
        cache = _cache(clock, default_ttl=10)
        cache.set("k", "v1", ttl=1)
        clock.advance(0.5)
        cache.set("k", "v2")
        clock.advance(5)
        assert cache.get("k") == "v2"
        assert cache.size == 1

    def test_has_delegates_to_get_and_counts(self, clock):
        cache = _cache(clock)
        cache.set("k", "v")
        assert cache.has("k") is True
        assert cache.has("missing") is False
        assert cache.metrics.hits == 1
        assert cache.metrics.misses == 1

    def test_delete_existing_key(self, clock):
        cache = _cache(clock)
        cache.set("k1", "v1")
        assert cache.delete("k1") is True
        assert cache.get("k1") is None

    def test_delete_missing_key(self, clock):
        assert _cache(clock).delete("missing") is False

    def test_clear_keeps_metrics(self, clock):
        cache = _cache(clock)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        assert cache.size == 0
        assert cache.metrics.hits == 1


class TestTTLCacheEviction:
    def test_never_exceeds_max_size(self, clock):
        cache = _cache(clock, max_size=3)
        for i in range(10):
            clock.advance(1)
            cache.set(f"k{i}", i)
            assert cache.size <= 3

    def test_evicts_oldest_write(self, clock):
        cache = _cache(clock, max_size=2)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_reads_do_not_protect_from_eviction(self, clock):
        cache = _cache(clock, max_size=2)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        cache.get("a")  # not LRU: reading does not refresh "a"
        clock.advance(1)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_rewrite_refreshes_write_time(self, clock):
        cache = _cache(clock, max_size=2)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("a", 10)  # "b" is now the oldest write
        clock.advance(1)
        cache.set("c", 3)
        assert cache.get("a") == 10
        assert cache.get("b") is None

    def test_overwrite_at_capacity_does_not_evict(self, clock):
        cache = _cache(clock, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("b", 20)
        assert cache.size == 2
        assert cache.get("a") == 1

    def test_zero_capacity_stores_nothing(self, clock):
        cache = _cache(clock, max_size=0)
        cache.set("k", "v")
        assert cache.size == 0
        assert cache.get("k") is None


class TestTTLCacheStatsAndSweep:
    def test_stats_empty(self, clock):
        stats = _cache(clock).stats()
        assert stats.size == 0
        assert stats.max_size == 10
        assert stats.expired_entries == 0
        assert stats.average_age_seconds == 0.0
        assert stats.hit_rate == 0.0

    def test_stats_reports_expired_but_present(self, clock):
        cache = _cache(clock, default_ttl=10)
        cache.set("old", 1)
        clock.advance(20)
        cache.set("new", 2)
        stats = cache.stats()
        assert stats.size == 2
        assert stats.expired_entries == 1
        assert stats.average_age_seconds == pytest.approx(10.0)

    def test_stats_does_not_touch_hit_rate(self, clock):
        cache = _cache(clock)
        cache.set("k", 1)
        cache.get("k")
        cache.stats()
        assert cache.stats().hit_rate == 1.0

    def test_sweep_removes_only_expired(self, clock):
        cache = _cache(clock, default_ttl=10)
        cache.set("old", 1)
        clock.advance(20)
        cache.set("new", 2)
        assert cache.sweep() == 1
        assert cache.size == 1
        assert cache.stats().expired_entries == 0

    def test_sweep_is_idempotent(self, clock):
        cache = _cache(clock, default_ttl=10)
        cache.set("old", 1)
        cache.set("fresh", 2, ttl=100)
        clock.advance(20)
        assert cache.sweep() == 1
        before = cache.stats()
        assert cache.sweep() == 0
        assert cache.stats() == before


class TestTTLCacheLifecycle:
    async def test_periodic_sweep_runs(self):
        cache = TTLCache(
            "lifecycle",
            CacheConfig(default_ttl=0.01, max_size=10, cleanup_interval=0.02),
        )
        cache.set("k", "v")
        cache.start()
        await asyncio.sleep(0.1)
        assert cache.size == 0
        await cache.shutdown()

    async def test_shutdown_clears_and_stops(self, clock):
        cache = _cache(clock)
        cache.start()
        cache.set("k", "v")
        await cache.shutdown()
        assert cache.size == 0
        assert cache._sweeper.running is False

    async def test_shutdown_twice_raises(self, clock):
        cache = _cache(clock)
        await cache.shutdown()
        with pytest.raises(RuntimeError, match="already shut down"):
            await cache.shutdown()

    async def test_start_after_shutdown_raises(self, clock):
        cache = _cache(clock)
        await cache.shutdown()
        with pytest.raises(RuntimeError):
            cache.start()


class TestCacheConfigs:
    def test_geocoding_config(self):
        cfg = CACHE_CONFIGS["geocoding"]
        assert cfg.default_ttl == 24 * 3600
        assert cfg.max_size == 1000
        assert cfg.cleanup_interval == 3600

    def test_weather_config(self):
        cfg = CACHE_CONFIGS["weather"]
        assert cfg.default_ttl == 600
        assert cfg.max_size == 500
        assert cfg.cleanup_interval == 300
