"""In-memory TTL cache with FIFO-by-write eviction, hit-rate metrics and periodic sweep."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from weather_mcp.monitoring.scheduling import PeriodicTask

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Hit/miss counters are halved once their sum passes this, so the hit rate
# tracks recent behaviour.
STATS_WINDOW = 100


@dataclass(frozen=True)
class CacheConfig:
    """Per-cache configuration. All durations in seconds."""

    default_ttl: float
    max_size: int
    cleanup_interval: float


CACHE_CONFIGS: dict[str, CacheConfig] = {
    # Cities don't move
    "geocoding": CacheConfig(default_ttl=24 * 60 * 60, max_size=1000, cleanup_interval=60 * 60),
    "weather": CacheConfig(default_ttl=10 * 60, max_size=500, cleanup_interval=5 * 60),
    "general": CacheConfig(default_ttl=30 * 60, max_size=100, cleanup_interval=15 * 60),
}

NEGATIVE_RESULT_TTL = 30 * 60
"""TTL for cached "not found" results."""


@dataclass
class CacheEntry(Generic[V]):
    value: V
    stored_at: float
    ttl: float


class CacheMetrics:
    """Tracks cache hit/miss statistics over a bounded recent window."""

    def __init__(self, window: int = STATS_WINDOW) -> None:
        self.window = window
        self.hits = 0
        self.misses = 0

    def record(self, hit: bool) -> None:
        if hit:
            self.hits += 1
        else:
            self.misses += 1
        if self.hits + self.misses > self.window:
            self.hits //= 2
            self.misses //= 2

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


class CacheStats(BaseModel):
    size: int
    max_size: int
    expired_entries: int
    average_age_seconds: float
    hit_rate: float


class TTLCache(Generic[V]):
    """Key/value store with per-entry TTL and a hard size cap.

    Expired entries are dropped when read and by a periodic sweep started
    with :meth:`start`. When full, inserting a new key evicts the entry with
    the oldest write time (not the least recently read).

    Args:
        name: Cache name used in logs and health output.
        config: TTL, capacity and sweep interval.
        clock: Zero-argument callable returning seconds.
    """

    def __init__(
        self,
        name: str,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.config = config
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.Lock()
        self.metrics = CacheMetrics()
        self._sweeper = PeriodicTask(f"{name}-cache-sweep", config.cleanup_interval, self.sweep)
        self._shut_down = False

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Store *value*, replacing any existing entry and resetting its age."""
        ttl = self.config.default_ttl if ttl is None else ttl
        if self.config.max_size < 1:
            logger.debug("Cache '%s' has no capacity, not storing %s", self.name, key)
            return
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.config.max_size:
                self._evict_oldest()
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)
            size = len(self._entries)
        logger.debug("Cache '%s' stored %s (ttl=%.0fs, size=%d)", self.name, key, ttl, size)

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if missing or expired.

        An expired entry is removed on read. Every call counts as a hit or a
        miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_expired(entry, self._clock()):
                del self._entries[key]
                logger.debug("Cache '%s' entry expired: %s", self.name, key)
                entry = None
            self.metrics.record(hit=entry is not None)
        return None if entry is None else entry.value

    def has(self, key: str) -> bool:
        """True if *key* holds a live entry. Counts toward hit/miss stats."""
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        """Remove a specific key. Returns True if the key existed."""
        with self._lock:
            existed = self._entries.pop(key, None) is not None
        if existed:
            logger.debug("Cache '%s' entry deleted: %s", self.name, key)
        return existed

    def clear(self) -> None:
        """Remove all entries. Hit/miss counters are kept."""
        with self._lock:
            previous = len(self._entries)
            self._entries.clear()
        logger.info("Cache '%s' cleared (%d entries)", self.name, previous)

    @property
    def size(self) -> int:
        """Current number of entries, including expired ones not yet swept."""
        return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            ages = [now - e.stored_at for e in self._entries.values()]
            expired = sum(1 for e in self._entries.values() if self._is_expired(e, now))
            return CacheStats(
                size=len(self._entries),
                max_size=self.config.max_size,
                expired_entries=expired,
                average_age_seconds=sum(ages) / len(ages) if ages else 0.0,
                hit_rate=self.metrics.hit_rate,
            )

    def sweep(self) -> int:
        """Delete every expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)
        if expired:
            logger.debug(
                "Cache '%s' sweep removed %d entries (%d remaining)",
                self.name,
                len(expired),
                remaining,
            )
        return len(expired)

    def start(self) -> None:
        """Begin the periodic sweep on the running event loop."""
        if self._shut_down:
            raise RuntimeError(f"Cache '{self.name}' has been shut down")
        self._sweeper.start()

    async def shutdown(self) -> None:
        """Stop the periodic sweep and drop all entries. Call once."""
        if self._shut_down:
            raise RuntimeError(f"Cache '{self.name}' already shut down")
        self._shut_down = True
        await self._sweeper.stop()
        self.clear()

    @staticmethod
    def _is_expired(entry: CacheEntry[V], now: float) -> bool:
        return now - entry.stored_at > entry.ttl

    def _evict_oldest(self) -> None:
        # Caller holds the lock. min() keeps the first of equal timestamps.
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].stored_at)
        entry = self._entries.pop(oldest_key)
        logger.debug(
            "Cache '%s' evicted %s (size limit, age=%.1fs)",
            self.name,
            oldest_key,
            self._clock() - entry.stored_at,
        )
