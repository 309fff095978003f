"""Sliding-window rate limiter keyed by upstream URL or tool name."""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from weather_mcp.monitoring.scheduling import PeriodicTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_seconds: float


RATE_LIMITS: dict[str, RateLimitConfig] = {
    "weather_api": RateLimitConfig(max_requests=30, window_seconds=60),
    "geocoding_api": RateLimitConfig(max_requests=20, window_seconds=60),
    # Tightest limit: outermost admission control for the tool itself
    "tool_usage": RateLimitConfig(max_requests=10, window_seconds=60),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float
    retry_after_seconds: int | None = None


class RateLimiterStats(BaseModel):
    active_keys: int
    total_tracked_requests: int


class RateLimiter:
    """Per-key sliding window over request timestamps.

    Admission at time T depends only on requests recorded in
    ``(T - window, T]``. Denied requests are not recorded.

    Args:
        clock: Zero-argument callable returning seconds.
        retention: Age in seconds beyond which :meth:`cleanup` drops
            timestamps, regardless of any key's own window.
        cleanup_interval: Seconds between automatic cleanups.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        retention: float = 5 * 60,
        cleanup_interval: float = 5 * 60,
    ) -> None:
        self._clock = clock
        self.retention = retention
        self._requests: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._cleaner = PeriodicTask("rate-limiter-cleanup", cleanup_interval, self.cleanup)

    def check_limit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Admit or deny one request for *key*, recording it if admitted."""
        with self._lock:
            now = self._clock()
            window_start = now - config.window_seconds
            valid = [t for t in self._requests.get(key, ()) if t > window_start]

            if len(valid) >= config.max_requests:
                if valid:
                    self._requests[key] = valid
                else:
                    self._requests.pop(key, None)
                # With no capacity at all the wait is one full window
                oldest = valid[0] if valid else now
                retry_after = math.ceil(oldest + config.window_seconds - now)
                logger.warning(
                    "Rate limit exceeded for %s (%d/%d in %.0fs, retry in %ds)",
                    key,
                    len(valid),
                    config.max_requests,
                    config.window_seconds,
                    retry_after,
                )
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=oldest + config.window_seconds,
                    retry_after_seconds=retry_after,
                )

            valid.append(now)
            self._requests[key] = valid

        remaining = config.max_requests - len(valid)
        logger.debug("Rate limit check passed for %s (%d remaining)", key, remaining)
        return RateLimitResult(
            allowed=True,
            remaining=remaining,
            reset_time=valid[0] + config.window_seconds,
        )

    def cleanup(self) -> int:
        """Drop timestamps older than the retention floor and empty keys.

        Returns:
            Number of keys removed.
        """
        removed = 0
        with self._lock:
            cutoff = self._clock() - self.retention
            for key in list(self._requests):
                valid = [t for t in self._requests[key] if t > cutoff]
                if not valid:
                    del self._requests[key]
                    removed += 1
                elif len(valid) < len(self._requests[key]):
                    self._requests[key] = valid
            active = len(self._requests)
        if removed:
            logger.debug("Rate limiter cleanup removed %d keys (%d active)", removed, active)
        return removed

    def reset(self, key: str) -> None:
        with self._lock:
            self._requests.pop(key, None)
        logger.info("Rate limit reset for %s", key)

    def reset_all(self) -> None:
        with self._lock:
            previous = len(self._requests)
            self._requests.clear()
        logger.info("All rate limits reset (%d keys)", previous)

    def stats(self) -> RateLimiterStats:
        with self._lock:
            return RateLimiterStats(
                active_keys=len(self._requests),
                total_tracked_requests=sum(len(v) for v in self._requests.values()),
            )

    def start(self) -> None:
        """Begin periodic cleanup on the running event loop."""
        self._cleaner.start()

    async def shutdown(self) -> None:
        await self._cleaner.stop()
