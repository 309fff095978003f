"""Request counting/timing and process memory peak tracking."""

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import psutil
from pydantic import BaseModel

from weather_mcp.monitoring.scheduling import PeriodicTask

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


class PerformanceStats(BaseModel):
    total_requests: int
    average_response_ms: float
    memory_peak_bytes: int
    uptime_seconds: float


class PerformanceRecorder:
    """Accumulates request counts, response times and the RSS peak.

    Args:
        clock: Zero-argument callable returning seconds.
        memory_sample_interval: Seconds between background memory samples.
        memory_warning_mb: RSS above which a sample logs a warning.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        memory_sample_interval: float = 30.0,
        memory_warning_mb: float = 256.0,
    ) -> None:
        self._clock = clock
        self._started_at = clock()
        self.memory_warning_mb = memory_warning_mb
        self.request_count = 0
        self.response_time_sum = 0.0
        self.memory_peak = 0
        self._sampler = PeriodicTask("memory-sampler", memory_sample_interval, self.sample_memory)

    @asynccontextmanager
    async def track(self, operation: str) -> AsyncIterator[None]:
        """Count and time the enclosed block, whether or not it raises."""
        start = self._clock()
        outcome = "error"
        try:
            yield
            outcome = "success"
        finally:
            elapsed_ms = (self._clock() - start) * 1000
            self.request_count += 1
            self.response_time_sum += elapsed_ms
            logger.debug("%s completed in %.1fms (%s)", operation, elapsed_ms, outcome)

    def sample_memory(self) -> int:
        """Record the current RSS, updating the peak. Returns the RSS in bytes."""
        rss = psutil.Process().memory_info().rss
        self.memory_peak = max(self.memory_peak, rss)
        if rss / _MB > self.memory_warning_mb:
            logger.warning("High memory usage detected: %.1fMB RSS", rss / _MB)
        return rss

    def stats(self) -> PerformanceStats:
        average = self.response_time_sum / self.request_count if self.request_count else 0.0
        return PerformanceStats(
            total_requests=self.request_count,
            average_response_ms=average,
            memory_peak_bytes=self.memory_peak,
            uptime_seconds=self._clock() - self._started_at,
        )

    def start(self) -> None:
        self.sample_memory()
        self._sampler.start()

    async def shutdown(self) -> None:
        await self._sampler.stop()
