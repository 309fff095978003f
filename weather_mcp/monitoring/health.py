"""Health aggregation over memory, caches, upstream reachability, config and dependencies.

The monitor is observational only: it reports a status, and never acts on it.
"""

import asyncio
import importlib.util
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import psutil

from weather_mcp.clients.cache import TTLCache
from weather_mcp.clients.http import probe_url
from weather_mcp.clients.rate_limiter import RateLimiter
from weather_mcp.config import Settings, is_absolute_url
from weather_mcp.models.enums import CheckStatus, HealthState
from weather_mcp.models.health import (
    CpuMetrics,
    ErrorMetrics,
    HealthCheckResult,
    HealthStatus,
    MemoryMetrics,
    QuickHealth,
    RequestMetrics,
    SystemMetrics,
)
from weather_mcp.monitoring.performance import PerformanceRecorder
from weather_mcp.monitoring.scheduling import PeriodicTask

logger = logging.getLogger(__name__)

MEMORY_FAIL_PERCENT = 80.0
MEMORY_WARN_PERCENT = MEMORY_FAIL_PERCENT * 0.8
MIN_CACHE_HIT_RATE = 0.3
ERROR_RATE_ALERT = 0.1
ERROR_RECENCY_WINDOW = 5 * 60
HEALTH_CHECK_INTERVAL = 5 * 60

CRITICAL_DEPENDENCIES = ("pydantic", "pydantic_settings", "httpx", "fastmcp")

# Cheap requests used to confirm the upstream APIs answer at all
GEOCODING_PROBE_PARAMS = {"name": "test", "count": 1, "format": "json"}
WEATHER_PROBE_PARAMS = {"latitude": 0, "longitude": 0, "current": "temperature_2m"}

Probe = Callable[[str, dict, float], Awaitable[object]]


@dataclass(frozen=True)
class MemoryUsage:
    used: int
    total: int

    @property
    def percentage(self) -> float:
        return self.used / self.total * 100 if self.total else 0.0


def read_memory_usage() -> MemoryUsage:
    """This process's resident set against the physical memory it can use."""
    return MemoryUsage(
        used=psutil.Process().memory_info().rss,
        total=psutil.virtual_memory().total,
    )


def reduce_status(checks: Sequence[HealthCheckResult]) -> HealthState:
    """Collapse per-check results into one overall state.

    Any ``fail`` makes the system unhealthy. More than one ``warn`` makes it
    degraded. A single ``warn`` is still healthy.
    """
    if any(c.status == CheckStatus.FAIL for c in checks):
        return HealthState.UNHEALTHY
    if sum(1 for c in checks if c.status == CheckStatus.WARN) > 1:
        return HealthState.DEGRADED
    return HealthState.HEALTHY


# A check returns (status, message, metadata)
CheckOutcome = tuple[CheckStatus, str, dict | None]


class HealthMonitor:
    """Runs the health checks and remembers the last overall status.

    Args:
        settings: Server settings (identity, upstream URLs, probe timeout).
        geocoding_cache: Cache whose stats feed the cache check.
        weather_cache: Cache whose stats feed the cache check.
        rate_limiter: Limiter whose stats are included in the metrics.
        performance: Source of request totals and the memory peak.
        probe: Connectivity probe ``(url, params, timeout)``. Raises if
            the URL is unreachable.
        memory_reader: Returns the current MemoryUsage.
        critical_dependencies: Module names that must be importable.
        clock: Zero-argument callable returning seconds.
        check_interval: Seconds between automatic full checks.
    """

    def __init__(
        self,
        settings: Settings,
        geocoding_cache: TTLCache,
        weather_cache: TTLCache,
        rate_limiter: RateLimiter,
        performance: PerformanceRecorder,
        *,
        probe: Probe = probe_url,
        memory_reader: Callable[[], MemoryUsage] = read_memory_usage,
        critical_dependencies: Sequence[str] = CRITICAL_DEPENDENCIES,
        clock: Callable[[], float] = time.monotonic,
        check_interval: float = HEALTH_CHECK_INTERVAL,
    ) -> None:
        self.settings = settings
        self.geocoding_cache = geocoding_cache
        self.weather_cache = weather_cache
        self.rate_limiter = rate_limiter
        self.performance = performance
        self._probe = probe
        self._read_memory = memory_reader
        self.critical_dependencies = tuple(critical_dependencies)
        self._clock = clock
        self._started_at = clock()
        self._lock = threading.Lock()
        self._status = HealthState.HEALTHY
        self.error_count = 0
        self._last_error_at: float | None = None
        self._poller = PeriodicTask("health-check", check_interval, self._periodic_check)

    @property
    def current_status(self) -> HealthState:
        return self._status

    @property
    def uptime(self) -> float:
        return self._clock() - self._started_at

    # ── Public API ───────────────────────────────────────────────────────────

    async def get_health_status(self) -> HealthStatus:
        """Run every check and return the aggregated status.

        Updates the remembered status used by :meth:`get_quick_health`.
        """
        start = self._clock()
        checks = list(
            await asyncio.gather(
                self._run_check("memory", self._check_memory),
                self._run_check("cache", self._check_cache),
                self._run_check("external_apis", self._check_external_apis),
                self._run_check("configuration", self._check_configuration),
                self._run_check("dependencies", self._check_dependencies),
            )
        )
        overall = reduce_status(checks)

        with self._lock:
            previous, self._status = self._status, overall
        if previous != overall:
            logger.warning(
                "Health status changed from %s to %s (non-passing: %s)",
                previous,
                overall,
                ", ".join(f"{c.name}={c.status}" for c in checks if c.status != CheckStatus.PASS),
            )

        logger.debug(
            "Health check completed: %s in %.1fms", overall, (self._clock() - start) * 1000
        )
        return HealthStatus(
            status=overall,
            timestamp=datetime.now(UTC),
            uptime=self.uptime,
            version=self.settings.mcp_server_version,
            checks=checks,
            metrics=self._system_metrics(),
        )

    def get_quick_health(self) -> QuickHealth:
        """Last computed status without running any check."""
        return QuickHealth(
            status=self._status,
            uptime=self.uptime,
            timestamp=datetime.now(UTC),
        )

    def record_error(self, error: BaseException, context: str | None = None) -> None:
        """Count an error for health tracking."""
        with self._lock:
            self.error_count += 1
            self._last_error_at = self._clock()
            total = self.error_count
        logger.error(
            "Error recorded for health monitoring (%s, total=%d): %s",
            context or "unknown",
            total,
            error,
        )
        rate = self.error_rate()
        if rate > ERROR_RATE_ALERT:
            logger.warning(
                "High error rate detected: %.1f%% (threshold %.0f%%)",
                rate * 100,
                ERROR_RATE_ALERT * 100,
            )

    def error_rate(self) -> float:
        """Errors per observed request, or 0 if the last error is stale.

        Only the time of the *last* error gates recency. The ratio itself is
        over all errors and requests since startup.
        """
        with self._lock:
            last, count = self._last_error_at, self.error_count
        if last is None or self._clock() - last > ERROR_RECENCY_WINDOW:
            return 0.0
        total = self.performance.request_count
        return count / total if total > 0 else 0.0

    def start(self) -> None:
        """Begin periodic full checks on the running event loop."""
        self._poller.start()
        logger.info("Periodic health monitoring started")

    async def shutdown(self) -> None:
        await self._poller.stop()

    # ── Checks ───────────────────────────────────────────────────────────────

    async def _run_check(
        self, name: str, check: Callable[[], Awaitable[CheckOutcome]]
    ) -> HealthCheckResult:
        start = self._clock()
        try:
            status, message, metadata = await check()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Health check '%s' raised", name)
            status, message, metadata = CheckStatus.FAIL, f"Check failed: {type(exc).__name__}", None
        return HealthCheckResult(
            name=name,
            status=status,
            message=message,
            duration_ms=(self._clock() - start) * 1000,
            metadata=metadata,
        )

    async def _check_memory(self) -> CheckOutcome:
        memory = self._read_memory()
        percentage = memory.percentage
        message = f"Memory usage: {memory.used / 1024 / 1024:.2f}MB ({percentage:.1f}%)"

        status = CheckStatus.PASS
        if percentage > MEMORY_FAIL_PERCENT:
            status = CheckStatus.FAIL
            message += " - CRITICAL: High memory usage"
        elif percentage > MEMORY_WARN_PERCENT:
            status = CheckStatus.WARN
            message += " - WARNING: Elevated memory usage"

        return status, message, {
            "used": memory.used,
            "total": memory.total,
            "percentage": percentage,
        }

    async def _check_cache(self) -> CheckOutcome:
        geo = self.geocoding_cache.stats()
        weather = self.weather_cache.stats()
        message = (
            f"Cache operational - Geocoding: {geo.size} entries, "
            f"Weather: {weather.size} entries"
        )

        status = CheckStatus.PASS
        if geo.hit_rate < MIN_CACHE_HIT_RATE or weather.hit_rate < MIN_CACHE_HIT_RATE:
            status = CheckStatus.WARN
            message += (
                f" - LOW hit rates: Geo {geo.hit_rate * 100:.1f}%, "
                f"Weather {weather.hit_rate * 100:.1f}%"
            )

        return status, message, {
            "geocoding": geo.model_dump(),
            "weather": weather.model_dump(),
        }

    async def _check_external_apis(self) -> CheckOutcome:
        timeout = self.settings.health_probe_timeout
        try:
            results = await asyncio.gather(
                asyncio.wait_for(
                    self._probe(self.settings.geocoding_api_url, GEOCODING_PROBE_PARAMS, timeout),
                    timeout,
                ),
                asyncio.wait_for(
                    self._probe(self.settings.weather_api_url, WEATHER_PROBE_PARAMS, timeout),
                    timeout,
                ),
                return_exceptions=True,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Unable to test external API connectivity")
            return CheckStatus.WARN, "Unable to test external API connectivity", None

        failures = {
            name: type(result).__name__
            for name, result in zip(("geocoding", "weather"), results, strict=True)
            if isinstance(result, BaseException)
        }
        if len(failures) == 2:
            return CheckStatus.FAIL, "Both external APIs unreachable", failures
        if failures:
            return CheckStatus.WARN, "One external API unreachable", failures
        return CheckStatus.PASS, "External APIs accessible", None

    async def _check_configuration(self) -> CheckOutcome:
        settings = self.settings
        invalid = [
            name for name, url in settings.api_urls.items() if not is_absolute_url(url)
        ]
        if invalid:
            return CheckStatus.FAIL, "Invalid configuration detected", {"invalid_urls": invalid}
        if not settings.mcp_server_name or not settings.mcp_server_version:
            return CheckStatus.WARN, "Missing server configuration", None
        return CheckStatus.PASS, "Configuration valid", None

    async def _check_dependencies(self) -> CheckOutcome:
        missing = [name for name in self.critical_dependencies if not _is_importable(name)]
        if missing:
            return CheckStatus.FAIL, f"Missing dependencies: {', '.join(missing)}", None
        return CheckStatus.PASS, "All dependencies available", None

    # ── Metrics ──────────────────────────────────────────────────────────────

    def _system_metrics(self) -> SystemMetrics:
        perf = self.performance.stats()
        return SystemMetrics(
            memory=self._memory_metrics(perf.memory_peak_bytes),
            cpu=self._cpu_metrics(),
            cache={
                "geocoding": self.geocoding_cache.stats().model_dump(),
                "weather": self.weather_cache.stats().model_dump(),
            },
            rate_limiter=self.rate_limiter.stats().model_dump(),
            requests=RequestMetrics(
                total=perf.total_requests,
                average_response_ms=perf.average_response_ms,
            ),
            errors=ErrorMetrics(total=self.error_count, rate=self.error_rate()),
        )

    def _memory_metrics(self, peak: int) -> MemoryMetrics:
        # Zeroed on failure; the memory check already reports it as fail
        try:
            memory = self._read_memory()
        except Exception:  # noqa: BLE001
            logger.exception("Unable to read memory metrics")
            return MemoryMetrics(used=0, total=0, percentage=0.0, peak=peak)
        return MemoryMetrics(
            used=memory.used,
            total=memory.total,
            percentage=memory.percentage,
            peak=peak,
        )

    def _cpu_metrics(self) -> CpuMetrics:
        try:
            cpu = psutil.Process().cpu_times()
            load_average = psutil.getloadavg()
        except (psutil.Error, OSError):
            logger.exception("Unable to read CPU metrics")
            return CpuMetrics(user_seconds=0.0, system_seconds=0.0, load_average=(0.0, 0.0, 0.0))
        return CpuMetrics(
            user_seconds=cpu.user,
            system_seconds=cpu.system,
            load_average=load_average,
        )

    async def _periodic_check(self) -> None:
        health = await self.get_health_status()
        if health.status != HealthState.HEALTHY:
            logger.warning(
                "Periodic health check: system %s (failing: %s)",
                health.status,
                ", ".join(c.name for c in health.checks if c.status != CheckStatus.PASS),
            )


def _is_importable(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False
