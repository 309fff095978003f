"""Process-wide runtime context: owns the caches, limiter, recorder and health monitor."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from weather_mcp.clients.cache import CACHE_CONFIGS, TTLCache
from weather_mcp.clients.geocoding import GeocodingClient
from weather_mcp.clients.rate_limiter import RateLimiter
from weather_mcp.clients.weather import WeatherClient
from weather_mcp.config import Settings
from weather_mcp.models.weather import Location, WeatherReport
from weather_mcp.monitoring.health import HealthMonitor
from weather_mcp.monitoring.performance import PerformanceRecorder

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    geocoding_cache: TTLCache[Location | str]
    weather_cache: TTLCache[WeatherReport]
    rate_limiter: RateLimiter
    performance: PerformanceRecorder
    health: HealthMonitor
    geocoding: GeocodingClient
    weather: WeatherClient

    @classmethod
    def create(
        cls, settings: Settings, clock: Callable[[], float] = time.monotonic
    ) -> "Runtime":
        """Build every component once, wiring shared instances together."""
        geocoding_cache: TTLCache[Location | str] = TTLCache(
            "geocoding", CACHE_CONFIGS["geocoding"], clock=clock
        )
        weather_cache: TTLCache[WeatherReport] = TTLCache(
            "weather", CACHE_CONFIGS["weather"], clock=clock
        )
        rate_limiter = RateLimiter(clock=clock)
        performance = PerformanceRecorder(clock=clock)
        health = HealthMonitor(
            settings,
            geocoding_cache,
            weather_cache,
            rate_limiter,
            performance,
            clock=clock,
        )
        return cls(
            settings=settings,
            geocoding_cache=geocoding_cache,
            weather_cache=weather_cache,
            rate_limiter=rate_limiter,
            performance=performance,
            health=health,
            geocoding=GeocodingClient(settings, geocoding_cache, rate_limiter),
            weather=WeatherClient(settings, weather_cache, rate_limiter),
        )

    def start(self) -> None:
        """Schedule all background tasks. Requires a running event loop."""
        self.geocoding_cache.start()
        self.weather_cache.start()
        self.rate_limiter.start()
        self.performance.start()
        self.health.start()
        logger.info("Runtime started")

    async def shutdown(self) -> None:
        """Stop all background tasks and release cached data."""
        await self.health.shutdown()
        await self.performance.shutdown()
        await self.rate_limiter.shutdown()
        await self.weather_cache.shutdown()
        await self.geocoding_cache.shutdown()
        logger.info("Runtime shut down")
