"""Open-Meteo forecast client with caching and outbound rate limiting."""

import logging

from pydantic import ValidationError

from weather_mcp.clients.cache import TTLCache
from weather_mcp.clients.http import fetch_json
from weather_mcp.clients.rate_limiter import RATE_LIMITS, RateLimiter
from weather_mcp.clients.resilience import MalformedResponseError, RateLimitedError
from weather_mcp.config import Settings
from weather_mcp.models.weather import (
    CurrentConditions,
    HourlyForecast,
    Location,
    WeatherReport,
    WeatherResponse,
)

logger = logging.getLogger(__name__)

CURRENT_FIELDS = "temperature_2m,precipitation,is_day,rain"


def _to_report(location: Location, data: WeatherResponse) -> WeatherReport:
    """Convert the validated API response into a WeatherReport."""
    current = None
    if data.current:
        current = CurrentConditions(
            temperature=data.current.temperature_2m,
            precipitation=data.current.precipitation,
            is_day=data.current.is_day == 1,
            rain=data.current.rain,
            time=data.current.time,
        )
    hourly = None
    if data.hourly:
        hourly = HourlyForecast(
            temperatures=data.hourly.temperature_2m,
            times=data.hourly.time,
        )
    return WeatherReport(
        location=location,
        current=current,
        hourly=hourly,
        timezone=data.timezone,
        elevation=data.elevation,
        generation_time_ms=data.generationtime_ms,
    )


class WeatherClient:
    """Fetches current conditions and an hourly forecast for a location.

    Args:
        settings: Provides the API URL, forecast days and request timeout.
        cache: Cache for weather reports keyed by rounded coordinates.
        rate_limiter: Shared limiter gating calls to the upstream URL.
    """

    def __init__(
        self,
        settings: Settings,
        cache: TTLCache[WeatherReport],
        rate_limiter: RateLimiter,
    ) -> None:
        self.api_url = settings.weather_api_url
        self.forecast_days = settings.weather_forecast_days
        self.timeout = settings.request_timeout
        self.cache = cache
        self.rate_limiter = rate_limiter

    @staticmethod
    def cache_key(location: Location) -> str:
        return f"weather:{location.latitude:.4f},{location.longitude:.4f}"

    def _admit(self) -> None:
        limit = self.rate_limiter.check_limit(f"weather:{self.api_url}", RATE_LIMITS["weather_api"])
        if not limit.allowed:
            raise RateLimitedError("weather", limit.retry_after_seconds or 0)

    async def get_weather(self, location: Location) -> WeatherReport:
        """Return weather for *location*, served from cache when fresh.

        Raises:
            RateLimitedError: If the outbound weather limit is exhausted.
            UpstreamTimeoutError, UpstreamError: From the upstream call.
        """
        key = self.cache_key(location)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Weather cache hit for %s", location.name)
            return cached

        data = await fetch_json(
            self.api_url,
            params={
                "latitude": location.latitude,
                "longitude": location.longitude,
                "hourly": "temperature_2m",
                "current": CURRENT_FIELDS,
                "forecast_days": self.forecast_days,
            },
            timeout=self.timeout,
            admit=self._admit,
        )

        try:
            response = WeatherResponse.model_validate(data)
        except ValidationError as exc:
            logger.error("Invalid weather response for %s: %s", location.name, exc)
            raise MalformedResponseError("Invalid weather response structure") from exc

        report = _to_report(location, response)
        self.cache.set(key, report)
        logger.info(
            "Weather fetched for %s (current=%s, hourly=%s)",
            location.name,
            report.current.temperature if report.current else None,
            bool(report.hourly),
        )
        return report
