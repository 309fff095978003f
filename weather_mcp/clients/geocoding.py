import logging

from pydantic import ValidationError

from weather_mcp.clients.cache import NEGATIVE_RESULT_TTL, TTLCache
from weather_mcp.clients.http import fetch_json
from weather_mcp.clients.rate_limiter import RATE_LIMITS, RateLimiter
from weather_mcp.clients.resilience import MalformedResponseError, RateLimitedError
from weather_mcp.config import Settings
from weather_mcp.models.weather import GeocodingResponse, Location

logger = logging.getLogger(__name__)

NOT_FOUND = "__not_found__"
"""Cached marker for a city the upstream API does not know."""


def validate_coordinates(latitude: float, longitude: float) -> bool:
    """Return True if the pair lies within valid latitude/longitude ranges."""
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


class GeocodingClient:
    """Open-Meteo geocoding with caching and outbound rate limiting.

    Args:
        settings: Provides the API URL, language and request timeout.
        cache: Cache for resolved cities (and negative results).
        rate_limiter: Shared limiter gating calls to the upstream URL.
    """

    def __init__(
        self,
        settings: Settings,
        cache: TTLCache[Location | str],
        rate_limiter: RateLimiter,
    ) -> None:
        self.api_url = settings.geocoding_api_url
        self.language = settings.weather_language
        self.timeout = settings.request_timeout
        self.cache = cache
        self.rate_limiter = rate_limiter

    @staticmethod
    def cache_key(city: str) -> str:
        return f"geocoding:{city.strip().lower()}"

    def _admit(self) -> None:
        """Record one outbound attempt, or raise if the limit is exhausted."""
        limit = self.rate_limiter.check_limit(
            f"geocoding:{self.api_url}", RATE_LIMITS["geocoding_api"]
        )
        if not limit.allowed:
            raise RateLimitedError("geocoding", limit.retry_after_seconds or 0)

    async def get_coordinates(self, city: str) -> Location | None:
        """Resolve *city* to coordinates.

        Returns:
            The best match, or None if the city is unknown.

        Raises:
            RateLimitedError: If the outbound geocoding limit is exhausted.
            UpstreamTimeoutError, UpstreamError: From the upstream call.
        """
        key = self.cache_key(city)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Geocoding cache hit for '%s'", city)
            return None if cached == NOT_FOUND else cached

        data = await fetch_json(
            self.api_url,
            params={
                "name": city.strip(),
                "count": 1,
                "language": self.language,
                "format": "json",
            },
            timeout=self.timeout,
            admit=self._admit,
        )

        try:
            response = GeocodingResponse.model_validate(data)
        except ValidationError as exc:
            logger.error("Invalid geocoding response for '%s': %s", city, exc)
            raise MalformedResponseError("Invalid geocoding response structure") from exc

        if not response.results:
            logger.warning("No geocoding results for '%s'", city)
            self.cache.set(key, NOT_FOUND, ttl=NEGATIVE_RESULT_TTL)
            return None

        best = response.results[0]
        if not validate_coordinates(best.latitude, best.longitude):
            raise MalformedResponseError(
                f"Coordinates out of range for '{city}': {best.latitude}, {best.longitude}"
            )
        location = Location(
            latitude=best.latitude,
            longitude=best.longitude,
            name=best.name,
            country=best.country or "Unknown",
        )
        self.cache.set(key, location)
        logger.info(
            "Geocoded '%s' to %s, %s (%.4f, %.4f)",
            city,
            location.name,
            location.country,
            location.latitude,
            location.longitude,
        )
        return location
