"""Tests for weather_mcp.clients.geocoding — cache, rate limit, validation, negative caching."""

import pytest

from tests.factories import make_geocoding_payload, make_response
from weather_mcp.clients.cache import CACHE_CONFIGS, TTLCache
from weather_mcp.clients.geocoding import NOT_FOUND, GeocodingClient, validate_coordinates
from weather_mcp.clients.rate_limiter import RATE_LIMITS, RateLimiter
from weather_mcp.clients.resilience import MalformedResponseError, RateLimitedError


@pytest.fixture
def client(settings, clock):
    cache = TTLCache("geocoding", CACHE_CONFIGS["geocoding"], clock=clock)
    return GeocodingClient(settings, cache, RateLimiter(clock=clock))


class TestGetCoordinates:
    async def test_returns_location(self, client, mock_http):
        mock_http.get.return_value = make_response(make_geocoding_payload())

        location = await client.get_coordinates("Madrid")

        assert location.name == "Madrid"
        assert location.country == "Spain"
        assert location.latitude == pytest.approx(40.4168)
        mock_http.get.assert_awaited_once_with(
            client.api_url,
            params={"name": "Madrid", "count": 1, "language": "es", "format": "json"},
        )

    async def test_missing_country_defaults_to_unknown(self, client, mock_http):
        mock_http.get.return_value = make_response(make_geocoding_payload(country=None))
        location = await client.get_coordinates("Somewhere")
        assert location.country == "Unknown"

    async def test_second_lookup_served_from_cache(self, client, mock_http):
        mock_http.get.return_value = make_response(make_geocoding_payload())

        await client.get_coordinates("Madrid")
        again = await client.get_coordinates("  madrid ")

        assert again.name == "Madrid"
        assert mock_http.get.await_count == 1
        assert client.cache.metrics.hits == 1

    async def test_unknown_city_cached_as_negative_result(self, client, mock_http, clock):
        mock_http.get.return_value = make_response({"generationtime_ms": 0.3})

        assert await client.get_coordinates("Atlantis") is None
        assert await client.get_coordinates("Atlantis") is None
        assert mock_http.get.await_count == 1
        assert client.cache.get(client.cache_key("Atlantis")) == NOT_FOUND

    async def test_negative_result_expires_after_thirty_minutes(self, client, mock_http, clock):
        mock_http.get.return_value = make_response({"results": []})

        await client.get_coordinates("Atlantis")
        clock.advance(31 * 60)
        await client.get_coordinates("Atlantis")

        assert mock_http.get.await_count == 2

    async def test_invalid_payload_raises_malformed(self, client, mock_http):
        mock_http.get.return_value = make_response({"results": [{"name": "no coords"}]})
        with pytest.raises(MalformedResponseError):
            await client.get_coordinates("Madrid")

    async def test_out_of_range_coordinates_raise_malformed(self, client, mock_http):
        mock_http.get.return_value = make_response(make_geocoding_payload(latitude=123.0))
        with pytest.raises(MalformedResponseError):
            await client.get_coordinates("Madrid")
        assert client.cache.size == 0

    async def test_rate_limit_blocks_before_fetch(self, client, mock_http):
        cfg = RATE_LIMITS["geocoding_api"]
        for _ in range(cfg.max_requests):
            client.rate_limiter.check_limit(f"geocoding:{client.api_url}", cfg)

        with pytest.raises(RateLimitedError) as exc_info:
            await client.get_coordinates("Madrid")

        assert exc_info.value.retry_after_seconds == 60
        mock_http.get.assert_not_awaited()

    async def test_every_upstream_attempt_is_rate_limited(self, client, mock_http):
        mock_http.get.side_effect = [
            make_response(status_code=503),
            make_response(status_code=503),
            make_response(make_geocoding_payload()),
        ]

        await client.get_coordinates("Madrid")

        tracked = client.rate_limiter.stats().total_tracked_requests
        assert mock_http.get.await_count == tracked == 3

    async def test_retry_stops_when_limit_runs_out(self, client, mock_http):
        cfg = RATE_LIMITS["geocoding_api"]
        for _ in range(cfg.max_requests - 1):
            client.rate_limiter.check_limit(f"geocoding:{client.api_url}", cfg)
        mock_http.get.return_value = make_response(status_code=503)

        with pytest.raises(RateLimitedError):
            await client.get_coordinates("Madrid")

        assert mock_http.get.await_count == 1

    async def test_cache_hit_does_not_consume_rate_limit(self, client, mock_http):
        mock_http.get.return_value = make_response(make_geocoding_payload())
        await client.get_coordinates("Madrid")
        await client.get_coordinates("Madrid")
        assert client.rate_limiter.stats().total_tracked_requests == 1


class TestValidateCoordinates:
    @pytest.mark.parametrize(
        ("lat", "lon", "expected"),
        [
            (0, 0, True),
            (90, 180, True),
            (-90, -180, True),
            (90.1, 0, False),
            (0, -180.5, False),
        ],
    )
    def test_ranges(self, lat, lon, expected):
        assert validate_coordinates(lat, lon) is expected
