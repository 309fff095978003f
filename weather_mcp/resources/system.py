"""Read-only MCP resources: health documents, server info and example cities."""

import json
import logging
import platform
from datetime import UTC, datetime

from fastmcp import FastMCP

from weather_mcp.server import get_runtime

logger = logging.getLogger(__name__)

EXAMPLE_CITIES = [
    {"name": "Madrid", "country": "Spain"},
    {"name": "Barcelona", "country": "Spain"},
    {"name": "London", "country": "United Kingdom"},
    {"name": "Paris", "country": "France"},
    {"name": "Tokyo", "country": "Japan"},
    {"name": "New York", "country": "United States"},
]


def register_system_resources(mcp: FastMCP) -> None:
    """Register health and informational resources on the MCP server."""

    @mcp.resource(
        "health://status",
        name="Health Status",
        description="Full health check: per-check results and system metrics",
        mime_type="application/json",
    )
    async def health_status() -> str:
        status = await get_runtime().health.get_health_status()
        return json.dumps(status.to_document(), indent=2)

    @mcp.resource(
        "health://quick",
        name="Quick Health",
        description="Last computed health status, without running checks",
        mime_type="application/json",
    )
    def quick_health() -> str:
        quick = get_runtime().health.get_quick_health()
        return quick.model_dump_json(indent=2)

    @mcp.resource(
        "server-info://system",
        name="Server Information",
        description="Server settings, cache, rate limiter and performance statistics",
        mime_type="application/json",
    )
    def server_info() -> str:
        runtime = get_runtime()
        settings = runtime.settings
        info = {
            "name": settings.mcp_server_name,
            "version": settings.mcp_server_version,
            "description": "MCP server for weather lookups",
            "uptime": runtime.health.uptime,
            "platform": platform.platform(),
            "python_version": platform.python_version(),
            "timestamp": datetime.now(UTC).isoformat(),
            "configuration": {
                "apis": settings.api_urls,
                "weather": {
                    "language": settings.weather_language,
                    "forecast_days": settings.weather_forecast_days,
                    "request_timeout_ms": settings.request_timeout_ms,
                },
            },
            "cache": {
                "geocoding": runtime.geocoding_cache.stats().model_dump(),
                "weather": runtime.weather_cache.stats().model_dump(),
            },
            "performance": runtime.performance.stats().model_dump(),
            "rate_limiter": runtime.rate_limiter.stats().model_dump(),
        }
        return json.dumps(info, indent=2)

    @mcp.resource(
        "cities://examples",
        name="Example Cities",
        description="Cities to try with the get_weather tool",
        mime_type="application/json",
    )
    def example_cities() -> str:
        return json.dumps(
            {
                "cities": EXAMPLE_CITIES,
                "count": len(EXAMPLE_CITIES),
                "timestamp": datetime.now(UTC).isoformat(),
            },
            indent=2,
        )
