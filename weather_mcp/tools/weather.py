"""MCP tool for city weather lookups: city → coordinates → forecast → text."""

import logging

from fastmcp import FastMCP

from weather_mcp.clients.rate_limiter import RATE_LIMITS
from weather_mcp.models.weather import WeatherReport
from weather_mcp.runtime import Runtime
from weather_mcp.server import get_runtime
from weather_mcp.tools.error_messages import safe_tool_wrapper

logger = logging.getLogger(__name__)

TOOL_RATE_LIMIT_KEY = "tool:weather"
HOURLY_PREVIEW = 8


def format_weather_report(report: WeatherReport) -> str:
    """Format a weather report for display."""
    loc = report.location
    lines = [
        f"📍 **{loc.name}, {loc.country}**",
        f"📐 Coordinates: {loc.latitude:.4f}, {loc.longitude:.4f}",
        f"⛰️ Elevation: {report.elevation:g}m",
        f"🌍 Timezone: {report.timezone}",
        "",
    ]

    if report.current:
        cur = report.current
        lines += [
            f"🌡️ **Current temperature:** {cur.temperature}°C",
            f"☔ **Precipitation:** {cur.precipitation}mm",
            f"🌧️ **Rain:** {cur.rain}mm",
            f"{'☀️' if cur.is_day else '🌙'} **Period:** {'Day' if cur.is_day else 'Night'}",
            f"🕐 **Last updated:** {cur.time}",
            "",
        ]

    if report.hourly and report.hourly.temperatures:
        lines.append("📈 **Hourly forecast:**")
        pairs = zip(report.hourly.times, report.hourly.temperatures, strict=False)
        for time, temp in list(pairs)[:HOURLY_PREVIEW]:
            lines.append(f"  {time}: {temp}°C")

    return "\n".join(lines).rstrip()


async def _lookup_weather(runtime: Runtime, city: str) -> str:
    async with runtime.performance.track("get_weather"):
        location = await runtime.geocoding.get_coordinates(city)
        if location is None:
            return (
                f"No information found for the city: {city}. "
                "Check the spelling or try another city."
            )
        report = await runtime.weather.get_weather(location)

    logger.info("Weather lookup completed for %s, %s", location.name, location.country)
    return format_weather_report(report)


def register_weather_tools(mcp: FastMCP) -> None:
    """Register weather lookup tools on the MCP server."""

    @mcp.tool
    async def get_weather(city: str) -> str:
        """Get the current weather and an hourly forecast for a city.

        Args:
            city: City name, e.g. "Madrid" or "New York".

        Returns:
            Formatted location details, current conditions and the next
            hours' temperatures.
        """
        city_name = city.strip()
        if not city_name:
            logger.warning("Empty city received")
            return "Error: a city name is required."

        runtime = get_runtime()
        limit = runtime.rate_limiter.check_limit(TOOL_RATE_LIMIT_KEY, RATE_LIMITS["tool_usage"])
        if not limit.allowed:
            logger.warning(
                "Tool rate limit exceeded for '%s' (retry in %ss)",
                city_name,
                limit.retry_after_seconds,
            )
            return (
                "⏰ Query limit reached. You can make another request in "
                f"{limit.retry_after_seconds} seconds."
            )

        return await safe_tool_wrapper(
            _lookup_weather,
            runtime,
            city_name,
            context={"city": city_name},
            on_error=lambda exc: runtime.health.record_error(exc, "get_weather"),
        )
