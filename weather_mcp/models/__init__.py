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
from weather_mcp.models.weather import (
    CurrentConditions,
    GeocodingResponse,
    GeocodingResult,
    HourlyForecast,
    Location,
    WeatherCurrent,
    WeatherHourly,
    WeatherReport,
    WeatherResponse,
)

__all__ = [
    "CheckStatus",
    "CpuMetrics",
    "CurrentConditions",
    "ErrorMetrics",
    "GeocodingResponse",
    "GeocodingResult",
    "HealthCheckResult",
    "HealthState",
    "HealthStatus",
    "HourlyForecast",
    "Location",
    "MemoryMetrics",
    "QuickHealth",
    "RequestMetrics",
    "SystemMetrics",
    "WeatherCurrent",
    "WeatherHourly",
    "WeatherReport",
    "WeatherResponse",
]
