import logging
from pathlib import Path

import httpx
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_GEOCODING_API_URL = "https://geocoding-api.open-meteo.com/v1/search"
DEFAULT_WEATHER_API_URL = "https://api.open-meteo.com/v1/forecast"


class ConfigurationError(Exception):
    """Invalid configuration detected at startup. Not recoverable."""


def is_absolute_url(value: str) -> bool:
    """Return True if *value* is a well-formed absolute http(s) URL."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


class Settings(BaseSettings):
    """Server configuration loaded from environment variables and .env file.

    Upstream URLs are configurable so a different Open-Meteo compatible
    provider (or a local stub) can be used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server identity
    mcp_server_name: str = "weather-mcp"
    mcp_server_version: str = "1.0.0"

    # Upstream APIs
    geocoding_api_url: str = DEFAULT_GEOCODING_API_URL
    weather_api_url: str = DEFAULT_WEATHER_API_URL

    weather_language: str = "es"
    weather_forecast_days: int = Field(default=1, ge=1, le=16)
    request_timeout_ms: int = 10_000
    health_probe_timeout_ms: int = 5_000

    # Remote hosting
    mcp_transport: str = "stdio"
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8000

    data_dir: Path = Path(__file__).resolve().parent.parent / "data"
    log_level: str = "INFO"

    @field_validator("geocoding_api_url", "weather_api_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not is_absolute_url(value):
            raise ValueError(f"not an absolute http(s) URL: {value!r}")
        return value

    @model_validator(mode="after")
    def _warn_on_unusual_timeout(self) -> "Settings":
        if not 1_000 <= self.request_timeout_ms <= 60_000:
            logger.warning(
                "Request timeout %dms outside recommended range 1000-60000ms",
                self.request_timeout_ms,
            )
        return self

    @property
    def request_timeout(self) -> float:
        """Upstream request timeout in seconds."""
        return self.request_timeout_ms / 1000

    @property
    def health_probe_timeout(self) -> float:
        """Connectivity probe timeout in seconds."""
        return self.health_probe_timeout_ms / 1000

    @property
    def api_urls(self) -> dict[str, str]:
        return {
            "geocoding": self.geocoding_api_url,
            "weather": self.weather_api_url,
        }


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached Settings singleton. Created on first call.

    Raises:
        ConfigurationError: If the environment holds an invalid URL or an
            out-of-range setting.
    """
    global _settings  # noqa: PLW0603
    if _settings is None:
        try:
            _settings = Settings()
        except ValidationError as exc:
            logger.error("Invalid configuration: %s", exc)
            raise ConfigurationError(str(exc)) from exc
        logger.info(
            "Configuration loaded: %s %s (geocoding=%s, weather=%s)",
            _settings.mcp_server_name,
            _settings.mcp_server_version,
            _settings.geocoding_api_url,
            _settings.weather_api_url,
        )
    return _settings


def reset_settings() -> None:
    """Clear the cached settings. Used in tests."""
    global _settings  # noqa: PLW0603
    _settings = None
