from unittest.mock import AsyncMock, patch

import pytest
from tenacity import wait_none

from tests.factories import FakeClock, make_settings
from weather_mcp.clients.http import fetch_json
from weather_mcp.config import reset_settings
from weather_mcp.runtime import Runtime


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep tests independent of the developer's environment and cached settings."""
    for var in (
        "GEOCODING_API_URL",
        "WEATHER_API_URL",
        "WEATHER_FORECAST_DAYS",
        "MCP_SERVER_NAME",
        "MCP_SERVER_VERSION",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient in the shared HTTP module.

    Yields the client object that ``async with`` produces; set
    ``mock_http.get.return_value`` / ``side_effect`` per test.
    """
    client = AsyncMock()
    with patch("weather_mcp.clients.http.httpx.AsyncClient") as mock_cls:
        mock_cls.return_value.__aenter__ = AsyncMock(return_value=client)
        mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        yield client



@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch: pytest.MonkeyPatch):
    """Retry transient upstream errors without sleeping between attempts."""
    monkeypatch.setattr(fetch_json.retry, "wait", wait_none())


@pytest.fixture
def runtime(settings, clock):
    """A fully wired Runtime with no background tasks running."""
    return Runtime.create(settings, clock=clock)
