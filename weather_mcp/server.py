import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastmcp import FastMCP

from weather_mcp.runtime import Runtime

logger = logging.getLogger(__name__)

_runtime: Runtime | None = None


def get_runtime() -> Runtime:
    """Get the current Runtime instance. Raises if not initialized."""
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Server lifespan has not started.")
    return _runtime


def _reset_runtime() -> None:
    """Clear the module-level runtime reference. Used in tests."""
    global _runtime  # noqa: PLW0603
    _runtime = None


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """Create the runtime and run its background tasks for the server lifecycle."""
    global _runtime  # noqa: PLW0603
    from weather_mcp.config import get_settings

    _runtime = Runtime.create(get_settings())
    _runtime.start()

    try:
        yield {"runtime": _runtime}
    finally:
        await _runtime.shutdown()
        _runtime = None


mcp = FastMCP("weather-mcp", lifespan=app_lifespan)


def setup_logging(log_level: str, data_dir: Path) -> None:
    """Configure logging with file rotation and console output.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        data_dir: Base data directory — logs go to data_dir/logs/server.log.
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # stdout carries the stdio transport, so the console handler writes to stderr
    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    log_dir = data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "server.log"

    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def initialize() -> FastMCP:
    """Load settings, set up logging, and register tools. Returns the MCP server.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """
    from weather_mcp.config import get_settings

    settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(settings.log_level, settings.data_dir)

    from weather_mcp.resources.system import register_system_resources
    from weather_mcp.tools.health import register_health_tools
    from weather_mcp.tools.weather import register_weather_tools

    register_weather_tools(mcp)
    register_health_tools(mcp)
    register_system_resources(mcp)

    logger.info(
        "%s %s initialized", settings.mcp_server_name, settings.mcp_server_version
    )
    return mcp
