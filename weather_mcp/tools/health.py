"""MCP tool exposing service health."""

import json
import logging

from fastmcp import FastMCP

from weather_mcp.server import get_runtime

logger = logging.getLogger(__name__)


def register_health_tools(mcp: FastMCP) -> None:
    """Register health reporting tools on the MCP server."""

    @mcp.tool
    async def health_check(detailed: bool = False) -> str:
        """Report the weather service's health.

        Args:
            detailed: Run every check and return the full JSON document
                instead of the last known status.

        Returns:
            A one-line status summary, or the JSON health document.
        """
        health = get_runtime().health
        if not detailed:
            quick = health.get_quick_health()
            return f"Status: {quick.status} (uptime {quick.uptime:.0f}s)"

        status = await health.get_health_status()
        return json.dumps(status.to_document(), indent=2)
