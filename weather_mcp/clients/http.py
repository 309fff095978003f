"""Shared outbound HTTP helpers for the upstream clients and health probes."""

import logging
from collections.abc import Callable

import httpx

from weather_mcp.clients.resilience import (
    MalformedResponseError,
    TransientAPIError,
    UpstreamTimeoutError,
    classify_response,
    resilient_request,
)

logger = logging.getLogger(__name__)

USER_AGENT = "weather-mcp/1.0"


@resilient_request
async def fetch_json(
    url: str,
    params: dict,
    timeout: float,
    admit: Callable[[], None] | None = None,
) -> object:
    """GET *url* and return the decoded JSON body.

    Transient failures are retried. Each attempt is bounded by *timeout*.
    *admit*, when given, runs before every attempt (retries included) and
    may raise to stop the call before it reaches the network.

    Raises:
        RateLimitedError: If *admit* refuses an attempt.
        UpstreamTimeoutError: If an attempt exceeds *timeout*.
        TransientAPIError: On 429/5xx or a dropped connection (after retries).
        PermanentAPIError: On other 4xx.
        MalformedResponseError: If the body is not JSON.
    """
    if admit is not None:
        admit()
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        logger.warning("Request to %s timed out after %.1fs", url, timeout)
        raise UpstreamTimeoutError(timeout) from exc
    except httpx.HTTPError as exc:
        raise TransientAPIError(f"Connection error: {exc}") from exc

    if not 200 <= response.status_code < 300:
        logger.error("Upstream %s answered HTTP %d", url, response.status_code)
    classify_response(response)

    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponseError(f"Invalid JSON from {url}") from exc


async def probe_url(url: str, params: dict, timeout: float) -> int:
    """Check that *url* is reachable. Returns the HTTP status code.

    Any status counts as reachable. Only transport failures and timeouts
    raise.
    """
    async with httpx.AsyncClient(
        timeout=timeout, headers={"User-Agent": USER_AGENT}
    ) as client:
        response = await client.get(url, params=params)
    return response.status_code
