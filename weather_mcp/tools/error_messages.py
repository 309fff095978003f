"""User-friendly error messages and safe tool wrapper."""

import logging
from collections.abc import Callable

from weather_mcp.clients.resilience import (
    MalformedResponseError,
    PermanentAPIError,
    RateLimitedError,
    TransientAPIError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)


def get_user_message(error: Exception, context: dict | None = None) -> str:
    """Map an exception to a user-friendly message.

    Args:
        error: The exception to translate.
        context: Optional dict with extra info (e.g. {"city": "Madrid"}).

    Returns:
        A human-readable error message.
    """
    city = (context or {}).get("city", "that city")

    if isinstance(error, RateLimitedError):
        return (
            "Too many requests right now. "
            f"Please try again in {error.retry_after_seconds} seconds."
        )
    if isinstance(error, UpstreamTimeoutError):
        return (
            f"The request for {city} took too long. "
            "Please try again."
        )
    if isinstance(error, MalformedResponseError):
        return (
            "The weather service returned data in an unexpected format. "
            "Please try again later."
        )
    if isinstance(error, TransientAPIError):
        return (
            f"Could not reach the weather service for {city}. "
            "Please check your connection and try again shortly."
        )
    if isinstance(error, PermanentAPIError):
        return f"The weather service rejected the request for {city}."
    return f"Something went wrong while getting the weather for {city}. Please try again."


async def safe_tool_wrapper(
    func,  # type: ignore[no-untyped-def]
    *args: object,
    context: dict | None = None,
    on_error: Callable[[Exception], None] | None = None,
    **kwargs: object,
) -> str:
    """Call an async function, catching errors and returning friendly messages.

    Args:
        func: Async callable to invoke.
        *args: Positional arguments for *func*.
        context: Optional context dict for error messages.
        on_error: Optional callback invoked with the exception before it is
            translated (e.g. to record it for health tracking).
        **kwargs: Keyword arguments for *func*.

    Returns:
        The function's return value on success, or a user-friendly error string.
    """
    try:
        return await func(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Tool error in %s", func.__name__)
        if on_error is not None:
            on_error(exc)
        return get_user_message(exc, context)
