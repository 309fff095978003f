"""Resilience primitives: exception hierarchy, response classification, retry."""

import logging

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


# ── Exception Hierarchy ──────────────────────────────────────────────────────


class APIError(Exception):
    """Base class for all upstream API errors."""


class UpstreamError(APIError):
    """Upstream answered with a non-success status or an unusable body."""


class TransientAPIError(UpstreamError):
    """Retriable errors (429, 5xx, dropped connections)."""


class PermanentAPIError(UpstreamError):
    """Non-retriable errors (4xx)."""


class MalformedResponseError(PermanentAPIError):
    """Upstream response body is not the expected shape."""


class UpstreamTimeoutError(APIError):
    """An upstream call exceeded its time bound."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Timeout after {timeout:g}s")
        self.timeout = timeout


class RateLimitedError(APIError):
    """Local admission control denied an outbound call."""

    def __init__(self, service: str, retry_after_seconds: int) -> None:
        super().__init__(
            f"Rate limit exceeded for {service} API. Try again in {retry_after_seconds}s"
        )
        self.service = service
        self.retry_after_seconds = retry_after_seconds


TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


# ── Response Classification ──────────────────────────────────────────────────


def classify_response(response: object) -> None:
    """Raise an appropriate error based on HTTP status code.

    Args:
        response: An object with a ``status_code`` attribute (e.g. httpx.Response).

    Raises:
        TransientAPIError: On 429, 5xx.
        PermanentAPIError: On other 4xx.
    """
    status = getattr(response, "status_code", None)
    if status is None or 200 <= status < 300:
        return

    if status in TRANSIENT_STATUS_CODES:
        raise TransientAPIError(f"Transient error (HTTP {status})")
    if 400 <= status < 500:
        raise PermanentAPIError(f"Client error (HTTP {status})")
    raise TransientAPIError(f"Server error (HTTP {status})")


# ── Retry ─────────────────────────────────────────────────────────────────


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Tenacity ``before_sleep`` callback that logs each retry."""
    attempt = retry_state.attempt_number
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning("Retry attempt %d after error: %s", attempt, exc)


resilient_request = retry(
    retry=retry_if_exception_type(TransientAPIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    before_sleep=log_retry_attempt,
    reraise=True,
)
"""Tenacity decorator for retrying on ``TransientAPIError``."""
