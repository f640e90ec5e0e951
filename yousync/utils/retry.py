"""Retry decorator for handling tracker rate limits and transient errors.

This module provides a decorator that implements bounded retry logic for GitHub and
YouTrack API calls, including respect for rate limit headers and exponential backoff.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Callable, TypeVar

import httpx
import structlog
from githubkit.exception import PrimaryRateLimitExceeded, RequestError, RequestFailed, RequestTimeout, SecondaryRateLimitExceeded

from yousync.synchronize.exceptions import AuthenticationError
from yousync.utils.constants import DEFAULT_INITIAL_RETRY_DELAY, DEFAULT_MAX_RETRIES, DEFAULT_MAX_RETRY_DELAY
from yousync.youtrack.exceptions import YouTrackRequestFailed

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def is_rate_limit_response(status_code: int, message: str) -> bool:
    """Return whether a failed response signals a rate limit."""
    return status_code == 429 or (status_code == 403 and "rate limit" in message.lower())


def wait_time_from_headers(headers: Any, default: float) -> float:
    """Compute how long to wait from retry-after or x-ratelimit-reset headers."""
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid retry-after header value", retry_after=retry_after)
            return default

    rate_limit_reset = headers.get("x-ratelimit-reset")
    if rate_limit_reset:
        try:
            reset_timestamp = int(rate_limit_reset)
        except ValueError:
            logger.warning("Invalid x-ratelimit-reset header value", rate_limit_reset=rate_limit_reset)
            return default
        current_timestamp = int(time.time())
        if reset_timestamp > current_timestamp:
            return float(reset_timestamp - current_timestamp + 1)
    return default


def classify_failure(exc: Exception, delay: float) -> tuple[str, float] | None:
    """Classify an exception raised by an adapter call.

    Returns a (kind, wait_time) pair when the call should be retried, where kind is
    "rate_limit" or "transient". Returns None when the exception must propagate.
    """
    if isinstance(exc, AuthenticationError):
        return None

    if isinstance(exc, (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded)):
        # These exceptions already carry retry_after as a timedelta
        if getattr(exc, "retry_after", None):
            return "rate_limit", exc.retry_after.total_seconds()
        return "rate_limit", delay

    if isinstance(exc, (RequestFailed, YouTrackRequestFailed)):
        status_code = exc.response.status_code
        if is_rate_limit_response(status_code, str(exc)):
            return "rate_limit", wait_time_from_headers(exc.response.headers, delay)
        if status_code >= 500:
            return "transient", delay
        return None

    # Network errors and timeouts, raised by githubkit or directly by httpx
    if isinstance(exc, (RequestError, RequestTimeout, httpx.TransportError)):
        return "transient", delay

    return None


def retry_on_transient_failure(
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
    max_delay: float = DEFAULT_MAX_RETRY_DELAY,
    exponential_base: float = 2.0,
) -> Callable[[F], F]:
    """Decorator for retrying async adapter calls on rate limits and transient errors.

    This decorator handles:
    - GitHub primary and secondary rate limits, and YouTrack 429 responses
    - Waits the full duration signaled by retry-after and x-ratelimit-reset headers
    - Network errors, timeouts and 5xx responses with exponential backoff

    Rate limit waits and backoff waits are counted against the same retry budget.
    Authentication failures and other client errors are never retried.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        initial_delay: Initial delay in seconds between retries
        max_delay: Maximum backoff delay in seconds; signaled rate limit waits are not capped
        exponential_base: Base for exponential backoff calculation

    Returns:
        Decorated function with retry logic

    Example:
        @retry_on_transient_failure()
        async def list_issues(self) -> list[SourceIssue]:
            ...
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Function {func.__name__} decorated with @retry_on_transient_failure must be async.")

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    classification = classify_failure(e, delay)
                    if classification is None:
                        raise

                    kind, wait_time = classification
                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for adapter call",
                            function=func.__name__,
                            attempt=attempt + 1,
                            failure_kind=kind,
                            error_type=type(e).__name__,
                            error=str(e),
                        )
                        raise

                    if kind == "transient":
                        wait_time = min(wait_time, max_delay)
                    logger.warning(
                        f"Adapter call failed, retrying in {wait_time} seconds",
                        function=func.__name__,
                        failure_kind=kind,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        wait_time=wait_time,
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(wait_time)

                    # Exponential backoff for next attempt
                    delay = min(delay * exponential_base, max_delay)

        return async_wrapper  # type: ignore

    return decorator
