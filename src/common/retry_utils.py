"""Retry utility with exponential backoff for transient asset download errors."""

import asyncio
import functools
import logging
import random
from typing import Any, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

# Type variable for generic function return type
T = TypeVar("T")

# HTTP status codes worth retrying
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def calculate_exponential_backoff_delay(
    initial_delay: float,
    attempt: int,
    exponential_base: int,
    max_delay: float,
) -> float:
    """
    Calculate delay with exponential backoff and jitter.

    Args:
        initial_delay: Initial delay in seconds
        attempt: Current attempt number (0-indexed)
        exponential_base: Base for exponential calculation (e.g., 2)
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds with jitter applied
    """
    delay = min(initial_delay * (exponential_base**attempt), max_delay)

    # Add jitter (0-50% of delay) to prevent thundering herd
    jitter = random.uniform(0, delay * 0.5)
    return delay + jitter


def is_transient_error(error: BaseException) -> bool:
    """
    Determine if an error is transient (should retry) or permanent.

    Checks both the error itself and its ``__cause__`` chain, so a wrapped
    network failure is still recognised.

    Args:
        error: Exception to check

    Returns:
        True if error is transient and should be retried, False otherwise
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES

    # Connection resets, timeouts and protocol errors from httpx
    if isinstance(error, httpx.TransportError):
        return True

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    # Missing local files are permanent
    if isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
        return False

    if error.__cause__ is not None:
        return is_transient_error(error.__cause__)

    # Default: treat unknown errors as permanent to avoid infinite retries
    return False


def retry_with_exponential_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    exponential_base: int = 2,
    max_delay: float = 60.0,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator that adds retry logic with exponential backoff to async functions.

    Only retries on transient errors (connection issues, 5xx, rate limits).
    Permanent errors fail immediately.

    Args:
        max_retries: Maximum number of retry attempts (after initial try)
        initial_delay: Initial delay in seconds before first retry
        exponential_base: Base for exponential backoff calculation
        max_delay: Maximum delay in seconds between retries

    Example:
        @retry_with_exponential_backoff(max_retries=3, initial_delay=1)
        async def fetch_asset():
            return await client.get(url)
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_transient_error(e):
                        logger.error(
                            f"❌ Permanent error in {func.__name__}: {e}. Not retrying."
                        )
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            f"❌ Max retries ({max_retries}) exceeded for {func.__name__}. Last error: {e}"
                        )
                        raise

                    delay = calculate_exponential_backoff_delay(
                        initial_delay=initial_delay,
                        attempt=attempt,
                        exponential_base=exponential_base,
                        max_delay=max_delay,
                    )
                    logger.warning(
                        f"⚠️  Transient error in {func.__name__}: {e}. "
                        f"Retry {attempt + 1}/{max_retries} in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
