"""Generic retry utility with exponential backoff."""

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import TypeVar

import httpx

from item_collections.utils.errors import RemoteFailureError

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


def is_transient_error(error: Exception) -> bool:
    """Whether an error looks like a temporary transport or server problem."""
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(error, RemoteFailureError):
        if error.status_code is not None:
            return error.status_code in RETRYABLE_STATUS_CODES
        if error.cause is not None and isinstance(error.cause, Exception):
            return is_transient_error(error.cause)
        return False

    error_msg = str(error).lower()
    return any(
        keyword in error_msg
        for keyword in ["timed out", "timeout", "connection", "temporary", "reset"]
    )


async def async_retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    description: str = "Operation",
    is_retryable: Callable[[Exception], bool] = is_transient_error,
) -> T:
    """
    Execute an async function with retry and exponential backoff.

    Args:
        func: Async function to execute
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubled each retry)
        description: Description for logging
        is_retryable: Predicate deciding whether an error is worth retrying

    Returns:
        Result from func

    Raises:
        Last exception if all retries fail or the error is not retryable
    """
    for attempt in range(max_retries):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e) or attempt == max_retries - 1:
                raise

            delay = base_delay * (2**attempt)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{max_retries}): "
                f"{e}. Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{description} failed after {max_retries} retries")
