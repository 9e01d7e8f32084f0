"""Test retry utility."""

import httpx
import pytest

from item_collections.services.retry import async_retry_with_backoff, is_transient_error
from item_collections.utils.errors import RemoteFailureError


@pytest.mark.asyncio
async def test_retry_success_on_second_attempt():
    """Test that retry succeeds after one transient failure."""
    attempt_count = 0

    async def flaky_function():
        nonlocal attempt_count
        attempt_count += 1
        if attempt_count < 2:
            raise RemoteFailureError("Service unavailable", status_code=503)
        return "success"

    result = await async_retry_with_backoff(
        flaky_function,
        max_retries=3,
        base_delay=0.01,
    )
    assert result == "success"
    assert attempt_count == 2


@pytest.mark.asyncio
async def test_retry_fails_after_max_attempts():
    """Test that retry gives up after max attempts."""
    attempt_count = 0

    async def always_timeout():
        nonlocal attempt_count
        attempt_count += 1
        raise httpx.ReadTimeout("timed out")

    with pytest.raises(httpx.ReadTimeout):
        await async_retry_with_backoff(
            always_timeout,
            max_retries=2,
            base_delay=0.01,
        )
    assert attempt_count == 2


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately():
    attempt_count = 0

    async def bad_request():
        nonlocal attempt_count
        attempt_count += 1
        raise RemoteFailureError("Bad request", status_code=400)

    with pytest.raises(RemoteFailureError):
        await async_retry_with_backoff(bad_request, max_retries=5, base_delay=0.01)
    assert attempt_count == 1


@pytest.mark.parametrize(
    "error, expected",
    [
        (RemoteFailureError("rate limited", status_code=429), True),
        (RemoteFailureError("gateway", status_code=502), True),
        (RemoteFailureError("gone", status_code=410), False),
        (RemoteFailureError("wrapped", cause=httpx.ConnectError("refused")), True),
        (RemoteFailureError("wrapped", cause=ValueError("bad json")), False),
        (RuntimeError("connection reset by peer"), True),
        (ValueError("invalid literal"), False),
    ],
)
def test_is_transient_error(error, expected):
    assert is_transient_error(error) is expected
