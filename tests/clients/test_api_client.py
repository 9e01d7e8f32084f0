"""Tests for the httpx-based API client."""

import httpx
import pytest

from item_collections.clients.api import ItemAPIClient
from item_collections.utils.errors import NotFoundError, RemoteFailureError


def make_client(handler, **kwargs):
    return ItemAPIClient(
        base_url="https://api.example.com",
        access_token="token123",
        retry_base_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_get_sends_token_and_decodes_json():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "x1"})

    async with make_client(handler) as api:
        body = await api.get("/video/x1", params={"fields": "id"})

    assert body == {"id": "x1"}
    assert seen[0].headers["Authorization"] == "Bearer token123"
    assert seen[0].url.params["fields"] == "id"


@pytest.mark.asyncio
async def test_not_found_maps_to_not_found_error():
    async with make_client(lambda request: httpx.Response(404)) as api:
        with pytest.raises(NotFoundError):
            await api.get("/video/missing")


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_raised():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503, json={"error": {"message": "try later"}})

    async with make_client(handler, max_retries=3) as api:
        with pytest.raises(RemoteFailureError) as exc_info:
            await api.get("/videos")

    assert len(attempts) == 3
    assert exc_info.value.status_code == 503
    assert "try later" in str(exc_info.value)


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(403, json={"error": "forbidden"})

    async with make_client(handler) as api:
        with pytest.raises(RemoteFailureError):
            await api.post("/user/me/favorites/x1")

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_transport_errors_are_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with make_client(handler, max_retries=2) as api:
        with pytest.raises(RemoteFailureError) as exc_info:
            await api.delete("/user/me/favorites/x1")

    assert isinstance(exc_info.value.cause, httpx.ConnectError)


@pytest.mark.asyncio
async def test_empty_body_decodes_to_empty_dict():
    async with make_client(lambda request: httpx.Response(204)) as api:
        assert await api.post("/user/me/favorites/x1") == {}


@pytest.mark.asyncio
async def test_non_object_body_is_rejected():
    async with make_client(lambda request: httpx.Response(200, json=[1, 2])) as api:
        with pytest.raises(RemoteFailureError, match="non-object"):
            await api.get("/videos")


@pytest.mark.asyncio
async def test_explicit_single_attempt_is_honoured():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503)

    async with make_client(handler, max_retries=1) as api:
        with pytest.raises(RemoteFailureError):
            await api.get("/videos")

    assert len(attempts) == 1


@pytest.mark.parametrize("kwargs", [{"max_retries": 0}, {"timeout": 0}])
def test_falsy_limits_are_rejected_not_replaced(kwargs):
    with pytest.raises(ValueError):
        make_client(lambda request: httpx.Response(200), **kwargs)
