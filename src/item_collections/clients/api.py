"""
Remote item API client.

Async wrapper around httpx shared by every collection and field loader
bound to the same API. Collections only issue requests through it; they
never reconfigure or close it.
"""

import logging
from typing import Any

import httpx

from item_collections.services.retry import async_retry_with_backoff
from item_collections.settings import settings
from item_collections.utils.errors import NotFoundError, RemoteFailureError

logger = logging.getLogger(__name__)


class ItemAPIClient:
    """
    Async client for a REST item API.

    Provides JSON helpers with retry and unified error mapping, and owns
    the per-item field cache shared by all field loaders using this client.
    """

    def __init__(
        self,
        base_url: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: API root URL (defaults to settings.api_base_url)
            access_token: Optional OAuth bearer token
            timeout: Request timeout in seconds
            max_retries: Attempts per request for transient failures
            retry_base_delay: Base backoff delay in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.access_token = access_token if access_token is not None else settings.access_token
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.retry_base_delay
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.field_cache: dict[str, tuple[dict[str, Any], float]] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.access_token:
                headers["Authorization"] = f"Bearer {self.access_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ItemAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # -------------------- Request Methods --------------------

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await self.request("POST", path, params=params, data=data)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("DELETE", path, params=params)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Issue a request and decode its JSON body.

        Raises:
            NotFoundError: If the API answers 404
            RemoteFailureError: For any other transport or API error
        """

        async def _send() -> httpx.Response:
            try:
                response = await self.client.request(method, path, params=params, data=data)
            except httpx.HTTPError as e:
                raise RemoteFailureError(
                    f"{method} {path} failed: {e}", cause=e
                ) from e
            if response.status_code >= 400 and response.status_code != 404:
                raise RemoteFailureError(
                    f"{method} {path} returned HTTP {response.status_code}",
                    suggestion=_error_message(response),
                    status_code=response.status_code,
                )
            return response

        response = await async_retry_with_backoff(
            _send,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            description=f"{method} {path}",
        )

        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {path}")

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteFailureError(
                f"{method} {path} returned invalid JSON", cause=e
            ) from e
        if not isinstance(body, dict):
            raise RemoteFailureError(f"{method} {path} returned a non-object body")
        return body


def _error_message(response: httpx.Response) -> str | None:
    """Extract the API's error message from an error response, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return None
