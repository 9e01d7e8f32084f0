"""
Per-item field loading with a TTL cache.
"""

import logging
import time
from typing import Any, Protocol, runtime_checkable

from item_collections.clients.api import ItemAPIClient
from item_collections.settings import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class ItemFieldLoader(Protocol):
    """Resolves field data for one item identifier."""

    async def load_fields(self, item_id: str, fields: list[str]) -> dict[str, Any]:
        """Return a mapping holding at least the requested fields."""
        ...


class HTTPFieldLoader:
    """
    Loads item fields from ``/<type>/<id>?fields=...``.

    Cached field values live on the shared ItemAPIClient, so every loader
    bound to the same client sees the same cache. Only fields missing from
    the cache (or expired) are requested.
    """

    def __init__(
        self,
        api: ItemAPIClient,
        item_type: str,
        ttl_seconds: int | None = None,
    ):
        self.api = api
        self.item_type = item_type
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.field_cache_ttl

    def _cache_key(self, item_id: str) -> str:
        return f"{self.item_type}/{item_id}"

    def _fresh_entry(self, item_id: str) -> dict[str, Any]:
        entry = self.api.field_cache.get(self._cache_key(item_id))
        if entry is None:
            return {}
        data, timestamp = entry
        if time.monotonic() - timestamp >= self.ttl:
            del self.api.field_cache[self._cache_key(item_id)]
            return {}
        return data

    def cached_fields(self, item_id: str, fields: list[str]) -> dict[str, Any]:
        data = self._fresh_entry(item_id)
        return {name: data[name] for name in fields if name in data}

    async def load_fields(self, item_id: str, fields: list[str]) -> dict[str, Any]:
        cached = self.cached_fields(item_id, fields)
        missing = [name for name in fields if name not in cached]
        if not missing:
            logger.debug(f"Field cache hit for {self._cache_key(item_id)}")
            return cached

        body = await self.api.get(
            f"/{self.item_type}/{item_id}", params={"fields": ",".join(missing)}
        )

        merged = {**self._fresh_entry(item_id), **body}
        self.api.field_cache[self._cache_key(item_id)] = (merged, time.monotonic())
        return {name: merged.get(name) for name in fields}

    def invalidate(self, item_id: str) -> None:
        """Drop cached fields for one item."""
        self.api.field_cache.pop(self._cache_key(item_id), None)
