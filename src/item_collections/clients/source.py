"""
Remote item sources: where collection pages come from and where edits go.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from item_collections.clients.api import ItemAPIClient
from item_collections.models.source import Page, SourceDescriptor, SourceKind
from item_collections.utils.errors import RemoteFailureError

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteItemSource(Protocol):
    """Remote side of a query or connection collection."""

    async def fetch_page(
        self, source: SourceDescriptor, page: int, limit: int
    ) -> Page:
        """Fetch page ``page`` (1-based) of ``limit`` identifiers."""
        ...

    async def mirror_add(self, source: SourceDescriptor, item_id: str) -> None: ...

    async def mirror_remove(self, source: SourceDescriptor, item_id: str) -> None: ...

    async def mirror_move(
        self,
        source: SourceDescriptor,
        item_id: str,
        to_index: int,
        ordered_ids: list[str],
    ) -> None: ...


class HTTPItemSource:
    """
    RemoteItemSource speaking a Dailymotion-style REST API.

    Query collections list ``/<type>s``; connection collections list
    ``/<owner_type>/<owner_id>/<connection>``. List responses look like
    ``{"list": [{"id": ...}], "total": n, "has_more": bool}``.
    """

    def __init__(self, api: ItemAPIClient, item_type: str):
        self.api = api
        self.item_type = item_type

    def _list_path(self, source: SourceDescriptor) -> str:
        if source.kind == SourceKind.QUERY:
            return f"/{self.item_type}s"
        if source.kind == SourceKind.CONNECTION:
            return f"/{source.owner_type}/{source.owner_id}/{source.connection}"
        raise ValueError("Local collections have no remote source")

    async def fetch_page(
        self, source: SourceDescriptor, page: int, limit: int
    ) -> Page:
        params: dict[str, Any] = {
            key: _format_param(value) for key, value in source.params.items()
        }
        params.update({"fields": "id", "page": page, "limit": limit})

        body = await self.api.get(self._list_path(source), params=params)

        entries = body.get("list")
        if not isinstance(entries, list):
            raise RemoteFailureError(
                f"Malformed page {page} for {self._list_path(source)}: missing list"
            )

        identifiers = [str(entry["id"]) for entry in entries if isinstance(entry, dict) and "id" in entry]
        has_more = bool(body.get("has_more", False))
        # Some endpoints omit the total; derive a lower bound from the paging state
        fetched_so_far = (page - 1) * limit + len(identifiers)
        total = body.get("total")
        if not isinstance(total, int):
            total = fetched_so_far + (1 if has_more else 0)

        return Page(
            identifiers=identifiers,
            total_estimate=max(total, fetched_so_far),
            has_more=has_more,
        )

    async def mirror_add(self, source: SourceDescriptor, item_id: str) -> None:
        await self.api.post(f"{self._list_path(source)}/{item_id}")

    async def mirror_remove(self, source: SourceDescriptor, item_id: str) -> None:
        await self.api.delete(f"{self._list_path(source)}/{item_id}")

    async def mirror_move(
        self,
        source: SourceDescriptor,
        item_id: str,
        to_index: int,
        ordered_ids: list[str],
    ) -> None:
        # The API has no move verb; the full order is posted instead
        logger.debug(f"Reordering {self._list_path(source)}: {item_id} -> {to_index}")
        await self.api.post(
            self._list_path(source), data={"ids": ",".join(ordered_ids)}
        )


def _format_param(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(v) for v in value)
    return value
