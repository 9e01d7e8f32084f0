import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest

from item_collections.clients.api import ItemAPIClient
from item_collections.core.operation import immediate_dispatcher
from item_collections.models.source import Page, SourceDescriptor
from item_collections.utils.errors import RemoteFailureError


class FakeItemSource:
    """In-memory RemoteItemSource serving fixed pages."""

    def __init__(self, pages: list[list[str]], total: int | None = None):
        self.pages = pages
        self.total = total if total is not None else sum(len(p) for p in pages)
        self.fetch_calls: list[int] = []
        self.mirror_calls: list[tuple[Any, ...]] = []
        self.gate: asyncio.Event | None = None
        self.mirror_gate: asyncio.Event | None = None
        self.fail_fetch: Exception | None = None
        self.fail_mirror: Exception | None = None
        self.fail_for: set[str] = set()

    async def fetch_page(self, source: SourceDescriptor, page: int, limit: int) -> Page:
        self.fetch_calls.append(page)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_fetch is not None:
            raise self.fail_fetch
        identifiers = self.pages[page - 1] if page <= len(self.pages) else []
        return Page(
            identifiers=identifiers,
            total_estimate=self.total,
            has_more=page < len(self.pages),
        )

    async def _mirror(self, *call: Any) -> None:
        self.mirror_calls.append(call)
        if self.mirror_gate is not None:
            await self.mirror_gate.wait()
        if self.fail_mirror is not None:
            raise self.fail_mirror
        if call[1] in self.fail_for:
            raise RemoteFailureError(f"Remote rejected {call[0]} of {call[1]}")

    async def mirror_add(self, source: SourceDescriptor, item_id: str) -> None:
        await self._mirror("add", item_id)

    async def mirror_remove(self, source: SourceDescriptor, item_id: str) -> None:
        await self._mirror("remove", item_id)

    async def mirror_move(
        self, source: SourceDescriptor, item_id: str, to_index: int, ordered_ids: list[str]
    ) -> None:
        await self._mirror("move", item_id, to_index, list(ordered_ids))


class StatefulItemSource:
    """
    In-memory RemoteItemSource over one mutable list.

    Pages are sliced by page/limit from the current list and mirrored edits
    change it, so paging after an edit sees the shifted remote order.
    """

    def __init__(self, ids: list[str]):
        self.ids = list(ids)
        self.fetch_calls: list[int] = []

    async def fetch_page(self, source: SourceDescriptor, page: int, limit: int) -> Page:
        self.fetch_calls.append(page)
        start = (page - 1) * limit
        return Page(
            identifiers=self.ids[start : start + limit],
            total_estimate=len(self.ids),
            has_more=start + limit < len(self.ids),
        )

    async def mirror_add(self, source: SourceDescriptor, item_id: str) -> None:
        if item_id in self.ids:
            self.ids.remove(item_id)
        self.ids.insert(0, item_id)

    async def mirror_remove(self, source: SourceDescriptor, item_id: str) -> None:
        self.ids.remove(item_id)

    async def mirror_move(
        self, source: SourceDescriptor, item_id: str, to_index: int, ordered_ids: list[str]
    ) -> None:
        self.ids.remove(item_id)
        self.ids.insert(to_index, item_id)


class FakeFieldLoader:
    """In-memory ItemFieldLoader returning ``<field>-<id>`` values."""

    def __init__(self):
        self.calls: list[tuple[str, list[str]]] = []
        self.gate: asyncio.Event | None = None
        self.fail: Exception | None = None

    async def load_fields(self, item_id: str, fields: list[str]) -> dict[str, Any]:
        self.calls.append((item_id, list(fields)))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        return {name: item_id if name == "id" else f"{name}-{item_id}" for name in fields}


class Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)

    @property
    def errors(self) -> list[Any]:
        return [call[-1] for call in self.calls]


@pytest.fixture
def mock_api():
    return MagicMock(spec=ItemAPIClient)


@pytest.fixture
def two_page_source():
    return FakeItemSource(
        [["v1", "v2", "v3", "v4", "v5"], ["v6", "v7", "v8", "v9", "v10"]]
    )


@pytest.fixture
def field_loader():
    return FakeFieldLoader()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def collaborators(two_page_source, field_loader):
    """Keyword arguments wiring a collection to the in-memory fakes."""
    return {
        "remote_source": two_page_source,
        "field_loader": field_loader,
        "page_size": 5,
        "dispatcher": immediate_dispatcher,
    }


@pytest.fixture
def remote_error():
    return RemoteFailureError("HTTP 500", status_code=500)


@pytest.fixture
def stateful_source():
    return StatefulItemSource([f"v{i}" for i in range(10)])


@pytest.fixture
def make_source():
    """Factory for FakeItemSource instances with custom pages."""
    return FakeItemSource
