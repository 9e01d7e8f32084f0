"""
Paginated, cacheable collections of remote items.

An ItemCollection is an ordered list of item identifiers, either local or
backed by a remote query or connection. Identifiers are materialized in a
contiguous window from index 0, paged in on demand; item fields are
hydrated through an ItemFieldLoader.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

from item_collections.clients.api import ItemAPIClient
from item_collections.clients.fields import HTTPFieldLoader, ItemFieldLoader
from item_collections.clients.source import HTTPItemSource, RemoteItemSource
from item_collections.core.operation import (
    AsyncOperationHandle,
    Dispatcher,
    get_dispatcher,
)
from item_collections.models.archive import CollectionArchive
from item_collections.models.source import (
    ConnectionPolicy,
    ItemRef,
    SourceDescriptor,
    SourceKind,
)
from item_collections.settings import settings
from item_collections.utils.errors import (
    CanceledError,
    ItemCollectionError,
    NotFoundError,
    NotPermittedError,
    OutOfRangeError,
    PersistenceError,
    RemoteFailureError,
)
from item_collections.utils.logging_config import PerformanceMonitor, log_operation
from item_collections.utils.observable import ObservableValue

logger = logging.getLogger(__name__)

FieldsCallback = Callable[[dict[str, Any] | None, bool, Exception | None], None]
DoneCallback = Callable[[Exception | None], None]


@dataclass
class EditTransaction:
    """What one optimistic edit changed, enough to reverse it alone."""

    operation: str
    item_id: str
    index: int
    generation: int
    to_index: int | None = None
    evicted: str | None = None
    estimate_delta: int = 0
    mirrored: bool = False
    settled: bool = False


class ItemCollection:
    """
    An ordered, possibly remote, collection of item identifiers.

    Use the ``local``, ``local_with_ids``, ``for_query`` and
    ``for_connection`` constructors, or ``item_collection_from_file``.

    All operations must be started from the owning event loop. Only
    ``save_to_file`` and ``item_collection_from_file`` block.
    """

    def __init__(
        self,
        type: str,
        source: SourceDescriptor,
        api: ItemAPIClient,
        *,
        ids: Iterable[str] = (),
        count_limit: int = 0,
        estimated_total: int | None = None,
        editable: bool | None = None,
        reorderable: bool | None = None,
        policy: ConnectionPolicy | None = None,
        remote_source: RemoteItemSource | None = None,
        field_loader: ItemFieldLoader | None = None,
        page_size: int | None = None,
        dispatcher: Dispatcher | None = None,
        next_offset: int = 0,
        exhausted: bool = False,
    ):
        if count_limit < 0:
            raise ValueError("count_limit must be >= 0")

        self._type = type
        self._source = source
        self._api = api
        self._count_limit = count_limit

        if source.kind == SourceKind.CONNECTION:
            policy = policy or ConnectionPolicy.from_settings()
            self._editable = policy.can_edit(source) if editable is None else editable
            if reorderable is None:
                reorderable = policy.can_reorder(source)
            self._reorderable = self._editable and reorderable
        else:
            # Local collections always accept edits, query results never do
            self._editable = self._reorderable = source.kind == SourceKind.LOCAL

        self._remote_source = remote_source
        if self._remote_source is None and source.is_remote:
            self._remote_source = HTTPItemSource(api, type)
        self._field_loader = field_loader or HTTPFieldLoader(api, type)
        self._page_size = page_size or settings.page_size
        self._dispatcher = dispatcher or get_dispatcher(settings.delivery)

        self._ids: list[str] = []
        self._id_set: set[str] = set()
        for item_id in ids:
            if self._count_limit and len(self._ids) >= self._count_limit:
                break
            if item_id not in self._id_set:
                self._ids.append(item_id)
                self._id_set.add(item_id)

        self._estimate_known = estimated_total is not None or not source.is_remote
        initial_estimate = estimated_total if estimated_total is not None else 0
        self._estimate: ObservableValue[int] = ObservableValue(
            max(initial_estimate, len(self._ids))
        )

        # Position in the remote list where the next page fetch resumes
        self._next_offset = next_offset
        self._exhausted = exhausted or not source.is_remote
        self._page_task: asyncio.Task | None = None
        self._generation = 0

    # -------------------- Constructors --------------------

    @classmethod
    def local(
        cls, type: str, count_limit: int, api: ItemAPIClient, **kwargs: Any
    ) -> "ItemCollection":
        """Empty local collection holding at most ``count_limit`` items."""
        return cls(type, SourceDescriptor.local(), api, count_limit=count_limit, **kwargs)

    @classmethod
    def local_with_ids(
        cls,
        type: str,
        ids: Iterable[str],
        count_limit: int,
        api: ItemAPIClient,
        **kwargs: Any,
    ) -> "ItemCollection":
        """Local collection seeded with ``ids``; duplicates are ignored."""
        return cls(
            type, SourceDescriptor.local(), api, ids=ids, count_limit=count_limit, **kwargs
        )

    @classmethod
    def for_query(
        cls,
        type: str,
        params: dict[str, Any] | None,
        api: ItemAPIClient,
        **kwargs: Any,
    ) -> "ItemCollection":
        """Read-only collection over the results of a remote query."""
        return cls(type, SourceDescriptor.query(params), api, **kwargs)

    @classmethod
    def for_connection(
        cls,
        connection: str,
        owner: ItemRef,
        params: dict[str, Any] | None,
        api: ItemAPIClient,
        type: str = "video",
        **kwargs: Any,
    ) -> "ItemCollection":
        """
        Collection over an item's connection (e.g. a user's favorites).

        Whether it can be edited or reordered comes from the connection
        policy table unless ``editable``/``reorderable`` are given.
        """
        return cls(
            type, SourceDescriptor.for_connection(connection, owner, params), api, **kwargs
        )

    @classmethod
    def from_archive(
        cls, archive: CollectionArchive, api: ItemAPIClient, **kwargs: Any
    ) -> "ItemCollection":
        return cls(
            archive.type,
            archive.source,
            api,
            ids=archive.ids,
            count_limit=archive.count_limit,
            estimated_total=archive.estimated_total,
            editable=archive.editable,
            reorderable=archive.reorderable,
            next_offset=archive.next_offset,
            exhausted=archive.exhausted,
            **kwargs,
        )

    # -------------------- Properties --------------------

    @property
    def type(self) -> str:
        return self._type

    @property
    def source(self) -> SourceDescriptor:
        return self._source

    @property
    def api(self) -> ItemAPIClient:
        return self._api

    @property
    def count_limit(self) -> int:
        return self._count_limit

    @property
    def identifiers(self) -> tuple[str, ...]:
        """Snapshot of the materialized window."""
        return tuple(self._ids)

    @property
    def current_estimated_total_items_count(self) -> int:
        """
        Best current estimate of the collection's full extent.

        Never lower than the number of materialized identifiers. Subscribe
        with ``subscribe_count`` to be told when it changes.
        """
        return self._estimate.value

    @property
    def estimate_known(self) -> bool:
        return self._estimate_known

    @property
    def exhausted(self) -> bool:
        """True when no more pages can be fetched."""
        return self._exhausted

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ItemRef):
            item = item.id
        return item in self._id_set

    def __repr__(self) -> str:
        return (
            f"<ItemCollection {self._type} {self._source.kind.value} "
            f"{len(self._ids)}/{self._estimate.value}>"
        )

    def index_of(self, item: ItemRef | str) -> int | None:
        item_id = item.id if isinstance(item, ItemRef) else item
        if item_id not in self._id_set:
            return None
        return self._ids.index(item_id)

    def subscribe_count(self, observer: Callable[[int, int], None]) -> Callable[[], None]:
        """Observe estimate changes; returns an unsubscribe callable."""
        return self._estimate.subscribe(observer)

    def can_edit(self) -> bool:
        return self._editable

    def can_reorder(self) -> bool:
        return self._reorderable

    # -------------------- Index Resolution --------------------

    async def resolve(self, index: int) -> str:
        """
        Return the identifier at ``index``, paging in as needed.

        Raises:
            OutOfRangeError: If the index is beyond the collection's extent
            RemoteFailureError: If a page fetch failed
            CanceledError: If the shared page fetch was canceled
        """
        if index < 0:
            raise OutOfRangeError(f"Negative index: {index}")

        while index >= len(self._ids):
            if self._exhausted:
                raise OutOfRangeError(
                    f"Index {index} is beyond the end of the collection "
                    f"({len(self._ids)} items)"
                )
            await self._fetch_next_page()

        return self._ids[index]

    async def load_more(self) -> int:
        """Fetch the next page, returning how many identifiers were added."""
        if self._exhausted:
            return 0
        before = len(self._ids)
        await self._fetch_next_page()
        return len(self._ids) - before

    async def _fetch_next_page(self) -> None:
        # Concurrent callers share a single in-flight fetch
        if self._page_task is None or self._page_task.done():
            self._page_task = asyncio.get_running_loop().create_task(
                self._load_page(self._generation),
                name=f"page-fetch-{self._type}-{self._next_offset}",
            )
            self._page_task.add_done_callback(self._page_task_done)

        task = self._page_task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and not (current and current.cancelling()):
                raise CanceledError("Page fetch was canceled") from None
            raise

    def _page_task_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Page fetch for {self!r} failed: {task.exception()}")

    async def _load_page(self, generation: int) -> None:
        start_offset = self._next_offset
        page_number = start_offset // self._page_size + 1
        assert self._remote_source is not None

        with PerformanceMonitor(logger, "Page fetch", type=self._type, page=page_number):
            try:
                page = await self._remote_source.fetch_page(
                    self._source, page_number, self._page_size
                )
            except RemoteFailureError:
                raise
            except Exception as e:
                raise RemoteFailureError(
                    f"Failed to fetch page {page_number}: {e}", cause=e
                ) from e

        if generation != self._generation:
            return

        # Identifiers of the page before start_offset are already in the window.
        # Remote edits confirmed while the fetch was in flight keep their shift.
        self._next_offset = max(
            0, page_number * self._page_size + self._next_offset - start_offset
        )
        appended = 0
        for item_id in page.identifiers:
            if self._count_limit and len(self._ids) >= self._count_limit:
                self._exhausted = True
                break
            if item_id in self._id_set:
                continue
            self._ids.append(item_id)
            self._id_set.add(item_id)
            appended += 1

        if not page.has_more or not page.identifiers:
            self._exhausted = True

        self._estimate_known = True
        if self._exhausted:
            self._estimate.set(len(self._ids))
        else:
            self._estimate.set(max(page.total_estimate, len(self._ids)))

        logger.debug(
            f"Page {page_number} of {self!r}: {appended} new identifiers, "
            f"has_more={page.has_more}"
        )

    # -------------------- Field Access --------------------

    def with_item_fields(
        self,
        fields: Iterable[str],
        index: int,
        callback: FieldsCallback,
    ) -> AsyncOperationHandle:
        """
        Load ``fields`` of the item at ``index``.

        ``callback(data, stalled, error)`` fires once with ``stalled=True``
        and a best-effort result if a page must be fetched first, then once
        with the final data or an error. Canceling the returned handle
        suppresses every later invocation.
        """
        fields = list(fields)
        handle = AsyncOperationHandle("with_item_fields", self._dispatcher)

        async def _run() -> None:
            try:
                if index >= len(self._ids) and not self._exhausted:
                    handle.deliver(callback, {}, True, None)
                item_id = await self.resolve(index)
                data = await self._field_loader.load_fields(item_id, fields)
            except ItemCollectionError as e:
                handle.finish(callback, None, False, e)
                return
            except Exception as e:
                handle.finish(
                    callback,
                    None,
                    False,
                    RemoteFailureError(f"Failed to load fields at index {index}: {e}", cause=e),
                )
                return
            handle.finish(callback, data, False, None)

        return handle.start(_run())

    def flush_cache(self) -> None:
        """
        Drop paged identifiers so the next access re-pages from the remote.

        Local collections keep their identifiers. Item field caches are not
        touched.
        """
        if not self._source.is_remote:
            return

        self._generation += 1
        if self._page_task is not None and not self._page_task.done():
            self._page_task.cancel()
        self._page_task = None

        self._ids.clear()
        self._id_set.clear()
        self._next_offset = 0
        self._exhausted = False
        self._estimate_known = False
        self._estimate.set(0)
        logger.debug(f"Flushed cache of {self!r}")

    # -------------------- Edit Operations --------------------

    def add_item(
        self, item: ItemRef | str, callback: DoneCallback | None = None
    ) -> AsyncOperationHandle:
        """
        Insert an item at the head of the collection if not already present.

        If the collection hits ``count_limit``, its last item is evicted.
        """
        handle = AsyncOperationHandle("add_item", self._dispatcher)
        if not self._editable:
            return handle.resolved(callback, self._not_editable())
        if isinstance(item, ItemRef) and item.type != self._type:
            return handle.resolved(
                callback,
                NotPermittedError(f"Cannot add a {item.type} to a {self._type} collection"),
            )

        item_id = self._item_id(item)
        if item_id in self._id_set:
            return handle.resolved(callback, None)

        tx = EditTransaction("add", item_id, 0, self._generation)
        self._insert(0, item_id)
        if self._count_limit and len(self._ids) > self._count_limit:
            tx.evicted = self._ids.pop()
            self._id_set.discard(tx.evicted)
        tx.estimate_delta = 0 if tx.evicted else 1
        self._set_estimate(self._estimate.value + tx.estimate_delta)

        return self._commit(
            handle,
            tx,
            callback,
            self._mirror(lambda source: source.mirror_add(self._source, item_id)),
        )

    def remove_item(
        self, item: ItemRef | str, callback: DoneCallback | None = None
    ) -> AsyncOperationHandle:
        """Remove an item from the collection."""
        handle = AsyncOperationHandle("remove_item", self._dispatcher)
        if not self._editable:
            return handle.resolved(callback, self._not_editable())

        item_id = self._item_id(item)
        if item_id not in self._id_set:
            return handle.resolved(
                callback, NotFoundError(f"Item {item_id} is not in the collection")
            )
        return self._remove(handle, self._ids.index(item_id), callback)

    def remove_item_at_index(
        self, index: int, callback: DoneCallback | None = None
    ) -> AsyncOperationHandle:
        """Remove the item at ``index``."""
        handle = AsyncOperationHandle("remove_item_at_index", self._dispatcher)
        if not self._editable:
            return handle.resolved(callback, self._not_editable())
        if not 0 <= index < len(self._ids):
            return handle.resolved(
                callback,
                OutOfRangeError(f"Index {index} out of range (0..{len(self._ids) - 1})"),
            )
        return self._remove(handle, index, callback)

    def move_item_at_index(
        self,
        from_index: int,
        to_index: int,
        callback: DoneCallback | None = None,
    ) -> AsyncOperationHandle:
        """Move the item at ``from_index`` to ``to_index``."""
        handle = AsyncOperationHandle("move_item_at_index", self._dispatcher)
        if not self._reorderable:
            return handle.resolved(
                callback, NotPermittedError(f"{self!r} cannot be reordered")
            )
        size = len(self._ids)
        if not (0 <= from_index < size and 0 <= to_index < size):
            return handle.resolved(
                callback,
                OutOfRangeError(
                    f"Cannot move {from_index} -> {to_index} in {size} items"
                ),
            )
        if from_index == to_index:
            return handle.resolved(callback, None)

        item_id = self._ids.pop(from_index)
        self._ids.insert(to_index, item_id)
        tx = EditTransaction(
            "move", item_id, from_index, self._generation, to_index=to_index
        )
        ordered_ids = list(self._ids)

        return self._commit(
            handle,
            tx,
            callback,
            self._mirror(
                lambda source: source.mirror_move(
                    self._source, item_id, to_index, ordered_ids
                )
            ),
        )

    def _remove(
        self, handle: AsyncOperationHandle, index: int, callback: DoneCallback | None
    ) -> AsyncOperationHandle:
        item_id = self._ids.pop(index)
        self._id_set.discard(item_id)
        # The estimate only drops once the removal is confirmed
        tx = EditTransaction("remove", item_id, index, self._generation, estimate_delta=-1)

        return self._commit(
            handle,
            tx,
            callback,
            self._mirror(lambda source: source.mirror_remove(self._source, item_id)),
        )

    def _mirror(self, call: Callable[[RemoteItemSource], Any]) -> Callable[[], Any] | None:
        """Wrap a remote mirror call, or None when edits stay local."""
        if self._source.connection_key is None or self._remote_source is None:
            return None
        source = self._remote_source
        return lambda: call(source)

    def _commit(
        self,
        handle: AsyncOperationHandle,
        tx: EditTransaction,
        callback: DoneCallback | None,
        mirror: Callable[[], Any] | None,
    ) -> AsyncOperationHandle:
        tx.mirrored = mirror is not None
        handle.add_cancel_hook(lambda: self._rollback(tx, "canceled"))

        async def _run() -> None:
            if mirror is not None:
                try:
                    await mirror()
                except Exception as e:
                    error = (
                        e
                        if isinstance(e, RemoteFailureError)
                        else RemoteFailureError(
                            f"Remote {tx.operation} of {tx.item_id} failed: {e}", cause=e
                        )
                    )
                    self._rollback(tx, "error")
                    handle.finish(callback, error)
                    return
            self._confirm(tx)
            handle.finish(callback, None)

        return handle.start(_run())

    def _confirm(self, tx: EditTransaction) -> None:
        if tx.settled:
            return
        tx.settled = True
        if tx.operation == "remove":
            self._set_estimate(self._estimate.value + tx.estimate_delta)
        if tx.mirrored and tx.generation == self._generation:
            # Remote items past the window shifted with this edit
            if tx.operation == "add":
                self._next_offset += 1
            elif tx.operation == "remove":
                self._next_offset = max(0, self._next_offset - 1)
        log_operation(logger, tx.operation, tx.item_id, "success", type=self._type)

    def _rollback(self, tx: EditTransaction, reason: str) -> None:
        if tx.settled:
            return
        tx.settled = True
        log_operation(logger, tx.operation, tx.item_id, "rollback", reason=reason)

        if tx.generation != self._generation:
            # The window was flushed since; there is nothing left to undo
            return

        if tx.operation == "add":
            if tx.item_id in self._id_set:
                self._ids.remove(tx.item_id)
                self._id_set.discard(tx.item_id)
            if tx.evicted and tx.evicted not in self._id_set:
                if not self._count_limit or len(self._ids) < self._count_limit:
                    self._ids.append(tx.evicted)
                    self._id_set.add(tx.evicted)
            self._set_estimate(self._estimate.value - tx.estimate_delta)
        elif tx.operation == "remove":
            if tx.item_id not in self._id_set:
                self._insert(min(tx.index, len(self._ids)), tx.item_id)
                if self._count_limit and len(self._ids) > self._count_limit:
                    self._id_set.discard(self._ids.pop())
        elif tx.operation == "move":
            if tx.item_id in self._id_set:
                self._ids.remove(tx.item_id)
                self._ids.insert(min(tx.index, len(self._ids)), tx.item_id)

    def _insert(self, index: int, item_id: str) -> None:
        self._ids.insert(index, item_id)
        self._id_set.add(item_id)

    def _set_estimate(self, value: int) -> None:
        self._estimate.set(max(value, len(self._ids)))

    def _item_id(self, item: ItemRef | str) -> str:
        return item.id if isinstance(item, ItemRef) else item

    def _not_editable(self) -> NotPermittedError:
        return NotPermittedError(
            f"{self!r} cannot be edited",
            "Only local collections and editable connections accept edits",
        )

    # -------------------- Persistence --------------------

    def to_archive(self) -> CollectionArchive:
        return CollectionArchive(
            type=self._type,
            source=self._source,
            ids=list(self._ids),
            count_limit=self._count_limit,
            estimated_total=self._estimate.value if self._estimate_known else None,
            editable=self._editable,
            reorderable=self._reorderable,
            next_offset=self._next_offset,
            exhausted=self._exhausted if self._source.is_remote else False,
        )

    def save_to_file(self, path: str | Path) -> bool:
        """
        Persist the collection and its materialized window to disk.

        NOTE: This blocks on file I/O. Do not call it from an event loop
        that must stay responsive.

        Returns:
            True on success, False on I/O or serialization failure
        """
        try:
            self.to_archive().save(path)
        except PersistenceError as e:
            logger.error(f"Failed to save {self!r} to {path}: {e}")
            return False
        logger.info(f"Saved {self!r} to {path}")
        return True


def item_collection_from_file(
    path: str | Path, api: ItemAPIClient, **kwargs: Any
) -> ItemCollection:
    """
    Load a collection previously saved with ``save_to_file``.

    NOTE: This blocks on file I/O. Do not call it from an event loop that
    must stay responsive.

    Args:
        path: Archive file path
        api: API client the restored collection will use
        **kwargs: Collaborators passed to ItemCollection (remote_source,
            field_loader, dispatcher, page_size)

    Raises:
        PersistenceError: If the file is missing, unreadable or incompatible
    """
    archive = CollectionArchive.load(path)
    collection = ItemCollection.from_archive(archive, api, **kwargs)
    logger.info(f"Loaded {collection!r} from {path}")
    return collection
