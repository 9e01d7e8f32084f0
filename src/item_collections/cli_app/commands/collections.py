"""Collection command group."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from item_collections.cli_app.output import add_output_arg, emit
from item_collections.clients.api import ItemAPIClient
from item_collections.core.collection import ItemCollection
from item_collections.models.archive import CollectionArchive
from item_collections.models.source import ItemRef
from item_collections.utils.errors import PersistenceError

logger = logging.getLogger(__name__)


def _key_value(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {raw!r}")
    return key, value


def register_inspect(subparsers: argparse._SubParsersAction) -> None:
    inspect = subparsers.add_parser("inspect", help="Show a saved collection archive")
    inspect.add_argument("archive", help="Path to the archive file")
    inspect.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of identifiers to show (default: 20)",
    )
    add_output_arg(inspect)


def register_fetch(subparsers: argparse._SubParsersAction) -> None:
    fetch = subparsers.add_parser(
        "fetch", help="Load item fields at an index of a remote collection"
    )
    fetch.add_argument("--type", default="video", help="Item type (default: video)")
    fetch.add_argument(
        "--param",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Filter/sort parameter, repeatable (e.g. --param sort=recent)",
    )
    fetch.add_argument("--connection", help="Connection name (e.g. favorites)")
    fetch.add_argument("--owner-type", default="user", help="Owner item type (default: user)")
    fetch.add_argument("--owner-id", help="Owner item identifier")
    fetch.add_argument("--index", type=int, default=0, help="Item index (default: 0)")
    fetch.add_argument(
        "--fields",
        nargs="+",
        default=["id", "title"],
        help="Fields to load (default: id title)",
    )
    fetch.add_argument("--page-size", type=int, default=None, help="Items per page")
    fetch.add_argument("--save", help="Save the collection archive to this path")
    add_output_arg(fetch)


def run_inspect(args: argparse.Namespace) -> int:
    try:
        archive = CollectionArchive.load(args.archive)
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    source = archive.source
    payload: dict[str, Any] = {
        "type": archive.type,
        "source": source.kind.value,
        "count_limit": archive.count_limit,
        "estimated_total": archive.estimated_total,
        "cached": len(archive.ids),
        "editable": archive.editable,
        "reorderable": archive.reorderable,
        "saved_at": archive.saved_at,
        "ids": archive.ids[: args.limit],
    }
    if source.connection_key:
        payload["connection"] = f"{source.connection_key} ({source.owner_id})"
    if source.params:
        payload["params"] = source.params
    emit(args, payload)
    return 0


def _build_collection(args: argparse.Namespace, api: ItemAPIClient) -> ItemCollection:
    params = dict(args.param)
    if args.connection:
        if not args.owner_id:
            raise ValueError("--owner-id is required with --connection")
        owner = ItemRef(type=args.owner_type, id=args.owner_id)
        return ItemCollection.for_connection(
            args.connection, owner, params, api, type=args.type, page_size=args.page_size
        )
    return ItemCollection.for_query(args.type, params, api, page_size=args.page_size)


async def _run_fetch(args: argparse.Namespace) -> dict[str, Any]:
    async with ItemAPIClient() as api:
        collection = _build_collection(args, api)
        result: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_fields(data: dict[str, Any] | None, stalled: bool, error: Exception | None) -> None:
            if stalled:
                logger.info(f"Waiting for index {args.index} to be paged in...")
                return
            result.set_result((data, error))

        collection.with_item_fields(args.fields, args.index, on_fields)
        data, error = await result

        payload: dict[str, Any] = {
            "index": args.index,
            "estimated_total": collection.current_estimated_total_items_count,
        }
        if error is not None:
            payload["error"] = str(error)
        else:
            payload["data"] = data

        if args.save:
            payload["saved"] = await asyncio.to_thread(collection.save_to_file, args.save)
        return payload


def run_fetch(args: argparse.Namespace) -> int:
    try:
        payload = asyncio.run(_run_fetch(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    emit(args, payload)
    if payload.get("error") or payload.get("saved") is False:
        return 1
    return 0


__all__ = ["register_fetch", "register_inspect", "run_fetch", "run_inspect"]
