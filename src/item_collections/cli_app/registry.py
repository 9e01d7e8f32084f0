"""CLI parser and dispatch registry."""

from __future__ import annotations

import argparse
from collections.abc import Callable

from item_collections.cli_app.commands import collections

CommandRunner = Callable[[argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="item-collections",
        description="Inspect and page through remote item collections",
    )
    subparsers = parser.add_subparsers(dest="command")

    registrars: tuple[Callable[[argparse._SubParsersAction], None], ...] = (
        collections.register_inspect,
        collections.register_fetch,
    )
    for register in registrars:
        register(subparsers)

    return parser


def dispatch(args: argparse.Namespace) -> int:
    command_handlers: dict[str, CommandRunner] = {
        "inspect": collections.run_inspect,
        "fetch": collections.run_fetch,
    }

    handler = command_handlers.get(args.command)
    if handler is None:
        raise ValueError(f"Unknown command: {args.command}")
    return handler(args)
