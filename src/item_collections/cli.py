"""
Command-line interface for item collections.
"""

import sys

from item_collections.cli_app.registry import build_parser, dispatch
from item_collections.utils.logging_config import initialize_logging


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    initialize_logging()
    return dispatch(args)


if __name__ == "__main__":
    sys.exit(main())
