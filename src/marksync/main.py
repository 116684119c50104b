#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from marksync.app import add_bookmark, delete_bookmark, list_bookmarks
from marksync.common.logging import configure_logging
from marksync.config import ConfigurationError, get_record_store_config
from marksync.domain.errors import CommandError, RefetchError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from marksync.domain.model import Record


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage bookmarks in the bookmarks API")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List bookmarks, newest first")

    add = subparsers.add_parser("add", help="Add a bookmark")
    add.add_argument("title", help="Bookmark title")
    add.add_argument("url", help="Bookmark URL")

    delete = subparsers.add_parser("delete", help="Delete a bookmark by id")
    delete.add_argument("id", help="Bookmark id as assigned by the store")

    return parser.parse_args(list(argv))


def _print_collection(records: Sequence[Record]) -> None:
    if not records:
        print("No bookmarks yet.")
        return
    for record in records:
        created = record.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"{record.id}  {created}  {record.title}  <{record.url}>")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = get_record_store_config()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        match args.command:
            case "add":
                records = asyncio.run(add_bookmark(args.title, args.url, config))
            case "delete":
                records = asyncio.run(delete_bookmark(args.id, config))
            case _:
                records = asyncio.run(list_bookmarks(config))
    except (CommandError, RefetchError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _print_collection(records)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
