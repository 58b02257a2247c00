# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page State CLI: paginate, snapshot, serve commands.

Usage:
    pagestate paginate [FILE] [--max-tokens N] [--page P] [--all]
    pagestate snapshot URL [--max-tokens N] [--page P] [--headed]
    pagestate serve [server options]

``paginate`` reads a saved snapshot (or stdin) and prints the requested page
exactly as the MCP server would put it in the page-state section.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .formatter import format_outcome
from .pagination import DEFAULT_MAX_TOKENS, paginate, split_pages
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)


def _read_input(path_str: str | None) -> str:
    if not path_str or path_str == "-":
        return sys.stdin.read()
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(2)
    return path.read_text(encoding="utf-8")


def cmd_paginate(args: argparse.Namespace) -> None:
    text = _read_input(args.file)
    if args.all:
        if args.max_tokens <= 0:
            print(format_outcome(paginate(text, args.max_tokens, 0)))
            sys.exit(1)
        pages = split_pages(text, args.max_tokens)
        print(f"{estimate_tokens(text)} tokens, {len(pages)} page(s) at max_tokens={args.max_tokens}")
        for p in pages:
            flag = "  (oversized line)" if p.oversized else ""
            print(f"  page {p.index}: {p.tokens} tokens, {len(p.text)} chars{flag}")
        return

    rendered = format_outcome(paginate(text, args.max_tokens, args.page))
    sys.stdout.write(rendered)
    if not rendered.endswith("\n"):
        sys.stdout.write("\n")
    if rendered.startswith("Error:"):
        sys.exit(1)


async def _snapshot_live(url: str, *, headless: bool) -> str:
    from .browser_session import BrowserConfig, create_session

    async with create_session(BrowserConfig(headless=headless)) as session:
        await session.navigate(url)
        return await session.capture_snapshot()


def cmd_snapshot(args: argparse.Namespace) -> None:
    from .server import _validate_url

    error = _validate_url(args.url)
    if error:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(2)
    try:
        text = asyncio.run(_snapshot_live(args.url, headless=not args.headed))
    except Exception as e:
        logger.debug("snapshot failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(format_outcome(paginate(text, args.max_tokens, args.page)))


def cmd_serve(args: argparse.Namespace) -> None:
    from .server import main as server_main

    server_main(args.server_args)


def _add_pagination_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=DEFAULT_MAX_TOKENS,
        metavar="N",
        help=f"Token budget per page (default: {DEFAULT_MAX_TOKENS})",
    )
    parser.add_argument("--page", type=int, default=0, metavar="P", help="0-based page index (default: 0)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagestate", description="Page State: token-budgeted page snapshots")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    p_paginate = subparsers.add_parser("paginate", help="Paginate a saved snapshot file (or stdin)")
    p_paginate.add_argument("file", nargs="?", default=None, help="Snapshot file (default: stdin)")
    _add_pagination_args(p_paginate)
    p_paginate.add_argument("--all", action="store_true", help="Print the page layout instead of one page")

    p_snapshot = subparsers.add_parser("snapshot", help="Open a URL and print its paginated page state")
    p_snapshot.add_argument("url", help="http:// or https:// URL")
    _add_pagination_args(p_snapshot)
    p_snapshot.add_argument("--headed", action="store_true", help="Show the browser window")

    subparsers.add_parser(
        "serve", add_help=False, help="Start the MCP server (options: see pagestate-server --help)"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args, extra = parser.parse_known_args(argv)
    # Unknown options belong to the server for "serve", and are errors everywhere else
    if args.command == "serve":
        args.server_args = extra
    elif extra:
        parser.error(f"unrecognized arguments: {' '.join(extra)}")

    from .logging_config import configure

    configure(level="DEBUG" if args.verbose else "WARNING")

    commands = {
        "paginate": cmd_paginate,
        "snapshot": cmd_snapshot,
        "serve": cmd_serve,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    handler(args)


if __name__ == "__main__":
    main()
