# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Server configuration from CLI flags and PAGESTATE_* environment variables.

Flags win for booleans that are switched on; environment variables fill in
(or override) the rest. Malformed numeric env values are ignored, and so is a
non-positive token budget. A non-positive --max-tokens is a usage error.
"""

from __future__ import annotations

import argparse
import os
from contextlib import suppress
from dataclasses import dataclass

from .pagination import DEFAULT_MAX_TOKENS

_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    transport: str = "stdio"  # "stdio" | "http"
    host: str = "127.0.0.1"
    port: int = 8000
    headless: bool = True
    default_max_tokens: int = DEFAULT_MAX_TOKENS
    action_timeout: float = 30.0  # seconds, per tool call
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def is_http(self) -> bool:
        return self.transport == "http"


def _env(name: str) -> str:
    return os.environ.get(name, "").strip()


def _env_flag(name: str) -> bool:
    return _env(name).lower() in _TRUTHY


def parse_server_args(argv: list[str] | None = None) -> ServerConfig:
    """Parse CLI args and env vars into a ServerConfig."""
    parser = argparse.ArgumentParser(description="Page State MCP server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport mode: stdio (default) or http",
    )
    parser.add_argument("--host", default="127.0.0.1", help="HTTP server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="HTTP server port (default: 8000)")
    parser.add_argument(
        "--headed",
        action="store_true",
        default=False,
        help="Show the browser window (default: headless)",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=DEFAULT_MAX_TOKENS,
        help=f"Default page-state token budget when a tool call omits max_tokens (default: {DEFAULT_MAX_TOKENS})",
    )
    parser.add_argument(
        "--action-timeout",
        type=float,
        default=30.0,
        help="Per tool call timeout in seconds (default: 30)",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=False,
        help="Emit JSON log lines (always on for http transport)",
    )
    args, _ = parser.parse_known_args(argv)

    env_transport = _env("PAGESTATE_TRANSPORT").lower()
    if env_transport in ("stdio", "http"):
        args.transport = env_transport

    if host := _env("PAGESTATE_HOST"):
        args.host = host

    if port := _env("PAGESTATE_PORT"):
        with suppress(ValueError):
            args.port = int(port)

    headed = args.headed or _env_flag("PAGESTATE_HEADED")

    if args.max_tokens <= 0:
        parser.error(f"--max-tokens must be positive (got {args.max_tokens})")

    if max_tokens := _env("PAGESTATE_DEFAULT_MAX_TOKENS"):
        with suppress(ValueError):
            value = int(max_tokens)
            if value > 0:
                args.max_tokens = value

    if timeout := _env("PAGESTATE_ACTION_TIMEOUT"):
        with suppress(ValueError):
            args.action_timeout = float(timeout)

    if level := _env("PAGESTATE_LOG_LEVEL"):
        args.log_level = level

    json_logs = args.json_logs or _env_flag("PAGESTATE_JSON_LOGS") or args.transport == "http"

    return ServerConfig(
        transport=args.transport,
        host=args.host,
        port=args.port,
        headless=not headed,
        default_max_tokens=args.max_tokens,
        action_timeout=args.action_timeout,
        log_level=args.log_level.upper(),
        json_logs=json_logs,
    )
