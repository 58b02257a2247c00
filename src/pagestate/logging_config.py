# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog on top of stdlib logging, always writing to stderr.

STDIO transport: ConsoleRenderer (stdout belongs to the MCP stream).
HTTP transport: JSONRenderer, one event per line.

Levels may be given by name (any case) or number; an unknown name falls back
to INFO instead of raising.
Loggers listed in _NOISY_LOGGERS never log below WARNING, even when the root
logger is at DEBUG.
Per-call ``request_id`` and ``tool`` come from structlog contextvars bound by
the server.

Leaf module: no pagestate imports.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("asyncio", "mcp.server.lowlevel.server", "uvicorn.access")


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure(*, json_output: bool = False, level: str | int = "INFO") -> None:
    """Install the structlog/stdlib bridge on the root logger.

    Args:
        json_output: True for JSON lines (HTTP), False for console output (STDIO).
        level: Root level name or number. Unknown names fall back to INFO.
    """
    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root_level = _resolve_level(level)
    root.setLevel(root_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
