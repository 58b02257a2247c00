# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page State: token-budgeted page-state snapshots for browser automation agents.

Browser actions can return a textual snapshot of the accessibility tree.
Large snapshots are split into pages bounded by a caller-supplied token budget:
- tokens: heuristic size estimation (~4 chars per token)
- pagination: deterministic, lossless, line-aligned page partition
- formatter: truncation banners and error lines callers assert against
"""

from __future__ import annotations

from .formatter import TRUNCATION_BANNER, format_outcome
from .pagination import (
    DEFAULT_MAX_TOKENS,
    InvalidParameter,
    OutOfRange,
    Page,
    Paged,
    PaginationOutcome,
    PaginationRequest,
    Whole,
    paginate,
    split_pages,
)
from .tokens import CHARS_PER_TOKEN, estimate_tokens

__all__ = [
    "CHARS_PER_TOKEN",
    "DEFAULT_MAX_TOKENS",
    "TRUNCATION_BANNER",
    "InvalidParameter",
    "OutOfRange",
    "Page",
    "Paged",
    "PaginationOutcome",
    "PaginationRequest",
    "Whole",
    "estimate_tokens",
    "format_outcome",
    "paginate",
    "split_pages",
]
