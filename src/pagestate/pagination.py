# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Token-budgeted pagination of snapshot text.

``paginate()`` is a pure function of ``(text, max_tokens, page)``. It never
raises: every result, including bad parameters and out-of-range pages, is
returned as one of four outcome dataclasses:

- ``Whole``            — text fits the budget, returned unmodified
- ``Paged``            — text exceeds the budget, one page of it
- ``OutOfRange``       — requested page index >= total pages
- ``InvalidParameter`` — max_tokens <= 0 or page < 0

Pages are line-aligned. Concatenating every page for a fixed
``(text, max_tokens)`` reproduces ``text`` exactly. The one exception to the
budget bound is a single line that alone exceeds ``max_tokens``: it is emitted
whole as its own page instead of being cut.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .tokens import estimate_tokens, tokens_for_length

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 24000


# ── Request / page ───────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PaginationRequest:
    """Caller-supplied budget and 0-based page index."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    page: int = 0

    def validate(self) -> str | None:
        """Return a reason string if the request is malformed, else None."""
        if not _is_int(self.max_tokens):
            return "max_tokens must be an integer"
        if not _is_int(self.page):
            return "page must be an integer"
        if self.max_tokens <= 0:
            return "max_tokens must be positive"
        if self.page < 0:
            return "page must be non-negative"
        return None


@dataclass(frozen=True, slots=True)
class Page:
    """One contiguous slice of the snapshot text."""

    index: int  # 0-based
    text: str
    tokens: int
    oversized: bool = False  # single line over budget, emitted whole


# ── Outcomes ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Whole:
    content: str


@dataclass(frozen=True, slots=True)
class Paged:
    content: str
    page_number: int  # 1-based, as shown to callers
    total_pages: int
    max_tokens: int
    total_tokens: int

    @property
    def is_last(self) -> bool:
        return self.page_number >= self.total_pages


@dataclass(frozen=True, slots=True)
class OutOfRange:
    requested_page: int  # 0-based, as requested
    total_pages: int


@dataclass(frozen=True, slots=True)
class InvalidParameter:
    reason: str


PaginationOutcome = Whole | Paged | OutOfRange | InvalidParameter


# ── Engine ───────────────────────────────────────────────────────────


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def split_pages(text: str, max_tokens: int) -> list[Page]:
    """Partition ``text`` into line-aligned pages of at most ``max_tokens`` each.

    Lines keep their terminators, so ``"".join(p.text for p in pages) == text``.
    Lines are added greedily to the current page until the next line would push
    its estimate past ``max_tokens``. A line that exceeds the budget by itself
    becomes its own (oversized) page.

    Raises:
        ValueError: max_tokens <= 0. Use paginate() for value-style validation.
    """
    if max_tokens <= 0:
        raise ValueError("max_tokens must be positive")
    if not text:
        return []

    pages: list[Page] = []
    current: list[str] = []
    current_len = 0

    def _flush() -> None:
        nonlocal current, current_len
        chunk = "".join(current)
        tokens = tokens_for_length(current_len)
        pages.append(Page(index=len(pages), text=chunk, tokens=tokens, oversized=tokens > max_tokens))
        current = []
        current_len = 0

    for line in text.splitlines(keepends=True):
        if current and tokens_for_length(current_len + len(line)) > max_tokens:
            _flush()
        current.append(line)
        current_len += len(line)
        # Oversized line: close it off so following lines start a fresh page.
        if len(current) == 1 and tokens_for_length(current_len) > max_tokens:
            _flush()

    if current:
        _flush()
    return pages


def paginate(text: str, max_tokens: int = DEFAULT_MAX_TOKENS, page: int = 0) -> PaginationOutcome:
    """Decide truncation for ``text`` and return the requested page as an outcome."""
    request = PaginationRequest(max_tokens=max_tokens, page=page)
    reason = request.validate()
    if reason is not None:
        logger.debug("Pagination rejected: %s (max_tokens=%r page=%r)", reason, max_tokens, page)
        return InvalidParameter(reason)

    total = estimate_tokens(text)
    if total <= max_tokens:
        if page == 0:
            return Whole(text)
        return OutOfRange(requested_page=page, total_pages=1)

    pages = split_pages(text, max_tokens)
    logger.debug(
        "Snapshot paginated: total_tokens=%d max_tokens=%d total_pages=%d page=%d",
        total,
        max_tokens,
        len(pages),
        page,
    )
    if page >= len(pages):
        return OutOfRange(requested_page=page, total_pages=len(pages))
    return Paged(
        content=pages[page].text,
        page_number=page + 1,
        total_pages=len(pages),
        max_tokens=max_tokens,
        total_tokens=total,
    )
