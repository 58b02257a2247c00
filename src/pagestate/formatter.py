# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Render pagination outcomes into the page-state text contract.

The banner and error prefixes are asserted on by callers (and by agents
reading the output), so they are module constants:

    ⚠️ Snapshot Truncated
    Content exceeds {max_tokens} tokens (estimated {total_tokens} tokens).
    Page {n} of {total}. Use page={n} to view the next page.

    <page content>
"""

from __future__ import annotations

from .pagination import InvalidParameter, OutOfRange, Paged, PaginationOutcome, Whole

TRUNCATION_BANNER = "⚠️ Snapshot Truncated"
ERROR_PREFIX = "Error:"


def _format_paged(outcome: Paged) -> str:
    lines = [
        TRUNCATION_BANNER,
        f"Content exceeds {outcome.max_tokens} tokens (estimated {outcome.total_tokens} tokens).",
    ]
    position = f"Page {outcome.page_number} of {outcome.total_pages}."
    if not outcome.is_last:
        # page_number is 1-based, so it is also the 0-based index of the next page
        position += f" Use page={outcome.page_number} to view the next page."
    lines.append(position)
    return "\n".join(lines) + "\n\n" + outcome.content


def _format_out_of_range(outcome: OutOfRange) -> str:
    last = outcome.total_pages - 1
    noun = "page" if outcome.total_pages == 1 else "pages"
    return (
        f"{ERROR_PREFIX} Page {outcome.requested_page} out of range. "
        f"Snapshot has {outcome.total_pages} {noun}; valid page values are 0 to {last}."
    )


def format_outcome(outcome: PaginationOutcome) -> str:
    """Render ``outcome`` as page-state text.

    ``Whole`` passes content through untouched. Every other outcome is
    visibly marked (truncation banner or ``Error:`` line).
    """
    if isinstance(outcome, Whole):
        return outcome.content
    if isinstance(outcome, Paged):
        return _format_paged(outcome)
    if isinstance(outcome, OutOfRange):
        return _format_out_of_range(outcome)
    if isinstance(outcome, InvalidParameter):
        return f"{ERROR_PREFIX} Invalid pagination parameter: {outcome.reason}."
    raise TypeError(f"Unknown pagination outcome: {type(outcome).__name__}")
