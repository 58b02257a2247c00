# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Heuristic token estimation for snapshot text.

Leaf module. No tokenizer dependency: a fixed characters-per-token ratio
keeps the estimate deterministic and O(n). Both the truncation decision and
the page-boundary search in pagination.py go through tokens_for_length(),
so the two can never disagree.
"""

from __future__ import annotations

CHARS_PER_TOKEN = 4


def tokens_for_length(length: int) -> int:
    """Estimated tokens for a text of ``length`` characters (ceil division)."""
    if length <= 0:
        return 0
    return -(-length // CHARS_PER_TOKEN)


def estimate_tokens(text: str) -> int:
    """Estimate the token size of ``text``. Empty string -> 0."""
    return tokens_for_length(len(text))
