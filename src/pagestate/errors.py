# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page State exception hierarchy.

Used by the browser/tool layer only. The pagination engine never raises:
invalid parameters and out-of-range pages come back as outcome values
(see pagination.py).
"""

from __future__ import annotations


class PageStateError(Exception):
    """Base exception for all Page State errors."""


class BrowserError(PageStateError):
    """Browser session launch, navigation, or interaction failure."""


class SnapshotError(PageStateError):
    """The accessibility snapshot could not be captured."""


class ActionError(PageStateError):
    """A browser action (click, type, select, ...) was rejected or failed."""

    def __init__(self, message: str, *, action: str = "") -> None:
        super().__init__(message)
        self.action = action


class TabError(PageStateError):
    """Tab index out of range or tab already closed."""

    def __init__(self, message: str, *, index: int = -1, tab_count: int = 0) -> None:
        super().__init__(message)
        self.index = index
        self.tab_count = tab_count
