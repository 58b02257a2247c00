# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tool response assembly: generated code, action result, and page state.

The page-state section exists only when a snapshot was requested. When it is
requested, the freshly captured snapshot goes through paginate() and
format_outcome() before it is placed in the response.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .formatter import format_outcome
from .pagination import DEFAULT_MAX_TOKENS, paginate

logger = logging.getLogger(__name__)

CODE_HEADING = "### Ran Playwright code"
RESULT_HEADING = "### Result"
PAGE_STATE_HEADING = "### Page state"


def build_page_state(snapshot_text: str, *, max_tokens: int = DEFAULT_MAX_TOKENS, page: int = 0) -> str:
    """Paginate ``snapshot_text`` and render the requested page."""
    return format_outcome(paginate(snapshot_text, max_tokens, page))


@dataclass(slots=True)
class ToolResponse:
    """Sections of a single tool call response. Empty sections are not rendered."""

    code: list[str] = field(default_factory=list)
    result: str = ""
    page_state: str | None = None

    def add_code(self, line: str) -> None:
        self.code.append(line)

    async def attach_page_state(
        self,
        capture: Callable[[], Awaitable[str]],
        *,
        include_snapshot: bool,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        page: int = 0,
    ) -> None:
        """Capture and paginate a snapshot when ``include_snapshot`` is set.

        ``capture`` is only awaited when needed, so callers that did not ask
        for a snapshot never pay for serializing the accessibility tree.
        """
        if not include_snapshot:
            self.page_state = None
            return
        snapshot_text = await capture()
        self.page_state = build_page_state(snapshot_text, max_tokens=max_tokens, page=page)
        logger.debug(
            "Page state attached: snapshot_chars=%d rendered_chars=%d",
            len(snapshot_text),
            len(self.page_state),
        )

    def render(self) -> str:
        sections: list[str] = []
        if self.code:
            sections.append(CODE_HEADING + "\n```js\n" + "\n".join(self.code) + "\n```")
        if self.result:
            sections.append(f"{RESULT_HEADING}\n{self.result}")
        if self.page_state is not None:
            sections.append(f"{PAGE_STATE_HEADING}\n{self.page_state}")
        return "\n\n".join(sections)
