# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page State MCP Server.

Browser automation tools whose responses can carry a paginated page-state
snapshot of the current accessibility tree.

Tools:
- browser_navigate / browser_navigate_back: move the current tab
- browser_snapshot: always returns page state (paginated by max_tokens/page)
- browser_click / browser_hover / browser_type / browser_select_option: element actions
- browser_press_key / browser_wait_for: keyboard and waiting
- browser_tab_list / browser_tab_new / browser_tab_select: tabs
- browser_close: shut the browser down

Action tools accept include_snapshot (default False), max_tokens and page.
Failures never escape to the transport: they come back as "Error: ..." text.
All logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import atexit
import functools
import logging
import re
import sys
import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated
from urllib.parse import urlparse

import structlog
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .browser_session import BrowserConfig, BrowserSession, DialogInfo, is_browser_dead_error
from .config import ServerConfig, parse_server_args
from .errors import PageStateError
from .page_state import ToolResponse

# Logging configured in main() via logging_config.configure()
logger = logging.getLogger("pagestate.server")

mcp = FastMCP(
    name="pagestate",
    instructions=(
        "Browser automation server. Pass include_snapshot=true to an action to get the page state "
        "(accessibility snapshot) in the response, or call browser_snapshot. Large snapshots are split "
        "into pages: when the response says 'Snapshot Truncated', request page=1, page=2, ... with the "
        "same max_tokens to read the rest."
    ),
)


@mcp.custom_route("/health", methods=["GET"])
async def _health_check(request):
    from starlette.responses import JSONResponse

    return JSONResponse(
        {
            "status": "ok",
            "transport": _config.transport,
            "browser": _state.session is not None,
        }
    )


# ── Constants ────────────────────────────────────────────────────────

ALLOWED_URL_SCHEMES = {"http", "https"}
MAX_TEXT_LENGTH = 1000
_TOOL_LOCK_TIMEOUT = 60.0
_MAX_ERROR_DETAIL = 200

_RECOVERY_HINTS: dict[str, str] = {
    "browser_navigate": "Check the URL and retry.",
    "browser_navigate_back": "Call browser_snapshot to check the current page.",
    "browser_snapshot": "Retry, or navigate to the page again.",
    "browser_click": "Call browser_snapshot to verify the element, then retry.",
    "browser_hover": "Call browser_snapshot to verify the element, then retry.",
    "browser_type": "Call browser_snapshot to verify the input field, then retry.",
    "browser_select_option": "Call browser_snapshot to verify the available options, then retry.",
    "browser_press_key": "Check the key name (e.g. Enter, Tab, ArrowDown) and retry.",
    "browser_wait_for": "Call browser_snapshot to check the current page content.",
    "browser_tab_new": "Retry, or call browser_tab_list.",
    "browser_tab_select": "Call browser_tab_list to see the open tabs.",
    "browser_tab_list": "Retry.",
}

# Page-state parameters shared by every snapshot-capable tool
IncludeSnapshot = Annotated[
    bool,
    Field(description="Include the page state (accessibility snapshot) in the response."),
]
MaxTokens = Annotated[
    int | None,
    Field(description="Token budget for the page state, ~4 characters per token (server default 24000)."),
]
PageIndex = Annotated[
    int,
    Field(description="0-based page of the page state when it exceeds max_tokens."),
]


# ── Server state ─────────────────────────────────────────────────────


class ServerState:
    """Browser session plus the lock that serializes tool calls against it."""

    def __init__(self) -> None:
        self.session: BrowserSession | None = None
        self._session_lock: asyncio.Lock = asyncio.Lock()
        self.tool_lock: asyncio.Lock = asyncio.Lock()
        # Lock ordering invariant: tool_lock -> _session_lock

    async def get_session(self) -> BrowserSession:
        """Get or create the browser session, replacing a dead one."""
        async with self._session_lock:
            if self.session is not None and not await self.session.is_alive():
                logger.warning("Browser health check failed, recovering session")
                await self._stop_locked()

            if self.session is None:
                session = BrowserSession(BrowserConfig(headless=_config.headless))
                await session.start()
                self.session = session
            return self.session

    async def cleanup_session(self) -> None:
        async with self._session_lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        if self.session is not None:
            try:
                await self.session.stop()
            except Exception:
                logger.debug("stop() during cleanup raised", exc_info=True)
            self.session = None


_state = ServerState()

# Set once by main() before the transport starts
_config: ServerConfig = ServerConfig()


# Patched by tests
async def _get_session() -> BrowserSession:
    return await _state.get_session()


# ── Helpers ──────────────────────────────────────────────────────────


_JS_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        "'": "\\'",
        "\n": "\\n",
        "\r": "\\r",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)

# role=button[name="Submit"] or role=link
_ROLE_SELECTOR = re.compile(r"""^role=([a-z]+)(?:\[name=(["'])(.*)\2\])?$""")


def _js_string(value: str) -> str:
    """Single-quoted JS string literal for the generated code section."""
    return f"'{value.translate(_JS_ESCAPES)}'"


def _locator_code(selector: str) -> str:
    """Playwright JS for ``selector``: getByRole/getByText where the selector maps onto one."""
    match = _ROLE_SELECTOR.match(selector)
    if match:
        role, _, name = match.groups()
        if name is None:
            return f"page.getByRole({_js_string(role)})"
        return f"page.getByRole({_js_string(role)}, {{ name: {_js_string(name)} }})"
    if selector.startswith("text="):
        return f"page.getByText({_js_string(selector[len('text='):])})"
    return f"page.locator({_js_string(selector)})"


def _resolve_max_tokens(max_tokens: int | None) -> int:
    return _config.default_max_tokens if max_tokens is None else max_tokens


def _validate_url(url: str) -> str | None:
    """Return an error message for unsupported URLs, None if OK."""
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        return f"URL scheme '{parsed.scheme}' is not allowed. Use http:// or https://."
    if not parsed.netloc:
        return "URL has no host."
    return None


def _format_dialog_warnings(dialogs: list[DialogInfo]) -> str:
    lines = []
    for d in dialogs:
        action = "dismissed" if d.dismissed else "accepted"
        lines.append(f'JS {d.dialog_type} dialog {action}: "{d.message[:100]}"')
    return "\n".join(lines)


def _safe_error(context: str, exc: Exception) -> str:
    """Log full details to stderr and return a short error for the tool response."""
    logger.error("%s: %s", context, exc, exc_info=True)
    detail = str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__
    if len(detail) > _MAX_ERROR_DETAIL:
        detail = detail[: _MAX_ERROR_DETAIL - 3] + "..."
    hint = _RECOVERY_HINTS.get(context, "")
    return f"Error: {context} failed: {detail}" + (f" {hint}" if hint else "")


async def _finish(
    response: ToolResponse,
    session: BrowserSession,
    *,
    include_snapshot: bool,
    max_tokens: int | None,
    page: int,
) -> str:
    """Attach dialog warnings and (optionally) the paginated page state, then render."""
    warnings = _format_dialog_warnings(session.drain_dialogs())
    if warnings:
        response.result = f"{response.result}\n{warnings}".strip()
    await response.attach_page_state(
        session.capture_snapshot,
        include_snapshot=include_snapshot,
        max_tokens=_resolve_max_tokens(max_tokens),
        page=page,
    )
    return response.render()


async def _run_tool(tool: str, impl: Callable[[], Awaitable[str]]) -> str:
    """Serialize ``impl`` on the tool lock, with timeouts and error containment."""
    structlog.contextvars.bind_contextvars(request_id=uuid.uuid4().hex[:12], tool=tool)
    try:
        async with asyncio.timeout(_TOOL_LOCK_TIMEOUT):
            await _state.tool_lock.acquire()
    except TimeoutError:
        logger.error("Tool lock acquisition timed out for %s", tool)
        structlog.contextvars.unbind_contextvars("request_id", "tool")
        return "Error: Server busy, another tool call is in progress. Wait a moment, then retry."

    try:
        return await asyncio.wait_for(impl(), timeout=_config.action_timeout)
    except TimeoutError:
        logger.warning("%s timed out after %.0fs", tool, _config.action_timeout)
        return f"Error: {tool} timed out after {_config.action_timeout:.0f}s. {_RECOVERY_HINTS.get(tool, '')}".rstrip()
    except PageStateError as e:
        logger.warning("%s rejected: %s", tool, e)
        return f"Error: {e}"
    except Exception as e:
        if is_browser_dead_error(e):
            logger.error("%s: browser connection lost", tool)
            await _state.cleanup_session()
            return "Error: Browser connection lost. The browser will be restarted on the next call."
        return _safe_error(tool, e)
    finally:
        _state.tool_lock.release()
        structlog.contextvars.unbind_contextvars("request_id", "tool")


# ── Navigation tools ─────────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
async def browser_navigate(
    url: str,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Navigate the current tab to a URL.

    Args:
        url: http:// or https:// URL.
        include_snapshot: Include the page state (accessibility snapshot) in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state when it exceeds max_tokens.
    """
    error = _validate_url(url)
    if error:
        return f"Error: {error}"
    return await _run_tool(
        "browser_navigate", functools.partial(_navigate_impl, url, include_snapshot, max_tokens, page)
    )


async def _navigate_impl(url: str, include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    logger.info("browser_navigate: url=%s", url)
    status = await session.navigate(url)
    response = ToolResponse()
    response.add_code(f"await page.goto({_js_string(url)});")
    if status is not None and status >= 400:
        response.result = f"Warning: page responded with HTTP {status}."
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
async def browser_navigate_back(
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Go back to the previous page in the current tab's history.

    Args:
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    return await _run_tool(
        "browser_navigate_back", functools.partial(_navigate_back_impl, include_snapshot, max_tokens, page)
    )


async def _navigate_back_impl(include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    new_url = await session.go_back()
    response = ToolResponse()
    response.add_code("await page.goBack();")
    if new_url is None:
        response.result = "No previous page in browser history."
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


# ── Snapshot ─────────────────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def browser_snapshot(max_tokens: MaxTokens = None, page: PageIndex = 0) -> str:
    """Get the page state (accessibility snapshot) of the current tab.

    Snapshots larger than max_tokens are split into pages. The response then
    starts with "Snapshot Truncated" and "Page N of M"; request the following
    pages with page=1, page=2, ... and the same max_tokens.

    Args:
        max_tokens: Token budget per page (default 24000, ~4 characters per token).
        page: 0-based page index.
    """
    return await _run_tool("browser_snapshot", functools.partial(_snapshot_impl, max_tokens, page))


async def _snapshot_impl(max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    return await _finish(ToolResponse(), session, include_snapshot=True, max_tokens=max_tokens, page=page)


# ── Element actions ──────────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True))
async def browser_click(
    element: str,
    selector: str,
    double_click: bool = False,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Click an element.

    Args:
        element: Human-readable element description (for logs).
        selector: Playwright selector, e.g. 'role=button[name="Submit"]' or 'text=Sign in'.
        double_click: Double-click instead of a single click.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    return await _run_tool(
        "browser_click",
        functools.partial(_click_impl, element, selector, double_click, include_snapshot, max_tokens, page),
    )


async def _click_impl(
    element: str,
    selector: str,
    double_click: bool,
    include_snapshot: bool,
    max_tokens: int | None,
    page: int,
) -> str:
    session = await _get_session()
    logger.info("browser_click: element=%s selector=%s", element, selector)
    await session.click(selector, double=double_click)
    response = ToolResponse()
    method = "dblclick" if double_click else "click"
    response.add_code(f"await {_locator_code(selector)}.{method}();")
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def browser_hover(
    element: str,
    selector: str,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Hover over an element.

    Args:
        element: Human-readable element description.
        selector: Playwright selector.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    return await _run_tool(
        "browser_hover", functools.partial(_hover_impl, element, selector, include_snapshot, max_tokens, page)
    )


async def _hover_impl(element: str, selector: str, include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    logger.info("browser_hover: element=%s selector=%s", element, selector)
    await session.hover(selector)
    response = ToolResponse()
    response.add_code(f"await {_locator_code(selector)}.hover();")
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True))
async def browser_type(
    element: str,
    selector: str,
    text: str,
    submit: bool = False,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Type text into an editable element (replaces its value).

    Args:
        element: Human-readable element description.
        selector: Playwright selector.
        text: Text to enter (max 1000 chars).
        submit: Press Enter afterwards.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    if len(text) > MAX_TEXT_LENGTH:
        return f"Error: Text too long ({len(text)} chars, max {MAX_TEXT_LENGTH})."
    return await _run_tool(
        "browser_type",
        functools.partial(_type_impl, element, selector, text, submit, include_snapshot, max_tokens, page),
    )


async def _type_impl(
    element: str,
    selector: str,
    text: str,
    submit: bool,
    include_snapshot: bool,
    max_tokens: int | None,
    page: int,
) -> str:
    session = await _get_session()
    logger.info("browser_type: element=%s selector=%s chars=%d", element, selector, len(text))
    await session.type_text(selector, text, submit=submit)
    response = ToolResponse()
    response.add_code(f"await {_locator_code(selector)}.fill({_js_string(text)});")
    if submit:
        response.add_code(f"await {_locator_code(selector)}.press('Enter');")
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True))
async def browser_select_option(
    element: str,
    selector: str,
    values: list[str],
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Select one or more options in a <select> element.

    Args:
        element: Human-readable element description.
        selector: Playwright selector for the <select>.
        values: Option values or labels to select.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    if not values:
        return "Error: Provide at least one value to select."
    return await _run_tool(
        "browser_select_option",
        functools.partial(_select_option_impl, element, selector, values, include_snapshot, max_tokens, page),
    )


async def _select_option_impl(
    element: str,
    selector: str,
    values: list[str],
    include_snapshot: bool,
    max_tokens: int | None,
    page: int,
) -> str:
    session = await _get_session()
    logger.info("browser_select_option: element=%s selector=%s values=%s", element, selector, values)
    await session.select_option(selector, values)
    response = ToolResponse()
    if len(values) == 1:
        arg = _js_string(values[0])
    else:
        arg = "[" + ", ".join(_js_string(v) for v in values) + "]"
    response.add_code(f"await {_locator_code(selector)}.selectOption({arg});")
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


# ── Keyboard / waiting ───────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True))
async def browser_press_key(
    key: str,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Press a key, e.g. "Enter", "Tab", "ArrowDown", "Control+A".

    Args:
        key: Key name or combination.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    if not key.strip():
        return "Error: Key must not be empty."
    return await _run_tool(
        "browser_press_key", functools.partial(_press_key_impl, key, include_snapshot, max_tokens, page)
    )


async def _press_key_impl(key: str, include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    await session.press_key(key)
    response = ToolResponse()
    response.add_code(f"await page.keyboard.press({_js_string(key)});")
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def browser_wait_for(
    time: float | None = None,
    text: str | None = None,
    text_gone: str | None = None,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Wait for a number of seconds, or for text to appear or disappear.

    Args:
        time: Seconds to wait (max 20).
        text: Wait until this text is visible.
        text_gone: Wait until this text is hidden.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    if time is None and text is None and text_gone is None:
        return "Error: Specify at least one of 'time', 'text' or 'text_gone'."
    for value in (text, text_gone):
        if value is not None and len(value) > MAX_TEXT_LENGTH:
            return f"Error: Text too long ({len(value)} chars, max {MAX_TEXT_LENGTH})."
    return await _run_tool(
        "browser_wait_for",
        functools.partial(_wait_for_impl, time, text, text_gone, include_snapshot, max_tokens, page),
    )


async def _wait_for_impl(
    time: float | None,
    text: str | None,
    text_gone: str | None,
    include_snapshot: bool,
    max_tokens: int | None,
    page: int,
) -> str:
    session = await _get_session()
    await session.wait_for(seconds=time, text=text, text_gone=text_gone)
    response = ToolResponse()
    waited: list[str] = []
    if time is not None:
        response.add_code(f"await new Promise(f => setTimeout(f, {int(time * 1000)}));")
        waited.append(f"{time}s")
    if text_gone is not None:
        response.add_code(f"await page.getByText({_js_string(text_gone)}).first().waitFor({{ state: 'hidden' }});")
        waited.append(f'text "{text_gone}" to disappear')
    if text is not None:
        response.add_code(f"await page.getByText({_js_string(text)}).first().waitFor({{ state: 'visible' }});")
        waited.append(f'text "{text}" to appear')
    response.result = "Waited for " + ", ".join(waited) + "."
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


# ── Tabs ─────────────────────────────────────────────────────────────


async def _tab_listing(session: BrowserSession) -> str:
    tabs = await session.list_tabs()
    return "Open tabs:\n" + "\n".join(str(t) for t in tabs)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
async def browser_tab_list() -> str:
    """List open tabs."""
    return await _run_tool("browser_tab_list", _tab_list_impl)


async def _tab_list_impl() -> str:
    session = await _get_session()
    response = ToolResponse(result=await _tab_listing(session))
    return response.render()


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
async def browser_tab_new(
    url: str | None = None,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Open a new tab and make it current.

    Args:
        url: Optional http(s) URL to open in the new tab.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    if url is not None:
        error = _validate_url(url)
        if error:
            return f"Error: {error}"
    return await _run_tool(
        "browser_tab_new", functools.partial(_tab_new_impl, url, include_snapshot, max_tokens, page)
    )


async def _tab_new_impl(url: str | None, include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    await session.new_tab(url)
    response = ToolResponse()
    response.add_code("const newPage = await context.newPage();")
    if url:
        response.add_code(f"await newPage.goto({_js_string(url)});")
    response.result = await _tab_listing(session)
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=False))
async def browser_tab_select(
    index: int,
    include_snapshot: IncludeSnapshot = False,
    max_tokens: MaxTokens = None,
    page: PageIndex = 0,
) -> str:
    """Switch to the tab at ``index`` (0-based, see browser_tab_list).

    Args:
        index: Tab index.
        include_snapshot: Include the page state in the response.
        max_tokens: Token budget for the page state (default 24000).
        page: 0-based page of the page state.
    """
    return await _run_tool(
        "browser_tab_select", functools.partial(_tab_select_impl, index, include_snapshot, max_tokens, page)
    )


async def _tab_select_impl(index: int, include_snapshot: bool, max_tokens: int | None, page: int) -> str:
    session = await _get_session()
    await session.select_tab(index)
    response = ToolResponse()
    response.add_code(f"await context.pages()[{index}].bringToFront();")
    response.result = await _tab_listing(session)
    return await _finish(response, session, include_snapshot=include_snapshot, max_tokens=max_tokens, page=page)


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=False))
async def browser_close() -> str:
    """Close the browser. The next tool call starts a fresh one."""
    return await _run_tool("browser_close", _close_impl)


async def _close_impl() -> str:
    await _state.cleanup_session()
    return ToolResponse(code=["await browser.close();"], result="Browser closed.").render()


# ── Entry point ──────────────────────────────────────────────────────


async def _run_http_server(host: str, port: int) -> None:
    """Run the Streamable HTTP transport under uvicorn."""
    import uvicorn

    config = uvicorn.Config(mcp.streamable_http_app(), host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        await _state.cleanup_session()
        logger.info("HTTP mode: shutdown complete")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the MCP server."""
    global _config

    _config = parse_server_args(argv if argv is not None else sys.argv[1:])

    from .logging_config import configure as configure_logging

    configure_logging(json_output=_config.json_logs, level=_config.log_level)

    if _config.is_http:
        logger.info("Starting Page State MCP server (http, host=%s, port=%d)", _config.host, _config.port)
        import anyio

        anyio.run(_run_http_server, _config.host, _config.port)
        return

    def _sync_cleanup() -> None:
        """Best-effort browser shutdown at interpreter exit."""
        if _state.session is None:
            return
        try:
            asyncio.run(_state.cleanup_session())
        except Exception:
            logger.debug("cleanup at exit failed", exc_info=True)

    atexit.register(_sync_cleanup)
    logger.info(
        "Starting Page State MCP server (stdio, headless=%s, default_max_tokens=%d)",
        _config.headless,
        _config.default_max_tokens,
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
