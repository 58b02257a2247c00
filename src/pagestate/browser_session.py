# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright browser session for the Page State server.

Manages the Chromium lifecycle, tabs, the browser actions, and the snapshot
serializer that produces page-state text from the ARIA snapshot of the
current page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass

from playwright.async_api import (
    Browser,
    BrowserContext,
    Dialog,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from .errors import ActionError, BrowserError, SnapshotError, TabError

logger = logging.getLogger(__name__)

# Dangerous URL schemes blocked at context level. about:blank stays allowed.
BLOCKED_URL_SCHEMES = (
    "chrome://",
    "devtools://",
    "chrome-extension://",
    "file://",
    "view-source://",
)

SNAPSHOT_TIMEOUT_MS = 10000
_MAX_DIALOG_BUFFER = 10
_MAX_WAIT_SECONDS = 20.0

_BROWSER_DEAD_PATTERNS = (
    "target closed",
    "target page",
    "browser has been closed",
    "connection closed",
    "browser disconnected",
)


def is_browser_dead_error(exc: Exception) -> bool:
    """True when ``exc`` means the browser process or its connection is gone."""
    msg = str(exc).lower()
    return any(p in msg for p in _BROWSER_DEAD_PATTERNS)


@dataclass
class BrowserConfig:
    """Chromium launch and context settings."""

    headless: bool = True
    locale: str = "en-US"
    viewport_width: int = 1280
    viewport_height: int = 800
    timeout_ms: int = 30000
    action_timeout_ms: int = 5000


@dataclass(frozen=True)
class DialogInfo:
    """A JS dialog the session answered on its own, reported with the next tool result."""

    dialog_type: str  # "alert", "confirm", "prompt", "beforeunload"
    message: str
    dismissed: bool


@dataclass(frozen=True, slots=True)
class TabInfo:
    index: int
    url: str
    title: str
    current: bool

    def __str__(self) -> str:
        marker = " (current)" if self.current else ""
        return f"- {self.index}:{marker} [{self.title}] ({self.url})"


def chromium_launch_args(config: BrowserConfig) -> list[str]:
    """Chromium flags for an unattended, quiet browser."""
    return [
        "--disable-blink-features=AutomationControlled",
        f"--lang={config.locale}",
        "--disable-extensions",
        "--disable-dev-shm-usage",
        "--disable-background-networking",
        "--disable-sync",
        "--no-first-run",
        "--deny-permission-prompts",
        "--noerrdialogs",
    ]


def format_snapshot(url: str, title: str, aria_yaml: str) -> str:
    """Serialize page identity plus ARIA snapshot into page-state text."""
    return "\n".join(
        [
            f"- Page URL: {url}",
            f"- Page Title: {title}",
            "- Page Snapshot:",
            "```yaml",
            aria_yaml.rstrip("\n"),
            "```",
        ]
    )


class BrowserSession:
    """A Playwright Chromium browser with one context and any number of tabs."""

    def __init__(self, config: BrowserConfig | None = None):
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._pending_dialogs: list[DialogInfo] = []

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Use async with or call start().")
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("Browser session not started.")
        return self._context

    @property
    def tab_count(self) -> int:
        if self._context is None:
            return 0
        return len(self._context.pages)

    async def is_alive(self, timeout: float = 5.0) -> bool:
        """Check if the browser process is responsive."""
        if self._browser is None or not self._browser.is_connected():
            return False
        if self._page is None or self._page.is_closed():
            return False
        try:
            await asyncio.wait_for(self._page.evaluate("1"), timeout=timeout)
            return True
        except Exception:
            return False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Launch Chromium and open the first tab."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=chromium_launch_args(self.config),
            )
        except PlaywrightError as exc:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
            if "executable doesn't exist" in str(exc).lower():
                raise BrowserError("Chromium is not installed. Please run: playwright install chromium") from exc
            raise BrowserError(f"Browser launch failed: {exc}") from exc

        try:
            self._context = await self._browser.new_context(
                viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
                locale=self.config.locale,
                service_workers="block",
                accept_downloads=False,
            )
            self._context.set_default_timeout(self.config.action_timeout_ms)
            self._context.on("dialog", self._on_dialog)
            await self._context.route("**/*", self._block_schemes)
            self._page = await self._context.new_page()
        except Exception:
            # Chromium is already running: shut it down before giving up
            await self.stop()
            raise
        logger.info("Chromium ready (headless=%s)", self.config.headless)

    async def stop(self) -> None:
        """Close browser and clean up. Safe to call on a crashed browser."""
        if self._context:
            with suppress(Exception):
                await self._context.close()
            self._context = None
        if self._browser:
            with suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
        self._page = None
        self._pending_dialogs = []
        logger.info("Chromium closed")

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    async def _block_schemes(self, route: Route) -> None:
        url = route.request.url
        if url.startswith(BLOCKED_URL_SCHEMES):
            logger.debug("Scheme blocked: %s", url)
            await route.abort("blockedbyclient")
            return
        await route.continue_()

    async def _on_dialog(self, dialog: Dialog) -> None:
        """Auto-handle JS dialogs: alert/beforeunload accepted, confirm/prompt dismissed.

        Must always accept or dismiss, otherwise the page freezes.
        """
        try:
            dismissed = dialog.type not in ("alert", "beforeunload")
            if dismissed:
                await dialog.dismiss()
            else:
                await dialog.accept()
            self._pending_dialogs.append(DialogInfo(dialog.type, dialog.message, dismissed))
            self._pending_dialogs = self._pending_dialogs[-_MAX_DIALOG_BUFFER:]
            logger.info("JS dialog auto-handled: type=%s dismissed=%s", dialog.type, dismissed)
        except Exception:
            logger.warning("Dialog handling failed, dismissing", exc_info=True)
            with suppress(Exception):
                await dialog.dismiss()

    def drain_dialogs(self) -> list[DialogInfo]:
        """Return and clear pending dialog records."""
        dialogs = self._pending_dialogs
        self._pending_dialogs = []
        return dialogs

    # ── Snapshot ─────────────────────────────────────────────────────

    async def capture_snapshot(self) -> str:
        """Capture the current page as page-state text (URL, title, ARIA YAML)."""
        page = self.page
        try:
            aria_yaml = await page.locator("body").aria_snapshot(timeout=SNAPSHOT_TIMEOUT_MS)
            title = await page.title()
        except PlaywrightError as exc:
            if is_browser_dead_error(exc):
                raise
            raise SnapshotError(f"Could not capture page snapshot: {exc}") from exc
        return format_snapshot(page.url, title, aria_yaml)

    # ── Navigation ───────────────────────────────────────────────────

    async def navigate(self, url: str) -> int | None:
        """Navigate the current tab. Returns the HTTP status, if any."""
        response = await self.page.goto(url, wait_until="domcontentloaded", timeout=self.config.timeout_ms)
        return response.status if response else None

    async def go_back(self) -> str | None:
        """Navigate back in history. Returns the new URL, or None without history."""
        response = await self.page.go_back(wait_until="domcontentloaded", timeout=self.config.timeout_ms)
        if response is None:
            return None
        return self.page.url

    # ── Element actions ──────────────────────────────────────────────

    async def click(self, selector: str, *, double: bool = False) -> None:
        locator = self.page.locator(selector)
        if double:
            await locator.dblclick()
        else:
            await locator.click()

    async def hover(self, selector: str) -> None:
        await self.page.locator(selector).hover()

    async def type_text(self, selector: str, text: str, *, submit: bool = False) -> None:
        locator = self.page.locator(selector)
        await locator.fill(text)
        if submit:
            await locator.press("Enter")

    async def select_option(self, selector: str, values: list[str]) -> list[str]:
        selected = await self.page.locator(selector).select_option(values)
        if not selected:
            raise ActionError(f"No option matched {values!r}", action="select_option")
        return selected

    async def press_key(self, key: str) -> None:
        await self.page.keyboard.press(key)

    async def wait_for(
        self,
        *,
        seconds: float | None = None,
        text: str | None = None,
        text_gone: str | None = None,
    ) -> None:
        """Sleep, or wait for text to become visible / hidden."""
        if seconds is not None:
            await asyncio.sleep(min(max(seconds, 0.0), _MAX_WAIT_SECONDS))
        if text_gone is not None:
            await self.page.get_by_text(text_gone).first.wait_for(state="hidden")
        if text is not None:
            await self.page.get_by_text(text).first.wait_for(state="visible")

    # ── Tabs ─────────────────────────────────────────────────────────

    async def list_tabs(self) -> list[TabInfo]:
        tabs: list[TabInfo] = []
        for index, page in enumerate(self.context.pages):
            title = ""
            with suppress(PlaywrightError):
                title = await page.title()
            tabs.append(TabInfo(index=index, url=page.url, title=title, current=page is self._page))
        return tabs

    async def new_tab(self, url: str | None = None) -> int:
        """Open a tab, make it current, optionally navigate. Returns its index."""
        page = await self.context.new_page()
        self._page = page
        if url:
            await self.navigate(url)
        return self.context.pages.index(page)

    async def select_tab(self, index: int) -> None:
        pages = self.context.pages
        if index < 0 or index >= len(pages):
            raise TabError(f"Tab {index} not found ({len(pages)} open)", index=index, tab_count=len(pages))
        self._page = pages[index]
        await self._page.bring_to_front()


@asynccontextmanager
async def create_session(config: BrowserConfig | None = None) -> AsyncGenerator[BrowserSession, None]:
    """Start a session for the duration of the ``async with`` block."""
    session = BrowserSession(config)
    await session.start()
    try:
        yield session
    finally:
        await session.stop()
