# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the MCP tools and their page-state handling.

Verifies:
1. Snapshots are omitted unless include_snapshot is set (browser_snapshot always includes one)
2. max_tokens / page flow through to the truncation banner on every action tool
3. Generated code section per action
4. Error containment: validation, timeouts, browser death, PageStateError, unexpected errors
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

import pagestate.server as srv
from pagestate.browser_session import DialogInfo, TabInfo
from pagestate.config import ServerConfig
from pagestate.errors import TabError
from tests._snapshot_helpers import make_large_snapshot, make_mock_session, make_snapshot


@pytest.fixture
def session():
    mock = make_mock_session(make_snapshot("Test Page", ['- button "Click me" [ref=e2]']))
    with patch.object(srv, "_get_session", AsyncMock(return_value=mock)):
        yield mock


@pytest.fixture
def large_session(session):
    session.capture_snapshot = AsyncMock(return_value=make_large_snapshot(1000, title="Large Page"))
    return session


# ── include_snapshot ─────────────────────────────────────────────────


class TestOptionalSnapshot:
    async def test_click_without_snapshot(self, session):
        result = await srv.browser_click(element="Click me button", selector='role=button[name="Click me"]')
        assert "await page.getByRole('button', { name: 'Click me' }).click();" in result
        assert "### Page state" not in result
        session.capture_snapshot.assert_not_awaited()

    async def test_click_with_snapshot(self, session):
        result = await srv.browser_click(
            element="Click me button", selector='role=button[name="Click me"]', include_snapshot=True
        )
        assert "### Page state" in result
        assert '- button "Click me"' in result

    async def test_navigate_without_snapshot(self, session):
        result = await srv.browser_navigate(url="http://localhost:8080/")
        assert "await page.goto('http://localhost:8080/');" in result
        assert "### Page state" not in result
        session.navigate.assert_awaited_once_with("http://localhost:8080/")

    async def test_navigate_with_snapshot(self, session):
        session.capture_snapshot = AsyncMock(return_value=make_snapshot("Test Page", ['- heading "Hello World"']))
        result = await srv.browser_navigate(url="http://localhost:8080/", include_snapshot=True)
        assert "Hello World" in result

    async def test_snapshot_always_included(self, session):
        session.capture_snapshot = AsyncMock(return_value=make_snapshot("Test Page", ['- heading "Always Snapshot"']))
        result = await srv.browser_snapshot()
        assert result.startswith("### Page state\n")
        assert "Always Snapshot" in result
        assert "### Ran Playwright code" not in result


# ── max_tokens / page ────────────────────────────────────────────────


class TestMaxTokens:
    @pytest.mark.parametrize(
        ("tool", "kwargs", "budget"),
        [
            ("browser_click", {"element": "Click me", "selector": "text=Click me"}, 100),
            ("browser_navigate", {"url": "http://localhost/"}, 150),
            ("browser_type", {"element": "input", "selector": "input", "text": "Hello World"}, 200),
            ("browser_hover", {"element": "div", "selector": "#hoverable"}, 80),
            ("browser_select_option", {"element": "dropdown", "selector": "select", "values": ["2"]}, 120),
            ("browser_press_key", {"key": "Tab"}, 90),
            ("browser_wait_for", {"text": "Loading..."}, 75),
            ("browser_tab_select", {"index": 0}, 130),
            ("browser_tab_new", {}, 110),
        ],
    )
    async def test_action_respects_max_tokens(self, large_session, tool, kwargs, budget):
        result = await getattr(srv, tool)(**kwargs, include_snapshot=True, max_tokens=budget)
        assert "⚠️ Snapshot Truncated" in result
        assert f"Content exceeds {budget} tokens" in result

    async def test_default_budget_does_not_truncate_medium_page(self, session):
        body = [f'- generic: "Item {i}"' for i in range(500)]
        session.capture_snapshot = AsyncMock(return_value=make_snapshot("Medium Page", body))
        result = await srv.browser_navigate(url="http://localhost/", include_snapshot=True)
        assert "⚠️ Snapshot Truncated" not in result
        assert "Medium Page" in result

    async def test_snapshot_pages(self, large_session):
        page0 = await srv.browser_snapshot(max_tokens=50, page=0)
        page1 = await srv.browser_snapshot(max_tokens=50, page=1)
        for text in (page0, page1):
            assert "⚠️ Snapshot Truncated" in text
            assert "Content exceeds 50 tokens" in text
        assert "Page 1 of" in page0
        assert "Page 2 of" in page1
        total0 = page0.split("Page 1 of ", 1)[1].split(".", 1)[0]
        total1 = page1.split("Page 2 of ", 1)[1].split(".", 1)[0]
        assert total0 == total1

    async def test_snapshot_out_of_range(self, session):
        session.capture_snapshot = AsyncMock(return_value="Small content")
        result = await srv.browser_snapshot(max_tokens=1000, page=10)
        assert "Error: Page 10 out of range" in result

    async def test_snapshot_invalid_budget(self, session):
        result = await srv.browser_snapshot(max_tokens=0)
        assert "Error: Invalid pagination parameter: max_tokens must be positive" in result

    async def test_snapshot_negative_page(self, session):
        result = await srv.browser_snapshot(page=-1)
        assert "page must be non-negative" in result

    async def test_configured_default_budget(self, large_session, monkeypatch):
        monkeypatch.setattr(srv, "_config", ServerConfig(default_max_tokens=300))
        result = await srv.browser_snapshot()
        assert "Content exceeds 300 tokens" in result

    async def test_navigate_back_returns_to_small_page(self, session):
        session.capture_snapshot = AsyncMock(return_value=make_snapshot("Page 1", ['- link "Go to page 2"']))
        result = await srv.browser_navigate_back(include_snapshot=True, max_tokens=110)
        assert "await page.goBack();" in result
        assert "Page 1" in result
        assert "⚠️ Snapshot Truncated" not in result


# ── Generated code / results ─────────────────────────────────────────


class TestActions:
    async def test_type_with_submit(self, session):
        result = await srv.browser_type(element="search", selector="#q", text="it's", submit=True)
        assert "await page.locator('#q').fill('it\\'s');" in result
        assert "await page.locator('#q').press('Enter');" in result
        session.type_text.assert_awaited_once_with("#q", "it's", submit=True)

    async def test_double_click(self, session):
        result = await srv.browser_click(element="row", selector="tr >> nth=0", double_click=True)
        assert ".dblclick();" in result
        session.click.assert_awaited_once_with("tr >> nth=0", double=True)

    async def test_select_multiple_values(self, session):
        result = await srv.browser_select_option(element="colors", selector="#c", values=["red", "blue"])
        assert "selectOption(['red', 'blue']);" in result

    async def test_select_requires_values(self, session):
        result = await srv.browser_select_option(element="colors", selector="#c", values=[])
        assert result.startswith("Error:")
        session.select_option.assert_not_awaited()

    async def test_press_key(self, session):
        result = await srv.browser_press_key(key="Tab")
        assert "await page.keyboard.press('Tab');" in result
        session.press_key.assert_awaited_once_with("Tab")

    async def test_wait_for_requires_condition(self, session):
        result = await srv.browser_wait_for()
        assert result.startswith("Error: Specify at least one")
        session.wait_for.assert_not_awaited()

    async def test_wait_for_text(self, session):
        result = await srv.browser_wait_for(text="Loading...")
        assert "### Result\nWaited for text \"Loading...\" to appear." in result
        session.wait_for.assert_awaited_once_with(seconds=None, text="Loading...", text_gone=None)

    async def test_navigate_back_without_history(self, session):
        session.go_back = AsyncMock(return_value=None)
        result = await srv.browser_navigate_back()
        assert "No previous page in browser history." in result

    async def test_http_error_status_warning(self, session):
        session.navigate = AsyncMock(return_value=404)
        result = await srv.browser_navigate(url="http://localhost/missing")
        assert "HTTP 404" in result

    async def test_tab_list(self, session):
        session.list_tabs = AsyncMock(
            return_value=[
                TabInfo(index=0, url="http://localhost/", title="Tab Test", current=False),
                TabInfo(index=1, url="about:blank", title="", current=True),
            ]
        )
        result = await srv.browser_tab_list()
        assert "- 0: [Tab Test] (http://localhost/)" in result
        assert "- 1: (current) [] (about:blank)" in result

    async def test_dialog_warnings_in_result(self, session):
        session.drain_dialogs.return_value = [DialogInfo("confirm", "Are you sure?", dismissed=True)]
        result = await srv.browser_click(element="Delete", selector="text=Delete")
        assert 'JS confirm dialog dismissed: "Are you sure?"' in result

    async def test_close(self, monkeypatch):
        cleanup = AsyncMock()
        monkeypatch.setattr(srv._state, "cleanup_session", cleanup)
        result = await srv.browser_close()
        cleanup.assert_awaited_once()
        assert "Browser closed." in result


# ── Error containment ────────────────────────────────────────────────


class TestErrors:
    @pytest.mark.parametrize("url", ["file:///etc/passwd", "javascript:alert(1)", "ftp://example.com/", "http://"])
    async def test_rejected_urls(self, session, url):
        result = await srv.browser_navigate(url=url)
        assert result.startswith("Error:")
        session.navigate.assert_not_awaited()

    async def test_type_text_too_long(self, session):
        result = await srv.browser_type(element="input", selector="input", text="x" * 1001)
        assert result.startswith("Error: Text too long")

    async def test_tab_error_message(self, session):
        session.select_tab = AsyncMock(side_effect=TabError("Tab 5 not found (1 open)", index=5, tab_count=1))
        result = await srv.browser_tab_select(index=5)
        assert result == "Error: Tab 5 not found (1 open)"

    async def test_unexpected_error_sanitized(self, session):
        session.click = AsyncMock(side_effect=ValueError("locator resolved to 3 elements\nCall log: ..."))
        result = await srv.browser_click(element="item", selector=".item")
        assert result.startswith("Error: browser_click failed: locator resolved to 3 elements")
        assert "Call log" not in result
        assert srv._RECOVERY_HINTS["browser_click"] in result

    async def test_browser_dead_resets_session(self, session, monkeypatch):
        cleanup = AsyncMock()
        monkeypatch.setattr(srv._state, "cleanup_session", cleanup)
        session.press_key = AsyncMock(side_effect=Exception("Target page, context or browser has been closed"))
        result = await srv.browser_press_key(key="Enter")
        assert "Browser connection lost" in result
        cleanup.assert_awaited_once()

    async def test_action_timeout(self, session, monkeypatch):
        monkeypatch.setattr(srv, "_config", ServerConfig(action_timeout=0.05))

        async def _slow(*args, **kwargs):
            await asyncio.sleep(5)

        session.hover = AsyncMock(side_effect=_slow)
        result = await srv.browser_hover(element="menu", selector="#menu")
        assert result.startswith("Error: browser_hover timed out")

    async def test_lock_released_after_error(self, session):
        session.click = AsyncMock(side_effect=RuntimeError("boom"))
        await srv.browser_click(element="x", selector="#x")
        assert not srv._state.tool_lock.locked()

    async def test_server_busy(self, session, monkeypatch):
        monkeypatch.setattr(srv, "_TOOL_LOCK_TIMEOUT", 0.05)
        await srv._state.tool_lock.acquire()
        try:
            result = await srv.browser_snapshot()
        finally:
            srv._state.tool_lock.release()
        assert result.startswith("Error: Server busy")


def test_js_string_escaping():
    assert srv._js_string("plain") == "'plain'"
    assert srv._js_string("it's") == "'it\\'s'"
    assert srv._js_string("a\\b") == "'a\\\\b'"
    assert srv._js_string("line1\nline2") == "'line1\\nline2'"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("a\r\nb", "'a\\r\\nb'"),
        ("para\u2028sep", "'para\\u2028sep'"),
        ("line\u2029sep", "'line\\u2029sep'"),
    ],
)
def test_js_string_line_terminators(value, expected):
    literal = srv._js_string(value)
    assert literal == expected
    assert not any(ch in literal for ch in "\r\n\u2028\u2029")


@pytest.mark.parametrize(
    ("selector", "expected"),
    [
        ('role=button[name="Click me"]', "page.getByRole('button', { name: 'Click me' })"),
        ("role=link[name='Home']", "page.getByRole('link', { name: 'Home' })"),
        ("role=textbox", "page.getByRole('textbox')"),
        ("text=Sign in", "page.getByText('Sign in')"),
        ("#submit", "page.locator('#submit')"),
        ("role=button >> nth=1", "page.locator('role=button >> nth=1')"),
    ],
)
def test_locator_code(selector, expected):
    assert srv._locator_code(selector) == expected


async def test_env_default_budget_of_zero_keeps_snapshots_working(large_session, monkeypatch):
    from pagestate.config import parse_server_args

    monkeypatch.setenv("PAGESTATE_DEFAULT_MAX_TOKENS", "0")
    monkeypatch.setattr(srv, "_config", parse_server_args([]))
    result = await srv.browser_snapshot()
    assert "Invalid pagination parameter" not in result
    assert "Large Page" in result


def test_validate_url():
    assert srv._validate_url("https://example.com/path") is None
    assert srv._validate_url("http://localhost:3000") is None
    assert "not allowed" in srv._validate_url("chrome://settings")
