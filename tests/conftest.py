# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import pagestate  # noqa: F401
except ImportError:
    raise ImportError("pagestate is not installed. Run: pip install -e '.[dev]'") from None

import pytest


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real browser sessions in unit tests.

    Tests that need a session patch ``pagestate.server._get_session`` with a
    mock; that patch takes priority over this fixture. Opt out with
    ``@pytest.mark.allow_real_get_session``.
    """
    if "allow_real_get_session" in request.keywords:
        return

    async def _no_real_session():
        raise RuntimeError(
            "Test tried to create a real browser session. Patch 'pagestate.server._get_session' in your test."
        )

    monkeypatch.setattr("pagestate.server._get_session", _no_real_session)

