"""Shared fixtures for ghast-ctl tests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ghast_ctl.config import DaemonConfig, ServerConfig, TimeoutsConfig
from ghast_ctl.dispatcher import CommandDispatcher
from ghast_ctl.service import CommandService
from ghast_ctl.session import Session


def make_page(url: str = "https://example.com", title: str = "Example") -> MagicMock:
    """A MagicMock standing in for a Playwright Page."""
    page = MagicMock()
    page.url = url
    page.main_frame = MagicMock()
    page.title = AsyncMock(return_value=title)
    page.goto = AsyncMock(return_value=MagicMock(status=200))
    page.go_back = AsyncMock()
    page.go_forward = AsyncMock()
    page.reload = AsyncMock()
    page.evaluate = AsyncMock(return_value=None)
    page.content = AsyncMock(return_value="<html><body>hi</body></html>")
    page.screenshot = AsyncMock(return_value=b"\x89PNG\r\n\x1a\nfake")
    page.wait_for_selector = AsyncMock()
    page.wait_for_event = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.close = AsyncMock()
    page.bring_to_front = AsyncMock()

    # Keyboard
    page.keyboard = MagicMock()
    page.keyboard.press = AsyncMock()

    # Locator
    locator = MagicMock()
    locator.first = locator
    locator.click = AsyncMock()
    locator.hover = AsyncMock()
    locator.press_sequentially = AsyncMock()
    locator.select_option = AsyncMock(return_value=["red"])
    page.locator = MagicMock(return_value=locator)

    return page


@pytest.fixture
def default_config():
    """A DaemonConfig with short waits so tests run quickly."""
    return DaemonConfig(
        timeouts=TimeoutsConfig(settle=50, force_grace=10, wait=10),
        server=ServerConfig(shutdown_grace=0),
    )


@pytest.fixture
def config_file(tmp_path):
    """Write a config JSON file and return its path."""
    config = {
        "browser": {"headless": True, "stealth": True},
        "timeouts": {"navigation": 15000},
        "allow_eval": False,
    }
    path = tmp_path / "test-config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


@pytest.fixture
def mock_page():
    return make_page()


@pytest.fixture
def mock_context(mock_page):
    """A MagicMock standing in for a Playwright BrowserContext."""
    ctx = MagicMock()
    ctx.pages = [mock_page]

    async def _new_page():
        page = make_page(url="about:blank", title="")
        ctx.pages.append(page)
        return page

    ctx.new_page = AsyncMock(side_effect=_new_page)
    ctx.new_context = AsyncMock()
    ctx.cookies = AsyncMock(return_value=[])
    ctx.route = AsyncMock()
    ctx.close = AsyncMock()
    return ctx


@pytest.fixture
def mock_browser(mock_context):
    """A MagicMock standing in for a Playwright Browser."""
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=mock_context)
    browser.contexts = [mock_context]
    browser.close = AsyncMock()
    browser.is_connected = MagicMock(return_value=True)
    return browser


@pytest.fixture
def mock_playwright():
    pw = MagicMock()
    pw.stop = AsyncMock()
    return pw


@pytest.fixture
def session(mock_browser, mock_context, mock_page, mock_playwright):
    """A launched-browser Session with mocked Playwright objects pre-wired."""
    return Session(
        mock_browser,
        mock_context,
        mock_page,
        was_connected=False,
        playwright=mock_playwright,
    )


@pytest.fixture
def dispatcher(default_config):
    return CommandDispatcher(default_config)


@pytest.fixture
def service(session, default_config):
    return CommandService(session, default_config)


@pytest.fixture
def page_factory():
    """Build extra mock pages, e.g. for tab tests."""
    return make_page
