"""Shared fixtures for ghast-ctl integration tests.

These fixtures launch a real headless Chromium via patchright. Every test
gets a fresh browser (function-scoped); tests are skipped when no browser
can be launched on this machine.
"""

from __future__ import annotations

import asyncio
import urllib.parse

import pytest

from ghast_ctl.browser import launch_browser
from ghast_ctl.config import BrowserConfig, DaemonConfig, ServerConfig
from ghast_ctl.service import CommandService
from ghast_ctl.session import Session

# ---------------------------------------------------------------------------
# Test HTML page served via data: URL (no external HTTP server needed)
# ---------------------------------------------------------------------------

TEST_HTML = "data:text/html," + urllib.parse.quote(
    """<html><head><title>Fixture</title></head><body>
<h1>Test Page</h1>
<p id="long">"""
    + "x" * 9000
    + """</p>
<a href="https://example.com" id="link1">Example Link</a>
<form id="login">
  <input type="text" name="username" id="username" placeholder="Enter username">
  <button type="button" id="go" onclick="document.title = 'clicked'">Go</button>
</form>
<select id="color"><option value="red">Red</option><option value="blue">Blue</option></select>
</body></html>"""
)


@pytest.fixture
def integration_config() -> DaemonConfig:
    """DaemonConfig for a headless Chromium with quick shutdown."""
    return DaemonConfig(
        browser=BrowserConfig(headless=True),
        server=ServerConfig(shutdown_grace=0),
    )


@pytest.fixture
async def real_session(integration_config: DaemonConfig) -> Session:
    """Launch a real headless browser, yield its Session, clean up."""
    try:
        session = await launch_browser(integration_config)
    except Exception as e:
        pytest.skip(f"Cannot launch a browser here: {e}")
    try:
        yield session  # type: ignore[misc]
    finally:
        await session.close()


@pytest.fixture
def real_service(real_session: Session, integration_config: DaemonConfig):
    return CommandService(real_session, integration_config)


@pytest.fixture
async def hanging_server():
    """A local TCP server that accepts connections and never answers."""
    writers = []

    async def _hold(reader, writer):
        writers.append(writer)
        await reader.read()

    server = await asyncio.start_server(_hold, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}/"
    finally:
        for writer in writers:
            writer.close()
        server.close()


@pytest.fixture
async def html_service(real_service: CommandService) -> CommandService:
    """A service whose active page has been navigated to TEST_HTML."""
    result = await real_service.run(f"navigate {TEST_HTML}")
    assert result.success, result.error
    return real_service
