"""Integration tests that run commands against a real headless Chromium."""

from __future__ import annotations

import time

import pytest

pytestmark = pytest.mark.integration


async def test_navigate_and_read(html_service) -> None:
    result = await html_service.run("info")
    assert result.data["title"] == "Fixture"

    result = await html_service.run("text")
    assert result.data["length"] > 9000
    assert len(result.data["text"]) == 8000

    entry = html_service.history.get_all()[0]
    assert entry.url_before == "about:blank"
    assert entry.url_after.startswith("data:text/html")


async def test_interaction(html_service) -> None:
    assert (await html_service.run('type "#username" hello there')).success
    value = await html_service.run("eval document.querySelector('#username').value")
    assert value.data == {"result": "hello there"}

    assert (await html_service.run("click #go")).success
    assert (await html_service.run("info")).data["title"] == "clicked"

    result = await html_service.run("select #color blue")
    assert result.data == {"selected": ["blue"]}


async def test_missing_selector_fails_fast(html_service, integration_config) -> None:
    integration_config.timeouts.action = 300
    result = await html_service.run("click #does-not-exist")
    assert result.success is False
    assert "300ms" in result.error


async def test_navigate_force_stops_hanging_load(real_service, hanging_server) -> None:
    started = time.monotonic()
    result = await real_service.run(f"navigate-force {hanging_server} 100")
    elapsed = time.monotonic() - started
    assert result.success is True
    assert result.data["forced"] is True
    assert elapsed < 0.75


async def test_screenshot_is_png(html_service) -> None:
    result = await html_service.run("screenshot")
    assert result.binary[:8] == b"\x89PNG\r\n\x1a\n"
    assert html_service.history.get_all()[-1].result == "[binary image]"


async def test_tab_lifecycle(real_service, real_session) -> None:
    await real_service.run("new-tab")
    assert real_session.active_index() == 1

    await real_service.run("switch-tab 0")
    assert real_session.active_index() == 0

    result = await real_service.run("close-other-tabs")
    assert result.data == {"closed": 1}
    assert len(real_session.pages()) == 1
