"""Browser and Electron connection strategies.

Each strategy starts patchright, obtains a browser context and a first page,
and wraps them in a ``Session`` carrying the provenance flag that decides
how the browser is torn down on shutdown.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from patchright.async_api import async_playwright

from ghast_ctl.config import DaemonConfig
from ghast_ctl.session import Session
from ghast_ctl.stealth import (
    STEALTH_IGNORED_ARGS,
    STEALTH_USER_AGENT,
    install_stealth,
)
from ghast_ctl.utils import (
    find_available_port,
    kill_app,
    launch_electron_app,
    wait_for_cdp,
)

logger = logging.getLogger("ghast_ctl.browser")

_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--test-type",  # hides the banner the previous flag would show
    "--window-size=1920,1080",
    "--enable-webgl",
    "--lang=en-US,en",
]


def _launch_options(config: DaemonConfig) -> dict[str, Any]:
    bcfg = config.browser
    args = list(_LAUNCH_ARGS)
    for arg in bcfg.args:
        if arg not in args:
            args.append(arg)
    opts: dict[str, Any] = {
        "headless": bcfg.headless,
        "args": args,
        "ignore_default_args": list(STEALTH_IGNORED_ARGS),
        # Suppress "Google API keys are missing" infobar.  The env param
        # replaces the process environment, so merge into a copy of it.
        "env": {
            **os.environ,
            "GOOGLE_API_KEY": os.environ.get("GOOGLE_API_KEY", "no"),
            "GOOGLE_DEFAULT_CLIENT_ID": os.environ.get(
                "GOOGLE_DEFAULT_CLIENT_ID", "no"
            ),
        },
    }
    if bcfg.executable_path:
        opts["executable_path"] = bcfg.executable_path
    return opts


async def _first_page(context: Any) -> Any:
    if context.pages:
        return context.pages[0]
    return await context.new_page()


async def _attach_over_cdp(
    playwright: Any, port: int, config: DaemonConfig
) -> tuple[Any, Any, Any]:
    browser = await playwright.chromium.connect_over_cdp(
        f"http://127.0.0.1:{port}", timeout=config.timeouts.cdp
    )
    if browser.contexts:
        context = browser.contexts[0]
    else:
        context = await browser.new_context(no_viewport=True)
    if config.browser.stealth:
        logger.warning(
            "Stealth user agent is unavailable on an attached browser; "
            "JS evasions will still be injected."
        )
        await install_stealth(context)
    return browser, context, await _first_page(context)


async def launch_browser(config: DaemonConfig) -> Session:
    """Launch a fresh Chromium that this process owns."""
    playwright = await async_playwright().start()
    browser = await playwright.chromium.launch(**_launch_options(config))
    context_opts: dict[str, Any] = {"no_viewport": True}
    if config.browser.stealth:
        context_opts["user_agent"] = STEALTH_USER_AGENT
    context = await browser.new_context(**context_opts)
    if config.browser.stealth:
        await install_stealth(context)
    page = await _first_page(context)
    logger.info(f"Launched browser (headless={config.browser.headless})")
    return Session(browser, context, page, was_connected=False, playwright=playwright)


async def connect_to_port(port: int, config: DaemonConfig) -> Session:
    """Attach to a browser already listening for CDP on *port*."""
    playwright = await async_playwright().start()
    browser, context, page = await _attach_over_cdp(playwright, port, config)
    logger.info(f"Connected to existing browser on CDP port {port}")
    return Session(browser, context, page, was_connected=True, playwright=playwright)


async def connect_to_electron(app_path: str, config: DaemonConfig) -> Session:
    """Restart the Electron app at *app_path* with CDP enabled and attach to it."""
    await kill_app(app_path)
    cdp_port = find_available_port()
    await launch_electron_app(app_path, cdp_port)
    await wait_for_cdp(cdp_port, timeout=config.timeouts.cdp / 1000)

    playwright = await async_playwright().start()
    browser, context, page = await _attach_over_cdp(playwright, cdp_port, config)
    logger.info(f"Connected to Electron app {app_path} on CDP port {cdp_port}")
    return Session(
        browser,
        context,
        page,
        was_connected=False,
        playwright=playwright,
        app_path=app_path,
    )


async def open_session(config: DaemonConfig) -> Session:
    """Choose a connection strategy from *config*.

    An explicit CDP port wins over an Electron app, which wins over a fresh
    launch.
    """
    bcfg = config.browser
    if bcfg.cdp_port is not None:
        return await connect_to_port(bcfg.cdp_port, config)
    if bcfg.electron_app:
        return await connect_to_electron(bcfg.electron_app, config)
    return await launch_browser(config)
