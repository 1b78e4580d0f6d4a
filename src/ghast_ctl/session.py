"""Browser session state for the ghast-ctl daemon.

A ``Session`` owns the patchright objects for the single browser this
daemon drives, plus the cached *active page*: the tab every command
targets.  The active page is only ever reassigned by the command service
while it holds the execution lock.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("ghast_ctl.session")


class Session:
    """Holds the browser handle, its context and the active tab."""

    def __init__(
        self,
        browser: Any,
        context: Any,
        page: Any,
        was_connected: bool,
        playwright: Any = None,
        app_path: str | None = None,
    ) -> None:
        self.playwright: Any = playwright
        self.browser: Any = browser
        self.context: Any = context
        self.active_page: Any = page
        # True when attached to a browser we did not launch: shutdown only
        # disconnects.  False when we launched it and therefore close it.
        self.was_connected: bool = was_connected
        self.app_path: str | None = app_path
        self.closed: bool = False

    # -- Tab set -------------------------------------------------------------

    def pages(self) -> list[Any]:
        """Return the open tabs in enumeration order."""
        return list(self.context.pages)

    def active_index(self) -> int | None:
        """Return the index of the active page, or ``None`` if it is gone."""
        for i, page in enumerate(self.pages()):
            if page is self.active_page:
                return i
        return None

    def set_active_page(self, page: Any) -> None:
        self.active_page = page
        logger.debug(f"Active page is now {self._page_url(page)!r}")

    def repair_active_page(self) -> bool:
        """Point the active page back into the tab set if it has left it.

        Falls back to the first remaining tab.  Returns ``True`` when the
        pointer was changed.
        """
        pages = self.pages()
        if not pages or any(p is self.active_page for p in pages):
            return False
        logger.warning("Active page is no longer open, falling back to tab 0")
        self.set_active_page(pages[0])
        return True

    # -- State ---------------------------------------------------------------

    @property
    def current_url(self) -> str:
        return self._page_url(self.active_page)

    @property
    def is_connected(self) -> bool:
        if self.closed or self.browser is None:
            return False
        try:
            return bool(self.browser.is_connected())
        except Exception:
            return False

    @staticmethod
    def _page_url(page: Any) -> str:
        if page is None:
            return ""
        try:
            return page.url
        except Exception:
            return ""

    # -- Lifecycle -----------------------------------------------------------

    async def close(self) -> None:
        """Tear down the browser according to its provenance.

        Attached browsers are only disconnected from; browsers this
        process launched are closed.  Errors during teardown are logged
        and otherwise ignored.
        """
        if self.closed:
            return
        self.closed = True
        try:
            if self.was_connected:
                logger.info("Disconnecting from attached browser")
            else:
                logger.info("Closing launched browser")
                await self.browser.close()
            if self.playwright is not None:
                await self.playwright.stop()
        except Exception:
            logger.exception("Error while tearing down browser")
        if not self.was_connected and self.app_path:
            from ghast_ctl.utils import kill_app

            await kill_app(self.app_path)
