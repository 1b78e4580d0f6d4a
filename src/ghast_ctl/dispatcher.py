"""Maps each command verb to one operation on the active browser tab.

Every handler takes the ``Session`` and the parsed ``Command`` and returns a
``CommandResult``.  ``CommandDispatcher.execute`` never raises: timeouts,
protocol errors and bad arguments all come back as failed results.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable

from fastapi.encoders import jsonable_encoder

from ghast_ctl.commands import (
    Command,
    CommandError,
    CommandResult,
    ContentKind,
    Verb,
)
from ghast_ctl.config import DaemonConfig
from ghast_ctl.session import Session

logger = logging.getLogger("ghast_ctl.dispatcher")

Handler = Callable[[Session, Command], Awaitable[CommandResult]]

TYPE_DELAY_MS = 50

# ---------------------------------------------------------------------------
# In-page scripts
# ---------------------------------------------------------------------------

_BODY_TEXT_JS = "() => document.body.innerText"

_STOP_LOADING_JS = "() => window.stop()"

_SCROLL_BY_JS = "(dy) => window.scrollBy(0, dy)"

_SCROLL_TOP_JS = "() => window.scrollTo(0, 0)"

_SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"

_SCROLL_INTO_VIEW_JS = """
(sel) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    el.scrollIntoView({ behavior: 'smooth', block: 'center' });
    return true;
}
"""

_LINKS_JS = """
() => Array.from(document.querySelectorAll('a[href]')).map(a => ({
    text: (a.innerText || '').trim().substring(0, 100),
    href: a.href,
    isVisible: a.offsetParent !== null
}))
"""

_BUTTONS_JS = """
() => Array.from(document.querySelectorAll(
    'button, input[type="submit"], input[type="button"], [role="button"]'
)).map(b => ({
    tagName: b.tagName.toLowerCase(),
    text: (b.innerText || '').trim() || b.value || '',
    type: b.type || null,
    disabled: !!b.disabled,
    isVisible: b.offsetParent !== null
}))
"""

_INPUTS_JS = """
() => Array.from(document.querySelectorAll('input, textarea, select')).map(i => ({
    tagName: i.tagName.toLowerCase(),
    type: i.type || null,
    name: i.name || null,
    id: i.id || null,
    placeholder: i.placeholder || null,
    value: i.value || null,
    required: !!i.required,
    disabled: !!i.disabled,
    isVisible: i.offsetParent !== null
}))
"""

_FORMS_JS = """
() => Array.from(document.querySelectorAll('form')).map(f => ({
    id: f.id || null,
    action: f.action || null,
    method: f.method || 'get',
    inputs: Array.from(f.querySelectorAll('input, textarea, select')).map(i => ({
        tagName: i.tagName.toLowerCase(),
        type: i.type,
        name: i.name,
        id: i.id,
        required: !!i.required
    }))
}))
"""

# Selector priority: #id, then .firstClass, then tag:nth-of-type(n) where n
# is the element's position among same-tag siblings.
_INTERACTIVE_JS = """
() => {
    const els = document.querySelectorAll(
        'a, button, input, textarea, select, [onclick], [role="button"], [role="link"], [tabindex]'
    );
    const selectorFor = (el) => {
        const tag = el.tagName.toLowerCase();
        if (el.id) return '#' + CSS.escape(el.id);
        if (el.classList && el.classList.length) return '.' + CSS.escape(el.classList[0]);
        let n = 1;
        for (let s = el.previousElementSibling; s; s = s.previousElementSibling) {
            if (s.tagName === el.tagName) n++;
        }
        return tag + ':nth-of-type(' + n + ')';
    };
    return Array.from(els)
        .filter(el => el.offsetParent !== null)
        .map((el, index) => {
            const rect = el.getBoundingClientRect();
            return {
                index,
                tagName: el.tagName.toLowerCase(),
                type: el.type || el.getAttribute('role') || null,
                id: el.id || null,
                text: (el.innerText || el.value || el.placeholder || '').substring(0, 100).trim(),
                href: el.href || null,
                selector: selectorFor(el),
                position: { x: rect.x, y: rect.y, width: rect.width, height: rect.height }
            };
        });
}
"""


def _consume_outcome(task: asyncio.Future) -> None:
    """Retrieve a background task's outcome so it is never reported as lost."""
    if not task.cancelled():
        task.exception()


def _json_safe(value: Any) -> Any:
    """Coerce an evaluate() result to what JSON.stringify would produce.

    Dates become ISO strings; NaN and the infinities become null.
    """
    return _drop_non_finite(jsonable_encoder(value))


def _drop_non_finite(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _drop_non_finite(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_drop_non_finite(v) for v in value]
    return value


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        return type(exc).__name__
    # Playwright appends a multi-line call log; the first part is the error.
    return message.split("\nCall log:", 1)[0].strip()


class CommandDispatcher:
    """Executes parsed commands against a ``Session``."""

    def __init__(self, config: DaemonConfig) -> None:
        self.config = config
        self.timeouts = config.timeouts
        self.limits = config.limits
        self._handlers: dict[Verb, Handler] = {
            Verb.NAVIGATE: self.cmd_navigate,
            Verb.NAVIGATE_FORCE: self.cmd_navigate_force,
            Verb.BACK: self.cmd_back,
            Verb.FORWARD: self.cmd_forward,
            Verb.REFRESH: self.cmd_refresh,
            Verb.CLICK: self.cmd_click,
            Verb.TYPE: self.cmd_type,
            Verb.CLEAR_AND_TYPE: self.cmd_clear_and_type,
            Verb.PRESS: self.cmd_press,
            Verb.SELECT: self.cmd_select,
            Verb.HOVER: self.cmd_hover,
            Verb.SCROLL: self.cmd_scroll,
            Verb.WAIT: self.cmd_wait,
            Verb.WAIT_FOR: self.cmd_wait_for,
            Verb.INFO: self.cmd_info,
            Verb.TEXT: self.cmd_text,
            Verb.TEXT_FULL: self.cmd_text_full,
            Verb.HTML: self.cmd_html,
            Verb.HTML_FULL: self.cmd_html_full,
            Verb.LINKS: self.cmd_links,
            Verb.BUTTONS: self.cmd_buttons,
            Verb.INPUTS: self.cmd_inputs,
            Verb.FORMS: self.cmd_forms,
            Verb.INTERACTIVE: self.cmd_interactive,
            Verb.COOKIES: self.cmd_cookies,
            Verb.SCREENSHOT: self.cmd_screenshot,
            Verb.EVAL: self.cmd_eval,
            Verb.TABS: self.cmd_tabs,
            Verb.NEW_TAB: self.cmd_new_tab,
            Verb.SWITCH_TAB: self.cmd_switch_tab,
            Verb.CLOSE_TAB: self.cmd_close_tab,
            Verb.CLOSE_OTHER_TABS: self.cmd_close_other_tabs,
        }
        missing = [v.value for v in Verb if v not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler registered for verbs: {missing}")

    async def execute(self, session: Session, command: Command) -> CommandResult:
        """Run *command* and convert every failure into a failed result."""
        verb = command.verb
        if verb is None:
            return CommandResult.fail(f"Unknown command: {command.name}")
        handler = self._handlers[verb]
        try:
            return await handler(session, command)
        except Exception as exc:
            logger.debug(f"Command {command.text!r} raised {type(exc).__name__}")
            return CommandResult.fail(_error_message(exc))

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _page(session: Session) -> Any:
        page = session.active_page
        if page is None:
            raise CommandError("No active page.")
        return page

    async def _require(self, page: Any, selector: str) -> Any:
        """Wait for *selector* to be attached and return a locator for it."""
        await page.wait_for_selector(
            selector, state="attached", timeout=self.timeouts.action
        )
        return page.locator(selector).first

    async def _settle(self, page: Any) -> None:
        """Wait briefly for a navigation to start and reach network idle."""

        async def _navigated() -> None:
            await page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
            )
            await page.wait_for_load_state("networkidle")

        try:
            await asyncio.wait_for(_navigated(), timeout=self.timeouts.settle / 1000)
        except Exception:
            pass

    @staticmethod
    def _tab_index(command: Command, count: int) -> int:
        raw = command.arg(0, "index")
        try:
            index = int(raw)
        except ValueError:
            raise CommandError(f"Invalid tab index: {raw}") from None
        if index < 0 or index >= count:
            raise CommandError(f"Invalid tab index: {index}")
        return index

    # -- Navigation ----------------------------------------------------------

    async def cmd_navigate(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        url = command.arg(0, "url")
        response = await page.goto(
            url, wait_until="networkidle", timeout=self.timeouts.navigation
        )
        return CommandResult.ok(
            {"status": response.status if response else None, "url": page.url}
        )

    async def cmd_navigate_force(
        self, session: Session, command: Command
    ) -> CommandResult:
        """Navigate with a soft deadline; on expiry stop the load and report it.

        Never fails on timeout.  A navigation error that happens before the
        deadline is likewise absorbed and the resulting URL reported.
        """
        page = self._page(session)
        url = command.arg(0, "url")
        deadline_ms = command.int_arg(1, self.timeouts.force_navigation)
        grace = self.timeouts.force_grace / 1000

        nav = asyncio.ensure_future(
            page.goto(url, wait_until="domcontentloaded", timeout=deadline_ms + 5000)
        )
        nav.add_done_callback(_consume_outcome)
        done, _ = await asyncio.wait({nav}, timeout=deadline_ms / 1000)
        forced = not done
        if forced:
            logger.info(f"navigate-force deadline of {deadline_ms}ms hit for {url}")
            # Fire and forget: the grace sleep below is the only wait.
            stop = asyncio.ensure_future(page.evaluate(_STOP_LOADING_JS))
            stop.add_done_callback(_consume_outcome)
            nav.cancel()
        await asyncio.sleep(grace)
        return CommandResult.ok({"forced": forced, "url": page.url})

    async def cmd_back(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        await page.go_back(wait_until="networkidle", timeout=self.timeouts.navigation)
        return CommandResult.ok({"url": page.url})

    async def cmd_forward(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        await page.go_forward(
            wait_until="networkidle", timeout=self.timeouts.navigation
        )
        return CommandResult.ok({"url": page.url})

    async def cmd_refresh(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        await page.reload(wait_until="networkidle", timeout=self.timeouts.navigation)
        return CommandResult.ok({"url": page.url})

    # -- Interaction ---------------------------------------------------------

    async def cmd_click(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        locator = await self._require(page, command.arg(0, "selector"))
        # Subscribe before clicking so a navigation the click starts is seen.
        settle = asyncio.ensure_future(self._settle(page))
        try:
            await locator.click(timeout=self.timeouts.action)
        except Exception:
            settle.cancel()
            raise
        await settle
        return CommandResult.ok()

    async def cmd_type(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        locator = await self._require(page, command.arg(0, "selector"))
        text = " ".join(command.args[1:])
        await locator.press_sequentially(text, delay=TYPE_DELAY_MS)
        return CommandResult.ok()

    async def cmd_clear_and_type(
        self, session: Session, command: Command
    ) -> CommandResult:
        page = self._page(session)
        locator = await self._require(page, command.arg(0, "selector"))
        # Best-effort clear: select everything, then delete it.
        await locator.click(click_count=3, timeout=self.timeouts.action)
        await page.keyboard.press("Backspace")
        text = " ".join(command.args[1:])
        await locator.press_sequentially(text, delay=TYPE_DELAY_MS)
        return CommandResult.ok()

    async def cmd_press(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        await page.keyboard.press(command.arg(0, "key"))
        return CommandResult.ok()

    async def cmd_select(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        locator = await self._require(page, command.arg(0, "selector"))
        selected = await locator.select_option(command.arg(1, "value"))
        return CommandResult.ok({"selected": selected})

    async def cmd_hover(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        locator = await self._require(page, command.arg(0, "selector"))
        await locator.hover(timeout=self.timeouts.action)
        return CommandResult.ok()

    async def cmd_scroll(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        direction = command.arg(0, "direction").lower()
        if direction == "down":
            await page.evaluate(_SCROLL_BY_JS, command.int_arg(1, self.limits.scroll))
        elif direction == "up":
            await page.evaluate(_SCROLL_BY_JS, -command.int_arg(1, self.limits.scroll))
        elif direction == "to":
            selector = command.arg(1, "selector")
            if not await page.evaluate(_SCROLL_INTO_VIEW_JS, selector):
                raise CommandError(f"No element matches selector: {selector}")
        elif direction == "bottom":
            await page.evaluate(_SCROLL_BOTTOM_JS)
        elif direction == "top":
            await page.evaluate(_SCROLL_TOP_JS)
        else:
            raise CommandError(
                f"Unknown scroll direction: {direction} "
                "(expected down, up, to, bottom or top)"
            )
        return CommandResult.ok()

    # -- Waiting -------------------------------------------------------------

    async def cmd_wait(self, session: Session, command: Command) -> CommandResult:
        await asyncio.sleep(command.int_arg(0, self.timeouts.wait) / 1000)
        return CommandResult.ok()

    async def cmd_wait_for(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        await page.wait_for_selector(
            command.arg(0, "selector"),
            state="attached",
            timeout=command.int_arg(1, self.timeouts.wait_for),
        )
        return CommandResult.ok()

    # -- Reading -------------------------------------------------------------

    async def cmd_info(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        return CommandResult.ok({"url": page.url, "title": await page.title()})

    async def cmd_text(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        body = await page.evaluate(_BODY_TEXT_JS) or ""
        return CommandResult.ok(
            {"length": len(body), "text": body[: self.limits.text]}
        )

    async def cmd_text_full(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        body = await page.evaluate(_BODY_TEXT_JS) or ""
        return CommandResult.ok({"text": body})

    async def cmd_html(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        content = await page.content()
        return CommandResult(
            success=True,
            data=content[: self.limits.html],
            content_kind=ContentKind.MARKUP,
        )

    async def cmd_html_full(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        return CommandResult(
            success=True, data=await page.content(), content_kind=ContentKind.MARKUP
        )

    async def cmd_links(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        links = await page.evaluate(_LINKS_JS)
        visible = [link for link in links if link.get("isVisible")]
        return CommandResult.ok(
            {"count": len(links), "links": visible[: self.limits.links]}
        )

    async def cmd_buttons(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        return CommandResult.ok(await page.evaluate(_BUTTONS_JS))

    async def cmd_inputs(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        return CommandResult.ok(await page.evaluate(_INPUTS_JS))

    async def cmd_forms(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        return CommandResult.ok(await page.evaluate(_FORMS_JS))

    async def cmd_interactive(
        self, session: Session, command: Command
    ) -> CommandResult:
        page = self._page(session)
        elements = await page.evaluate(_INTERACTIVE_JS)
        return CommandResult.ok(
            {"count": len(elements), "elements": elements[: self.limits.interactive]}
        )

    async def cmd_cookies(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        url = page.url
        # Scope to the active page like a browser would; blank pages get all.
        if url.startswith(("http://", "https://")):
            cookies = await session.context.cookies([url])
        else:
            cookies = await session.context.cookies()
        return CommandResult.ok(cookies)

    # -- Capture -------------------------------------------------------------

    async def cmd_screenshot(self, session: Session, command: Command) -> CommandResult:
        page = self._page(session)
        image = await page.screenshot(full_page="--full" in command.args, type="png")
        return CommandResult(
            success=True, content_kind=ContentKind.IMAGE, binary=image
        )

    # -- Scripting -----------------------------------------------------------

    async def cmd_eval(self, session: Session, command: Command) -> CommandResult:
        """Unrestricted escape hatch: run caller script in the page's main world."""
        if not self.config.allow_eval:
            raise CommandError("eval is disabled by configuration")
        page = self._page(session)
        code = " ".join(command.args)
        if not code.strip():
            raise CommandError("Missing argument: script")
        result = await page.evaluate(code, isolated_context=False)
        return CommandResult.ok({"result": _json_safe(result)})

    # -- Tab management ------------------------------------------------------

    async def cmd_tabs(self, session: Session, command: Command) -> CommandResult:
        pages = session.pages()
        tabs: list[dict[str, Any]] = []
        for i, page in enumerate(pages):
            try:
                title = await page.title()
            except Exception:
                title = ""
            tabs.append(
                {
                    "index": i,
                    "url": page.url,
                    "title": title,
                    "isActive": page is session.active_page,
                }
            )
        return CommandResult.ok({"count": len(pages), "tabs": tabs})

    async def cmd_new_tab(self, session: Session, command: Command) -> CommandResult:
        page = await session.context.new_page()
        return CommandResult.ok({"message": "New tab created", "url": page.url})

    async def cmd_switch_tab(self, session: Session, command: Command) -> CommandResult:
        pages = session.pages()
        index = self._tab_index(command, len(pages))
        await pages[index].bring_to_front()
        return CommandResult.ok({"index": index, "url": pages[index].url})

    async def cmd_close_tab(self, session: Session, command: Command) -> CommandResult:
        pages = session.pages()
        index = self._tab_index(command, len(pages))
        if pages[index] is session.active_page:
            raise CommandError("Cannot close active tab")
        await pages[index].close()
        return CommandResult.ok({"message": f"Closed tab {index}"})

    async def cmd_close_other_tabs(
        self, session: Session, command: Command
    ) -> CommandResult:
        closed = 0
        for page in session.pages():
            if page is session.active_page:
                continue
            try:
                await page.close()
            except Exception as exc:
                logger.debug(f"Ignoring tab close failure: {exc}")
            closed += 1
        return CommandResult.ok({"closed": closed})
