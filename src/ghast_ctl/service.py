"""Command service: the serialized path every HTTP command takes.

``CommandService.run`` is the only place commands are executed.  Inside a
single ``ExecutionSerializer`` bracket it records the URL before, runs the
dispatcher, moves the active tab for tab-affecting commands, records the
URL after and appends the history entry.  Nothing else touches the
session's active page while a command is running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ghast_ctl.commands import (
    TAB_VERBS,
    Command,
    CommandResult,
    ContentKind,
    Verb,
    parse_command,
)
from ghast_ctl.config import DaemonConfig
from ghast_ctl.dispatcher import CommandDispatcher
from ghast_ctl.history import History
from ghast_ctl.serializer import ExecutionSerializer
from ghast_ctl.session import Session

logger = logging.getLogger("ghast_ctl.service")


class CommandService:
    def __init__(
        self,
        session: Session,
        config: DaemonConfig,
        dispatcher: CommandDispatcher | None = None,
        history: History | None = None,
        serializer: ExecutionSerializer | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.dispatcher = dispatcher or CommandDispatcher(config)
        self.history = history or History()
        self.serializer = serializer or ExecutionSerializer()
        self.shutting_down: bool = False
        self._exit_callback: Callable[[], None] | None = None
        self._shutdown_task: asyncio.Task | None = None

    def set_exit_callback(self, callback: Callable[[], None]) -> None:
        """Register what to call once the browser has been torn down."""
        self._exit_callback = callback

    # -- Command execution ---------------------------------------------------

    async def run(self, text: str) -> CommandResult:
        """Execute the command line *text* atomically and record it."""
        command = parse_command(text)
        logger.debug(f"Received command: {text!r}")
        async with self.serializer.hold():
            url_before = self.session.current_url
            result = await self.dispatcher.execute(self.session, command)
            if command.verb in TAB_VERBS:
                self._update_active_tab(command, result)
            url_after = self.session.current_url
            self.history.record(
                command=text,
                url_before=url_before,
                url_after=url_after,
                result=result.summary(),
                success=result.success,
                is_image=result.content_kind is ContentKind.IMAGE,
            )
        if result.success:
            logger.debug(f"Command {command.name!r} succeeded")
        else:
            logger.warning(f"Command {command.name!r} failed: {result.error}")
        return result

    def _update_active_tab(self, command: Command, result: CommandResult) -> None:
        """Move the cached active page after a tab-affecting command.

        Must be called while the serializer is held.
        """
        pages = self.session.pages()
        if result.success and command.verb is Verb.SWITCH_TAB:
            self.session.set_active_page(pages[result.data["index"]])
        elif result.success and command.verb is Verb.NEW_TAB and pages:
            self.session.set_active_page(pages[-1])
        self.session.repair_active_page()

    # -- Shutdown ------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Schedule teardown; returns immediately so the caller can respond."""
        if self.shutting_down:
            return
        self.shutting_down = True
        logger.info("Shutdown requested")
        self._shutdown_task = asyncio.ensure_future(self._shutdown())

    async def _shutdown(self) -> None:
        # Let the HTTP acknowledgement flush before tearing anything down.
        await asyncio.sleep(self.config.server.shutdown_grace)
        if self.serializer.locked:
            logger.info("Waiting for the in-flight command before shutdown")
        async with self.serializer.hold():
            await self.session.close()
        if self._exit_callback is not None:
            self._exit_callback()
