"""Single-writer execution lock for browser commands."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger("ghast_ctl.serializer")


class ExecutionSerializer:
    """Guarantees at most one command runs against the browser at a time.

    Not re-entrant: a holder that tries to acquire again deadlocks.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._waiting = 0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def waiting(self) -> int:
        """Number of callers currently blocked in ``acquire``."""
        return self._waiting

    async def acquire(self) -> None:
        if self._lock.locked():
            logger.debug(f"Execution busy, {self._waiting + 1} caller(s) queued")
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1

    def release(self) -> None:
        self._lock.release()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Hold the lock for the body of an ``async with`` block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()
