"""Tests for ghast_ctl.serializer module."""

from __future__ import annotations

import asyncio

from ghast_ctl.serializer import ExecutionSerializer


class TestExecutionSerializer:
    async def test_hold_locks_and_releases(self):
        serializer = ExecutionSerializer()
        assert serializer.locked is False
        async with serializer.hold():
            assert serializer.locked is True
        assert serializer.locked is False

    async def test_released_on_exception(self):
        serializer = ExecutionSerializer()
        try:
            async with serializer.hold():
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert serializer.locked is False

    async def test_bodies_never_overlap(self):
        serializer = ExecutionSerializer()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with serializer.hold():
                events.append(f"start {name}")
                await asyncio.sleep(0.01)
                events.append(f"end {name}")

        await asyncio.gather(*(worker(str(i)) for i in range(5)))
        for i in range(0, len(events), 2):
            assert events[i].startswith("start")
            assert events[i + 1] == "end" + events[i][len("start"):]

    async def test_waiting_counts_blocked_callers(self):
        serializer = ExecutionSerializer()
        await serializer.acquire()
        waiter = asyncio.ensure_future(serializer.acquire())
        await asyncio.sleep(0)
        assert serializer.waiting == 1
        serializer.release()
        await waiter
        assert serializer.waiting == 0
        assert serializer.locked is True
        serializer.release()
