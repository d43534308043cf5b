"""Fire-and-forget dispatch for work that must never block a response."""

from __future__ import annotations

import asyncio
from typing import Awaitable

from loguru import logger


class BackgroundDispatcher:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, work: Awaitable[None], *, description: str) -> asyncio.Task:
        task = asyncio.ensure_future(work)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                logger.warning(f"Background task cancelled: {description}")
                return
            exc = t.exception()
            if exc is not None:
                logger.error(f"Background task failed: {description}: {exc}")

        task.add_done_callback(_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for outstanding work, e.g. on shutdown or in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


background = BackgroundDispatcher()
