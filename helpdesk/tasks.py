"""Detached post-commit work."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Start coroutines without awaiting them and keep them referenced until done."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, name: str, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task[Any]:
        async def runner() -> Any:
            return await factory()

        task = asyncio.create_task(runner(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Scheduled background task %s", name)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every scheduled task, including ones scheduled while waiting."""

        while self._tasks:
            pending = list(self._tasks)
            done, not_done = await asyncio.wait(pending, timeout=timeout)
            self._tasks.difference_update(done)
            if not_done:
                logger.warning("%d background tasks still running after %.1fs", len(not_done), timeout or 0.0)
                return
