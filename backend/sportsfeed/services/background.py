"""Detached persistence tasks started from the read path.

Tasks are not awaited by the request that started them and are not cancelled
when it finishes. Failures are logged and discarded. There is no queue and no
backpressure: under sustained load every cache miss starts another write.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundSyncRunner:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def fire_and_forget(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=description)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background sync cancelled: task=%s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background sync failed: task=%s", task.get_name(), exc_info=exc)
            return
        logger.debug("background sync finished: task=%s result=%s", task.get_name(), task.result())

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks (shutdown and tests)."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("background syncs still running at drain timeout: count=%s", len(pending))
