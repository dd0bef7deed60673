"""Tracked fire-and-forget tasks.

Persistence writes and notifications run beside the update cycle. The
tracker keeps a reference to each task, logs failures and lets
shutdown wait for whatever is still running.
"""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Set of in-flight tasks that can be drained on shutdown."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def submit(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        """Schedule ``coro`` without waiting for it."""
        task = asyncio.create_task(self._run(coro, label), name=label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], label: str) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.warning("Background task %s failed: %s", label, e)
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight tasks. Returns False if some were cancelled."""
        if not self._tasks:
            return True

        logger.info("Waiting for %d background tasks", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d background tasks after %.1fs", len(pending), timeout)
            await asyncio.gather(*pending, return_exceptions=True)
            return False
        return True
