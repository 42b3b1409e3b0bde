"""
Tracking of the saga's fire-and-forget work.

Status actions issue adapter calls, tracking loops and compensation runs
as asyncio tasks without awaiting them. ``SagaTasks`` keeps hold of those
tasks so a test or a shutdown can wait for the saga to go quiet.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class SagaTasks:
    """
    Set of running background tasks.

    A task that fails is logged at ERROR with its traceback; nothing else
    observes its exception.
    """

    def __init__(self) -> None:
        self._running: set[asyncio.Task[Any]] = set()

    def submit(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._running.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._running.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        logger.error(
            "Saga task %s failed: %s",
            task.get_name(),
            task.exception(),
            exc_info=task.exception(),
            extra={"task_name": task.get_name()},
        )

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._running if not task.done())

    @property
    def has_pending(self) -> bool:
        return self.pending_count > 0

    async def drain(self, timeout: float | None = None) -> int:
        """
        Wait until no task is running, including tasks submitted by the
        tasks being waited on.

        Tasks still running when ``timeout`` expires are cancelled.

        Returns:
            Number of tasks waited on
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        seen: set[asyncio.Task[Any]] = set()
        while waiting := {task for task in self._running if not task.done()}:
            seen |= waiting
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            _, late = await asyncio.wait(waiting, timeout=remaining)
            if late:
                logger.warning("%d saga task(s) still running after %ss", len(late), timeout)
                await self._cancel(late)
                break
        return len(seen)

    def cancel_all(self) -> int:
        """Cancel every running task without waiting; returns how many."""
        running = [task for task in self._running if not task.done()]
        for task in running:
            task.cancel()
        return len(running)

    @staticmethod
    async def _cancel(tasks: set[asyncio.Task[Any]]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def __repr__(self) -> str:
        return f"SagaTasks(pending={self.pending_count})"


__all__ = ["SagaTasks"]
