import asyncio
import logging
from typing import Coroutine

logger = logging.getLogger(__name__)


class PendingTasks:
    """Fire-and-forget work started from change listeners.

    Listeners run inside the publisher's call, so anything touching the
    database is scheduled here instead of awaited inline.
    """

    def __init__(self, name: str):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"{self.name} background task failed: {exc!r}")

    async def wait(self):
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self):
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def __len__(self):
        return len(self._tasks)
