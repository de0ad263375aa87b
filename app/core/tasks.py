"""
Fire-and-forget side effects.

Telegram alerts and push notifications triggered by a request must never
block or fail that request. Every such coroutine goes through the
BackgroundDispatcher, which keeps a reference to the task until it finishes,
logs its failure, and lets the app lifespan drain what is still running at
shutdown.
"""
import asyncio
import logging
from typing import Coroutine

logger = logging.getLogger(__name__)


class BackgroundDispatcher:

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str = "background") -> asyncio.Task | None:
        """Schedule coro without awaiting it.

        Outside a running event loop (sync route handlers run in a worker
        thread) the coroutine is run to completion right here instead.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                asyncio.run(coro)
            except Exception as e:
                logger.warning(f"Background job '{name}' failed: {e}")
            return None

        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Background job '{task.get_name()}' cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background job '{task.get_name()}' failed: {exc!r}")

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for outstanding jobs; cancel whatever outlives the timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info(f"Draining {len(tasks)} background job(s)")
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
