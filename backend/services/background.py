"""
Fire-and-forget background work.

spawn() schedules a coroutine on the running loop and returns immediately.
The runner keeps a strong reference to every task until it finishes (the
event loop only holds weak ones) and routes any exception to an error sink,
so a failing task can never reach the request that spawned it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from errors import BackgroundTaskError, log_error

logger = logging.getLogger(__name__)

ErrorSink = Callable[[str, BaseException], None]


def log_error_sink(name: str, error: BaseException) -> None:
    """Default sink: log and move on."""
    if not isinstance(error, BackgroundTaskError):
        error = BackgroundTaskError(f"Background task '{name}' failed", details=str(error), task=name)
    log_error(logger, error, context="background", include_traceback=False)


class BackgroundTasks:
    """Spawner for fire-and-forget coroutines with an error sink."""

    def __init__(self, error_sink: Optional[ErrorSink] = None):
        self._error_sink = error_sink or log_error_sink
        self._tasks: Dict[asyncio.Task, str] = {}
        self.spawned: List[str] = []

    def spawn(self, name: str, coro: Awaitable) -> asyncio.Task:
        """Schedule ``coro`` without awaiting it."""
        task = asyncio.ensure_future(coro)
        self._tasks[task] = name
        self.spawned.append(name)
        task.add_done_callback(self._on_done)
        logger.debug(f"Spawned background task {name}")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        name = self._tasks.pop(task, "unknown")
        if task.cancelled():
            logger.debug(f"Background task {name} cancelled")
            return
        error = task.exception()
        if error is not None:
            try:
                self._error_sink(name, error)
            except Exception as sink_error:
                logger.error(f"Error sink failed for {name}: {sink_error}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks (shutdown, tests). Cancels stragglers after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.wait(not_done)
            logger.warning(f"Cancelled {len(not_done)} background task(s) on drain")
