"""
Supervised runner for detached background tasks.

asyncio only keeps weak references to tasks, so a fire-and-forget
coroutine can be garbage collected mid-run and its exception is never
seen. The runner holds a reference until the task finishes, logs any
uncaught exception with its traceback, and cancels what is left on
shutdown.
"""
import asyncio
from typing import Any, Coroutine, Dict, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """
    Usage:
        runner = BackgroundTaskRunner()
        runner.spawn("previous-matches-sync", orchestrator.run_sync(lease, 5))
        ...
        await runner.shutdown()
    """

    def __init__(self):
        self._tasks: Dict[asyncio.Task, str] = {}

    @property
    def active(self) -> int:
        return len(self._tasks)

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Schedule `coro` on the running loop and keep it alive until done."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks[task] = name
        task.add_done_callback(self._on_done)
        logger.info(f"Background task started: {name}")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        name = self._tasks.pop(task, task.get_name())
        if task.cancelled():
            logger.warning(f"Background task cancelled: {name}")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task failed: {name}: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            logger.info(f"Background task finished: {name}")

    async def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        """Cancel outstanding tasks and wait (up to `timeout`) for their cleanup."""
        tasks = list(self._tasks)
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} background task(s)")
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks, timeout=timeout)


# Global runner instance
_runner: Optional[BackgroundTaskRunner] = None


def get_task_runner() -> BackgroundTaskRunner:
    """Get the global task runner."""
    global _runner
    if _runner is None:
        _runner = BackgroundTaskRunner()
    return _runner
