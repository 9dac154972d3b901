"""Execution context shared by the Finger server and the requests it serves."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class TaskScope:
    """Tracks tasks spawned on behalf of connections.

    The gateway owns a single scope. Connection handlers and the per-item
    fetches of an outbox page are spawned on it, and closing it cancels
    whatever is still running.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, T], name: str | None = None) -> "asyncio.Task[T]":
        """Schedule a coroutine as a tracked task.

        Raises:
            RuntimeError: If the scope has been closed
        """
        if self._closed:
            coro.close()
            raise RuntimeError("Task scope is closed")

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def completed(self, value: T) -> "asyncio.Future[T]":
        """Return a future that already holds ``value``."""
        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        return future

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Task failed",
                task=task.get_name(),
                error=str(error),
                exc_info=error,
            )

    async def close(self) -> None:
        """Stop accepting work and cancel outstanding tasks."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Task scope closed", cancelled=len(tasks))
