"""Detached side effects.

Non-critical work (history append, notification, best-effort persistence)
must never delay or undo a feed decision that was already made.  Such work
is spawned here: tasks are tracked so they are not garbage collected
mid-flight, failures are logged, and shutdown can drain what is pending.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

_logger = logging.getLogger(__name__)


class DetachedEffects:
    """Tracked fire-and-forget tasks with logged failure."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logger or _logger

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule *coro* without awaiting it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._logger.debug("Detached effect %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning(
                "Detached effect %s failed: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending effects; cancel whatever is left after *timeout*."""
        while self._tasks:
            tasks = list(self._tasks)
            done, not_done = await asyncio.wait(tasks, timeout=timeout)
            if not_done:
                for task in not_done:
                    task.cancel()
                await asyncio.gather(*not_done, return_exceptions=True)
                return
            # Finished effects may have spawned follow-ups; loop until quiet.
            if not done:
                return
