"""Detached execution of advisory side effects."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class BackgroundTaskRunnerPort(Protocol):
    """Runs coroutines without making the caller wait for their outcome."""

    def spawn(self, coroutine: Coroutine[Any, Any, Any], *, name: str) -> None:
        """Schedule coroutine execution detached from the caller."""


class DetachedTaskRunner:
    """Spawn asyncio tasks, keep references until done, and log their failures."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def spawn(self, coroutine: Coroutine[Any, Any, Any], *, name: str) -> None:
        task = asyncio.create_task(coroutine, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    async def drain(self) -> None:
        """Wait for every spawned task to finish (shutdown and tests)."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background_task_cancelled name=%s", task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "background_task_failed name=%s error=%s",
                task.get_name(),
                error,
                exc_info=error,
            )
