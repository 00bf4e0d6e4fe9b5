"""Scheduler runtime loop for periodic maintenance jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

ScheduledJob = Callable[[], Awaitable[object]]
SleepCallable = Callable[[float], Awaitable[None]]
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerTickResult:
    """Per-tick job counters."""

    succeeded: int
    failed: int


class ScheduledJobRuntime:
    """Run named jobs in order every interval, isolating job failures."""

    def __init__(
        self,
        *,
        jobs: dict[str, ScheduledJob],
        interval_seconds: float,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        self._jobs = jobs
        self._interval_seconds = interval_seconds
        self._sleep = sleep

    async def run_once(self) -> SchedulerTickResult:
        """Run every job once."""

        succeeded = 0
        failed = 0
        for name, job in self._jobs.items():
            logger.info("scheduled_job_started job=%s", name)
            try:
                result = await job()
            except Exception:  # noqa: BLE001
                failed += 1
                logger.exception("scheduled_job_failed job=%s", name)
                continue
            succeeded += 1
            logger.info("scheduled_job_done job=%s result=%s", name, result)

        return SchedulerTickResult(succeeded=succeeded, failed=failed)

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Run jobs, then sleep one interval, until stop_event is set."""

        while not stop_event.is_set():
            await self.run_once()
            if stop_event.is_set():
                break
            await self._sleep(self._interval_seconds)
