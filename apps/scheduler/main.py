"""scheduler entrypoint."""

from __future__ import annotations

import asyncio
import logging
import signal
from datetime import timedelta

from charity_cases.application.services.scheduler_runtime import ScheduledJobRuntime
from charity_cases.config.settings import Settings, load_settings
from charity_cases.infrastructure.db.session import create_session_factory
from charity_cases.infrastructure.logging import configure_logging
from charity_cases.infrastructure.runtime_services import (
    LifecycleRuntimeServices,
    build_lifecycle_runtime_services,
)

logger = logging.getLogger(__name__)


def build_scheduler_runtime(
    *,
    settings: Settings,
    services: LifecycleRuntimeServices,
) -> ScheduledJobRuntime:
    """Build the periodic runtime for closure and amount reconciliation jobs."""

    return ScheduledJobRuntime(
        jobs={
            "automatic_closure": services.closure_service.run_once,
            "amount_reconciliation": services.reconciliation_service.run_once,
        },
        interval_seconds=settings.scheduler_interval_seconds,
    )


async def _run_scheduler() -> None:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "scheduler_starting interval_seconds=%s grace_period_hours=%s",
        settings.scheduler_interval_seconds,
        settings.auto_closure_grace_period_hours,
    )

    services = build_lifecycle_runtime_services(
        session_factory=create_session_factory(settings.database_url),
        grace_period=timedelta(hours=settings.auto_closure_grace_period_hours),
        rules_cache_ttl_seconds=settings.notification_rules_cache_ttl_seconds,
    )
    runtime = build_scheduler_runtime(settings=settings, services=services)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    stopper = asyncio.create_task(stop_event.wait())
    runner = asyncio.create_task(runtime.run_until_stopped(stop_event))
    await asyncio.wait({stopper, runner}, return_when=asyncio.FIRST_COMPLETED)
    runner.cancel()
    stopper.cancel()
    await asyncio.gather(runner, stopper, return_exceptions=True)

    await services.task_runner.drain()
    logger.info("scheduler_stopped")


def main() -> None:
    """Run the periodic closure and reconciliation scheduler."""

    asyncio.run(_run_scheduler())


if __name__ == "__main__":
    main()
