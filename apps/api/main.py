"""api entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from charity_cases.config.settings import load_settings
from charity_cases.infrastructure.db.session import create_session_factory
from charity_cases.infrastructure.http.case_status_router import build_case_status_router
from charity_cases.infrastructure.logging import configure_logging
from charity_cases.infrastructure.runtime_services import (
    LifecycleRuntimeServices,
    build_lifecycle_runtime_services,
)

API_HOST = "0.0.0.0"
API_PORT = 8000
logger = logging.getLogger(__name__)


def create_app(*, services: LifecycleRuntimeServices | None = None) -> FastAPI:
    """Create FastAPI app exposing case status lifecycle routes."""

    if services is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        services = build_lifecycle_runtime_services(
            session_factory=create_session_factory(settings.database_url),
            grace_period=timedelta(hours=settings.auto_closure_grace_period_hours),
            rules_cache_ttl_seconds=settings.notification_rules_cache_ttl_seconds,
        )

    task_runner = services.task_runner

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        pending = task_runner.pending_count
        if pending:
            logger.info("api_draining_background_tasks pending=%s", pending)
        await task_runner.drain()

    app = FastAPI(lifespan=lifespan)
    app.include_router(
        build_case_status_router(
            lifecycle_service=services.lifecycle_service,
            closure_service=services.closure_service,
        )
    )
    return app


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run the API as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
