"""
FastAPI application for the procurement service.

Startup (lifespan):
    1. configure structured logging at ``settings.log_level``
    2. initialize the engine and create missing tables
    3. build the service container (store, status engine, catalog client,
       facade, reconciler)
    4. start the catalog event consumer on a daemon thread, if enabled

A container passed to ``create_app`` is used as-is and steps 2-4 are
skipped; tests build their own over a test database.

Shutdown stops the consumer, closes the catalog client and disposes the
engine the app created.
"""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from procurement_api.container import ServiceContainer, build_container
from procurement_api.errors import register_exception_handlers
from procurement_api.routes import router
from procurement_api.schemas import HealthOut
from procurement_config.settings import ServiceSettings, load_settings
from procurement_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from procurement_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("api.app")

SERVICE_NAME = "procurement"
REQUEST_ID_HEADER = "X-Request-ID"


def _startup_container(settings: ServiceSettings) -> ServiceContainer:
    init_engine_from_url(settings.database_url)
    create_tables()
    container = build_container(settings, get_session_factory())
    container.start_consumer()
    return container


def create_app(
    settings: Optional[ServiceSettings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    if settings is None:
        settings = container.settings if container is not None else load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(level=settings.log_level.upper())
        settings.log_summary()
        owns_container = container is None
        app.state.container = container or _startup_container(settings)
        app.state.started_at = time.monotonic()
        logger.info("service_started", extra={"service": SERVICE_NAME})
        try:
            yield
        finally:
            if owns_container:
                app.state.container.close()
                reset_engine()
            logger.info("service_stopped", extra={"service": SERVICE_NAME})

    app = FastAPI(title="Procurement Service", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(router)

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        with LogContext.bind(correlation_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/health", response_model=HealthOut, tags=["health"])
    def health(request: Request):
        container: ServiceContainer = request.app.state.container
        db_ok = True
        try:
            with container.session_factory() as session:
                session.execute(text("SELECT 1"))
        except Exception as exc:
            db_ok = False
            logger.warning("health_db_probe_failed", extra={"error": str(exc)})

        body = HealthOut(
            service=SERVICE_NAME,
            status="healthy" if db_ok else "degraded",
            db="ok" if db_ok else "fail",
            uptime=int(time.monotonic() - request.app.state.started_at),
        )
        return JSONResponse(status_code=200 if db_ok else 503, content=body.model_dump())

    return app
