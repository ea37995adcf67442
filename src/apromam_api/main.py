# src/apromam_api/main.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Application Entry (Infrastructure Bootstrap)

Synopsis:
    FastAPI factory hosting the fichas core in-process. Business routes are
    mounted by the surrounding application; this module provides only the
    runtime surface: lifespan, error handlers, liveness, readiness and the
    Prometheus scrape endpoint.

Design:
    * Lifespan configures JSON logging, initializes the engine and disposes
      it on shutdown. An externally supplied engine is used as-is and never
      disposed here.
    * ``app.state.executor`` and ``app.state.fichas_service`` are available
      to route dependencies.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncEngine

from apromam_api.config.settings import Settings, get_settings
from apromam_api.dependencies import build_fichas_service
from apromam_api.infrastructure.database.query_executor import QueryExecutor
from apromam_api.infrastructure.database.session import dispose_engine, init_engine
from apromam_api.infrastructure.health.probe import DbProbe
from apromam_api.infrastructure.http.errors import install_error_handlers
from apromam_api.infrastructure.logging.logger import configure_root_logging, get_json_logger

logger = get_json_logger(__name__)


def _bind(app: FastAPI, engine: AsyncEngine, settings: Settings) -> None:
    app.state.settings = settings
    app.state.executor = QueryExecutor(engine)
    app.state.fichas_service = build_fichas_service(engine, settings)


def create_app(settings: Settings | None = None, *, engine: AsyncEngine | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to :func:`get_settings`.
        engine: Pre-built engine (tests). When omitted, the lifespan creates
            the global engine and disposes it on shutdown.

    Returns:
        FastAPI: Configured application.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_root_logging(settings.log_level)
        owned = engine is None
        _bind(app, engine if engine is not None else init_engine(settings), settings)
        logger.info(
            "service_startup",
            extra={"service": settings.service_name, "env": settings.environment.value},
        )
        try:
            yield
        finally:
            if owned:
                await dispose_engine()
            logger.info("service_shutdown", extra={"service": settings.service_name})

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    if engine is not None:
        _bind(app, engine, settings)
    install_error_handlers(app)

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    @app.get("/readyz", include_in_schema=False)
    async def readyz(request: Request) -> JSONResponse:
        ok, detail = await DbProbe(request.app.state.executor).db()
        body: dict[str, object] = {"status": "ok" if ok else "degraded", "db": ok}
        if detail:
            body["detail"] = detail
        return JSONResponse(body, status_code=200 if ok else 503)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
