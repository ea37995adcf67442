# src/apromam_api/infrastructure/database/session.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine lifecycle.

This module owns the application-global :class:`AsyncEngine`. The engine's
connection pool is the only shared mutable resource of the persistence core:
read paths borrow a pooled connection per call, write and transactional paths
hold one connection for their whole scope.

Lifecycle:
    * Call `init_engine(settings)` at app startup (lifespan).
    * Use `get_engine()` to build a `QueryExecutor` or `TransactionScope`.
    * Call `dispose_engine()` during shutdown.

Notes:
    * Pool size, overflow, checkout timeout and recycle come from `Settings`.
    * `pool_pre_ping=True` surfaces dead connections before use.
    * In test transports that may skip lifespan, `get_engine()` lazily
      initializes the engine via `get_settings()`.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from apromam_api.config.settings import Settings, get_settings

_engine: AsyncEngine | None = None


def build_engine(settings: Settings) -> AsyncEngine:
    """Create a new async engine configured from settings.

    Args:
        settings: Application settings providing `database_url` and pool sizing.

    Returns:
        AsyncEngine: A fresh engine (not registered globally).

    Raises:
        ValueError: If `database_url` is empty.
    """
    if not settings.database_url:
        raise ValueError("database_url must be configured")

    url = make_url(settings.database_url)
    kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": False}

    # In-memory SQLite runs on a single static connection; no pool sizing applies.
    if not (url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_max_overflow,
            pool_timeout=settings.db_pool_timeout_s,
            pool_recycle=settings.db_pool_recycle_s,
        )

    if settings.db_schema and url.get_backend_name() == "postgresql":
        kwargs["connect_args"] = {"server_settings": {"search_path": settings.db_schema}}

    return create_async_engine(url, **kwargs)


def init_engine(settings: Settings) -> AsyncEngine:
    """Initialize the global async engine (idempotent).

    Args:
        settings: Application settings.

    Returns:
        AsyncEngine: The global engine.
    """
    global _engine
    if _engine is None:
        _engine = build_engine(settings)
    return _engine


def get_engine() -> AsyncEngine:
    """Return the global engine, initializing it lazily when lifespan did not run."""
    if _engine is None:
        return init_engine(get_settings())
    return _engine


async def dispose_engine() -> None:
    """Dispose the global engine at application shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
