# src/apromam_api/infrastructure/health/probe.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Database readiness probe (with a Prometheus latency histogram).

Design:
    * Always observe latency, whether the probe succeeds or fails.
    * Small public surface: ``DbProbe.db()`` returning
      ``(success: bool, detail: str | None)``.
"""

from __future__ import annotations

import time

from sqlalchemy import literal, select
from sqlalchemy.exc import SQLAlchemyError

from apromam_api.infrastructure.database.query_executor import QueryExecutor
from apromam_api.infrastructure.observability.metrics import get_readyz_db_latency_seconds

__all__ = ["DbProbe"]


class DbProbe:
    """Readiness probe for the relational store."""

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor
        self._hist = get_readyz_db_latency_seconds()

    async def db(self) -> tuple[bool, str | None]:
        """Probe the store with a trivial ``SELECT 1``.

        Returns:
            tuple[bool, str | None]: (success, diagnostic detail or None).
        """
        start = time.perf_counter()
        ok = True
        detail: str | None = None
        try:
            await self._executor.read_one(select(literal(1).label("ok")), name="readyz")
        except (SQLAlchemyError, OSError) as exc:
            ok = False
            detail = exc.__class__.__name__
        finally:
            self._hist.observe(time.perf_counter() - start)
        return ok, detail
