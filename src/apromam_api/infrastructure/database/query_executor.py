# src/apromam_api/infrastructure/database/query_executor.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Query Executor: pooled reads and exclusive-connection writes.

Purpose:
    Thin execution layer between repositories and the async engine.

      * Reads borrow a pooled connection for the duration of one statement
        and return it immediately (many reads may run concurrently).
      * Writes acquire a dedicated connection, execute, commit and release it
        in a ``finally`` block regardless of outcome.
      * ``write`` never raises for store failures; the outcome is reported in
        a :class:`WriteResult` so callers can branch without ``try``.

Logging:
    Every statement is logged with its name, a 100-character preview of the
    SQL text and the number of bound parameters. Parameter values are never
    logged.

Layer:
    infrastructure/database
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.engine import CursorResult, Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import Executable

from apromam_api.infrastructure.logging.logger import get_json_logger, statement_context
from apromam_api.infrastructure.observability.metrics import get_db_write_failures_total

__all__ = [
    "Page",
    "QueryExecutor",
    "WriteResult",
    "describe_statement",
    "rowcount_of",
    "rows_of",
    "safe_error",
]

logger = get_json_logger(__name__)

Params = Mapping[str, Any] | Sequence[Mapping[str, Any]] | None

#: Maximum characters of SQL text included in logs.
STATEMENT_PREVIEW_CHARS = 100


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Outcome of a write statement.

    Attributes:
        success: True when the statement executed and committed.
        rows: Rows returned by the statement (``RETURNING``), if any.
        affected_rows: Row count reported by the driver (0 on failure).
        error: Human-readable failure description when ``success`` is False.
    """

    success: bool
    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: int = 0
    error: str | None = None


@dataclass(frozen=True, slots=True)
class Page:
    """One page of rows plus the unpaginated total."""

    rows: list[dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        """Total number of pages for ``limit``."""
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


def describe_statement(statement: Executable, params: Params = None) -> tuple[str, int]:
    """Return a one-line SQL preview and the bound-parameter count.

    Args:
        statement: SQLAlchemy executable.
        params: Parameters supplied at execution time, if any.

    Returns:
        tuple[str, int]: (preview truncated to 100 chars, parameter count).
    """
    try:
        compiled = statement.compile()  # type: ignore[attr-defined]
        preview = " ".join(str(compiled).split())[:STATEMENT_PREVIEW_CHARS]
        bound = len(compiled.params)
    except (SQLAlchemyError, AttributeError):
        preview, bound = type(statement).__name__, 0

    if params is None:
        return preview, bound
    if isinstance(params, Mapping):
        return preview, len(params)
    return preview, sum(len(p) for p in params)


def rows_of(result: Result[Any]) -> list[dict[str, Any]]:
    """Materialize a result into plain dicts (empty when no rows are returned)."""
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


def rowcount_of(result: Result[Any]) -> int:
    if isinstance(result, CursorResult):
        return max(result.rowcount, 0)
    return 0


class QueryExecutor:
    """Execute statements against an :class:`AsyncEngine`.

    Args:
        engine: Async engine whose pool backs every call.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        """The engine this executor runs against."""
        return self._engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read(
        self,
        statement: Executable,
        params: Params = None,
        *,
        name: str = "query",
    ) -> list[dict[str, Any]]:
        """Run a read statement on a pooled connection and return all rows.

        Raises:
            SQLAlchemyError: Store failures propagate to the caller.
        """
        preview, count = describe_statement(statement, params)
        started = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(statement, params)
                rows = rows_of(result)
        except SQLAlchemyError as exc:
            logger.error(
                "db.read.error",
                extra=statement_context(
                    name, preview, count, error_type=exc.__class__.__name__
                ),
            )
            raise
        logger.debug(
            "db.read.ok",
            extra=statement_context(
                name,
                preview,
                count,
                rows=len(rows),
                elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
            ),
        )
        return rows

    async def read_one(
        self,
        statement: Executable,
        params: Params = None,
        *,
        name: str = "query",
    ) -> dict[str, Any] | None:
        """Run a read statement and return its first row, or ``None``."""
        rows = await self.read(statement, params, name=name)
        return rows[0] if rows else None

    async def read_paginated(
        self,
        statement: Select[Any],
        *,
        page: int = 1,
        limit: int = 20,
        name: str = "query",
    ) -> Page:
        """Run a paginated read plus a parallel count of the unpaginated statement.

        Args:
            statement: Select to paginate (ordering is preserved).
            page: 1-based page number (values below 1 are clamped).
            limit: Page size (values below 1 are clamped).
            name: Statement name for logs.

        Returns:
            Page: Rows of the requested page and the total row count.
        """
        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit

        paged = statement.limit(limit).offset(offset)
        counted = select(func.count()).select_from(statement.order_by(None).subquery())

        rows, count_rows = await asyncio.gather(
            self.read(paged, name=name),
            self.read(counted, name=f"{name}.count"),
        )
        total = int(next(iter(count_rows[0].values()))) if count_rows else 0
        return Page(rows=rows, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write(
        self,
        statement: Executable,
        params: Params = None,
        *,
        name: str = "write",
    ) -> WriteResult:
        """Run a write statement on a dedicated connection and commit it.

        Never raises for store or connection failures: those are reported via
        ``WriteResult.success`` / ``WriteResult.error``. The connection is
        released in all cases.
        """
        preview, count = describe_statement(statement, params)
        conn = None
        try:
            conn = await self._engine.connect()
            result = await conn.execute(statement, params)
            rows = rows_of(result)
            affected = rowcount_of(result)
            await conn.commit()
        except Exception as exc:  # noqa: BLE001 - reported through the result object
            logger.error(
                "db.write.error",
                extra=statement_context(
                    name, preview, count, error_type=exc.__class__.__name__
                ),
            )
            get_db_write_failures_total().labels(kind="write").inc()
            return WriteResult(success=False, error=safe_error(exc))
        finally:
            if conn is not None:
                await conn.close()

        logger.info(
            "db.write.ok",
            extra=statement_context(name, preview, count, affected_rows=affected),
        )
        return WriteResult(success=True, rows=rows, affected_rows=affected)


def safe_error(exc: BaseException) -> str:
    """Describe a store error without echoing bound parameter values."""
    if isinstance(exc, SQLAlchemyError):
        orig = getattr(exc, "orig", None)
        if orig is not None:
            return f"{exc.__class__.__name__}: {orig}"
    return f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__
