# src/apromam_api/adapters/repositories/base_repository.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared mechanics for the store adapters.

Purpose:
    * Hold the :class:`QueryExecutor` (pooled reads, dedicated writes) and the
      engine used to open transaction scopes.
    * Convert result objects into domain exceptions at the adapter boundary.
    * Deterministic ordering and UTC timestamp helpers.

Layer: adapters / repositories

Notes:
    * No business logic, no workflow decisions.
    * Result objects stop here: callers of a repository only see return
      values or :class:`DomainError` subclasses.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, nulls_last
from sqlalchemy.ext.asyncio import AsyncEngine

from apromam_api.adapters.uow.transaction_scope import TransactionResult
from apromam_api.domain.exceptions.base import DomainError
from apromam_api.domain.exceptions.fichas import PersistenceError
from apromam_api.infrastructure.database.query_executor import QueryExecutor, WriteResult


class BaseRepository:
    """Base class for repositories backed by a :class:`QueryExecutor`."""

    def __init__(self, executor: QueryExecutor) -> None:
        """Initialize the repository.

        Args:
            executor: Query executor bound to the target database.
        """
        self._executor = executor

    @property
    def engine(self) -> AsyncEngine:
        return self._executor.engine

    # ------------------------------------------------------------------
    # Timestamp utilities
    # ------------------------------------------------------------------

    @staticmethod
    def utc_now() -> datetime:
        """Return current UTC time with timezone info."""
        return datetime.now(UTC)

    # ------------------------------------------------------------------
    # Deterministic ordering utilities
    # ------------------------------------------------------------------

    @staticmethod
    def order_by_latest(stmt: Select[Any], timestamp_col: Any, pk_col: Any) -> Select[Any]:
        """Apply ``timestamp DESC NULLS LAST, pk ASC`` ordering."""
        return stmt.order_by(nulls_last(timestamp_col.desc()), pk_col.asc())

    # ------------------------------------------------------------------
    # Result-object boundary
    # ------------------------------------------------------------------

    @staticmethod
    def ensure_written(result: WriteResult, action: str) -> WriteResult:
        """Return ``result`` or raise :class:`PersistenceError` when it failed."""
        if not result.success:
            raise PersistenceError(
                f"No se pudo {action}", details={"action": action, "error": result.error}
            )
        return result

    @staticmethod
    def ensure_committed(result: TransactionResult[Any], action: str) -> Any:
        """Return the transaction's value or raise.

        Domain errors raised inside the unit of work are re-raised as-is, so a
        uniqueness violation detected in the transaction still surfaces as a
        validation error. Any other failure becomes :class:`PersistenceError`.
        """
        if result.success:
            return result.value
        if isinstance(result.exception, DomainError):
            raise result.exception
        raise PersistenceError(
            f"No se pudo {action}", details={"action": action, "error": result.error}
        )
