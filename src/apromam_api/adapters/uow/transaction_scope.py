# src/apromam_api/adapters/uow/transaction_scope.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Exclusive-connection transaction scope.

Purpose:
    Hold one connection for the lifetime of a transaction, run statements on it
    in issue order, and finish with exactly one commit or rollback. The held
    connection is released exactly once, whatever happens.

States:
    ``inactive -> active -> committed`` or ``active -> rolled_back``.

Usage:

    async with TransactionScope(engine) as tx:
        await tx.query(insert(...), name="ficha.insert")
        await tx.commit()

    # or, as a one-shot template returning a result object:
    result = await TransactionScope.run(engine, work, name="ficha.create")

Layer:
    adapters/uow
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql import Executable

from apromam_api.domain.exceptions.base import DomainError
from apromam_api.domain.exceptions.fichas import TransactionNotActive
from apromam_api.infrastructure.database.query_executor import (
    Params,
    describe_statement,
    rowcount_of,
    rows_of,
    safe_error,
)
from apromam_api.infrastructure.logging.logger import get_json_logger, statement_context
from apromam_api.infrastructure.observability.metrics import get_db_write_failures_total

__all__ = ["QueryResult", "TransactionResult", "TransactionScope", "TransactionState"]

logger = get_json_logger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    """Lifecycle state of a :class:`TransactionScope`."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Rows and affected-row count of one statement run inside a scope."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: int = 0


@dataclass(frozen=True, slots=True)
class TransactionResult(Generic[T]):
    """Outcome of a whole transaction.

    Attributes:
        success: True when every statement ran and the commit succeeded.
        rows: Combined rows returned by the statements (``run_all``).
        affected_rows: Total affected rows across statements.
        value: Value returned by the unit of work (``run``).
        error: Failure description when ``success`` is False.
        exception: The original exception, for callers that need its type.
    """

    success: bool
    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: int = 0
    value: T | None = None
    error: str | None = None
    exception: BaseException | None = None


class TransactionScope:
    """Unit of work bound to one exclusive connection.

    Args:
        engine: Async engine providing the connection pool.
        name: Label used in log events.
    """

    def __init__(self, engine: AsyncEngine, *, name: str = "tx") -> None:
        self._engine = engine
        self._name = name
        self._conn: AsyncConnection | None = None
        self._trans: AsyncTransaction | None = None
        self._state = TransactionState.INACTIVE
        self._affected = 0

    @property
    def state(self) -> TransactionState:
        """Current lifecycle state."""
        return self._state

    @property
    def holds_connection(self) -> bool:
        """True while a connection is checked out for this scope."""
        return self._conn is not None

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TransactionScope:
        await self.begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Roll back anything not explicitly committed, then release.

        Exceptions raised inside the block are propagated.
        """
        await self.rollback()

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def begin(self) -> None:
        """Acquire one connection and open a transaction on it.

        Raises:
            RuntimeError: If the scope was already begun (scopes are single-use).
            SQLAlchemyError: If the connection or BEGIN fails; any partially
                acquired connection is released first.
        """
        if self._state is not TransactionState.INACTIVE or self._conn is not None:
            raise RuntimeError("TransactionScope is single-use; create a new scope.")

        conn: AsyncConnection | None = None
        try:
            conn = await self._engine.connect()
            self._trans = await conn.begin()
        except BaseException:
            if conn is not None:
                await conn.close()
            self._trans = None
            raise

        self._conn = conn
        self._state = TransactionState.ACTIVE
        logger.debug("tx.begin", extra={"tx": self._name})

    async def query(
        self,
        statement: Executable,
        params: Params = None,
        *,
        name: str = "statement",
    ) -> QueryResult:
        """Run a statement on the scope's connection.

        Raises:
            TransactionNotActive: Before ``begin()`` or after commit/rollback.
            SQLAlchemyError: Store failures propagate; the caller decides to roll back.
        """
        conn = self._require_active(name)
        preview, count = describe_statement(statement, params)
        try:
            result = await conn.execute(statement, params)
        except Exception as exc:
            logger.error(
                "tx.query.error",
                extra=statement_context(
                    name, preview, count, tx=self._name, error_type=exc.__class__.__name__
                ),
            )
            raise
        outcome = QueryResult(rows=rows_of(result), affected_rows=rowcount_of(result))
        self._affected += outcome.affected_rows
        logger.debug(
            "tx.query.ok",
            extra=statement_context(
                name, preview, count, tx=self._name, affected_rows=outcome.affected_rows
            ),
        )
        return outcome

    async def commit(self) -> None:
        """Commit and release the connection (released even if COMMIT fails).

        Raises:
            TransactionNotActive: If the scope is not active.
            SQLAlchemyError: If the COMMIT statement fails.
        """
        self._require_active("commit")
        trans = self._trans
        if trans is None:
            raise TransactionNotActive(
                "Cannot run 'commit': no transaction is open",
                details={"tx": self._name, "state": self._state.value},
            )
        try:
            await trans.commit()
        except BaseException:
            self._state = TransactionState.ROLLED_BACK
            logger.error("tx.commit.error", extra={"tx": self._name})
            raise
        else:
            self._state = TransactionState.COMMITTED
            logger.debug(
                "tx.commit", extra={"tx": self._name, "affected_rows": self._affected}
            )
        finally:
            await self._release()

    async def rollback(self) -> None:
        """Roll back if active and release the connection.

        No-op when no connection is held. Rollback failures are logged and
        never re-raised so they cannot mask the failure that triggered them.
        """
        if self._conn is None:
            return
        try:
            if self._state is TransactionState.ACTIVE and self._trans is not None:
                await self._trans.rollback()
                logger.info("tx.rollback", extra={"tx": self._name})
        except Exception as exc:  # noqa: BLE001 - best-effort cleanup
            logger.warning(
                "tx.rollback.error",
                extra={"tx": self._name, "error_type": exc.__class__.__name__},
            )
        finally:
            if self._state is TransactionState.ACTIVE:
                self._state = TransactionState.ROLLED_BACK
            await self._release()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @classmethod
    async def run(
        cls,
        engine: AsyncEngine,
        work: Callable[[TransactionScope], Awaitable[T]],
        *,
        name: str = "tx",
    ) -> TransactionResult[T]:
        """Run ``work`` inside one scope; commit on success, roll back on any error.

        Returns:
            TransactionResult: ``value`` holds what ``work`` returned. Failures
            (including a failed BEGIN or COMMIT) are reported, not raised.
            Cancellation rolls back and propagates.
        """
        scope = cls(engine, name=name)
        try:
            await scope.begin()
            value = await work(scope)
            await scope.commit()
        except Exception as exc:  # noqa: BLE001 - reported through the result object
            await scope.rollback()
            logger.error(
                "tx.failed",
                extra={"tx": name, "error_type": exc.__class__.__name__},
            )
            if not isinstance(exc, DomainError):
                get_db_write_failures_total().labels(kind="transaction").inc()
            return TransactionResult(success=False, error=safe_error(exc), exception=exc)
        except BaseException:
            # Cancellation and interpreter exits still release the connection.
            await scope.rollback()
            logger.warning("tx.cancelled", extra={"tx": name})
            raise
        return TransactionResult(success=True, value=value, affected_rows=scope._affected)

    @classmethod
    async def run_all(
        cls,
        engine: AsyncEngine,
        statements: Sequence[tuple[Executable, Params]],
        *,
        name: str = "tx",
    ) -> TransactionResult[None]:
        """Run a list of ``(statement, params)`` pairs in one scope.

        Returns:
            TransactionResult: Combined rows and total affected rows on success;
            on the first failing statement the scope is rolled back and the
            failure is returned.
        """
        combined: list[dict[str, Any]] = []

        async def _work(tx: TransactionScope) -> None:
            for index, (statement, params) in enumerate(statements):
                outcome = await tx.query(statement, params, name=f"{name}[{index}]")
                combined.extend(outcome.rows)

        result = await cls.run(engine, _work, name=name)
        if not result.success:
            return result
        return TransactionResult(success=True, rows=combined, affected_rows=result.affected_rows)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, operation: str) -> AsyncConnection:
        if self._state is not TransactionState.ACTIVE or self._conn is None:
            raise TransactionNotActive(
                f"Cannot run '{operation}': transaction is {self._state.value}",
                details={"tx": self._name, "state": self._state.value},
            )
        return self._conn

    async def _release(self) -> None:
        conn, self._conn = self._conn, None
        self._trans = None
        if conn is not None:
            await conn.close()
