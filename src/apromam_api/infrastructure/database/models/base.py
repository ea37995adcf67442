# src/apromam_api/infrastructure/database/models/base.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Declarative Base and persistence helpers for the inspection-records store.

This module defines:
    - A project-wide SQLAlchemy Declarative Base with deterministic naming
      conventions (stable constraint names across PostgreSQL and SQLite).
    - Persistence mixins for audit timestamps (UTC).
    - Small helpers to mint identifiers and timestamps on the application side,
      so statements stay dialect-neutral (no ``NOW()`` / ``gen_random_uuid()``).

Design Goals:
    * UTC everywhere; values are produced in Python, never by the server.
    * Deterministic schema: naming conventions prevent churn.
    * Persistence-only; no domain/business behavior.
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import DateTime, String

__all__ = [
    "metadata",
    "Base",
    "TimestampMixin",
    "ID_LENGTH",
    "id_column",
    "new_id",
    "now_utc",
]

#: Optional schema for all tables. Unset for SQLite.
DEFAULT_DB_SCHEMA: str | None = os.getenv("DB_SCHEMA") or None

#: Deterministic naming conventions.
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS, schema=DEFAULT_DB_SCHEMA)

#: Identifiers are canonical UUID strings (36 chars).
ID_LENGTH = 36


class Base(DeclarativeBase):
    """Declarative Base for all ORM table models."""

    metadata = metadata


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` columns.

    Values are always supplied by the writer; there are no server defaults.
    """

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def id_column(**kwargs: Any) -> Any:
    """Return a string primary-key column for UUID identifiers."""
    return mapped_column(String(ID_LENGTH), primary_key=True, **kwargs)


def new_id() -> str:
    """Return a new random identifier."""
    return str(uuid.uuid4())


def now_utc() -> datetime:
    """Return the current UTC time with timezone info."""
    return datetime.now(UTC)
