# src/apromam_api/adapters/repositories/ficha_draft_repository.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Saved ficha drafts keyed by (producer, period year, creator).

Layer:
    adapters/repositories
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from sqlalchemy import Table, delete, insert, select

from apromam_api.adapters.repositories.base_repository import BaseRepository
from apromam_api.adapters.uow.transaction_scope import TransactionScope
from apromam_api.infrastructure.database.models.base import new_id
from apromam_api.infrastructure.database.models.fichas import FichaDraftModel

_DRAFT = cast(Table, FichaDraftModel.__table__)


def _key(codigo_productor: str, gestion: int, created_by: str) -> tuple[Any, ...]:
    return (
        _DRAFT.c.codigo_productor == codigo_productor,
        _DRAFT.c.gestion == gestion,
        _DRAFT.c.created_by == created_by,
    )


class FichaDraftRepository(BaseRepository):
    """Draft store; one draft per key, overwritten on save."""

    async def save(
        self, codigo_productor: str, gestion: int, created_by: str, data: Mapping[str, Any]
    ) -> None:
        result = await TransactionScope.run_all(
            self.engine,
            [
                (delete(_DRAFT).where(*_key(codigo_productor, gestion, created_by)), None),
                (
                    insert(_DRAFT).values(
                        id_draft=new_id(),
                        codigo_productor=codigo_productor,
                        gestion=gestion,
                        created_by=created_by,
                        draft_data=dict(data),
                        updated_at=self.utc_now(),
                    ),
                    None,
                ),
            ],
            name="draft.save",
        )
        self.ensure_committed(result, "guardar el borrador")

    async def find(
        self, codigo_productor: str, gestion: int, created_by: str
    ) -> Mapping[str, Any] | None:
        row = await self._executor.read_one(
            select(_DRAFT.c.draft_data).where(*_key(codigo_productor, gestion, created_by)),
            name="draft.find",
        )
        return row["draft_data"] if row else None

    async def delete_by_key(self, codigo_productor: str, gestion: int, created_by: str) -> int:
        result = await self._executor.write(
            delete(_DRAFT).where(*_key(codigo_productor, gestion, created_by)),
            name="draft.delete_by_key",
        )
        return self.ensure_written(result, "eliminar el borrador").affected_rows
