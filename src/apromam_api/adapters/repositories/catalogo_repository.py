# src/apromam_api/adapters/repositories/catalogo_repository.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Read-only catalog lookups used by the fichas service.

Layer:
    adapters/repositories
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, cast

from sqlalchemy import Table, select

from apromam_api.adapters.repositories.base_repository import BaseRepository
from apromam_api.domain.entities.catalogos import Gestion, Parcela, Productor
from apromam_api.infrastructure.database.models.catalogos import (
    ComunidadModel,
    GestionModel,
    ParcelaModel,
    ProductorModel,
)

_PRODUCTOR = cast(Table, ProductorModel.__table__)
_COMUNIDAD = cast(Table, ComunidadModel.__table__)
_PARCELA = cast(Table, ParcelaModel.__table__)
_GESTION = cast(Table, GestionModel.__table__)


class ProductorRepository(BaseRepository):
    """Producers and their plots."""

    async def find_by_codigo(self, codigo_productor: str) -> Productor | None:
        stmt = (
            select(_PRODUCTOR, _COMUNIDAD.c.nombre_comunidad)
            .select_from(
                _PRODUCTOR.outerjoin(
                    _COMUNIDAD, _COMUNIDAD.c.id_comunidad == _PRODUCTOR.c.id_comunidad
                )
            )
            .where(
                _PRODUCTOR.c.codigo_productor == codigo_productor,
                _PRODUCTOR.c.activo.is_(True),
            )
        )
        row = await self._executor.read_one(stmt, name="productor.find_by_codigo")
        if row is None:
            return None
        return Productor(
            codigo_productor=row["codigo_productor"],
            nombre_productor=row["nombre_productor"],
            id_comunidad=row["id_comunidad"],
            nombre_comunidad=row["nombre_comunidad"],
            superficie_total_has=row["superficie_total_has"],
            categoria_actual=row["categoria_actual"],
            activo=bool(row["activo"]),
        )

    async def list_parcelas_activas(self, codigo_productor: str) -> Sequence[Parcela]:
        stmt = (
            select(_PARCELA)
            .where(
                _PARCELA.c.codigo_productor == codigo_productor,
                _PARCELA.c.activo.is_(True),
            )
            .order_by(_PARCELA.c.numero_parcela)
        )
        rows = await self._executor.read(stmt, name="parcela.list_activas")
        return [_to_parcela(row) for row in rows]


class GestionRepository(BaseRepository):
    """Certification periods."""

    async def find_by_anio(self, anio: int) -> Gestion | None:
        row = await self._executor.read_one(
            select(_GESTION).where(_GESTION.c.anio_gestion == anio),
            name="gestion.find_by_anio",
        )
        if row is None:
            return None
        return Gestion(
            id_gestion=row["id_gestion"],
            anio_gestion=row["anio_gestion"],
            descripcion=row["descripcion"],
            activa=bool(row["activa"]),
        )


def _to_parcela(row: dict[str, Any]) -> Parcela:
    return Parcela(
        id_parcela=row["id_parcela"],
        codigo_productor=row["codigo_productor"],
        numero_parcela=row["numero_parcela"],
        superficie_ha=row["superficie_ha"],
        rotacion=row["rotacion"],
        utiliza_riego=row["utiliza_riego"],
        tipo_barrera=row["tipo_barrera"],
        insumos_organicos=row["insumos_organicos"],
        latitud_sud=row["latitud_sud"],
        longitud_oeste=row["longitud_oeste"],
        activo=bool(row["activo"]),
    )
