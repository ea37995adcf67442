# src/apromam_api/adapters/gateways/certification_sync_gateway.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Certification sync gateway (store-backed).

Purpose:
    After a ficha is approved, propagate it to the records that depend on the
    approval:

      * Non-conformities without a follow-up state are opened for follow-up
        (``estado_seguimiento = 'pendiente'``).
      * The producer's certification category for the period is recorded in
        ``productor_categoria_gestion`` (one row per producer and period).

    Everything runs in one transaction scope, so a failure leaves nothing
    written. Re-running for the same ficha converges to the same rows.

Layer:
    adapters/gateways
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from apromam_api.adapters.uow.transaction_scope import TransactionScope
from apromam_api.domain.enums.ficha import CategoriaProductor, EstadoFicha, EstadoSeguimiento
from apromam_api.domain.exceptions.base import DomainError
from apromam_api.domain.exceptions.fichas import (
    FichaNotFound,
    GestionNotFound,
    PersistenceError,
    PreconditionFailed,
)
from apromam_api.infrastructure.database.models.base import new_id, now_utc
from apromam_api.infrastructure.database.models.catalogos import (
    GestionModel,
    ProductorCategoriaModel,
    ProductorModel,
)
from apromam_api.infrastructure.database.models.fichas import FichaModel, NoConformidadModel
from apromam_api.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

_FICHA = cast(Table, FichaModel.__table__)
_NO_CONFORMIDAD = cast(Table, NoConformidadModel.__table__)
_PRODUCTOR = cast(Table, ProductorModel.__table__)
_GESTION = cast(Table, GestionModel.__table__)
_CATEGORIA = cast(Table, ProductorCategoriaModel.__table__)


class SqlCertificationSyncGateway:
    """Synchronize an approved ficha into certification tables.

    Args:
        engine: Async engine used to open the transaction scope.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def sincronizar_aprobacion(self, id_ficha: str) -> None:
        """Run the synchronization for ``id_ficha``.

        Raises:
            FichaNotFound: If the ficha is missing or inactive.
            PreconditionFailed: If the ficha is not ``aprobado``.
            GestionNotFound: If the ficha's period cannot be resolved.
            PersistenceError: If the transaction fails.
        """

        async def _work(tx: TransactionScope) -> dict[str, Any]:
            found = await tx.query(
                select(
                    _FICHA.c.codigo_productor,
                    _FICHA.c.gestion,
                    _FICHA.c.id_gestion,
                    _FICHA.c.fecha_inspeccion,
                    _FICHA.c.estado_ficha,
                ).where(_FICHA.c.id_ficha == id_ficha, _FICHA.c.activo.is_(True)),
                name="sync.ficha",
            )
            if not found.rows:
                raise FichaNotFound(id_ficha)
            ficha = found.rows[0]
            if ficha["estado_ficha"] != EstadoFicha.APROBADO.value:
                raise PreconditionFailed(
                    "Solo se sincronizan fichas aprobadas",
                    details={"id_ficha": id_ficha, "estado_ficha": ficha["estado_ficha"]},
                )

            id_gestion = ficha["id_gestion"] or await self._resolve_gestion(tx, ficha["gestion"])

            opened = await tx.query(
                update(_NO_CONFORMIDAD)
                .where(
                    _NO_CONFORMIDAD.c.id_ficha == id_ficha,
                    _NO_CONFORMIDAD.c.estado_seguimiento.is_(None),
                )
                .values(estado_seguimiento=EstadoSeguimiento.PENDIENTE.value),
                name="sync.no_conformidades",
            )

            productor = await tx.query(
                select(_PRODUCTOR.c.categoria_actual).where(
                    _PRODUCTOR.c.codigo_productor == ficha["codigo_productor"]
                ),
                name="sync.productor",
            )
            categoria = (
                productor.rows[0]["categoria_actual"] if productor.rows else None
            ) or CategoriaProductor.E.value

            await tx.query(
                delete(_CATEGORIA).where(
                    _CATEGORIA.c.codigo_productor == ficha["codigo_productor"],
                    _CATEGORIA.c.id_gestion == id_gestion,
                ),
                name="sync.categoria.delete",
            )
            await tx.query(
                insert(_CATEGORIA).values(
                    id_registro=new_id(),
                    codigo_productor=ficha["codigo_productor"],
                    id_gestion=id_gestion,
                    categoria=categoria,
                    id_ficha=id_ficha,
                    fecha_evaluacion=ficha["fecha_inspeccion"],
                    updated_at=now_utc(),
                ),
                name="sync.categoria.insert",
            )
            return {"no_conformidades": opened.affected_rows, "categoria": categoria}

        result = await TransactionScope.run(self._engine, _work, name="sync.aprobacion")
        if not result.success:
            if isinstance(result.exception, DomainError):
                raise result.exception
            raise PersistenceError(
                "No se pudo sincronizar la aprobacion",
                details={"id_ficha": id_ficha, "error": result.error},
            )
        logger.info("sync.aprobacion.ok", extra={"id_ficha": id_ficha, **(result.value or {})})

    @staticmethod
    async def _resolve_gestion(tx: TransactionScope, anio: int) -> str:
        found = await tx.query(
            select(_GESTION.c.id_gestion).where(_GESTION.c.anio_gestion == anio),
            name="sync.gestion",
        )
        if not found.rows:
            raise GestionNotFound(anio)
        return str(found.rows[0]["id_gestion"])
