# src/apromam_api/adapters/repositories/ficha_repository.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Ficha aggregate repository.

Purpose:
    Persist and load the ficha aggregate (root row plus dependent sections).

Write algorithm (one :class:`TransactionScope`):
    1. Insert (create) or update (replace) the root row.
    2. 1:1 sections present in the request: delete the stored row for the
       ficha, insert the supplied one.
    3. 1:n sections present in the request: delete every stored row for the
       ficha, bulk-insert the supplied items. An empty sequence leaves the
       section empty; ``None`` leaves it untouched.
    4. Observed plot attributes update the producer's active plots, setting
       only the attributes that were observed.
    Any failure rolls the whole scope back. On success the aggregate is
    reloaded from the store and returned.

Layer:
    adapters/repositories
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any, cast

from sqlalchemy import Select, Table, delete, func, insert, select, update

from apromam_api.adapters.repositories.base_repository import BaseRepository
from apromam_api.adapters.uow.transaction_scope import TransactionScope
from apromam_api.domain.entities.base import BaseEntity
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import (
    SECCIONES_MULTIPLES,
    SECCIONES_UNICAS,
    FichaCompleta,
    FichaSecciones,
)
from apromam_api.domain.entities.secciones import (
    AccionCorrectiva,
    ActividadPecuaria,
    CosechaVentas,
    DetalleCultivoParcela,
    EvaluacionConocimientoNormas,
    EvaluacionMitigacion,
    EvaluacionPoscosecha,
    ManejoCultivo,
    NoConformidad,
    ParcelaInspeccionada,
    PlanificacionSiembra,
    RevisionDocumentacion,
)
from apromam_api.domain.enums.ficha import (
    CategoriaProductor,
    EstadoFicha,
    EstadoSync,
    OrigenCaptura,
    ResultadoCertificacion,
)
from apromam_api.domain.exceptions.fichas import FichaNotFound, FichaValidationError
from apromam_api.domain.interfaces.repositories.fichas import FichaFiltro
from apromam_api.infrastructure.database.models.base import new_id, now_utc
from apromam_api.infrastructure.database.models.catalogos import (
    ComunidadModel,
    ParcelaModel,
    ProductorModel,
    TipoCultivoModel,
)
from apromam_api.infrastructure.database.models.fichas import (
    AccionCorrectivaModel,
    ActividadPecuariaModel,
    CosechaVentasModel,
    DetalleCultivoParcelaModel,
    EvaluacionConocimientoNormasModel,
    EvaluacionMitigacionModel,
    EvaluacionPoscosechaModel,
    FichaModel,
    NoConformidadModel,
    PlanificacionSiembraModel,
    RevisionDocumentacionModel,
)
from apromam_api.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

_FICHA = cast(Table, FichaModel.__table__)
_PRODUCTOR = cast(Table, ProductorModel.__table__)
_COMUNIDAD = cast(Table, ComunidadModel.__table__)
_PARCELA = cast(Table, ParcelaModel.__table__)
_TIPO_CULTIVO = cast(Table, TipoCultivoModel.__table__)

#: Root columns a replace or a transition may rewrite.
_INMUTABLES = frozenset({"id_ficha", "created_at", "created_by"})


@dataclass(frozen=True)
class _Section:
    """Row mapping for one dependent section table."""

    table: Table
    pk: str
    entity: type[BaseEntity]
    order_by: tuple[str, ...]

    def to_row(self, item: BaseEntity, id_ficha: str) -> dict[str, Any]:
        row = item.to_record()
        row[self.pk] = new_id()
        row["id_ficha"] = id_ficha
        if "created_at" in self.table.c:
            row["created_at"] = now_utc()
        return row

    def from_row(self, row: Mapping[str, Any]) -> BaseEntity:
        names = {f.name for f in fields(self.entity)}
        return self.entity(**{k: v for k, v in row.items() if k in names})

    def select_for(self, id_ficha: str) -> Select[Any]:
        return (
            select(self.table)
            .where(self.table.c.id_ficha == id_ficha)
            .order_by(*(self.table.c[name] for name in self.order_by))
        )


class _DetalleCultivoSection(_Section):
    """Crop details carry management columns and the crop name (read-only)."""

    def to_row(self, item: BaseEntity, id_ficha: str) -> dict[str, Any]:
        row = super().to_row(item, id_ficha)
        manejo = row.pop("manejo") or ManejoCultivo()
        row.pop("nombre_cultivo", None)
        row.update(manejo.to_record())
        return row

    def from_row(self, row: Mapping[str, Any]) -> BaseEntity:
        manejo = ManejoCultivo(**{f.name: row[f.name] for f in fields(ManejoCultivo)})
        return DetalleCultivoParcela(
            id_parcela=row["id_parcela"],
            id_tipo_cultivo=row["id_tipo_cultivo"],
            superficie_ha=row["superficie_ha"],
            situacion_actual=row["situacion_actual"],
            manejo=None if manejo.vacio else manejo,
            nombre_cultivo=row.get("nombre_cultivo"),
        )

    def select_for(self, id_ficha: str) -> Select[Any]:
        t = self.table
        return (
            select(t, _TIPO_CULTIVO.c.nombre_cultivo)
            .select_from(
                t.outerjoin(_TIPO_CULTIVO, _TIPO_CULTIVO.c.id_tipo_cultivo == t.c.id_tipo_cultivo)
            )
            .where(t.c.id_ficha == id_ficha)
            .order_by(*(t.c[name] for name in self.order_by))
        )


def _t(model: type[Any]) -> Table:
    return cast(Table, model.__table__)


_SECTIONS: dict[str, _Section] = {
    "revision_documentacion": _Section(
        _t(RevisionDocumentacionModel), "id_revision", RevisionDocumentacion, ("id_ficha",)
    ),
    "evaluacion_mitigacion": _Section(
        _t(EvaluacionMitigacionModel), "id_evaluacion", EvaluacionMitigacion, ("id_ficha",)
    ),
    "evaluacion_poscosecha": _Section(
        _t(EvaluacionPoscosechaModel), "id_evaluacion", EvaluacionPoscosecha, ("id_ficha",)
    ),
    "evaluacion_conocimiento": _Section(
        _t(EvaluacionConocimientoNormasModel),
        "id_evaluacion",
        EvaluacionConocimientoNormas,
        ("id_ficha",),
    ),
    "acciones_correctivas": _Section(
        _t(AccionCorrectivaModel), "id_accion", AccionCorrectiva, ("numero_accion",)
    ),
    "no_conformidades": _Section(
        _t(NoConformidadModel),
        "id_no_conformidad",
        NoConformidad,
        ("created_at", "descripcion_no_conformidad"),
    ),
    "actividades_pecuarias": _Section(
        _t(ActividadPecuariaModel),
        "id_actividad",
        ActividadPecuaria,
        ("tipo_ganado", "animal_especifico", "cantidad"),
    ),
    "detalles_cultivo": _DetalleCultivoSection(
        _t(DetalleCultivoParcelaModel),
        "id_detalle",
        DetalleCultivoParcela,
        ("id_parcela", "id_tipo_cultivo", "superficie_ha"),
    ),
    "cosecha_ventas": _Section(
        _t(CosechaVentasModel), "id_cosecha", CosechaVentas, ("tipo_mani", "superficie_actual_ha")
    ),
    "planificacion_siembras": _Section(
        _t(PlanificacionSiembraModel),
        "id_planificacion",
        PlanificacionSiembra,
        ("id_parcela", "area_parcela_planificada_ha"),
    ),
}


def _root_values(ficha: Ficha) -> dict[str, Any]:
    return {
        "id_ficha": ficha.id_ficha,
        "codigo_productor": ficha.codigo_productor,
        "gestion": ficha.gestion,
        "id_gestion": ficha.id_gestion,
        "fecha_inspeccion": ficha.fecha_inspeccion,
        "inspector_interno": ficha.inspector_interno,
        "persona_entrevistada": ficha.persona_entrevistada,
        "categoria_gestion_anterior": (
            ficha.categoria_gestion_anterior.value if ficha.categoria_gestion_anterior else None
        ),
        "origen_captura": ficha.origen_captura.value,
        "fecha_sincronizacion": ficha.fecha_sincronizacion,
        "estado_sync": ficha.estado_sync.value,
        "estado_ficha": ficha.estado_ficha.value,
        "resultado_certificacion": ficha.resultado_certificacion.value,
        "recomendaciones": ficha.recomendaciones,
        "comentarios_evaluacion": ficha.comentarios_evaluacion,
        "comentarios_actividad_pecuaria": ficha.comentarios_actividad_pecuaria,
        "firma_productor": ficha.firma_productor,
        "firma_inspector": ficha.firma_inspector,
        "activo": ficha.activo,
        "created_by": ficha.created_by,
        "created_at": ficha.created_at,
        "updated_at": ficha.updated_at,
    }


def _mutable_values(ficha: Ficha) -> dict[str, Any]:
    return {k: v for k, v in _root_values(ficha).items() if k not in _INMUTABLES}


def _to_ficha(row: Mapping[str, Any]) -> Ficha:
    categoria = row["categoria_gestion_anterior"]
    return Ficha(
        id_ficha=row["id_ficha"],
        codigo_productor=row["codigo_productor"],
        gestion=row["gestion"],
        id_gestion=row["id_gestion"],
        fecha_inspeccion=row["fecha_inspeccion"],
        inspector_interno=row["inspector_interno"],
        persona_entrevistada=row["persona_entrevistada"],
        categoria_gestion_anterior=CategoriaProductor(categoria) if categoria else None,
        origen_captura=OrigenCaptura(row["origen_captura"]),
        fecha_sincronizacion=row["fecha_sincronizacion"],
        estado_sync=EstadoSync(row["estado_sync"]),
        estado_ficha=EstadoFicha(row["estado_ficha"]),
        resultado_certificacion=ResultadoCertificacion(row["resultado_certificacion"]),
        recomendaciones=row["recomendaciones"],
        comentarios_evaluacion=row["comentarios_evaluacion"],
        comentarios_actividad_pecuaria=row["comentarios_actividad_pecuaria"],
        firma_productor=row["firma_productor"],
        firma_inspector=row["firma_inspector"],
        activo=bool(row["activo"]),
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        nombre_productor=row.get("nombre_productor"),
        nombre_comunidad=row.get("nombre_comunidad"),
    )


def _root_select() -> Select[Any]:
    return select(
        _FICHA, _PRODUCTOR.c.nombre_productor, _COMUNIDAD.c.nombre_comunidad
    ).select_from(
        _FICHA.outerjoin(
            _PRODUCTOR, _PRODUCTOR.c.codigo_productor == _FICHA.c.codigo_productor
        ).outerjoin(_COMUNIDAD, _COMUNIDAD.c.id_comunidad == _PRODUCTOR.c.id_comunidad)
    )


def _apply_filtro(stmt: Select[Any], filtro: FichaFiltro) -> Select[Any]:
    stmt = stmt.where(_FICHA.c.activo.is_(True))
    if filtro.gestion is not None:
        stmt = stmt.where(_FICHA.c.gestion == filtro.gestion)
    if filtro.codigo_productor:
        stmt = stmt.where(_FICHA.c.codigo_productor == filtro.codigo_productor)
    if filtro.estado_ficha is not None:
        stmt = stmt.where(_FICHA.c.estado_ficha == filtro.estado_ficha.value)
    if filtro.id_comunidad:
        stmt = stmt.where(_PRODUCTOR.c.id_comunidad == filtro.id_comunidad)
    if filtro.comunidades is not None:
        stmt = stmt.where(_PRODUCTOR.c.id_comunidad.in_(filtro.comunidades))
    return stmt


def _scoped_from() -> Any:
    return _FICHA.outerjoin(
        _PRODUCTOR, _PRODUCTOR.c.codigo_productor == _FICHA.c.codigo_productor
    )


class FichaRepository(BaseRepository):
    """SQLAlchemy Core implementation of the ficha aggregate store."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, id_ficha: str) -> Ficha | None:
        row = await self._executor.read_one(
            _root_select().where(_FICHA.c.id_ficha == id_ficha, _FICHA.c.activo.is_(True)),
            name="ficha.find_by_id",
        )
        return _to_ficha(row) if row else None

    async def load_ficha_completa(self, id_ficha: str) -> FichaCompleta | None:
        """Load the root and every section; sections are read concurrently."""
        ficha = await self.find_by_id(id_ficha)
        if ficha is None:
            return None

        names = (*SECCIONES_UNICAS, *SECCIONES_MULTIPLES)
        results = await asyncio.gather(
            *(
                self._executor.read(
                    _SECTIONS[name].select_for(id_ficha), name=f"ficha.load.{name}"
                )
                for name in names
            )
        )

        completa = FichaCompleta(ficha=ficha)
        for name, rows in zip(names, results, strict=True):
            section = _SECTIONS[name]
            items = [section.from_row(row) for row in rows]
            if name in SECCIONES_UNICAS:
                setattr(completa, name, items[0] if items else None)
            else:
                setattr(completa, name, items)
        return completa

    async def exists_activa(
        self, codigo_productor: str, gestion: int, *, excluding_id: str | None = None
    ) -> bool:
        row = await self._executor.read_one(
            self._count_activas(codigo_productor, gestion, excluding_id),
            name="ficha.exists_activa",
        )
        return bool(row and row["total"])

    async def list_fichas(
        self, filtro: FichaFiltro, *, page: int, limit: int
    ) -> tuple[Sequence[Ficha], int]:
        stmt = self.order_by_latest(
            _apply_filtro(_root_select(), filtro), _FICHA.c.created_at, _FICHA.c.id_ficha
        )
        result = await self._executor.read_paginated(
            stmt, page=page, limit=limit, name="ficha.list"
        )
        return [_to_ficha(row) for row in result.rows], result.total

    async def count_by_estado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        return await self._count_grouped(_FICHA.c.estado_ficha, filtro, "ficha.count_by_estado")

    async def count_by_resultado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        return await self._count_grouped(
            _FICHA.c.resultado_certificacion, filtro, "ficha.count_by_resultado"
        )

    async def count_pendientes_sync(self, filtro: FichaFiltro) -> int:
        stmt = _apply_filtro(
            select(func.count().label("total")).select_from(_scoped_from()), filtro
        ).where(
            _FICHA.c.origen_captura == OrigenCaptura.OFFLINE.value,
            _FICHA.c.estado_sync == EstadoSync.PENDIENTE.value,
        )
        row = await self._executor.read_one(stmt, name="ficha.count_pendientes_sync")
        return int(row["total"]) if row else 0

    # ------------------------------------------------------------------
    # Aggregate writes
    # ------------------------------------------------------------------

    async def create_ficha_completa(
        self, ficha: Ficha, secciones: FichaSecciones
    ) -> FichaCompleta:
        ficha.validate()

        async def _work(tx: TransactionScope) -> str:
            await self._assert_unica(tx, ficha, excluding_id=None)
            await tx.query(insert(_FICHA).values(**_root_values(ficha)), name="ficha.insert")
            await self._write_sections(tx, ficha, secciones, replace=False)
            return ficha.id_ficha

        result = await TransactionScope.run(self.engine, _work, name="ficha.create_completa")
        id_ficha = self.ensure_committed(result, "crear la ficha")
        logger.info(
            "ficha.created",
            extra={
                "id_ficha": id_ficha,
                "codigo_productor": ficha.codigo_productor,
                "gestion": ficha.gestion,
                "sections": secciones.supplied(),
            },
        )
        return await self._reload(id_ficha)

    async def update_ficha_completa(
        self, id_ficha: str, ficha: Ficha, secciones: FichaSecciones
    ) -> FichaCompleta:
        ficha.validate()

        async def _work(tx: TransactionScope) -> str:
            outcome = await tx.query(
                update(_FICHA)
                .where(_FICHA.c.id_ficha == id_ficha, _FICHA.c.activo.is_(True))
                .values(**_mutable_values(ficha)),
                name="ficha.update",
            )
            if outcome.affected_rows == 0:
                raise FichaNotFound(id_ficha)
            await self._assert_unica(tx, ficha, excluding_id=id_ficha)
            await self._write_sections(tx, ficha, secciones, replace=True)
            return id_ficha

        result = await TransactionScope.run(self.engine, _work, name="ficha.update_completa")
        self.ensure_committed(result, "actualizar la ficha")
        logger.info(
            "ficha.replaced",
            extra={"id_ficha": id_ficha, "sections": secciones.supplied()},
        )
        return await self._reload(id_ficha)

    # ------------------------------------------------------------------
    # Root-only writes
    # ------------------------------------------------------------------

    async def update_root(self, ficha: Ficha) -> Ficha:
        """Persist the root row only (used by workflow transitions)."""
        result = await self._executor.write(
            update(_FICHA)
            .where(_FICHA.c.id_ficha == ficha.id_ficha, _FICHA.c.activo.is_(True))
            .values(**_mutable_values(ficha)),
            name="ficha.update_root",
        )
        self.ensure_written(result, "actualizar la ficha")
        if result.affected_rows == 0:
            raise FichaNotFound(ficha.id_ficha)
        return ficha

    async def soft_delete(self, id_ficha: str) -> None:
        result = await self._executor.write(
            update(_FICHA)
            .where(_FICHA.c.id_ficha == id_ficha, _FICHA.c.activo.is_(True))
            .values(activo=False, updated_at=self.utc_now()),
            name="ficha.soft_delete",
        )
        self.ensure_written(result, "eliminar la ficha")
        if result.affected_rows == 0:
            raise FichaNotFound(id_ficha)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _reload(self, id_ficha: str) -> FichaCompleta:
        completa = await self.load_ficha_completa(id_ficha)
        if completa is None:
            raise FichaNotFound(id_ficha)
        return completa

    @staticmethod
    def _count_activas(
        codigo_productor: str, gestion: int, excluding_id: str | None
    ) -> Select[Any]:
        stmt = select(func.count().label("total")).where(
            _FICHA.c.codigo_productor == codigo_productor,
            _FICHA.c.gestion == gestion,
            _FICHA.c.activo.is_(True),
        )
        if excluding_id is not None:
            stmt = stmt.where(_FICHA.c.id_ficha != excluding_id)
        return stmt

    async def _assert_unica(
        self, tx: TransactionScope, ficha: Ficha, *, excluding_id: str | None
    ) -> None:
        outcome = await tx.query(
            self._count_activas(ficha.codigo_productor, ficha.gestion, excluding_id),
            name="ficha.exists_activa",
        )
        if outcome.rows and outcome.rows[0]["total"]:
            message = (
                f"Ya existe una ficha activa para el productor {ficha.codigo_productor} "
                f"en la gestion {ficha.gestion}"
            )
            raise FichaValidationError(message, errors=[message])

    async def _write_sections(
        self,
        tx: TransactionScope,
        ficha: Ficha,
        secciones: FichaSecciones,
        *,
        replace: bool,
    ) -> None:
        id_ficha = ficha.id_ficha

        for name in SECCIONES_UNICAS:
            item = getattr(secciones, name)
            if item is None:
                continue
            section = _SECTIONS[name]
            if replace:
                await tx.query(
                    delete(section.table).where(section.table.c.id_ficha == id_ficha),
                    name=f"{name}.delete",
                )
            await tx.query(
                insert(section.table).values(**section.to_row(item, id_ficha)),
                name=f"{name}.insert",
            )

        for name in SECCIONES_MULTIPLES:
            items = getattr(secciones, name)
            if items is None:
                continue
            section = _SECTIONS[name]
            if replace:
                await tx.query(
                    delete(section.table).where(section.table.c.id_ficha == id_ficha),
                    name=f"{name}.delete",
                )
            if items:
                await tx.query(
                    insert(section.table),
                    [section.to_row(item, id_ficha) for item in items],
                    name=f"{name}.insert",
                )

        for parcela in secciones.parcelas_inspeccionadas or ():
            await self._update_parcela(tx, ficha.codigo_productor, parcela)

    @staticmethod
    async def _update_parcela(
        tx: TransactionScope, codigo_productor: str, parcela: ParcelaInspeccionada
    ) -> None:
        values = {
            key: value
            for key, value in parcela.to_record().items()
            if key != "id_parcela" and value is not None
        }
        if not values:
            return
        await tx.query(
            update(_PARCELA)
            .where(
                _PARCELA.c.id_parcela == parcela.id_parcela,
                _PARCELA.c.codigo_productor == codigo_productor,
                _PARCELA.c.activo.is_(True),
            )
            .values(**values),
            name="parcela.update_inspeccion",
        )

    async def _count_grouped(self, column: Any, filtro: FichaFiltro, name: str) -> dict[str, int]:
        stmt = _apply_filtro(
            select(column, func.count().label("total")).select_from(_scoped_from()), filtro
        ).group_by(column)
        rows = await self._executor.read(stmt, name=name)
        return {row[column.name]: int(row["total"]) for row in rows}
