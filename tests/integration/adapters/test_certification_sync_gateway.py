# tests/integration/adapters/test_certification_sync_gateway.py
from __future__ import annotations

from datetime import date
from typing import Any, cast

import pytest
from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncEngine

from apromam_api.adapters.gateways.certification_sync_gateway import SqlCertificationSyncGateway
from apromam_api.adapters.repositories.ficha_repository import FichaRepository
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import FichaSecciones
from apromam_api.domain.entities.secciones import NoConformidad
from apromam_api.domain.exceptions.fichas import (
    FichaNotFound,
    GestionNotFound,
    PreconditionFailed,
)
from apromam_api.infrastructure.database.models.catalogos import ProductorCategoriaModel
from apromam_api.infrastructure.database.models.fichas import NoConformidadModel
from apromam_api.infrastructure.database.query_executor import QueryExecutor

_CATEGORIA = cast(Table, ProductorCategoriaModel.__table__)
_NO_CONFORMIDAD = cast(Table, NoConformidadModel.__table__)


@pytest.fixture
def gateway(engine: AsyncEngine) -> SqlCertificationSyncGateway:
    return SqlCertificationSyncGateway(engine)


async def _ficha(
    repo: FichaRepository,
    *,
    codigo: str = "PRD-001",
    gestion: int = 2024,
    id_gestion: str | None = None,
    aprobar: bool = True,
) -> Ficha:
    ficha = Ficha.crear(
        codigo_productor=codigo,
        gestion=gestion,
        id_gestion=id_gestion,
        fecha_inspeccion=date(gestion, 5, 10),
        inspector_interno="Maria Lopez",
        created_by="user-1",
    )
    secciones = FichaSecciones(
        no_conformidades=(
            NoConformidad(descripcion_no_conformidad="Uso de urea en parcela 2"),
            NoConformidad(
                descripcion_no_conformidad="Quema de rastrojos", estado_seguimiento="corregido"
            ),
        )
    )
    await repo.create_ficha_completa(ficha, secciones)
    if aprobar:
        ficha.marcar_en_revision()
        ficha.aprobar()
        await repo.update_root(ficha)
    return ficha


async def _estados(executor: QueryExecutor, id_ficha: str) -> list[str | None]:
    rows = await executor.read(
        select(_NO_CONFORMIDAD.c.estado_seguimiento)
        .where(_NO_CONFORMIDAD.c.id_ficha == id_ficha)
        .order_by(_NO_CONFORMIDAD.c.descripcion_no_conformidad)
    )
    return [r["estado_seguimiento"] for r in rows]


@pytest.mark.asyncio
async def test_sync_opens_follow_up_and_records_category(
    gateway: SqlCertificationSyncGateway, executor: QueryExecutor, catalogo: Any
) -> None:
    ficha = await _ficha(FichaRepository(executor), id_gestion=catalogo.id_gestion)

    await gateway.sincronizar_aprobacion(ficha.id_ficha)

    assert await _estados(executor, ficha.id_ficha) == ["corregido", "pendiente"]
    rows = await executor.read(select(_CATEGORIA))
    assert len(rows) == 1
    assert rows[0]["codigo_productor"] == "PRD-001"
    assert rows[0]["id_gestion"] == catalogo.id_gestion
    assert rows[0]["categoria"] == "2T"
    assert rows[0]["id_ficha"] == ficha.id_ficha
    assert rows[0]["fecha_evaluacion"] == date(2024, 5, 10)


@pytest.mark.asyncio
async def test_sync_is_repeatable(
    gateway: SqlCertificationSyncGateway, executor: QueryExecutor, catalogo: Any
) -> None:
    ficha = await _ficha(FichaRepository(executor), id_gestion=catalogo.id_gestion)

    await gateway.sincronizar_aprobacion(ficha.id_ficha)
    await gateway.sincronizar_aprobacion(ficha.id_ficha)

    assert len(await executor.read(select(_CATEGORIA))) == 1
    assert await _estados(executor, ficha.id_ficha) == ["corregido", "pendiente"]


@pytest.mark.asyncio
async def test_period_is_resolved_by_year_and_category_defaults_to_organic(
    gateway: SqlCertificationSyncGateway, executor: QueryExecutor, catalogo: Any
) -> None:
    ficha = await _ficha(FichaRepository(executor), codigo="PRD-002")

    await gateway.sincronizar_aprobacion(ficha.id_ficha)

    row = await executor.read_one(select(_CATEGORIA))
    assert row is not None
    assert row["id_gestion"] == catalogo.id_gestion
    assert row["categoria"] == "E"


@pytest.mark.asyncio
async def test_only_approved_fichas_are_synchronized(
    gateway: SqlCertificationSyncGateway, executor: QueryExecutor, catalogo: Any
) -> None:
    ficha = await _ficha(FichaRepository(executor), aprobar=False)

    with pytest.raises(PreconditionFailed):
        await gateway.sincronizar_aprobacion(ficha.id_ficha)
    with pytest.raises(FichaNotFound):
        await gateway.sincronizar_aprobacion("missing")
    assert await executor.read(select(_CATEGORIA)) == []


@pytest.mark.asyncio
async def test_unknown_period_writes_nothing(
    gateway: SqlCertificationSyncGateway, executor: QueryExecutor, catalogo: Any
) -> None:
    ficha = await _ficha(FichaRepository(executor), gestion=2023)

    with pytest.raises(GestionNotFound):
        await gateway.sincronizar_aprobacion(ficha.id_ficha)

    assert await _estados(executor, ficha.id_ficha) == ["corregido", None]
    assert await executor.read(select(_CATEGORIA)) == []
