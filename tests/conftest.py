# tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import pytest
import pytest_asyncio
from sqlalchemy import Table, event, insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from apromam_api.infrastructure.database.models import catalogos as _catalogos  # noqa: F401
from apromam_api.infrastructure.database.models import fichas as _fichas  # noqa: F401
from apromam_api.infrastructure.database.models.base import Base, new_id
from apromam_api.infrastructure.database.models.catalogos import (
    ComunidadModel,
    GestionModel,
    ParcelaModel,
    ProductorModel,
    TipoCultivoModel,
)
from apromam_api.infrastructure.database.query_executor import QueryExecutor


def table(model: type[Base]) -> Table:
    return cast(Table, model.__table__)


@dataclass(frozen=True)
class Catalogo:
    """Identifiers of the reference rows seeded for a test."""

    id_comunidad: str
    id_comunidad_otra: str
    codigo_productor: str
    codigo_productor_otro: str
    id_parcela_1: str
    id_parcela_2: str
    id_parcela_inactiva: str
    id_parcela_ajena: str
    id_gestion: str
    anio_gestion: int
    id_tipo_mani: str
    id_tipo_maiz: str


@dataclass
class PoolCounter:
    checkouts: int = 0
    checkins: int = 0


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite engine with the full schema created."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'apromam.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def executor(engine: AsyncEngine) -> QueryExecutor:
    return QueryExecutor(engine)


@pytest.fixture
def pool_counter(engine: AsyncEngine) -> PoolCounter:
    """Count pool checkouts and checkins on ``engine``."""
    counter = PoolCounter()

    def _checkout(*_: object) -> None:
        counter.checkouts += 1

    def _checkin(*_: object) -> None:
        counter.checkins += 1

    event.listen(engine.sync_engine, "checkout", _checkout)
    event.listen(engine.sync_engine, "checkin", _checkin)
    return counter


def _parcela_row(
    id_parcela: str,
    codigo_productor: str,
    numero: int,
    superficie: float,
    *,
    activo: bool = True,
    tipo_barrera: str | None = None,
) -> dict[str, object]:
    return {
        "id_parcela": id_parcela,
        "codigo_productor": codigo_productor,
        "numero_parcela": numero,
        "superficie_ha": superficie,
        "rotacion": None,
        "utiliza_riego": None,
        "tipo_barrera": tipo_barrera,
        "insumos_organicos": None,
        "latitud_sud": -19.1,
        "longitud_oeste": -64.3,
        "activo": activo,
    }


@pytest_asyncio.fixture
async def catalogo(engine: AsyncEngine) -> Catalogo:
    """Seed two communities, two producers, plots, the 2024 period and crop types.

    Producer ``PRD-001`` owns plot 1 (2.0 ha), plot 2 (3.0 ha) and an inactive
    plot; ``PRD-002`` lives in the other community and owns one plot.
    """
    ids = Catalogo(
        id_comunidad=new_id(),
        id_comunidad_otra=new_id(),
        codigo_productor="PRD-001",
        codigo_productor_otro="PRD-002",
        id_parcela_1=new_id(),
        id_parcela_2=new_id(),
        id_parcela_inactiva=new_id(),
        id_parcela_ajena=new_id(),
        id_gestion=new_id(),
        anio_gestion=2024,
        id_tipo_mani=new_id(),
        id_tipo_maiz=new_id(),
    )
    async with engine.begin() as conn:
        await conn.execute(
            insert(table(ComunidadModel)),
            [
                {
                    "id_comunidad": ids.id_comunidad,
                    "nombre_comunidad": "Villa Serrano",
                    "activo": True,
                },
                {
                    "id_comunidad": ids.id_comunidad_otra,
                    "nombre_comunidad": "Padilla",
                    "activo": True,
                },
            ],
        )
        await conn.execute(
            insert(table(ProductorModel)),
            [
                {
                    "codigo_productor": ids.codigo_productor,
                    "nombre_productor": "Juan Mamani",
                    "id_comunidad": ids.id_comunidad,
                    "superficie_total_has": 5.0,
                    "categoria_actual": "2T",
                    "activo": True,
                },
                {
                    "codigo_productor": ids.codigo_productor_otro,
                    "nombre_productor": "Rosa Quispe",
                    "id_comunidad": ids.id_comunidad_otra,
                    "superficie_total_has": 1.5,
                    "categoria_actual": None,
                    "activo": True,
                },
            ],
        )
        await conn.execute(
            insert(table(ParcelaModel)),
            [
                _parcela_row(
                    ids.id_parcela_1, ids.codigo_productor, 1, 2.0, tipo_barrera="ninguna"
                ),
                _parcela_row(ids.id_parcela_2, ids.codigo_productor, 2, 3.0),
                _parcela_row(ids.id_parcela_inactiva, ids.codigo_productor, 3, 9.0, activo=False),
                _parcela_row(ids.id_parcela_ajena, ids.codigo_productor_otro, 1, 1.5),
            ],
        )
        await conn.execute(
            insert(table(GestionModel)).values(
                id_gestion=ids.id_gestion,
                anio_gestion=ids.anio_gestion,
                descripcion="Gestion 2024",
                activa=True,
            )
        )
        await conn.execute(
            insert(table(TipoCultivoModel)),
            [
                {
                    "id_tipo_cultivo": ids.id_tipo_mani,
                    "nombre_cultivo": "Mani",
                    "es_certificable": True,
                },
                {
                    "id_tipo_cultivo": ids.id_tipo_maiz,
                    "nombre_cultivo": "Maiz",
                    "es_certificable": False,
                },
            ],
        )
    return ids
