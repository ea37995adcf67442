# tests/unit/application/test_fichas_service.py
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date
from typing import Any

import pytest
from prometheus_client import REGISTRY

from apromam_api.application.schemas.dto.fichas import (
    AprobarFichaInput,
    AuthContext,
    CreateFichaInput,
    EnviarRevisionInput,
    ListFichasQuery,
    RechazarFichaInput,
    UpdateFichaInput,
)
from apromam_api.application.services.fichas_service import FichasService
from apromam_api.domain.entities.catalogos import Gestion, Parcela, Productor
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import FichaCompleta, FichaSecciones
from apromam_api.domain.entities.secciones import DetalleCultivoParcela
from apromam_api.domain.enums.ficha import EstadoFicha, ResultadoCertificacion
from apromam_api.domain.exceptions.fichas import (
    AccessDenied,
    ApprovalCompensationFailed,
    ApprovalReverted,
    FichaNotFound,
    FichaValidationError,
    GestionNotFound,
    InvalidStateTransition,
    PersistenceError,
    ProductorNotFound,
    SurfaceValidationFailed,
)
from apromam_api.domain.interfaces.repositories.fichas import FichaFiltro

TECNICO = AuthContext(user_id="tecnico-1", comunidad_ids=("c1",))
ADMIN = AuthContext(user_id="admin-1", is_elevated=True)
RECOMENDACIONES = "Mejorar el manejo de barreras vivas"


class _FakeFichas:
    """In-memory aggregate store; hands out copies so only writes change state."""

    def __init__(self) -> None:
        self.fichas: dict[str, Ficha] = {}
        self.detalles: dict[str, list[DetalleCultivoParcela]] = {}
        self.created: list[tuple[Ficha, FichaSecciones]] = []
        self.replaced: list[tuple[str, FichaSecciones]] = []
        self.root_updates: list[EstadoFicha] = []
        self.deleted: list[str] = []
        self.last_filtro: FichaFiltro | None = None

    def add(self, ficha: Ficha) -> Ficha:
        self.fichas[ficha.id_ficha] = ficha
        return ficha

    async def find_by_id(self, id_ficha: str) -> Ficha | None:
        ficha = self.fichas.get(id_ficha)
        return replace(ficha) if ficha else None

    async def load_ficha_completa(self, id_ficha: str) -> FichaCompleta | None:
        ficha = self.fichas.get(id_ficha)
        if ficha is None:
            return None
        return FichaCompleta(
            ficha=replace(ficha), detalles_cultivo=list(self.detalles.get(id_ficha, []))
        )

    async def create_ficha_completa(self, ficha: Ficha, secciones: FichaSecciones) -> FichaCompleta:
        self.created.append((ficha, secciones))
        self.fichas[ficha.id_ficha] = ficha
        return FichaCompleta(ficha=ficha)

    async def update_ficha_completa(
        self, id_ficha: str, ficha: Ficha, secciones: FichaSecciones
    ) -> FichaCompleta:
        self.replaced.append((id_ficha, secciones))
        self.fichas[id_ficha] = ficha
        return FichaCompleta(ficha=ficha)

    async def update_root(self, ficha: Ficha) -> Ficha:
        self.root_updates.append(ficha.estado_ficha)
        self.fichas[ficha.id_ficha] = replace(ficha)
        return ficha

    async def soft_delete(self, id_ficha: str) -> None:
        self.deleted.append(id_ficha)

    async def exists_activa(
        self, codigo_productor: str, gestion: int, *, excluding_id: str | None = None
    ) -> bool:
        return False

    async def list_fichas(
        self, filtro: FichaFiltro, *, page: int, limit: int
    ) -> tuple[Sequence[Ficha], int]:
        self.last_filtro = filtro
        items = list(self.fichas.values())
        return items[(page - 1) * limit : page * limit], len(items)

    async def count_by_estado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        return {"borrador": 2, "revision": 1}

    async def count_by_resultado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        return {"pendiente": 3}

    async def count_pendientes_sync(self, filtro: FichaFiltro) -> int:
        return 1


class _FakeProductores:
    def __init__(self) -> None:
        self.productores = {
            "PRD-001": Productor(
                codigo_productor="PRD-001",
                nombre_productor="Juan Mamani",
                id_comunidad="c1",
                superficie_total_has=5.0,
            ),
            "PRD-002": Productor(
                codigo_productor="PRD-002", nombre_productor="Rosa Quispe", id_comunidad="c2"
            ),
        }
        self.parcelas = {
            "PRD-001": [
                Parcela(
                    id_parcela="p1", codigo_productor="PRD-001", numero_parcela=1, superficie_ha=2.0
                ),
                Parcela(
                    id_parcela="p2", codigo_productor="PRD-001", numero_parcela=2, superficie_ha=3.0
                ),
            ]
        }

    async def find_by_codigo(self, codigo_productor: str) -> Productor | None:
        return self.productores.get(codigo_productor)

    async def list_parcelas_activas(self, codigo_productor: str) -> Sequence[Parcela]:
        return self.parcelas.get(codigo_productor, [])


class _FakeGestiones:
    async def find_by_anio(self, anio: int) -> Gestion | None:
        return Gestion(id_gestion="g-2024", anio_gestion=2024) if anio == 2024 else None


class _FakeDrafts:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.deleted: list[tuple[str, int, str]] = []

    async def save(
        self, codigo: str, gestion: int, created_by: str, data: Mapping[str, Any]
    ) -> None:
        raise NotImplementedError

    async def find(self, codigo: str, gestion: int, created_by: str) -> Mapping[str, Any] | None:
        return None

    async def delete_by_key(self, codigo: str, gestion: int, created_by: str) -> int:
        if self.fail:
            raise PersistenceError("draft store down")
        self.deleted.append((codigo, gestion, created_by))
        return 1


class _FakeSync:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def sincronizar_aprobacion(self, id_ficha: str) -> None:
        self.calls.append(id_ficha)
        if self.error is not None:
            raise self.error


def _service(
    fichas: _FakeFichas | None = None,
    *,
    drafts: _FakeDrafts | None = None,
    sync: _FakeSync | None = None,
) -> FichasService:
    return FichasService(
        fichas=fichas or _FakeFichas(),
        productores=_FakeProductores(),
        gestiones=_FakeGestiones(),
        drafts=drafts or _FakeDrafts(),
        sync_gateway=sync or _FakeSync(),
    )


def _ficha(codigo: str = "PRD-001") -> Ficha:
    return Ficha.crear(
        codigo_productor=codigo,
        gestion=2024,
        id_gestion="g-2024",
        fecha_inspeccion=date(2024, 5, 10),
        inspector_interno="Maria Lopez",
        created_by="tecnico-1",
        recomendaciones=RECOMENDACIONES,
        firma_inspector="M. Lopez",
    )


def _en_revision() -> Ficha:
    ficha = _ficha()
    ficha.marcar_en_revision()
    return ficha


def _create_input(**extra: object) -> CreateFichaInput:
    payload: dict[str, object] = {
        "codigo_productor": " prd-001",
        "gestion": 2024,
        "fecha_inspeccion": "2024-05-10",
        "inspector_interno": "Maria Lopez",
    }
    payload.update(extra)
    return CreateFichaInput.model_validate(payload)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_builds_draft_and_cleans_up_saved_draft() -> None:
    fichas, drafts = _FakeFichas(), _FakeDrafts()
    service = _service(fichas, drafts=drafts)

    completa = await service.create_ficha_completa(
        _create_input(no_conformidades=[]), TECNICO
    )

    ficha, secciones = fichas.created[0]
    assert completa.ficha is ficha
    assert ficha.codigo_productor == "PRD-001"
    assert ficha.id_gestion == "g-2024"
    assert ficha.created_by == "tecnico-1"
    assert ficha.estado_ficha is EstadoFicha.BORRADOR
    assert secciones.no_conformidades == ()
    assert drafts.deleted == [("PRD-001", 2024, "tecnico-1")]


@pytest.mark.asyncio
async def test_create_survives_draft_cleanup_failure(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    fichas = _FakeFichas()
    service = _service(fichas, drafts=_FakeDrafts(fail=True))

    await service.create_ficha_completa(_create_input(), TECNICO)

    assert len(fichas.created) == 1
    assert any(r.getMessage() == "fichas.draft_cleanup.failed" for r in caplog.records)


@pytest.mark.asyncio
async def test_create_rejects_unknown_producer() -> None:
    with pytest.raises(ProductorNotFound):
        await _service().create_ficha_completa(_create_input(codigo_productor="PRD-999"), TECNICO)


@pytest.mark.asyncio
async def test_create_rejects_producer_outside_scope() -> None:
    with pytest.raises(AccessDenied):
        await _service().create_ficha_completa(_create_input(codigo_productor="PRD-002"), TECNICO)


@pytest.mark.asyncio
async def test_create_rejects_unknown_period() -> None:
    with pytest.raises(GestionNotFound):
        await _service().create_ficha_completa(
            _create_input(gestion=2030, fecha_inspeccion="2030-01-01"), TECNICO
        )


@pytest.mark.asyncio
async def test_create_rejects_inspection_outside_period_year() -> None:
    fichas = _FakeFichas()

    with pytest.raises(FichaValidationError) as info:
        await _service(fichas).create_ficha_completa(
            _create_input(fecha_inspeccion="2023-12-31"), TECNICO
        )

    assert "no corresponde a la gestion 2024" in info.value.message
    assert fichas.created == []


# ---------------------------------------------------------------------------
# Replace and delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_only_allowed_in_draft() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())

    with pytest.raises(InvalidStateTransition) as info:
        await _service(fichas).update_ficha_completa(ficha.id_ficha, UpdateFichaInput(), ADMIN)

    assert info.value.action == "editar"
    assert fichas.replaced == []


@pytest.mark.asyncio
async def test_update_passes_supplied_sections() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_ficha())
    data = UpdateFichaInput.model_validate(
        {"persona_entrevistada": "Ana Mamani", "acciones_correctivas": []}
    )

    completa = await _service(fichas).update_ficha_completa(ficha.id_ficha, data, TECNICO)

    assert completa.ficha.persona_entrevistada == "Ana Mamani"
    assert fichas.replaced[0][1].acciones_correctivas == ()
    assert fichas.replaced[0][1].no_conformidades is None


@pytest.mark.asyncio
async def test_update_rejects_date_outside_period() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_ficha())

    with pytest.raises(FichaValidationError):
        await _service(fichas).update_ficha_completa(
            ficha.id_ficha, UpdateFichaInput(fecha_inspeccion=date(2025, 1, 2)), TECNICO
        )


@pytest.mark.asyncio
async def test_delete_only_allowed_in_draft() -> None:
    fichas = _FakeFichas()
    borrador = fichas.add(_ficha())
    revision = fichas.add(_en_revision())
    service = _service(fichas)

    await service.delete_ficha(borrador.id_ficha, TECNICO)
    with pytest.raises(InvalidStateTransition):
        await service.delete_ficha(revision.id_ficha, TECNICO)

    assert fichas.deleted == [borrador.id_ficha]


@pytest.mark.asyncio
async def test_missing_ficha_is_not_found() -> None:
    with pytest.raises(FichaNotFound):
        await _service().get_ficha_completa("nope", ADMIN)


@pytest.mark.asyncio
async def test_read_outside_scope_is_denied() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_ficha("PRD-002"))

    with pytest.raises(AccessDenied):
        await _service(fichas).get_ficha_completa(ficha.id_ficha, TECNICO)


# ---------------------------------------------------------------------------
# Submission and surface gating
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submission_blocked_by_surface_overage() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_ficha())
    fichas.detalles[ficha.id_ficha] = [
        DetalleCultivoParcela(id_parcela="p1", id_tipo_cultivo="mani", superficie_ha=1.5),
        DetalleCultivoParcela(id_parcela="p1", id_tipo_cultivo="maiz", superficie_ha=1.0),
    ]

    with pytest.raises(SurfaceValidationFailed) as info:
        await _service(fichas).enviar_revision(ficha.id_ficha, EnviarRevisionInput(), TECNICO)

    assert info.value.errors == [
        "Parcela 1: Los cultivos suman 2.5000 ha pero la parcela tiene 2.0000 ha. "
        "Exceso: 0.5000 ha"
    ]
    assert fichas.root_updates == []
    assert fichas.fichas[ficha.id_ficha].es_borrador


@pytest.mark.asyncio
async def test_submission_with_warnings_proceeds(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    fichas = _FakeFichas()
    ficha = fichas.add(_ficha())
    fichas.detalles[ficha.id_ficha] = [
        DetalleCultivoParcela(id_parcela="p1", id_tipo_cultivo="mani", superficie_ha=1.0),
    ]
    before = _sample("fichas_transitions_total", {"action": "enviar_revision"})

    result = await _service(fichas).enviar_revision(
        ficha.id_ficha, EnviarRevisionInput(), TECNICO
    )

    assert result.en_revision
    assert result.recomendaciones == RECOMENDACIONES
    assert fichas.root_updates == [EstadoFicha.REVISION]
    assert any(r.getMessage() == "fichas.surface.warnings" for r in caplog.records)
    assert _sample("fichas_transitions_total", {"action": "enviar_revision"}) == before + 1


@pytest.mark.asyncio
async def test_submission_from_review_is_invalid() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())

    with pytest.raises(InvalidStateTransition):
        await _service(fichas).enviar_revision(ficha.id_ficha, EnviarRevisionInput(), TECNICO)


# ---------------------------------------------------------------------------
# Approval saga
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_approval_requires_elevated_caller() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())

    with pytest.raises(AccessDenied):
        await _service(fichas).aprobar_ficha(ficha.id_ficha, AprobarFichaInput(), TECNICO)

    assert fichas.root_updates == []


@pytest.mark.asyncio
async def test_approval_persists_then_synchronizes() -> None:
    fichas, sync = _FakeFichas(), _FakeSync()
    ficha = fichas.add(_en_revision())

    result = await _service(fichas, sync=sync).aprobar_ficha(
        ficha.id_ficha, AprobarFichaInput(comentarios_evaluacion="Cumple"), ADMIN
    )

    assert result.aprobada
    assert fichas.root_updates == [EstadoFicha.APROBADO]
    assert sync.calls == [ficha.id_ficha]
    assert fichas.fichas[ficha.id_ficha].comentarios_evaluacion == "Cumple"


@pytest.mark.asyncio
async def test_failed_sync_compensates_to_rejected() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())
    failure = PersistenceError("categoria no escrita")
    reverted_before = _sample("fichas_approval_reverted_total")

    with pytest.raises(ApprovalReverted) as info:
        await _service(fichas, sync=_FakeSync(failure)).aprobar_ficha(
            ficha.id_ficha, AprobarFichaInput(), ADMIN
        )

    stored = fichas.fichas[ficha.id_ficha]
    assert fichas.root_updates == [EstadoFicha.APROBADO, EstadoFicha.RECHAZADO]
    assert stored.estado_ficha is EstadoFicha.RECHAZADO
    assert stored.resultado_certificacion is ResultadoCertificacion.RECHAZADO
    assert stored.comentarios_evaluacion == "Aprobacion revertida: categoria no escrita"
    assert info.value.id_ficha == ficha.id_ficha
    assert info.value.sync_error == "categoria no escrita"
    assert info.value.__cause__ is failure
    assert _sample("fichas_approval_reverted_total") == reverted_before + 1


class _FailingCompensationFichas(_FakeFichas):
    """Accepts the approval write and rejects every root update after it."""

    async def update_root(self, ficha: Ficha) -> Ficha:
        if self.root_updates:
            raise PersistenceError("No se pudo actualizar la ficha")
        return await super().update_root(ficha)


@pytest.mark.asyncio
async def test_failed_compensation_raises_distinct_error(
    caplog: pytest.LogCaptureFixture,
) -> None:
    fichas = _FailingCompensationFichas()
    ficha = fichas.add(_en_revision())
    sync_failure = TimeoutError("categoria no escrita")
    reverted_before = _sample("fichas_approval_reverted_total")

    with caplog.at_level(logging.ERROR), pytest.raises(ApprovalCompensationFailed) as info:
        await _service(fichas, sync=_FakeSync(sync_failure)).aprobar_ficha(
            ficha.id_ficha, AprobarFichaInput(), ADMIN
        )

    assert not isinstance(info.value, ApprovalReverted)
    assert info.value.sync_error == "categoria no escrita"
    assert isinstance(info.value.persist_error, PersistenceError)
    assert info.value.__cause__ is sync_failure
    assert info.value.details["persist_error_type"] == "PersistenceError"
    assert fichas.fichas[ficha.id_ficha].estado_ficha is EstadoFicha.APROBADO
    assert _sample("fichas_approval_reverted_total") == reverted_before
    events = [r for r in caplog.records if r.getMessage() == "fichas.aprobar.compensation_failed"]
    assert len(events) == 1
    assert events[0].sync_error_type == "TimeoutError"
    assert events[0].persist_error_type == "PersistenceError"


@pytest.mark.asyncio
async def test_failed_sync_without_message_uses_error_type() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())

    with pytest.raises(ApprovalReverted) as info:
        await _service(fichas, sync=_FakeSync(TimeoutError())).aprobar_ficha(
            ficha.id_ficha, AprobarFichaInput(), ADMIN
        )

    assert info.value.sync_error == "TimeoutError"


@pytest.mark.asyncio
async def test_reject_and_return_to_draft() -> None:
    fichas = _FakeFichas()
    ficha = fichas.add(_en_revision())
    service = _service(fichas)

    with pytest.raises(AccessDenied):
        await service.rechazar_ficha(
            ficha.id_ficha, RechazarFichaInput(motivo="Faltan registros"), TECNICO
        )

    await service.rechazar_ficha(
        ficha.id_ficha, RechazarFichaInput(motivo="Faltan registros"), ADMIN
    )
    await service.devolver_borrador(ficha.id_ficha, ADMIN)

    assert fichas.root_updates == [EstadoFicha.RECHAZADO, EstadoFicha.BORRADOR]
    assert fichas.fichas[ficha.id_ficha].resultado_certificacion is ResultadoCertificacion.PENDIENTE


# ---------------------------------------------------------------------------
# Listing and statistics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_listing_is_scoped_to_caller_communities() -> None:
    fichas = _FakeFichas()
    fichas.add(_ficha())
    service = _service(fichas)

    page = await service.list_fichas(ListFichasQuery(gestion=2024), TECNICO)
    assert page.total == 1
    assert fichas.last_filtro is not None
    assert fichas.last_filtro.comunidades == ("c1",)

    await service.list_fichas(ListFichasQuery(), ADMIN)
    assert fichas.last_filtro.comunidades is None

    with pytest.raises(AccessDenied):
        await service.list_fichas(ListFichasQuery(id_comunidad="c2"), TECNICO)


@pytest.mark.asyncio
async def test_statistics_combine_counts() -> None:
    stats = await _service().get_estadisticas(ADMIN, gestion=2024)

    assert stats.total == 3
    assert stats.por_estado == {"borrador": 2, "revision": 1}
    assert stats.por_resultado == {"pendiente": 3}
    assert stats.pendientes_sincronizacion == 1
