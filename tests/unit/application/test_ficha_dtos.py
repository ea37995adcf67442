# tests/unit/application/test_ficha_dtos.py
from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from apromam_api.application.schemas.dto.fichas import (
    AuthContext,
    CreateFichaInput,
    FichaListPage,
    ListFichasQuery,
    UpdateFichaInput,
)
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.secciones import NoConformidad
from apromam_api.domain.exceptions.fichas import FichaValidationError, PreconditionFailed


def _create_payload(**extra: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "codigo_productor": "PRD-001",
        "gestion": 2024,
        "fecha_inspeccion": "2024-05-10",
        "inspector_interno": "Maria Lopez",
    }
    payload.update(extra)
    return payload


def test_omitted_sections_stay_untouched() -> None:
    secciones = UpdateFichaInput().to_secciones()

    assert secciones.supplied() == []
    assert secciones.no_conformidades is None


def test_empty_list_means_clear_and_null_means_untouched() -> None:
    cleared = UpdateFichaInput.model_validate({"no_conformidades": []}).to_secciones()
    untouched = UpdateFichaInput.model_validate({"no_conformidades": None}).to_secciones()

    assert cleared.no_conformidades == ()
    assert untouched.no_conformidades is None


def test_sections_convert_to_entities() -> None:
    data = CreateFichaInput.model_validate(
        _create_payload(
            revision_documentacion={"solicitud_ingreso": "cumple"},
            no_conformidades=[{"descripcion_no_conformidad": "Uso de urea en parcela 2"}],
            detalles_cultivo=[
                {
                    "id_parcela": "p1",
                    "id_tipo_cultivo": "t1",
                    "superficie_ha": 1.5,
                    "manejo": {},
                },
                {
                    "id_parcela": "p1",
                    "id_tipo_cultivo": "t2",
                    "superficie_ha": 0.5,
                    "manejo": {"procedencia_semilla": "propia"},
                },
            ],
        )
    )

    secciones = data.to_secciones()

    assert secciones.revision_documentacion is not None
    assert secciones.revision_documentacion.solicitud_ingreso == "cumple"
    assert secciones.no_conformidades == (
        NoConformidad(descripcion_no_conformidad="Uso de urea en parcela 2"),
    )
    assert secciones.detalles_cultivo is not None
    assert secciones.detalles_cultivo[0].manejo is None
    assert secciones.detalles_cultivo[1].manejo is not None
    assert secciones.supplied() == [
        "revision_documentacion",
        "no_conformidades",
        "detalles_cultivo",
    ]


def test_invalid_section_value_raises_domain_validation() -> None:
    data = CreateFichaInput.model_validate(
        _create_payload(actividades_pecuarias=[{"tipo_ganado": "mayor", "cantidad": -4}])
    )

    with pytest.raises(FichaValidationError):
        data.to_secciones()


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(ValidationError):
        CreateFichaInput.model_validate(_create_payload(estado_ficha="aprobado"))


def test_strings_are_stripped() -> None:
    data = CreateFichaInput.model_validate(_create_payload(inspector_interno="  Maria  "))

    assert data.inspector_interno == "Maria"


@pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 101}])
def test_list_query_bounds(params: dict[str, int]) -> None:
    with pytest.raises(ValidationError):
        ListFichasQuery.model_validate(params)


def test_update_applies_only_supplied_root_fields() -> None:
    ficha = Ficha.crear(
        codigo_productor="PRD-001",
        gestion=2024,
        fecha_inspeccion=date(2024, 5, 10),
        inspector_interno="Maria Lopez",
        created_by="user-1",
        persona_entrevistada="Juan",
    )

    UpdateFichaInput(inspector_interno="Pedro Choque", firma_productor="J. Mamani").apply_to(ficha)

    assert ficha.inspector_interno == "Pedro Choque"
    assert ficha.firma_productor == "J. Mamani"
    assert ficha.persona_entrevistada == "Juan"
    assert ficha.fecha_inspeccion == date(2024, 5, 10)


def test_update_rejects_short_inspector() -> None:
    ficha = Ficha.crear(
        codigo_productor="PRD-001",
        gestion=2024,
        fecha_inspeccion=date(2024, 5, 10),
        inspector_interno="Maria Lopez",
        created_by="user-1",
    )

    with pytest.raises(PreconditionFailed):
        UpdateFichaInput(inspector_interno="PC").apply_to(ficha)


def test_auth_context_scope() -> None:
    tecnico = AuthContext(user_id="u1", comunidad_ids=("c1",))

    assert tecnico.puede_acceder("c1")
    assert not tecnico.puede_acceder("c2")
    assert not tecnico.puede_acceder(None)
    assert not AuthContext(user_id="u2").puede_acceder("c1")
    assert AuthContext(user_id="admin", is_elevated=True).puede_acceder("c2")


@pytest.mark.parametrize(("total", "pages"), [(0, 0), (20, 1), (21, 2)])
def test_list_page_count(total: int, pages: int) -> None:
    assert FichaListPage(items=[], total=total, page=1, limit=20).pages == pages
