# tests/unit/domain/test_secciones.py
from __future__ import annotations

import pytest

from apromam_api.domain.entities.ficha_completa import FichaSecciones
from apromam_api.domain.entities.secciones import (
    AccionCorrectiva,
    ActividadPecuaria,
    CosechaVentas,
    DetalleCultivoParcela,
    ManejoCultivo,
    NoConformidad,
    ParcelaInspeccionada,
    PlanificacionSiembra,
    RevisionDocumentacion,
)
from apromam_api.domain.exceptions.fichas import FichaValidationError


def test_revision_documentacion_accepts_compliance_values() -> None:
    revision = RevisionDocumentacion(solicitud_ingreso="cumple", recibo_pago="no_aplica")

    assert revision.to_record()["solicitud_ingreso"] == "cumple"
    assert revision.to_record()["diario_campo"] is None


def test_revision_documentacion_rejects_unknown_value() -> None:
    with pytest.raises(FichaValidationError) as info:
        RevisionDocumentacion(croquis_unidad="tal vez")

    assert info.value.errors == [
        "croquis_unidad debe ser uno de: cumple, parcial, no_cumple, no_aplica"
    ]


@pytest.mark.parametrize(
    ("kwargs", "error"),
    [
        ({"numero_accion": 0, "descripcion_accion": "Instalar barreras"}, "mayor a 0"),
        ({"numero_accion": 1, "descripcion_accion": "abc"}, "al menos 5"),
        ({"numero_accion": 1, "descripcion_accion": "x" * 501}, "no puede exceder 500"),
    ],
)
def test_accion_correctiva_rules(kwargs: dict[str, object], error: str) -> None:
    with pytest.raises(FichaValidationError) as info:
        AccionCorrectiva(**kwargs)  # type: ignore[arg-type]

    assert any(error in message for message in info.value.errors)


def test_no_conformidad_follow_up_state_is_closed_set() -> None:
    NoConformidad(descripcion_no_conformidad="Uso de urea", estado_seguimiento="corregido")

    with pytest.raises(FichaValidationError):
        NoConformidad(descripcion_no_conformidad="Uso de urea", estado_seguimiento="cerrado")


@pytest.mark.parametrize("cantidad", [-1, 10_001])
def test_actividad_pecuaria_quantity_bounds(cantidad: int) -> None:
    with pytest.raises(FichaValidationError):
        ActividadPecuaria(tipo_ganado="menor", cantidad=cantidad)


def test_actividad_pecuaria_rejects_unknown_livestock_class() -> None:
    with pytest.raises(FichaValidationError):
        ActividadPecuaria(tipo_ganado="peces", cantidad=3)


def test_manejo_other_requires_detail() -> None:
    with pytest.raises(FichaValidationError) as info:
        ManejoCultivo(metodo_aporque="otro")

    assert info.value.errors == ["Debe especificar el aporque cuando selecciona 'otro'"]
    assert ManejoCultivo(metodo_aporque="otro", metodo_aporque_otro="Con yunta").metodo_aporque


def test_manejo_vacio() -> None:
    assert ManejoCultivo().vacio
    assert not ManejoCultivo(procedencia_semilla="propia").vacio


@pytest.mark.parametrize("superficie", [0.0, -1.0, 10_000.5])
def test_detalle_cultivo_area_bounds(superficie: float) -> None:
    with pytest.raises(FichaValidationError):
        DetalleCultivoParcela(id_parcela="p1", id_tipo_cultivo="t1", superficie_ha=superficie)


def test_cosecha_ventas_rules() -> None:
    with pytest.raises(FichaValidationError) as info:
        CosechaVentas(
            tipo_mani="criollo",
            superficie_actual_ha=-1,
            cosecha_estimada_qq=-2,
            numero_parcelas=101,
            destino_ventas_qq=-1,
        )

    assert len(info.value.errors) == 5


def test_planificacion_allows_ten_percent_over_planned_area() -> None:
    plan = PlanificacionSiembra(
        id_parcela="p1", area_parcela_planificada_ha=2.0, mani_ha=1.2, maiz_ha=1.0
    )

    assert plan.suma_cultivos == pytest.approx(2.2)
    with pytest.raises(FichaValidationError):
        PlanificacionSiembra(id_parcela="p1", area_parcela_planificada_ha=2.0, mani_ha=2.5)


def test_parcela_inspeccionada_rejects_out_of_range_coordinates() -> None:
    with pytest.raises(FichaValidationError):
        ParcelaInspeccionada(id_parcela="p1", latitud_sud=-95.0)
    with pytest.raises(FichaValidationError):
        ParcelaInspeccionada(id_parcela="p1", tipo_barrera="alambre")


def test_supplied_lists_present_sections_in_write_order() -> None:
    secciones = FichaSecciones(
        no_conformidades=(),
        revision_documentacion=RevisionDocumentacion(),
        parcelas_inspeccionadas=(ParcelaInspeccionada(id_parcela="p1"),),
    )

    assert secciones.supplied() == [
        "revision_documentacion",
        "no_conformidades",
        "parcelas_inspeccionadas",
    ]
    assert FichaSecciones().supplied() == []
