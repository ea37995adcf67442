# src/apromam_api/application/schemas/dto/fichas.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""DTOs for the fichas service.

Purpose:
    Plain input shapes for the ficha aggregate (root fields plus up to ten
    optional sections and the observed plot attributes), the workflow
    commands, listing queries and the caller's authorization context.

Layer:
    application/schemas/dto

Notes:
    - An omitted section (or ``None``) means "leave as stored"; an empty list
      for a 1:n section means "clear it". :meth:`FichaSeccionesInput.to_secciones`
      preserves that distinction.
    - Field-level business rules live on the domain entities; converting a
      DTO into entities raises ``FichaValidationError`` on violations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import Field

from apromam_api.application.schemas.dto.base import BaseDTO
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import FichaSecciones
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
from apromam_api.domain.enums.ficha import CategoriaProductor, EstadoFicha, OrigenCaptura

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class RevisionDocumentacionInput(BaseDTO):
    solicitud_ingreso: str | None = None
    normas_reglamentos: str | None = None
    contrato_produccion: str | None = None
    croquis_unidad: str | None = None
    diario_campo: str | None = None
    registro_cosecha: str | None = None
    recibo_pago: str | None = None


class EvaluacionMitigacionInput(BaseDTO):
    practica_mitigacion_riesgos: str | None = None
    mitigacion_contaminacion: str | None = None
    deposito_herramientas: str | None = None
    deposito_insumos_organicos: str | None = None
    evita_quema_residuos: str | None = None
    practica_mitigacion_riesgos_descripcion: str | None = None
    mitigacion_contaminacion_descripcion: str | None = None


class EvaluacionPoscosechaInput(BaseDTO):
    secado_tendal: str | None = None
    envases_limpios: str | None = None
    almacen_protegido: str | None = None
    evidencia_comercializacion: str | None = None
    comentarios_poscosecha: str | None = None


class EvaluacionConocimientoInput(BaseDTO):
    conoce_normas_organicas: str | None = None
    recibio_capacitacion: str | None = None
    comentarios_conocimiento: str | None = None


class AccionCorrectivaInput(BaseDTO):
    numero_accion: int
    descripcion_accion: str
    implementacion_descripcion: str | None = None


class NoConformidadInput(BaseDTO):
    descripcion_no_conformidad: str
    accion_correctiva_propuesta: str | None = None
    fecha_limite_implementacion: date | None = None
    estado_seguimiento: str | None = None


class ActividadPecuariaInput(BaseDTO):
    tipo_ganado: str
    cantidad: int
    animal_especifico: str | None = None
    sistema_manejo: str | None = None
    uso_guano: str | None = None


class ManejoCultivoInput(BaseDTO):
    procedencia_semilla: str | None = None
    categoria_semilla: str | None = None
    tratamiento_semillas: str | None = None
    tipo_abonamiento: str | None = None
    tipo_abonamiento_otro: str | None = None
    metodo_aporque: str | None = None
    metodo_aporque_otro: str | None = None
    control_hierbas: str | None = None
    control_hierbas_otro: str | None = None
    metodo_cosecha: str | None = None
    metodo_cosecha_otro: str | None = None


class DetalleCultivoInput(BaseDTO):
    id_parcela: str
    id_tipo_cultivo: str
    superficie_ha: float
    situacion_actual: str | None = None
    manejo: ManejoCultivoInput | None = None

    def to_entity(self) -> DetalleCultivoParcela:
        manejo = ManejoCultivo(**self.manejo.model_dump()) if self.manejo else None
        return DetalleCultivoParcela(
            id_parcela=self.id_parcela,
            id_tipo_cultivo=self.id_tipo_cultivo,
            superficie_ha=self.superficie_ha,
            situacion_actual=self.situacion_actual,
            manejo=None if manejo is None or manejo.vacio else manejo,
        )


class CosechaVentasInput(BaseDTO):
    tipo_mani: str
    superficie_actual_ha: float
    cosecha_estimada_qq: float
    numero_parcelas: int
    destino_consumo_qq: float | None = None
    destino_semilla_qq: float | None = None
    destino_ventas_qq: float | None = None
    observaciones: str | None = None


class PlanificacionSiembraInput(BaseDTO):
    id_parcela: str
    area_parcela_planificada_ha: float
    mani_ha: float = 0.0
    maiz_ha: float = 0.0
    papa_ha: float = 0.0
    aji_ha: float = 0.0
    leguminosas_ha: float = 0.0
    otros_cultivos_ha: float = 0.0
    otros_cultivos_detalle: str | None = None
    descanso_ha: float = 0.0


class ParcelaInspeccionadaInput(BaseDTO):
    id_parcela: str
    rotacion: bool | None = None
    utiliza_riego: bool | None = None
    tipo_barrera: str | None = None
    insumos_organicos: str | None = None
    latitud_sud: float | None = None
    longitud_oeste: float | None = None


_UNICAS: dict[str, type[Any]] = {
    "revision_documentacion": RevisionDocumentacion,
    "evaluacion_mitigacion": EvaluacionMitigacion,
    "evaluacion_poscosecha": EvaluacionPoscosecha,
    "evaluacion_conocimiento": EvaluacionConocimientoNormas,
}

_MULTIPLES: dict[str, type[Any]] = {
    "acciones_correctivas": AccionCorrectiva,
    "no_conformidades": NoConformidad,
    "actividades_pecuarias": ActividadPecuaria,
    "cosecha_ventas": CosechaVentas,
    "planificacion_siembras": PlanificacionSiembra,
    "parcelas_inspeccionadas": ParcelaInspeccionada,
}


class FichaSeccionesInput(BaseDTO):
    """Optional sections shared by create and update requests."""

    revision_documentacion: RevisionDocumentacionInput | None = None
    evaluacion_mitigacion: EvaluacionMitigacionInput | None = None
    evaluacion_poscosecha: EvaluacionPoscosechaInput | None = None
    evaluacion_conocimiento: EvaluacionConocimientoInput | None = None
    acciones_correctivas: list[AccionCorrectivaInput] | None = None
    no_conformidades: list[NoConformidadInput] | None = None
    actividades_pecuarias: list[ActividadPecuariaInput] | None = None
    detalles_cultivo: list[DetalleCultivoInput] | None = None
    cosecha_ventas: list[CosechaVentasInput] | None = None
    planificacion_siembras: list[PlanificacionSiembraInput] | None = None
    parcelas_inspeccionadas: list[ParcelaInspeccionadaInput] | None = None

    def to_secciones(self) -> FichaSecciones:
        """Convert to domain sections, keeping omitted sections as ``None``."""
        values: dict[str, Any] = {}
        for name, entity in _UNICAS.items():
            dto = getattr(self, name)
            if name in self.model_fields_set and dto is not None:
                values[name] = entity(**dto.model_dump())
        for name, entity in _MULTIPLES.items():
            items = getattr(self, name)
            if name in self.model_fields_set and items is not None:
                values[name] = tuple(entity(**item.model_dump()) for item in items)
        if "detalles_cultivo" in self.model_fields_set and self.detalles_cultivo is not None:
            values["detalles_cultivo"] = tuple(d.to_entity() for d in self.detalles_cultivo)
        return FichaSecciones(**values)


# ---------------------------------------------------------------------------
# Aggregate commands
# ---------------------------------------------------------------------------


class CreateFichaInput(FichaSeccionesInput):
    """Root fields plus optional sections for a new ficha."""

    codigo_productor: str = Field(min_length=1, max_length=20)
    gestion: int
    fecha_inspeccion: date
    inspector_interno: str
    persona_entrevistada: str | None = None
    categoria_gestion_anterior: CategoriaProductor | None = None
    origen_captura: OrigenCaptura = OrigenCaptura.ONLINE
    recomendaciones: str | None = None
    comentarios_actividad_pecuaria: str | None = None
    firma_productor: str | None = None
    firma_inspector: str | None = None


class UpdateFichaInput(FichaSeccionesInput):
    """Root fields to change (``None`` keeps the stored value) plus sections."""

    fecha_inspeccion: date | None = None
    inspector_interno: str | None = None
    persona_entrevistada: str | None = None
    categoria_gestion_anterior: CategoriaProductor | None = None
    recomendaciones: str | None = None
    comentarios_actividad_pecuaria: str | None = None
    firma_productor: str | None = None
    firma_inspector: str | None = None

    def apply_to(self, ficha: Ficha) -> None:
        """Copy the supplied root fields onto ``ficha`` through its updaters."""
        if self.inspector_interno is not None:
            ficha.actualizar_inspector(self.inspector_interno)
        if self.persona_entrevistada is not None:
            ficha.actualizar_persona_entrevistada(self.persona_entrevistada)
        if self.recomendaciones is not None:
            ficha.actualizar_recomendaciones(self.recomendaciones)
        if self.firma_productor is not None:
            ficha.actualizar_firma_productor(self.firma_productor)
        if self.fecha_inspeccion is not None:
            ficha.fecha_inspeccion = self.fecha_inspeccion
        if self.categoria_gestion_anterior is not None:
            ficha.categoria_gestion_anterior = self.categoria_gestion_anterior
        if self.comentarios_actividad_pecuaria is not None:
            ficha.comentarios_actividad_pecuaria = self.comentarios_actividad_pecuaria or None
        if self.firma_inspector is not None:
            ficha.firma_inspector = self.firma_inspector or None


# ---------------------------------------------------------------------------
# Workflow commands
# ---------------------------------------------------------------------------


class EnviarRevisionInput(BaseDTO):
    recomendaciones: str | None = None
    firma_inspector: str | None = None


class AprobarFichaInput(BaseDTO):
    comentarios_evaluacion: str | None = None


class RechazarFichaInput(BaseDTO):
    motivo: str


# ---------------------------------------------------------------------------
# Queries and context
# ---------------------------------------------------------------------------


class ListFichasQuery(BaseDTO):
    gestion: int | None = None
    id_comunidad: str | None = None
    codigo_productor: str | None = None
    estado_ficha: EstadoFicha | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


@dataclass(frozen=True)
class AuthContext:
    """Caller identity and community scope.

    Attributes:
        user_id: Identifier recorded as the creator of new fichas.
        is_elevated: Administrators and managers see every community.
        comunidad_ids: Communities a field technician may act on.
    """

    user_id: str
    is_elevated: bool = False
    comunidad_ids: tuple[str, ...] | None = None

    def puede_acceder(self, id_comunidad: str | None) -> bool:
        if self.is_elevated:
            return True
        return id_comunidad is not None and id_comunidad in (self.comunidad_ids or ())


@dataclass(frozen=True)
class FichaListPage:
    items: list[Ficha]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class EstadisticasFichas:
    total: int
    por_estado: dict[str, int] = field(default_factory=dict)
    por_resultado: dict[str, int] = field(default_factory=dict)
    pendientes_sincronizacion: int = 0
