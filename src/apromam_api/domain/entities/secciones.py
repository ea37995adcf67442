# src/apromam_api/domain/entities/secciones.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Dependent sections of the ficha aggregate.

Each section is owned by exactly one ficha and has no lifecycle of its own:
full replacement deletes and re-inserts every row, so section entities carry
no identifiers. Values validate on construction.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from apromam_api.domain.entities.base import BaseEntity, check_choice, check_max_len
from apromam_api.domain.enums.ficha import (
    ComplianceStatus,
    EstadoSeguimiento,
    TipoBarrera,
    TipoGanado,
    TipoMani,
)

_MAX_AREA_HA = 10_000.0


@dataclass(frozen=True, slots=True)
class RevisionDocumentacion(BaseEntity):
    """Documentation review checklist (1:1)."""

    solicitud_ingreso: str | None = None
    normas_reglamentos: str | None = None
    contrato_produccion: str | None = None
    croquis_unidad: str | None = None
    diario_campo: str | None = None
    registro_cosecha: str | None = None
    recibo_pago: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        for name, value in self.to_record().items():
            check_choice(errors, name, value, ComplianceStatus)
        return errors


@dataclass(frozen=True, slots=True)
class EvaluacionMitigacion(BaseEntity):
    """Contamination-risk mitigation evaluation (1:1)."""

    practica_mitigacion_riesgos: str | None = None
    mitigacion_contaminacion: str | None = None
    deposito_herramientas: str | None = None
    deposito_insumos_organicos: str | None = None
    evita_quema_residuos: str | None = None
    practica_mitigacion_riesgos_descripcion: str | None = None
    mitigacion_contaminacion_descripcion: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        for name in (
            "practica_mitigacion_riesgos",
            "mitigacion_contaminacion",
            "deposito_herramientas",
            "deposito_insumos_organicos",
            "evita_quema_residuos",
        ):
            check_choice(errors, name, getattr(self, name), ComplianceStatus)
        check_max_len(
            errors, "Descripcion de practica", self.practica_mitigacion_riesgos_descripcion, 2000
        )
        check_max_len(
            errors, "Descripcion de mitigacion", self.mitigacion_contaminacion_descripcion, 2000
        )
        return errors


@dataclass(frozen=True, slots=True)
class EvaluacionPoscosecha(BaseEntity):
    """Post-harvest handling evaluation (1:1)."""

    secado_tendal: str | None = None
    envases_limpios: str | None = None
    almacen_protegido: str | None = None
    evidencia_comercializacion: str | None = None
    comentarios_poscosecha: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        for name in (
            "secado_tendal",
            "envases_limpios",
            "almacen_protegido",
            "evidencia_comercializacion",
        ):
            check_choice(errors, name, getattr(self, name), ComplianceStatus)
        check_max_len(errors, "Comentarios poscosecha", self.comentarios_poscosecha, 2000)
        return errors


@dataclass(frozen=True, slots=True)
class EvaluacionConocimientoNormas(BaseEntity):
    """Knowledge-of-standards evaluation (1:1)."""

    conoce_normas_organicas: str | None = None
    recibio_capacitacion: str | None = None
    comentarios_conocimiento: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        check_choice(
            errors, "conoce_normas_organicas", self.conoce_normas_organicas, ComplianceStatus
        )
        check_choice(errors, "recibio_capacitacion", self.recibio_capacitacion, ComplianceStatus)
        check_max_len(errors, "Comentarios conocimiento", self.comentarios_conocimiento, 2000)
        return errors


@dataclass(frozen=True, slots=True)
class AccionCorrectiva(BaseEntity):
    """Corrective action agreed with the producer."""

    numero_accion: int
    descripcion_accion: str
    implementacion_descripcion: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if self.numero_accion < 1:
            errors.append("Numero de accion debe ser mayor a 0")
        if len(self.descripcion_accion.strip()) < 5:
            errors.append("Descripcion debe tener al menos 5 caracteres")
        check_max_len(errors, "Descripcion", self.descripcion_accion, 500)
        check_max_len(errors, "Implementacion", self.implementacion_descripcion, 500)
        return errors


@dataclass(frozen=True, slots=True)
class NoConformidad(BaseEntity):
    """Non-conformity found during the inspection."""

    descripcion_no_conformidad: str
    accion_correctiva_propuesta: str | None = None
    fecha_limite_implementacion: date | None = None
    estado_seguimiento: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if len(self.descripcion_no_conformidad.strip()) < 5:
            errors.append("Descripcion debe tener al menos 5 caracteres")
        check_max_len(errors, "Descripcion", self.descripcion_no_conformidad, 500)
        check_max_len(errors, "Accion correctiva", self.accion_correctiva_propuesta, 500)
        check_choice(errors, "estado_seguimiento", self.estado_seguimiento, EstadoSeguimiento)
        return errors


@dataclass(frozen=True, slots=True)
class ActividadPecuaria(BaseEntity):
    """Livestock kept by the producer."""

    tipo_ganado: str
    cantidad: int
    animal_especifico: str | None = None
    sistema_manejo: str | None = None
    uso_guano: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        check_choice(errors, "tipo_ganado", self.tipo_ganado, TipoGanado)
        if self.cantidad < 0:
            errors.append("Cantidad no puede ser negativa")
        elif self.cantidad > 10_000:
            errors.append("Cantidad no puede exceder 10000")
        check_max_len(errors, "Animal especifico", self.animal_especifico, 100)
        check_max_len(errors, "Sistema de manejo", self.sistema_manejo, 200)
        check_max_len(errors, "Uso de guano", self.uso_guano, 500)
        return errors


_OTRO = "otro"


@dataclass(frozen=True, slots=True)
class ManejoCultivo(BaseEntity):
    """Crop-management practices recorded for a certifiable crop."""

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

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        for practice, label in (
            ("tipo_abonamiento", "el abonamiento"),
            ("metodo_aporque", "el aporque"),
            ("control_hierbas", "el control de hierbas"),
            ("metodo_cosecha", "la cosecha"),
        ):
            detail = getattr(self, f"{practice}_otro")
            if getattr(self, practice) == _OTRO and not (detail and detail.strip()):
                errors.append(f"Debe especificar {label} cuando selecciona 'otro'")
            check_max_len(errors, f"{practice}_otro", detail, 200)
        return errors

    @property
    def vacio(self) -> bool:
        """True when no practice was recorded."""
        return all(value is None for value in self.to_record().values())


@dataclass(frozen=True, slots=True)
class DetalleCultivoParcela(BaseEntity):
    """Area of one crop type on one plot."""

    id_parcela: str
    id_tipo_cultivo: str
    superficie_ha: float
    situacion_actual: str | None = None
    manejo: ManejoCultivo | None = None
    nombre_cultivo: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.id_parcela:
            errors.append("ID de parcela es requerido")
        if not self.id_tipo_cultivo:
            errors.append("ID de tipo cultivo es requerido")
        if self.superficie_ha <= 0:
            errors.append("Superficie debe ser mayor a 0")
        elif self.superficie_ha > _MAX_AREA_HA:
            errors.append("Superficie no puede exceder 10,000 hectareas")
        check_max_len(errors, "Situacion actual", self.situacion_actual, 100)
        return errors


@dataclass(frozen=True, slots=True)
class CosechaVentas(BaseEntity):
    """Estimated harvest and its destination."""

    tipo_mani: str
    superficie_actual_ha: float
    cosecha_estimada_qq: float
    numero_parcelas: int
    destino_consumo_qq: float | None = None
    destino_semilla_qq: float | None = None
    destino_ventas_qq: float | None = None
    observaciones: str | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        check_choice(errors, "tipo_mani", self.tipo_mani, TipoMani)
        if self.superficie_actual_ha < 0:
            errors.append("Superficie no puede ser negativa")
        elif self.superficie_actual_ha > _MAX_AREA_HA:
            errors.append("Superficie no puede exceder 10000 hectareas")
        if self.cosecha_estimada_qq < 0:
            errors.append("Cosecha estimada no puede ser negativa")
        if not 0 <= self.numero_parcelas <= 100:
            errors.append("Numero de parcelas debe estar entre 0 y 100")
        for name in ("destino_consumo_qq", "destino_semilla_qq", "destino_ventas_qq"):
            value = getattr(self, name)
            if value is not None and value < 0:
                errors.append(f"{name} no puede ser negativo")
        check_max_len(errors, "Observaciones", self.observaciones, 1000)
        return errors


@dataclass(frozen=True, slots=True)
class PlanificacionSiembra(BaseEntity):
    """Planned crop distribution on one plot for the next season."""

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

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.id_parcela:
            errors.append("ID de parcela es requerido")
        if not 0 <= self.area_parcela_planificada_ha <= _MAX_AREA_HA:
            errors.append("Area planificada debe estar entre 0 y 10,000 hectareas")
        for name in (
            "mani_ha",
            "maiz_ha",
            "papa_ha",
            "aji_ha",
            "leguminosas_ha",
            "otros_cultivos_ha",
            "descanso_ha",
        ):
            if getattr(self, name) < 0:
                errors.append(f"{name} no puede ser negativa")
        if self.suma_cultivos > self.area_parcela_planificada_ha * 1.1:
            errors.append(
                f"Suma de cultivos ({self.suma_cultivos:.2f} ha) excede el area planificada "
                f"({self.area_parcela_planificada_ha:.2f} ha)"
            )
        check_max_len(errors, "Detalle otros cultivos", self.otros_cultivos_detalle, 200)
        return errors

    @property
    def suma_cultivos(self) -> float:
        """Planned cropped area (rest excluded)."""
        return (
            self.mani_ha
            + self.maiz_ha
            + self.papa_ha
            + self.aji_ha
            + self.leguminosas_ha
            + self.otros_cultivos_ha
        )


@dataclass(frozen=True, slots=True)
class ParcelaInspeccionada(BaseEntity):
    """Plot attributes observed during the inspection.

    ``None`` means "not observed": the stored value is kept.
    """

    id_parcela: str
    rotacion: bool | None = None
    utiliza_riego: bool | None = None
    tipo_barrera: str | None = None
    insumos_organicos: str | None = None
    latitud_sud: float | None = None
    longitud_oeste: float | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.id_parcela:
            errors.append("ID de parcela es requerido")
        check_choice(errors, "tipo_barrera", self.tipo_barrera, TipoBarrera)
        if self.latitud_sud is not None and not -90 <= self.latitud_sud <= 90:
            errors.append("Latitud fuera de rango")
        if self.longitud_oeste is not None and not -180 <= self.longitud_oeste <= 180:
            errors.append("Longitud fuera de rango")
        return errors
