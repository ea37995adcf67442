# src/apromam_api/infrastructure/database/models/fichas.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Table models for the ficha aggregate.

One root table (``ficha_inspeccion``) plus one table per dependent section.
Every section row carries ``id_ficha``; section lifecycles are enacted by the
aggregate repository (delete-all-for-root then re-insert), not by store-level
cascades.

Layer:
    infrastructure/database/models
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from apromam_api.infrastructure.database.models.base import (
    ID_LENGTH,
    Base,
    TimestampMixin,
    id_column,
)

_FICHA_FK = "ficha_inspeccion.id_ficha"


def _ficha_ref(*, unique: bool = False) -> Any:
    return mapped_column(
        String(ID_LENGTH), ForeignKey(_FICHA_FK), nullable=False, index=not unique, unique=unique
    )


class FichaModel(TimestampMixin, Base):
    """Aggregate root: one inspection of one producer in one period."""

    __tablename__ = "ficha_inspeccion"
    __table_args__ = (Index("ix_ficha_productor_gestion", "codigo_productor", "gestion"),)

    id_ficha: Mapped[str] = id_column()
    codigo_productor: Mapped[str] = mapped_column(String(20), nullable=False)
    gestion: Mapped[int] = mapped_column(Integer, nullable=False)
    id_gestion: Mapped[str | None] = mapped_column(String(ID_LENGTH), nullable=True)
    fecha_inspeccion: Mapped[date] = mapped_column(Date, nullable=False)
    inspector_interno: Mapped[str] = mapped_column(String(100), nullable=False)
    persona_entrevistada: Mapped[str | None] = mapped_column(String(100), nullable=True)
    categoria_gestion_anterior: Mapped[str | None] = mapped_column(String(4), nullable=True)
    origen_captura: Mapped[str] = mapped_column(String(10), nullable=False)
    fecha_sincronizacion: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    estado_sync: Mapped[str] = mapped_column(String(15), nullable=False)
    estado_ficha: Mapped[str] = mapped_column(String(15), nullable=False, index=True)
    resultado_certificacion: Mapped[str] = mapped_column(String(15), nullable=False)
    recomendaciones: Mapped[str | None] = mapped_column(Text, nullable=True)
    comentarios_evaluacion: Mapped[str | None] = mapped_column(Text, nullable=True)
    comentarios_actividad_pecuaria: Mapped[str | None] = mapped_column(Text, nullable=True)
    firma_productor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    firma_inspector: Mapped[str | None] = mapped_column(String(100), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)


class RevisionDocumentacionModel(Base):
    """Documentation review (1:1)."""

    __tablename__ = "revision_documentacion"

    id_revision: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref(unique=True)
    solicitud_ingreso: Mapped[str | None] = mapped_column(String(15), nullable=True)
    normas_reglamentos: Mapped[str | None] = mapped_column(String(15), nullable=True)
    contrato_produccion: Mapped[str | None] = mapped_column(String(15), nullable=True)
    croquis_unidad: Mapped[str | None] = mapped_column(String(15), nullable=True)
    diario_campo: Mapped[str | None] = mapped_column(String(15), nullable=True)
    registro_cosecha: Mapped[str | None] = mapped_column(String(15), nullable=True)
    recibo_pago: Mapped[str | None] = mapped_column(String(15), nullable=True)


class EvaluacionMitigacionModel(Base):
    """Contamination-risk mitigation evaluation (1:1)."""

    __tablename__ = "evaluacion_mitigacion"

    id_evaluacion: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref(unique=True)
    practica_mitigacion_riesgos: Mapped[str | None] = mapped_column(String(15), nullable=True)
    mitigacion_contaminacion: Mapped[str | None] = mapped_column(String(15), nullable=True)
    deposito_herramientas: Mapped[str | None] = mapped_column(String(15), nullable=True)
    deposito_insumos_organicos: Mapped[str | None] = mapped_column(String(15), nullable=True)
    evita_quema_residuos: Mapped[str | None] = mapped_column(String(15), nullable=True)
    practica_mitigacion_riesgos_descripcion: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    mitigacion_contaminacion_descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)


class EvaluacionPoscosechaModel(Base):
    """Post-harvest handling evaluation (1:1)."""

    __tablename__ = "evaluacion_poscosecha"

    id_evaluacion: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref(unique=True)
    secado_tendal: Mapped[str | None] = mapped_column(String(15), nullable=True)
    envases_limpios: Mapped[str | None] = mapped_column(String(15), nullable=True)
    almacen_protegido: Mapped[str | None] = mapped_column(String(15), nullable=True)
    evidencia_comercializacion: Mapped[str | None] = mapped_column(String(15), nullable=True)
    comentarios_poscosecha: Mapped[str | None] = mapped_column(Text, nullable=True)


class EvaluacionConocimientoNormasModel(Base):
    """Knowledge-of-standards evaluation (1:1)."""

    __tablename__ = "evaluacion_conocimiento_normas"

    id_evaluacion: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref(unique=True)
    conoce_normas_organicas: Mapped[str | None] = mapped_column(String(15), nullable=True)
    recibio_capacitacion: Mapped[str | None] = mapped_column(String(15), nullable=True)
    comentarios_conocimiento: Mapped[str | None] = mapped_column(Text, nullable=True)


class AccionCorrectivaModel(Base):
    """Corrective action (1:n); numbering is unique within a ficha."""

    __tablename__ = "acciones_correctivas"
    __table_args__ = (UniqueConstraint("id_ficha", "numero_accion"),)

    id_accion: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    numero_accion: Mapped[int] = mapped_column(Integer, nullable=False)
    descripcion_accion: Mapped[str] = mapped_column(Text, nullable=False)
    implementacion_descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)


class NoConformidadModel(Base):
    """Non-conformity (1:n) with follow-up state."""

    __tablename__ = "no_conformidades"

    id_no_conformidad: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    descripcion_no_conformidad: Mapped[str] = mapped_column(Text, nullable=False)
    accion_correctiva_propuesta: Mapped[str | None] = mapped_column(Text, nullable=True)
    fecha_limite_implementacion: Mapped[date | None] = mapped_column(Date, nullable=True)
    estado_seguimiento: Mapped[str | None] = mapped_column(String(15), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ActividadPecuariaModel(Base):
    """Livestock activity (1:n)."""

    __tablename__ = "actividad_pecuaria"

    id_actividad: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    tipo_ganado: Mapped[str] = mapped_column(String(10), nullable=False)
    animal_especifico: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cantidad: Mapped[int] = mapped_column(Integer, nullable=False)
    sistema_manejo: Mapped[str | None] = mapped_column(String(200), nullable=True)
    uso_guano: Mapped[str | None] = mapped_column(String(200), nullable=True)


class DetalleCultivoParcelaModel(Base):
    """Per-plot crop detail (1:n) with optional crop-management data."""

    __tablename__ = "detalle_cultivo_parcela"

    id_detalle: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    id_parcela: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("parcelas.id_parcela"), nullable=False
    )
    id_tipo_cultivo: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("tipos_cultivo.id_tipo_cultivo"), nullable=False
    )
    superficie_ha: Mapped[float] = mapped_column(Float, nullable=False)
    situacion_actual: Mapped[str | None] = mapped_column(String(200), nullable=True)
    procedencia_semilla: Mapped[str | None] = mapped_column(String(30), nullable=True)
    categoria_semilla: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tratamiento_semillas: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tipo_abonamiento: Mapped[str | None] = mapped_column(String(15), nullable=True)
    tipo_abonamiento_otro: Mapped[str | None] = mapped_column(String(200), nullable=True)
    metodo_aporque: Mapped[str | None] = mapped_column(String(15), nullable=True)
    metodo_aporque_otro: Mapped[str | None] = mapped_column(String(200), nullable=True)
    control_hierbas: Mapped[str | None] = mapped_column(String(15), nullable=True)
    control_hierbas_otro: Mapped[str | None] = mapped_column(String(200), nullable=True)
    metodo_cosecha: Mapped[str | None] = mapped_column(String(15), nullable=True)
    metodo_cosecha_otro: Mapped[str | None] = mapped_column(String(200), nullable=True)


class CosechaVentasModel(Base):
    """Harvest and sales record (1:n)."""

    __tablename__ = "cosecha_ventas"

    id_cosecha: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    tipo_mani: Mapped[str] = mapped_column(String(15), nullable=False)
    superficie_actual_ha: Mapped[float] = mapped_column(Float, nullable=False)
    cosecha_estimada_qq: Mapped[float] = mapped_column(Float, nullable=False)
    numero_parcelas: Mapped[int] = mapped_column(Integer, nullable=False)
    destino_consumo_qq: Mapped[float | None] = mapped_column(Float, nullable=True)
    destino_semilla_qq: Mapped[float | None] = mapped_column(Float, nullable=True)
    destino_ventas_qq: Mapped[float | None] = mapped_column(Float, nullable=True)
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)


class PlanificacionSiembraModel(Base):
    """Sowing plan for one plot (1:n)."""

    __tablename__ = "planificacion_siembras"

    id_planificacion: Mapped[str] = id_column()
    id_ficha: Mapped[str] = _ficha_ref()
    id_parcela: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("parcelas.id_parcela"), nullable=False
    )
    area_parcela_planificada_ha: Mapped[float] = mapped_column(Float, nullable=False)
    mani_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    maiz_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    papa_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    aji_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    leguminosas_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    otros_cultivos_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    otros_cultivos_detalle: Mapped[str | None] = mapped_column(String(200), nullable=True)
    descanso_ha: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class FichaDraftModel(Base):
    """Saved form draft keyed by (producer, period year, creator)."""

    __tablename__ = "fichas_draft"
    __table_args__ = (UniqueConstraint("codigo_productor", "gestion", "created_by"),)

    id_draft: Mapped[str] = id_column()
    codigo_productor: Mapped[str] = mapped_column(String(20), nullable=False)
    gestion: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    draft_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
