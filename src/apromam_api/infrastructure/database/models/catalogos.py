# src/apromam_api/infrastructure/database/models/catalogos.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Reference tables consumed by the ficha aggregate.

Communities, producers, plots, certification periods and crop types are owned
by catalog CRUD outside this package; they are modelled here because the
aggregate reads them (authorization scope, surface validation) and writes a
narrow set of plot and producer-category columns inside its transactions.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from apromam_api.infrastructure.database.models.base import ID_LENGTH, Base, id_column


class ComunidadModel(Base):
    """Community; the unit of a field technician's authorization scope."""

    __tablename__ = "comunidades"

    id_comunidad: Mapped[str] = id_column()
    nombre_comunidad: Mapped[str] = mapped_column(String(100), nullable=False)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ProductorModel(Base):
    """Producer, addressed by its stable code."""

    __tablename__ = "productores"

    codigo_productor: Mapped[str] = mapped_column(String(20), primary_key=True)
    nombre_productor: Mapped[str] = mapped_column(String(200), nullable=False)
    id_comunidad: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("comunidades.id_comunidad"), nullable=False, index=True
    )
    superficie_total_has: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    categoria_actual: Mapped[str | None] = mapped_column(String(4), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ParcelaModel(Base):
    """Plot registered for a producer."""

    __tablename__ = "parcelas"

    id_parcela: Mapped[str] = id_column()
    codigo_productor: Mapped[str] = mapped_column(
        String(20), ForeignKey("productores.codigo_productor"), nullable=False, index=True
    )
    numero_parcela: Mapped[int] = mapped_column(Integer, nullable=False)
    superficie_ha: Mapped[float] = mapped_column(Float, nullable=False)
    rotacion: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    utiliza_riego: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    tipo_barrera: Mapped[str | None] = mapped_column(String(10), nullable=True)
    insumos_organicos: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitud_sud: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitud_oeste: Mapped[float | None] = mapped_column(Float, nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class GestionModel(Base):
    """Certification period, identified by year."""

    __tablename__ = "gestiones"

    id_gestion: Mapped[str] = id_column()
    anio_gestion: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    descripcion: Mapped[str | None] = mapped_column(String(200), nullable=True)
    activa: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class TipoCultivoModel(Base):
    """Crop type referenced by per-plot crop details."""

    __tablename__ = "tipos_cultivo"

    id_tipo_cultivo: Mapped[str] = id_column()
    nombre_cultivo: Mapped[str] = mapped_column(String(100), nullable=False)
    es_certificable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ProductorCategoriaModel(Base):
    """Producer certification category recorded per period by the approval sync."""

    __tablename__ = "productor_categoria_gestion"
    __table_args__ = (UniqueConstraint("codigo_productor", "id_gestion"),)

    id_registro: Mapped[str] = id_column()
    codigo_productor: Mapped[str] = mapped_column(
        String(20), ForeignKey("productores.codigo_productor"), nullable=False
    )
    id_gestion: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("gestiones.id_gestion"), nullable=False
    )
    categoria: Mapped[str] = mapped_column(String(4), nullable=False)
    id_ficha: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    fecha_evaluacion: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
