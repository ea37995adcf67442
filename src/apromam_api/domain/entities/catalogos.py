# src/apromam_api/domain/entities/catalogos.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Reference entities the ficha aggregate points to.

Producers, their plots and certification periods have their own lifecycle;
the aggregate reads them but never rewrites them (except the observed plot
attributes, see :class:`ParcelaInspeccionada`).

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Productor:
    """Producer registered in a community."""

    codigo_productor: str
    nombre_productor: str
    id_comunidad: str
    nombre_comunidad: str | None = None
    superficie_total_has: float | None = None
    categoria_actual: str | None = None
    activo: bool = True


@dataclass(frozen=True, slots=True)
class Parcela:
    """Plot owned by one producer."""

    id_parcela: str
    codigo_productor: str
    numero_parcela: int
    superficie_ha: float
    rotacion: bool | None = None
    utiliza_riego: bool | None = None
    tipo_barrera: str | None = None
    insumos_organicos: str | None = None
    latitud_sud: float | None = None
    longitud_oeste: float | None = None
    activo: bool = True


@dataclass(frozen=True, slots=True)
class Gestion:
    """Certification period."""

    id_gestion: str
    anio_gestion: int
    descripcion: str | None = None
    activa: bool = True
