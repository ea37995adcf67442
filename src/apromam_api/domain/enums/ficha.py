# src/apromam_api/domain/enums/ficha.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Ficha workflow and section enumerations.

Purpose:
    Closed value sets for the inspection record and its sections. Values are
    the exact strings persisted in the store and exchanged in JSON payloads.

Layer:
    domain
"""

from __future__ import annotations

from enum import Enum


class EstadoFicha(str, Enum):
    """Workflow state of a ficha."""

    BORRADOR = "borrador"
    REVISION = "revision"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"


class ResultadoCertificacion(str, Enum):
    """Certification outcome derived from the workflow state."""

    PENDIENTE = "pendiente"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"


class EstadoSync(str, Enum):
    """Offline-capture synchronization state."""

    PENDIENTE = "pendiente"
    SINCRONIZADO = "sincronizado"
    CONFLICTO = "conflicto"


class OrigenCaptura(str, Enum):
    """Where the ficha was captured."""

    ONLINE = "online"
    OFFLINE = "offline"


class CategoriaProductor(str, Enum):
    """Producer certification category: organic (E) or transition years."""

    E = "E"
    T2 = "2T"
    T1 = "1T"
    T0 = "0T"


class ComplianceStatus(str, Enum):
    """Compliance answer used by review and evaluation sections."""

    CUMPLE = "cumple"
    PARCIAL = "parcial"
    NO_CUMPLE = "no_cumple"
    NO_APLICA = "no_aplica"


class EstadoSeguimiento(str, Enum):
    """Follow-up state of a non-conformity."""

    PENDIENTE = "pendiente"
    SEGUIMIENTO = "seguimiento"
    CORREGIDO = "corregido"


class TipoGanado(str, Enum):
    """Livestock class."""

    MAYOR = "mayor"
    MENOR = "menor"
    AVES = "aves"


class TipoMani(str, Enum):
    """Peanut lot type in the harvest record."""

    ECOLOGICO = "ecologico"
    TRANSICION = "transicion"


class TipoBarrera(str, Enum):
    """Plot boundary barrier."""

    NINGUNA = "ninguna"
    VIVA = "viva"
    MUERTA = "muerta"


#: Outcome each workflow state implies; any other pairing is inconsistent.
RESULTADO_POR_ESTADO: dict[EstadoFicha, ResultadoCertificacion] = {
    EstadoFicha.BORRADOR: ResultadoCertificacion.PENDIENTE,
    EstadoFicha.REVISION: ResultadoCertificacion.PENDIENTE,
    EstadoFicha.APROBADO: ResultadoCertificacion.APROBADO,
    EstadoFicha.RECHAZADO: ResultadoCertificacion.RECHAZADO,
}
