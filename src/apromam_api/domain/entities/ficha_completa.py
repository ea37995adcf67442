# src/apromam_api/domain/entities/ficha_completa.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Ficha aggregate: the root plus its owned sections.

Two shapes live here:

* :class:`FichaSecciones` is the *write* shape. Every section is optional and
  ``None`` means "leave as stored". For the 1:n sections an empty tuple means
  "clear this section". This distinction drives the replace semantics of the
  aggregate repository.
* :class:`FichaCompleta` is the *read* shape, always fully populated from the
  store after a write.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass, field

from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.secciones import (
    AccionCorrectiva,
    ActividadPecuaria,
    CosechaVentas,
    DetalleCultivoParcela,
    EvaluacionConocimientoNormas,
    EvaluacionMitigacion,
    EvaluacionPoscosecha,
    NoConformidad,
    ParcelaInspeccionada,
    PlanificacionSiembra,
    RevisionDocumentacion,
)

#: 1:1 sections in write order.
SECCIONES_UNICAS: tuple[str, ...] = (
    "revision_documentacion",
    "evaluacion_mitigacion",
    "evaluacion_poscosecha",
    "evaluacion_conocimiento",
)

#: 1:n sections in write order.
SECCIONES_MULTIPLES: tuple[str, ...] = (
    "acciones_correctivas",
    "no_conformidades",
    "actividades_pecuarias",
    "detalles_cultivo",
    "cosecha_ventas",
    "planificacion_siembras",
)


@dataclass(frozen=True, slots=True)
class FichaSecciones:
    """Sections supplied with a create or replace request."""

    revision_documentacion: RevisionDocumentacion | None = None
    evaluacion_mitigacion: EvaluacionMitigacion | None = None
    evaluacion_poscosecha: EvaluacionPoscosecha | None = None
    evaluacion_conocimiento: EvaluacionConocimientoNormas | None = None
    acciones_correctivas: tuple[AccionCorrectiva, ...] | None = None
    no_conformidades: tuple[NoConformidad, ...] | None = None
    actividades_pecuarias: tuple[ActividadPecuaria, ...] | None = None
    detalles_cultivo: tuple[DetalleCultivoParcela, ...] | None = None
    cosecha_ventas: tuple[CosechaVentas, ...] | None = None
    planificacion_siembras: tuple[PlanificacionSiembra, ...] | None = None
    parcelas_inspeccionadas: tuple[ParcelaInspeccionada, ...] | None = None

    def supplied(self) -> list[str]:
        """Names of the sections present in the request, in write order."""
        names = (*SECCIONES_UNICAS, *SECCIONES_MULTIPLES, "parcelas_inspeccionadas")
        return [name for name in names if getattr(self, name) is not None]


@dataclass(slots=True)
class FichaCompleta:
    """Ficha root with every section as stored."""

    ficha: Ficha
    revision_documentacion: RevisionDocumentacion | None = None
    evaluacion_mitigacion: EvaluacionMitigacion | None = None
    evaluacion_poscosecha: EvaluacionPoscosecha | None = None
    evaluacion_conocimiento: EvaluacionConocimientoNormas | None = None
    acciones_correctivas: list[AccionCorrectiva] = field(default_factory=list)
    no_conformidades: list[NoConformidad] = field(default_factory=list)
    actividades_pecuarias: list[ActividadPecuaria] = field(default_factory=list)
    detalles_cultivo: list[DetalleCultivoParcela] = field(default_factory=list)
    cosecha_ventas: list[CosechaVentas] = field(default_factory=list)
    planificacion_siembras: list[PlanificacionSiembra] = field(default_factory=list)

    @property
    def tiene_detalles_cultivo(self) -> bool:
        return bool(self.detalles_cultivo)
