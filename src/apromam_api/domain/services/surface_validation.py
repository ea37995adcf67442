# src/apromam_api/domain/services/surface_validation.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Surface reconciliation between plots and crop allocations.

Purpose:
    Pure checks (no I/O) that compare the area a producer declared for each
    plot with the area the inspection allocated to crops on it.

Rules:
    * Per plot: allocated > declared is a blocking error naming the plot and
      the overage. Unused area above the rounding slack is a warning.
    * Producer: allocated total outside the tolerance band around the
      producer's declared total is a warning.
    * Crop rows pointing at a plot the producer does not own are errors.

    Areas are compared after rounding to ``ROUND_DIGITS`` decimals so that
    floating-point sums such as ``0.7 + 1.3`` compare equal to ``2.0``.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from apromam_api.domain.entities.catalogos import Parcela
from apromam_api.domain.entities.secciones import DetalleCultivoParcela

__all__ = [
    "CultivoSuperficie",
    "ParcelaResumen",
    "SurfaceDetails",
    "SurfaceValidationResult",
    "agrupar_cultivos_por_parcela",
    "generar_reporte_superficie",
    "validar_cultivos_por_parcela",
    "validar_suma_parcelas_productor",
    "validar_superficies_ficha",
]

DEFAULT_TOLERANCE_PCT = 10.0
DEFAULT_ROUNDING_HA = 0.001
ROUND_DIGITS = 6


@dataclass(frozen=True, slots=True)
class CultivoSuperficie:
    id_parcela: str
    id_tipo_cultivo: str
    superficie_ha: float
    nombre_cultivo: str | None = None


@dataclass(frozen=True, slots=True)
class ParcelaResumen:
    id_parcela: str
    numero_parcela: int
    superficie_definida: float
    superficie_cultivada: float
    superficie_disponible: float
    porcentaje_uso: float


@dataclass(frozen=True, slots=True)
class SurfaceDetails:
    superficie_total_productor: float
    superficie_total_parcelas: float
    superficie_total_cultivada: float
    cultivos_por_parcela: dict[str, list[CultivoSuperficie]]
    resumen_por_parcela: list[ParcelaResumen]


@dataclass(frozen=True, slots=True)
class SurfaceValidationResult:
    """Outcome of a reconciliation run."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    detalles: SurfaceDetails | None = None


def _r(value: float) -> float:
    return round(value, ROUND_DIGITS)


def validar_cultivos_por_parcela(
    superficie_parcela: float,
    superficies_cultivos: Iterable[float],
    *,
    redondeo_ha: float = DEFAULT_ROUNDING_HA,
) -> SurfaceValidationResult:
    """Check the crops of one plot against the plot's declared area."""
    errors: list[str] = []
    warnings: list[str] = []

    suma = _r(sum(superficies_cultivos))
    declarada = _r(superficie_parcela)

    if suma > declarada:
        errors.append(
            f"Los cultivos suman {suma:.4f} ha pero la parcela tiene {declarada:.4f} ha. "
            f"Exceso: {suma - declarada:.4f} ha"
        )

    disponible = _r(declarada - suma)
    if disponible > redondeo_ha:
        sin_usar = (disponible / declarada) * 100 if declarada > 0 else 0.0
        warnings.append(
            f"La parcela tiene {disponible:.4f} ha sin cultivar de {declarada:.4f} ha "
            f"({sin_usar:.1f}% sin usar)"
        )

    return SurfaceValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validar_suma_parcelas_productor(
    superficie_total_productor: float,
    superficies_parcelas: Iterable[float],
    *,
    redondeo_ha: float = DEFAULT_ROUNDING_HA,
) -> SurfaceValidationResult:
    """Check that a producer's plots add up to the producer's declared total."""
    errors: list[str] = []
    suma = _r(sum(superficies_parcelas))
    total = _r(superficie_total_productor)

    if abs(suma - total) > redondeo_ha:
        if suma > total:
            errors.append(
                f"La suma de superficies de parcelas ({suma:.4f} ha) excede la superficie total "
                f"del productor ({total:.4f} ha). Exceso: {suma - total:.4f} ha"
            )
        else:
            errors.append(
                f"La suma de superficies de parcelas ({suma:.4f} ha) es menor a la superficie "
                f"total del productor ({total:.4f} ha). Faltante: {total - suma:.4f} ha"
            )
    return SurfaceValidationResult(valid=not errors, errors=errors)


def agrupar_cultivos_por_parcela(
    cultivos: Iterable[DetalleCultivoParcela],
) -> dict[str, list[CultivoSuperficie]]:
    """Group crop rows by plot id, preserving input order."""
    grouped: dict[str, list[CultivoSuperficie]] = {}
    for cultivo in cultivos:
        grouped.setdefault(cultivo.id_parcela, []).append(
            CultivoSuperficie(
                id_parcela=cultivo.id_parcela,
                id_tipo_cultivo=cultivo.id_tipo_cultivo,
                superficie_ha=cultivo.superficie_ha,
                nombre_cultivo=cultivo.nombre_cultivo,
            )
        )
    return grouped


def validar_superficies_ficha(
    parcelas: Sequence[Parcela],
    detalles: Sequence[DetalleCultivoParcela],
    *,
    superficie_total_productor: float | None = None,
    tolerancia_pct: float = DEFAULT_TOLERANCE_PCT,
    redondeo_ha: float = DEFAULT_ROUNDING_HA,
) -> SurfaceValidationResult:
    """Reconcile every plot of a producer with the ficha's crop allocations.

    Args:
        parcelas: Producer's active plots.
        detalles: Crop-detail rows of the ficha.
        superficie_total_productor: Producer's declared total; defaults to the
            sum of the plots when unknown.
        tolerancia_pct: Allowed deviation (percent) of the allocated total
            from the declared total before a warning is emitted.
        redondeo_ha: Differences at or below this many hectares are ignored.

    Returns:
        SurfaceValidationResult: ``valid`` is False only when a hard error
        was found; warnings never block.
    """
    errors: list[str] = []
    warnings: list[str] = []
    resumen: list[ParcelaResumen] = []
    por_parcela = agrupar_cultivos_por_parcela(detalles)

    for parcela in parcelas:
        areas = [c.superficie_ha for c in por_parcela.get(parcela.id_parcela, [])]
        check = validar_cultivos_por_parcela(parcela.superficie_ha, areas, redondeo_ha=redondeo_ha)
        if check.errors:
            errors.append(f"Parcela {parcela.numero_parcela}: {', '.join(check.errors)}")
        if check.warnings:
            warnings.append(f"Parcela {parcela.numero_parcela}: {', '.join(check.warnings)}")

        cultivada = _r(sum(areas))
        resumen.append(
            ParcelaResumen(
                id_parcela=parcela.id_parcela,
                numero_parcela=parcela.numero_parcela,
                superficie_definida=parcela.superficie_ha,
                superficie_cultivada=cultivada,
                superficie_disponible=_r(parcela.superficie_ha - cultivada),
                porcentaje_uso=(
                    (cultivada / parcela.superficie_ha) * 100 if parcela.superficie_ha > 0 else 0.0
                ),
            )
        )

    conocidas = {p.id_parcela for p in parcelas}
    for id_parcela in por_parcela:
        if id_parcela not in conocidas:
            errors.append(f"Parcela {id_parcela}: no pertenece al productor o no esta activa")

    total_parcelas = _r(sum(p.superficie_ha for p in parcelas))
    total_productor = _r(
        superficie_total_productor if superficie_total_productor is not None else total_parcelas
    )
    total_cultivado = _r(sum(d.superficie_ha for d in detalles))

    if total_productor > 0:
        desvio = abs(total_cultivado - total_productor)
        desvio_pct = desvio / total_productor * 100
        if desvio > redondeo_ha and desvio_pct > tolerancia_pct:
            warnings.append(
                f"La superficie cultivada ({total_cultivado:.4f} ha) difiere "
                f"{desvio_pct:.1f}% de la superficie total del productor "
                f"({total_productor:.4f} ha); tolerancia {tolerancia_pct:.1f}%"
            )

    return SurfaceValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        detalles=SurfaceDetails(
            superficie_total_productor=total_productor,
            superficie_total_parcelas=total_parcelas,
            superficie_total_cultivada=total_cultivado,
            cultivos_por_parcela=por_parcela,
            resumen_por_parcela=resumen,
        ),
    )


def generar_reporte_superficie(detalles: SurfaceDetails) -> str:
    """Render a plain-text per-plot report."""
    lines = [
        "=== REPORTE DE SUPERFICIES ===",
        "",
        f"Superficie total del productor: {detalles.superficie_total_productor:.4f} ha",
        f"Superficie total (suma de parcelas): {detalles.superficie_total_parcelas:.4f} ha",
        f"Superficie cultivada: {detalles.superficie_total_cultivada:.4f} ha",
        "",
        "=== DETALLE POR PARCELAS ===",
        "",
    ]
    for parcela in detalles.resumen_por_parcela:
        lines.append(f"Parcela {parcela.numero_parcela}:")
        lines.append(f"  Superficie definida: {parcela.superficie_definida:.4f} ha")
        lines.append(
            f"  Superficie cultivada: {parcela.superficie_cultivada:.4f} ha "
            f"({parcela.porcentaje_uso:.1f}%)"
        )
        lines.append(f"  Superficie disponible: {parcela.superficie_disponible:.4f} ha")
        cultivos = detalles.cultivos_por_parcela.get(parcela.id_parcela) or []
        if cultivos:
            lines.append("  Cultivos:")
            for cultivo in cultivos:
                nombre = cultivo.nombre_cultivo or cultivo.id_tipo_cultivo
                lines.append(f"    - {nombre}: {cultivo.superficie_ha:.4f} ha")
        lines.append("")
    return "\n".join(lines) + "\n"
