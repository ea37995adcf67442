# src/apromam_api/domain/entities/ficha.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Ficha (inspection record) aggregate root and its workflow.

Purpose:
    Hold the workflow state and certification outcome of one inspection and
    expose the only legal ways to change them. Persistence-agnostic.

Workflow:

    borrador --enviar_revision--> revision --aprobar--> aprobado
                                      |
                                      +----rechazar--> rechazado --devolver_borrador--> borrador

    ``resultado_certificacion`` is ``pendiente`` unless the state is
    ``aprobado`` or ``rechazado``, in which case it equals the state.

    Every transition validates all of its preconditions before touching any
    field, so a refused transition leaves the entity unchanged. Each successful
    transition stamps ``updated_at``.

Layer:
    domain/entities
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from apromam_api.domain.enums.ficha import (
    RESULTADO_POR_ESTADO,
    CategoriaProductor,
    EstadoFicha,
    EstadoSync,
    OrigenCaptura,
    ResultadoCertificacion,
)
from apromam_api.domain.exceptions.fichas import (
    FichaValidationError,
    InvalidStateTransition,
    PreconditionFailed,
)

__all__ = ["Ficha"]

MIN_RECOMENDACIONES = 10
MIN_FIRMA_INSPECTOR = 3
MIN_MOTIVO_RECHAZO = 10
MAX_TEXTO_LARGO = 2000
MAX_TEXTO_CORTO = 100


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(slots=True, kw_only=True)
class Ficha:
    """Aggregate root of one inspection for one producer in one period."""

    id_ficha: str
    codigo_productor: str
    gestion: int
    fecha_inspeccion: date
    inspector_interno: str
    created_by: str
    id_gestion: str | None = None
    persona_entrevistada: str | None = None
    categoria_gestion_anterior: CategoriaProductor | None = None
    origen_captura: OrigenCaptura = OrigenCaptura.ONLINE
    fecha_sincronizacion: datetime | None = None
    estado_sync: EstadoSync = EstadoSync.PENDIENTE
    estado_ficha: EstadoFicha = EstadoFicha.BORRADOR
    resultado_certificacion: ResultadoCertificacion = ResultadoCertificacion.PENDIENTE
    recomendaciones: str | None = None
    comentarios_evaluacion: str | None = None
    comentarios_actividad_pecuaria: str | None = None
    firma_productor: str | None = None
    firma_inspector: str | None = None
    activo: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    nombre_productor: str | None = None
    nombre_comunidad: str | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def crear(
        cls,
        *,
        codigo_productor: str,
        gestion: int,
        fecha_inspeccion: date,
        inspector_interno: str,
        created_by: str,
        id_gestion: str | None = None,
        persona_entrevistada: str | None = None,
        categoria_gestion_anterior: CategoriaProductor | None = None,
        origen_captura: OrigenCaptura = OrigenCaptura.ONLINE,
        recomendaciones: str | None = None,
        comentarios_actividad_pecuaria: str | None = None,
        firma_productor: str | None = None,
        firma_inspector: str | None = None,
    ) -> Ficha:
        """Create a new ficha in ``borrador`` with a pending outcome."""
        now = _utcnow()
        return cls(
            id_ficha=str(uuid.uuid4()),
            codigo_productor=codigo_productor.strip().upper(),
            gestion=gestion,
            id_gestion=id_gestion,
            fecha_inspeccion=fecha_inspeccion,
            inspector_interno=inspector_interno.strip(),
            persona_entrevistada=_clean(persona_entrevistada),
            categoria_gestion_anterior=categoria_gestion_anterior,
            origen_captura=origen_captura,
            recomendaciones=_clean(recomendaciones),
            comentarios_actividad_pecuaria=_clean(comentarios_actividad_pecuaria),
            firma_productor=_clean(firma_productor),
            firma_inspector=_clean(firma_inspector),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validation_errors(self) -> list[str]:
        """Return every root-field violation (empty when valid)."""
        errors: list[str] = []
        if not self.codigo_productor or len(self.codigo_productor.strip()) < 5:
            errors.append("Codigo de productor es requerido")
        if not 2000 <= self.gestion <= 2050:
            errors.append("Gestion debe estar entre 2000 y 2050")
        if self.fecha_inspeccion is None:
            errors.append("Fecha de inspeccion es requerida")
        if not self.inspector_interno or len(self.inspector_interno.strip()) < 3:
            errors.append("Inspector interno es requerido")
        elif len(self.inspector_interno) > MAX_TEXTO_CORTO:
            errors.append("Inspector interno no puede exceder 100 caracteres")
        for label, value, limit in (
            ("Persona entrevistada", self.persona_entrevistada, MAX_TEXTO_CORTO),
            ("Recomendaciones", self.recomendaciones, MAX_TEXTO_LARGO),
            ("Comentarios evaluacion", self.comentarios_evaluacion, MAX_TEXTO_LARGO),
            (
                "Comentarios actividad pecuaria",
                self.comentarios_actividad_pecuaria,
                MAX_TEXTO_LARGO,
            ),
            ("Firma productor", self.firma_productor, MAX_TEXTO_CORTO),
            ("Firma inspector", self.firma_inspector, MAX_TEXTO_CORTO),
        ):
            if value is not None and len(value) > limit:
                errors.append(f"{label} no puede exceder {limit} caracteres")
        for label, value, enum_type in (
            ("Categoria gestion anterior", self.categoria_gestion_anterior, CategoriaProductor),
            ("Origen captura", self.origen_captura, OrigenCaptura),
            ("Estado sync", self.estado_sync, EstadoSync),
            ("Estado ficha", self.estado_ficha, EstadoFicha),
            ("Resultado certificacion", self.resultado_certificacion, ResultadoCertificacion),
        ):
            if value is not None and not isinstance(value, enum_type):
                errors.append(f"{label} invalido")
        if not self.created_by:
            errors.append("Usuario creador es requerido")
        resultado_esperado = RESULTADO_POR_ESTADO.get(self.estado_ficha)
        if not errors and resultado_esperado is not self.resultado_certificacion:
            errors.append("Resultado de certificacion inconsistente con el estado de la ficha")
        return errors

    def validate(self) -> None:
        """Raise :class:`FichaValidationError` listing every violation."""
        errors = self.validation_errors()
        if errors:
            raise FichaValidationError(f"Validacion fallo: {', '.join(errors)}", errors=errors)

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def es_borrador(self) -> bool:
        return self.estado_ficha is EstadoFicha.BORRADOR

    @property
    def en_revision(self) -> bool:
        return self.estado_ficha is EstadoFicha.REVISION

    @property
    def aprobada(self) -> bool:
        return self.estado_ficha is EstadoFicha.APROBADO

    @property
    def rechazada(self) -> bool:
        return self.estado_ficha is EstadoFicha.RECHAZADO

    def puede_enviar_revision(self) -> bool:
        return self.es_borrador

    def puede_aprobar(self) -> bool:
        return self.en_revision

    def puede_rechazar(self) -> bool:
        return self.en_revision

    def puede_devolver_borrador(self) -> bool:
        return self.rechazada

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    def enviar_revision(self, recomendaciones: str | None, firma_inspector: str | None) -> None:
        """Submit for review with the inspector's recommendations and signature.

        Raises:
            InvalidStateTransition: If the ficha is not in ``borrador``.
            PreconditionFailed: If recommendations are under 10 characters or
                the signature is under 3 characters.
        """
        self._require(EstadoFicha.BORRADOR, "enviar a revision")
        recs = (recomendaciones or "").strip()
        firma = (firma_inspector or "").strip()
        if len(recs) < MIN_RECOMENDACIONES:
            raise PreconditionFailed(
                "Recomendaciones son requeridas (minimo 10 caracteres)",
                details={"field": "recomendaciones", "min_length": MIN_RECOMENDACIONES},
            )
        if len(recs) > MAX_TEXTO_LARGO:
            raise PreconditionFailed(
                "Recomendaciones no pueden exceder 2000 caracteres",
                details={"field": "recomendaciones", "max_length": MAX_TEXTO_LARGO},
            )
        if len(firma) < MIN_FIRMA_INSPECTOR:
            raise PreconditionFailed(
                "Firma del inspector es requerida (minimo 3 caracteres)",
                details={"field": "firma_inspector", "min_length": MIN_FIRMA_INSPECTOR},
            )
        if len(firma) > MAX_TEXTO_CORTO:
            raise PreconditionFailed(
                "Firma del inspector no puede exceder 100 caracteres",
                details={"field": "firma_inspector", "max_length": MAX_TEXTO_CORTO},
            )

        self.recomendaciones = recs
        self.firma_inspector = firma
        self._move_to(EstadoFicha.REVISION)

    def marcar_en_revision(self) -> None:
        """Move ``borrador`` to ``revision`` without content checks.

        Reserved for programmatic flows (not user input) where the aggregate's
        content was already validated by other means.
        """
        self._require(EstadoFicha.BORRADOR, "enviar a revision")
        self._move_to(EstadoFicha.REVISION)

    def aprobar(self, comentarios: str | None = None) -> None:
        """Approve a ficha under review.

        Raises:
            InvalidStateTransition: If the ficha is not in ``revision``.
        """
        self._require(EstadoFicha.REVISION, "aprobar")
        comentarios = _clean(comentarios)
        if comentarios is not None and len(comentarios) > MAX_TEXTO_LARGO:
            raise PreconditionFailed("Comentarios no pueden exceder 2000 caracteres")

        if comentarios is not None:
            self.comentarios_evaluacion = comentarios
        self._move_to(EstadoFicha.APROBADO)

    def rechazar(self, motivo: str | None) -> None:
        """Reject a ficha under review with a reason.

        Raises:
            InvalidStateTransition: If the ficha is not in ``revision``.
            PreconditionFailed: If the reason is under 10 characters.
        """
        self._require(EstadoFicha.REVISION, "rechazar")
        motivo = (motivo or "").strip()
        if len(motivo) < MIN_MOTIVO_RECHAZO:
            raise PreconditionFailed(
                "Motivo de rechazo es requerido (minimo 10 caracteres)",
                details={"field": "motivo", "min_length": MIN_MOTIVO_RECHAZO},
            )
        if len(motivo) > MAX_TEXTO_LARGO:
            raise PreconditionFailed("Motivo de rechazo no puede exceder 2000 caracteres")

        self.comentarios_evaluacion = motivo
        self._move_to(EstadoFicha.RECHAZADO)

    def devolver_borrador(self) -> None:
        """Return a rejected ficha to ``borrador`` for correction.

        Raises:
            InvalidStateTransition: If the ficha is not in ``rechazado``.
        """
        self._require(EstadoFicha.RECHAZADO, "devolver a borrador")
        self._move_to(EstadoFicha.BORRADOR)

    def forzar_rechazo_por_sincronizacion(self, motivo: str) -> None:
        """Compensate an approval whose downstream synchronization failed.

        This is the only path out of ``aprobado``; it is not part of the
        user-facing transition table and is called by the approval saga only.

        Raises:
            InvalidStateTransition: If the ficha is not in ``aprobado``.
        """
        self._require(EstadoFicha.APROBADO, "revertir la aprobacion")
        texto = (motivo or "").strip() or "Sincronizacion fallida"
        self.comentarios_evaluacion = f"Aprobacion revertida: {texto}"[:MAX_TEXTO_LARGO]
        self._move_to(EstadoFicha.RECHAZADO)

    # ------------------------------------------------------------------
    # Offline synchronization
    # ------------------------------------------------------------------

    def marcar_sincronizada(self) -> None:
        now = _utcnow()
        self.estado_sync = EstadoSync.SINCRONIZADO
        self.fecha_sincronizacion = now
        self.updated_at = now

    def marcar_conflicto(self) -> None:
        self.estado_sync = EstadoSync.CONFLICTO
        self.updated_at = _utcnow()

    # ------------------------------------------------------------------
    # Field updaters
    # ------------------------------------------------------------------

    def actualizar_inspector(self, inspector: str) -> None:
        inspector = (inspector or "").strip()
        if len(inspector) < 3:
            raise PreconditionFailed("Inspector interno es requerido")
        if len(inspector) > MAX_TEXTO_CORTO:
            raise PreconditionFailed("Inspector interno no puede exceder 100 caracteres")
        self.inspector_interno = inspector
        self.updated_at = _utcnow()

    def actualizar_persona_entrevistada(self, persona: str) -> None:
        if len(persona) > MAX_TEXTO_CORTO:
            raise PreconditionFailed("Persona entrevistada no puede exceder 100 caracteres")
        self.persona_entrevistada = _clean(persona)
        self.updated_at = _utcnow()

    def actualizar_recomendaciones(self, recomendaciones: str) -> None:
        if len(recomendaciones) > MAX_TEXTO_LARGO:
            raise PreconditionFailed("Recomendaciones no pueden exceder 2000 caracteres")
        self.recomendaciones = _clean(recomendaciones)
        self.updated_at = _utcnow()

    def actualizar_firma_productor(self, firma: str) -> None:
        if len(firma) > MAX_TEXTO_CORTO:
            raise PreconditionFailed("Firma productor no puede exceder 100 caracteres")
        self.firma_productor = _clean(firma)
        self.updated_at = _utcnow()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, estado: EstadoFicha, action: str) -> None:
        if self.estado_ficha is not estado:
            raise InvalidStateTransition(action, estado.value, self.estado_ficha.value)

    def _move_to(self, estado: EstadoFicha) -> None:
        self.estado_ficha = estado
        self.resultado_certificacion = RESULTADO_POR_ESTADO[estado]
        self.updated_at = _utcnow()
