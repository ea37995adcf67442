# src/apromam_api/application/services/fichas_service.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Application service for the ficha aggregate and its workflow.

Purpose:
    Orchestrate authorization scope, reference lookups, entity transitions,
    surface reconciliation and persistence for inspection records.

Responsibilities:
    * Listing and reading, restricted to the caller's communities unless the
      caller is elevated.
    * Atomic creation and full replacement of the aggregate.
    * Guarded workflow transitions persisted as root-only updates.
    * The approval saga: approve, persist, synchronize; on synchronization
      failure force the ficha to ``rechazado``, persist, and raise
      :class:`ApprovalReverted`. If that rejection cannot be stored either,
      raise :class:`ApprovalCompensationFailed` instead.

Layer:
    application/services

Notes:
    Nothing here retries. Draft cleanup after creation is best-effort and
    never fails the request.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from apromam_api.application.schemas.dto.fichas import (
    AprobarFichaInput,
    AuthContext,
    CreateFichaInput,
    EnviarRevisionInput,
    EstadisticasFichas,
    FichaListPage,
    ListFichasQuery,
    RechazarFichaInput,
    UpdateFichaInput,
)
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import FichaCompleta
from apromam_api.domain.exceptions.fichas import (
    AccessDenied,
    ApprovalCompensationFailed,
    ApprovalReverted,
    FichaNotFound,
    FichaValidationError,
    GestionNotFound,
    InvalidStateTransition,
    ProductorNotFound,
    SurfaceValidationFailed,
)
from apromam_api.domain.interfaces.gateways.certification_sync import CertificationSyncGateway
from apromam_api.domain.interfaces.repositories.fichas import (
    FichaDraftRepository,
    FichaFiltro,
    FichaRepository,
    GestionRepository,
    ProductorRepository,
)
from apromam_api.domain.services.surface_validation import (
    DEFAULT_ROUNDING_HA,
    DEFAULT_TOLERANCE_PCT,
    SurfaceValidationResult,
    validar_superficies_ficha,
)
from apromam_api.infrastructure.logging.logger import get_json_logger
from apromam_api.infrastructure.observability.metrics import (
    get_fichas_approval_reverted_total,
    get_fichas_transitions_total,
)

logger = get_json_logger(__name__)


class FichasService:
    """Use-case facade over the ficha aggregate.

    Args:
        fichas: Aggregate repository.
        productores: Producer and plot lookups.
        gestiones: Certification period lookups.
        drafts: Saved-draft store (cleanup after creation).
        sync_gateway: Post-approval synchronization collaborator.
        tolerancia_pct: Surface tolerance band for warnings.
        redondeo_ha: Surface rounding slack.
    """

    def __init__(
        self,
        fichas: FichaRepository,
        productores: ProductorRepository,
        gestiones: GestionRepository,
        drafts: FichaDraftRepository,
        sync_gateway: CertificationSyncGateway,
        *,
        tolerancia_pct: float = DEFAULT_TOLERANCE_PCT,
        redondeo_ha: float = DEFAULT_ROUNDING_HA,
    ) -> None:
        self._fichas = fichas
        self._productores = productores
        self._gestiones = gestiones
        self._drafts = drafts
        self._sync = sync_gateway
        self._tolerancia_pct = tolerancia_pct
        self._redondeo_ha = redondeo_ha

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_fichas(self, query: ListFichasQuery, auth: AuthContext) -> FichaListPage:
        """List active fichas newest first, scoped to the caller's communities."""
        if query.id_comunidad and not auth.puede_acceder(query.id_comunidad):
            raise AccessDenied(
                "No tiene acceso a esta comunidad", details={"id_comunidad": query.id_comunidad}
            )
        filtro = FichaFiltro(
            gestion=query.gestion,
            id_comunidad=query.id_comunidad,
            codigo_productor=query.codigo_productor,
            estado_ficha=query.estado_ficha,
            comunidades=self._scope(auth),
        )
        items, total = await self._fichas.list_fichas(filtro, page=query.page, limit=query.limit)
        return FichaListPage(items=list(items), total=total, page=query.page, limit=query.limit)

    async def get_ficha_completa(self, id_ficha: str, auth: AuthContext) -> FichaCompleta:
        completa = await self._fichas.load_ficha_completa(id_ficha)
        if completa is None:
            raise FichaNotFound(id_ficha)
        await self._authorize(completa.ficha, auth)
        return completa

    async def get_estadisticas(
        self, auth: AuthContext, *, gestion: int | None = None
    ) -> EstadisticasFichas:
        """Counts by state and outcome, plus fichas awaiting offline sync."""
        filtro = FichaFiltro(gestion=gestion, comunidades=self._scope(auth))
        por_estado, por_resultado, pendientes = await asyncio.gather(
            self._fichas.count_by_estado(filtro),
            self._fichas.count_by_resultado(filtro),
            self._fichas.count_pendientes_sync(filtro),
        )
        return EstadisticasFichas(
            total=sum(por_estado.values()),
            por_estado=dict(por_estado),
            por_resultado=dict(por_resultado),
            pendientes_sincronizacion=pendientes,
        )

    # ------------------------------------------------------------------
    # Aggregate commands
    # ------------------------------------------------------------------

    async def create_ficha_completa(
        self, data: CreateFichaInput, auth: AuthContext
    ) -> FichaCompleta:
        """Create a ficha and its sections atomically.

        Raises:
            ProductorNotFound: Unknown or inactive producer.
            AccessDenied: Producer's community is outside the caller's scope.
            GestionNotFound: No period for ``data.gestion``.
            FichaValidationError: Inspection date outside the period year,
                invalid fields, or an active ficha already exists.
            PersistenceError: The transaction failed.
        """
        codigo = data.codigo_productor.strip().upper()
        productor = await self._productores.find_by_codigo(codigo)
        if productor is None:
            raise ProductorNotFound(codigo)
        if not auth.puede_acceder(productor.id_comunidad):
            raise AccessDenied(
                "No tiene acceso a productores de esta comunidad",
                details={"codigo_productor": codigo},
            )

        gestion = await self._gestiones.find_by_anio(data.gestion)
        if gestion is None:
            raise GestionNotFound(data.gestion)
        self._check_year(data.fecha_inspeccion.year, gestion.anio_gestion)

        ficha = Ficha.crear(
            codigo_productor=codigo,
            gestion=gestion.anio_gestion,
            id_gestion=gestion.id_gestion,
            fecha_inspeccion=data.fecha_inspeccion,
            inspector_interno=data.inspector_interno,
            created_by=auth.user_id,
            persona_entrevistada=data.persona_entrevistada,
            categoria_gestion_anterior=data.categoria_gestion_anterior,
            origen_captura=data.origen_captura,
            recomendaciones=data.recomendaciones,
            comentarios_actividad_pecuaria=data.comentarios_actividad_pecuaria,
            firma_productor=data.firma_productor,
            firma_inspector=data.firma_inspector,
        )
        completa = await self._fichas.create_ficha_completa(ficha, data.to_secciones())

        try:
            await self._drafts.delete_by_key(codigo, gestion.anio_gestion, auth.user_id)
        except Exception as exc:  # noqa: BLE001 - draft cleanup never fails the request
            logger.warning(
                "fichas.draft_cleanup.failed",
                extra={"id_ficha": ficha.id_ficha, "error_type": exc.__class__.__name__},
            )

        logger.info(
            "fichas.create.ok",
            extra={"id_ficha": ficha.id_ficha, "codigo_productor": codigo},
        )
        return completa

    async def update_ficha_completa(
        self, id_ficha: str, data: UpdateFichaInput, auth: AuthContext
    ) -> FichaCompleta:
        """Replace root fields and supplied sections of a ficha in ``borrador``."""
        ficha = await self._get(id_ficha)
        await self._authorize(ficha, auth)
        if not ficha.es_borrador:
            raise InvalidStateTransition("editar", "borrador", ficha.estado_ficha.value)

        data.apply_to(ficha)
        self._check_year(ficha.fecha_inspeccion.year, ficha.gestion)
        ficha.updated_at = datetime.now(UTC)

        return await self._fichas.update_ficha_completa(id_ficha, ficha, data.to_secciones())

    async def delete_ficha(self, id_ficha: str, auth: AuthContext) -> None:
        """Soft-deactivate a ficha; only drafts can be removed."""
        ficha = await self._get(id_ficha)
        await self._authorize(ficha, auth)
        if not ficha.es_borrador:
            raise InvalidStateTransition("eliminar", "borrador", ficha.estado_ficha.value)
        await self._fichas.soft_delete(id_ficha)
        logger.info("fichas.delete.ok", extra={"id_ficha": id_ficha})

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def enviar_revision(
        self, id_ficha: str, data: EnviarRevisionInput, auth: AuthContext
    ) -> Ficha:
        """Submit a draft for review, gated by surface reconciliation.

        Raises:
            InvalidStateTransition: The ficha is not in ``borrador``.
            SurfaceValidationFailed: Crop allocations exceed a plot's area.
            PreconditionFailed: Recommendations or signature too short.
        """
        ficha = await self._get(id_ficha)
        await self._authorize(ficha, auth)
        if not ficha.puede_enviar_revision():
            raise InvalidStateTransition(
                "enviar a revision", "borrador", ficha.estado_ficha.value
            )

        completa = await self._fichas.load_ficha_completa(id_ficha)
        if completa is None:
            raise FichaNotFound(id_ficha)
        if completa.tiene_detalles_cultivo:
            resultado = await self.validar_superficies(completa)
            if not resultado.valid:
                raise SurfaceValidationFailed(
                    "La superficie cultivada excede la superficie de las parcelas",
                    errors=resultado.errors,
                    details={"warnings": resultado.warnings},
                )
            if resultado.warnings:
                logger.warning(
                    "fichas.surface.warnings",
                    extra={"id_ficha": id_ficha, "warnings": resultado.warnings},
                )

        ficha.enviar_revision(
            data.recomendaciones or ficha.recomendaciones,
            data.firma_inspector or ficha.firma_inspector,
        )
        await self._fichas.update_root(ficha)
        get_fichas_transitions_total().labels(action="enviar_revision").inc()
        logger.info("fichas.enviar_revision.ok", extra={"id_ficha": id_ficha})
        return ficha

    async def aprobar_ficha(
        self, id_ficha: str, data: AprobarFichaInput, auth: AuthContext
    ) -> Ficha:
        """Approve a ficha and synchronize it downstream.

        Raises:
            AccessDenied: Caller is not elevated.
            InvalidStateTransition: The ficha is not in ``revision``.
            ApprovalReverted: Synchronization failed; the ficha was persisted
                as ``rechazado``.
            ApprovalCompensationFailed: Synchronization failed and the
                rejection could not be persisted; the ficha is still ``aprobado``.
        """
        self._require_elevated(auth, "aprobar")
        ficha = await self._get(id_ficha)

        ficha.aprobar(data.comentarios_evaluacion)
        await self._fichas.update_root(ficha)

        try:
            await self._sync.sincronizar_aprobacion(id_ficha)
        except Exception as exc:  # noqa: BLE001 - compensated below
            sync_error = str(exc) or exc.__class__.__name__
            logger.error(
                "fichas.aprobar.sync_failed",
                extra={"id_ficha": id_ficha, "error_type": exc.__class__.__name__},
            )
            ficha.forzar_rechazo_por_sincronizacion(sync_error)
            try:
                await self._fichas.update_root(ficha)
            except Exception as persist_exc:
                logger.error(
                    "fichas.aprobar.compensation_failed",
                    extra={
                        "id_ficha": id_ficha,
                        "sync_error_type": exc.__class__.__name__,
                        "persist_error_type": persist_exc.__class__.__name__,
                    },
                )
                raise ApprovalCompensationFailed(id_ficha, sync_error, persist_exc) from exc
            get_fichas_approval_reverted_total().inc()
            raise ApprovalReverted(id_ficha, sync_error) from exc

        get_fichas_transitions_total().labels(action="aprobar").inc()
        logger.info("fichas.aprobar.ok", extra={"id_ficha": id_ficha})
        return ficha

    async def rechazar_ficha(
        self, id_ficha: str, data: RechazarFichaInput, auth: AuthContext
    ) -> Ficha:
        self._require_elevated(auth, "rechazar")
        ficha = await self._get(id_ficha)
        ficha.rechazar(data.motivo)
        await self._fichas.update_root(ficha)
        get_fichas_transitions_total().labels(action="rechazar").inc()
        logger.info("fichas.rechazar.ok", extra={"id_ficha": id_ficha})
        return ficha

    async def devolver_borrador(self, id_ficha: str, auth: AuthContext) -> Ficha:
        self._require_elevated(auth, "devolver a borrador")
        ficha = await self._get(id_ficha)
        ficha.devolver_borrador()
        await self._fichas.update_root(ficha)
        get_fichas_transitions_total().labels(action="devolver_borrador").inc()
        logger.info("fichas.devolver_borrador.ok", extra={"id_ficha": id_ficha})
        return ficha

    async def validar_superficies(self, completa: FichaCompleta) -> SurfaceValidationResult:
        """Run surface reconciliation for a loaded aggregate."""
        codigo = completa.ficha.codigo_productor
        parcelas, productor = await asyncio.gather(
            self._productores.list_parcelas_activas(codigo),
            self._productores.find_by_codigo(codigo),
        )
        return validar_superficies_ficha(
            parcelas,
            completa.detalles_cultivo,
            superficie_total_productor=(productor.superficie_total_has or None)
            if productor
            else None,
            tolerancia_pct=self._tolerancia_pct,
            redondeo_ha=self._redondeo_ha,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get(self, id_ficha: str) -> Ficha:
        ficha = await self._fichas.find_by_id(id_ficha)
        if ficha is None:
            raise FichaNotFound(id_ficha)
        return ficha

    async def _authorize(self, ficha: Ficha, auth: AuthContext) -> None:
        if auth.is_elevated:
            return
        productor = await self._productores.find_by_codigo(ficha.codigo_productor)
        if productor is None or not auth.puede_acceder(productor.id_comunidad):
            raise AccessDenied(
                "No tiene acceso a esta ficha", details={"id_ficha": ficha.id_ficha}
            )

    @staticmethod
    def _require_elevated(auth: AuthContext, action: str) -> None:
        if not auth.is_elevated:
            raise AccessDenied(f"No tiene permisos para {action} fichas")

    @staticmethod
    def _scope(auth: AuthContext) -> tuple[str, ...] | None:
        return None if auth.is_elevated else tuple(auth.comunidad_ids or ())

    @staticmethod
    def _check_year(anio_inspeccion: int, anio_gestion: int) -> None:
        if anio_inspeccion != anio_gestion:
            message = (
                f"La fecha de inspeccion ({anio_inspeccion}) no corresponde a la "
                f"gestion {anio_gestion}"
            )
            raise FichaValidationError(message, errors=[message])
