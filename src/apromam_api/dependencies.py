# src/apromam_api/dependencies.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Composition root for the fichas service.

Wires the store adapters onto one engine and applies the surface-validation
tolerances from settings. Controllers (outside this package) obtain the
service through :func:`build_fichas_service`.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from apromam_api.adapters.gateways.certification_sync_gateway import SqlCertificationSyncGateway
from apromam_api.adapters.repositories.catalogo_repository import (
    GestionRepository,
    ProductorRepository,
)
from apromam_api.adapters.repositories.ficha_draft_repository import FichaDraftRepository
from apromam_api.adapters.repositories.ficha_repository import FichaRepository
from apromam_api.application.services.fichas_service import FichasService
from apromam_api.config.settings import Settings
from apromam_api.infrastructure.database.query_executor import QueryExecutor


def build_fichas_service(engine: AsyncEngine, settings: Settings) -> FichasService:
    executor = QueryExecutor(engine)
    return FichasService(
        fichas=FichaRepository(executor),
        productores=ProductorRepository(executor),
        gestiones=GestionRepository(executor),
        drafts=FichaDraftRepository(executor),
        sync_gateway=SqlCertificationSyncGateway(engine),
        tolerancia_pct=settings.surface_tolerance_pct,
        redondeo_ha=settings.surface_rounding_ha,
    )
