# src/apromam_api/domain/interfaces/repositories/fichas.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Ficha aggregate and catalog repository interfaces.

Purpose:
    Define the persistence operations the fichas service depends on.

Layer:
    domain/interfaces/repositories

Notes:
    Implementations live in the adapters layer and must:
    - Write the aggregate atomically (all sections or none).
    - Treat ``None`` sections as untouched and empty sequences as "clear".
    - Translate low-level store failures into domain exceptions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from apromam_api.domain.entities.catalogos import Gestion, Parcela, Productor
from apromam_api.domain.entities.ficha import Ficha
from apromam_api.domain.entities.ficha_completa import FichaCompleta, FichaSecciones
from apromam_api.domain.enums.ficha import EstadoFicha


@dataclass(frozen=True, slots=True)
class FichaFiltro:
    """Listing filters. ``comunidades`` restricts to a community scope."""

    gestion: int | None = None
    id_comunidad: str | None = None
    codigo_productor: str | None = None
    estado_ficha: EstadoFicha | None = None
    comunidades: tuple[str, ...] | None = None


class FichaRepository(Protocol):
    """Protocol for the ficha aggregate store."""

    async def find_by_id(self, id_ficha: str) -> Ficha | None:
        """Return the active ficha root (with producer/community names)."""

    async def load_ficha_completa(self, id_ficha: str) -> FichaCompleta | None:
        """Return the root and every stored section."""

    async def create_ficha_completa(
        self, ficha: Ficha, secciones: FichaSecciones
    ) -> FichaCompleta:
        """Insert the root and supplied sections in one transaction.

        Raises:
            FichaValidationError: If another active ficha exists for the same
                producer and period.
            PersistenceError: If the transaction fails.
        """

    async def update_ficha_completa(
        self, id_ficha: str, ficha: Ficha, secciones: FichaSecciones
    ) -> FichaCompleta:
        """Update the root and replace supplied sections in one transaction."""

    async def update_root(self, ficha: Ficha) -> Ficha:
        """Persist only the root row (workflow transitions)."""

    async def soft_delete(self, id_ficha: str) -> None:
        """Mark the ficha inactive."""

    async def exists_activa(
        self, codigo_productor: str, gestion: int, *, excluding_id: str | None = None
    ) -> bool:
        """Return True if an active ficha exists for the producer and period."""

    async def list_fichas(
        self, filtro: FichaFiltro, *, page: int, limit: int
    ) -> tuple[Sequence[Ficha], int]:
        """Return one page of fichas (newest first) and the total count."""

    async def count_by_estado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        """Return ficha counts per workflow state."""

    async def count_by_resultado(self, filtro: FichaFiltro) -> Mapping[str, int]:
        """Return ficha counts per certification outcome."""

    async def count_pendientes_sync(self, filtro: FichaFiltro) -> int:
        """Return the number of fichas awaiting offline synchronization."""


class ProductorRepository(Protocol):
    async def find_by_codigo(self, codigo_productor: str) -> Productor | None: ...

    async def list_parcelas_activas(self, codigo_productor: str) -> Sequence[Parcela]: ...


class GestionRepository(Protocol):
    async def find_by_anio(self, anio: int) -> Gestion | None: ...


class FichaDraftRepository(Protocol):
    """Protocol for saved, not yet submitted ficha drafts."""

    async def save(
        self, codigo_productor: str, gestion: int, created_by: str, data: Mapping[str, Any]
    ) -> None:
        """Create or overwrite the draft for the key."""

    async def find(
        self, codigo_productor: str, gestion: int, created_by: str
    ) -> Mapping[str, Any] | None:
        """Return the stored draft payload, if any."""

    async def delete_by_key(self, codigo_productor: str, gestion: int, created_by: str) -> int:
        """Delete the draft for the key and return the number of rows removed."""
