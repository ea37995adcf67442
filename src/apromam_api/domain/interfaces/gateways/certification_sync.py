# src/apromam_api/domain/interfaces/gateways/certification_sync.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Certification synchronization gateway interface.

Purpose:
    Propagate an approved ficha to the certification records that depend on
    it (non-conformity follow-up, producer category for the period).

Layer:
    domain/interfaces/gateways

Notes:
    Implementations must be safe to call again for the same ficha: a failed
    call must not leave the target partially written, and a repeated call
    must converge to the same state.
"""

from __future__ import annotations

from typing import Protocol


class CertificationSyncGateway(Protocol):
    """Protocol for the post-approval synchronization step."""

    async def sincronizar_aprobacion(self, id_ficha: str) -> None:
        """Synchronize the certification records of an approved ficha.

        Raises:
            Exception: Any failure; the caller compensates the approval.
        """
