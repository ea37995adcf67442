# src/apromam_api/domain/exceptions/fichas.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Inspection-record (ficha) domain exceptions.

Purpose:
    Error taxonomy for the ficha aggregate and its workflow. Every class sits
    under one category base so the boundary maps categories, not leaves:

        NotFoundError          -> FichaNotFound, ProductorNotFound, GestionNotFound
        AccessDenied
        WorkflowError          -> InvalidStateTransition, PreconditionFailed
        ValidationFailed       -> SurfaceValidationFailed, FichaValidationError
        PersistenceError       -> TransactionNotActive
        ApprovalReverted, ApprovalCompensationFailed

Layer:
    domain/exceptions

Notes:
    - Adapters translate store failures into ``PersistenceError``; nothing in
      this package retries automatically.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from apromam_api.domain.exceptions.base import DomainError


class NotFoundError(DomainError):
    """A referenced ficha, producer, period or plot does not exist."""

    code = "NOT_FOUND"


class FichaNotFound(NotFoundError):
    """Raised when a ficha id does not resolve to an active record."""

    code = "FICHA_NOT_FOUND"

    def __init__(self, id_ficha: str) -> None:
        super().__init__(f"Ficha no encontrada: {id_ficha}", details={"id_ficha": id_ficha})


class ProductorNotFound(NotFoundError):
    """Raised when a producer code is unknown or inactive."""

    code = "PRODUCTOR_NOT_FOUND"

    def __init__(self, codigo_productor: str) -> None:
        super().__init__(
            f"Productor no encontrado: {codigo_productor}",
            details={"codigo_productor": codigo_productor},
        )


class GestionNotFound(NotFoundError):
    """Raised when no certification period matches the requested year."""

    code = "GESTION_NOT_FOUND"

    def __init__(self, gestion: int) -> None:
        super().__init__(f"Gestion no encontrada: {gestion}", details={"gestion": gestion})


class AccessDenied(DomainError):
    """The caller's community scope excludes the target record."""

    code = "ACCESS_DENIED"


class WorkflowError(DomainError):
    """Workflow precondition failure; permanent for the given input."""

    code = "WORKFLOW_ERROR"


class InvalidStateTransition(WorkflowError):
    """A transition was attempted from a state other than its required source."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, action: str, required: str, current: str) -> None:
        super().__init__(
            f"No se puede {action}: la ficha debe estar en '{required}' "
            f"(estado actual: '{current}')",
            details={"action": action, "required_state": required, "current_state": current},
        )
        self.action = action
        self.required = required
        self.current = current


class PreconditionFailed(WorkflowError):
    """A transition's required input is missing or below its minimum length."""

    code = "PRECONDITION_FAILED"


class ValidationFailed(DomainError):
    """Business validation failed; carries the list of messages."""

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[str] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        payload = dict(details or {})
        payload.setdefault("errors", list(errors))
        super().__init__(message, details=payload)
        self.errors: list[str] = list(errors)


class FichaValidationError(ValidationFailed):
    """Root or section field validation failed."""

    code = "FICHA_VALIDATION_ERROR"


class SurfaceValidationFailed(ValidationFailed):
    """Crop allocations exceed the declared area of at least one plot."""

    code = "SURFACE_VALIDATION_FAILED"


class PersistenceError(DomainError):
    """The store rejected a statement or could not be reached."""

    code = "PERSISTENCE_ERROR"
    retryable = True


class TransactionNotActive(PersistenceError):
    """A statement was issued on a transaction scope that is not active."""

    code = "TRANSACTION_NOT_ACTIVE"
    retryable = False


class ApprovalReverted(DomainError):
    """Approval was compensated to ``rechazado`` because synchronization failed.

    The ficha is durably ``rechazado`` when this is raised; ``sync_error``
    describes the downstream failure.
    """

    code = "APPROVAL_REVERTED"

    def __init__(self, id_ficha: str, sync_error: str) -> None:
        super().__init__(
            "La aprobacion fue revertida: la sincronizacion fallo y la ficha quedo rechazada",
            details={"id_ficha": id_ficha, "sync_error": sync_error},
        )
        self.id_ficha = id_ficha
        self.sync_error = sync_error


class ApprovalCompensationFailed(DomainError):
    """Synchronization failed and the compensating rejection could not be stored.

    The ficha remains durably ``aprobado`` without a downstream record and
    needs manual reconciliation. ``sync_error`` and ``persist_error`` hold
    both failures; only the persist error type reaches ``details``.
    """

    code = "APPROVAL_COMPENSATION_FAILED"

    def __init__(self, id_ficha: str, sync_error: str, persist_error: Exception) -> None:
        super().__init__(
            "La sincronizacion fallo y no se pudo revertir la aprobacion",
            details={
                "id_ficha": id_ficha,
                "sync_error": sync_error,
                "persist_error_type": persist_error.__class__.__name__,
            },
        )
        self.id_ficha = id_ficha
        self.sync_error = sync_error
        self.persist_error = persist_error
