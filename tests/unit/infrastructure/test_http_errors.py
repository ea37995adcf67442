# tests/unit/infrastructure/test_http_errors.py
from __future__ import annotations

import pytest

from apromam_api.domain.exceptions.base import DomainError
from apromam_api.domain.exceptions.fichas import (
    AccessDenied,
    ApprovalCompensationFailed,
    ApprovalReverted,
    FichaNotFound,
    FichaValidationError,
    GestionNotFound,
    InvalidStateTransition,
    PersistenceError,
    PreconditionFailed,
    SurfaceValidationFailed,
    TransactionNotActive,
)
from apromam_api.infrastructure.http.errors import error_envelope, status_for


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (FichaNotFound("f-1"), 404),
        (GestionNotFound(2024), 404),
        (AccessDenied("fuera de alcance"), 403),
        (InvalidStateTransition("aprobar", "revision", "borrador"), 409),
        (PreconditionFailed("firma requerida"), 409),
        (FichaValidationError("invalida", errors=["x"]), 422),
        (SurfaceValidationFailed("exceso", errors=["Parcela 1: ..."]), 422),
        (ApprovalReverted("f-1", "timeout"), 409),
        (PersistenceError("store down"), 503),
        (TransactionNotActive("inactive"), 503),
        (ApprovalCompensationFailed("f-1", "timeout", PersistenceError("x")), 500),
        (DomainError("otro"), 500),
    ],
)
def test_status_for_maps_categories(error: DomainError, status: int) -> None:
    assert status_for(error) == status


def test_error_envelope_omits_empty_details() -> None:
    assert error_envelope(code="X", http_status=404, message="no") == {
        "error": {"code": "X", "http_status": 404, "message": "no"}
    }
    assert error_envelope(code="X", http_status=422, message="no", details={"errors": ["a"]})[
        "error"
    ]["details"] == {"errors": ["a"]}


def test_domain_error_codes_and_retryability() -> None:
    assert FichaNotFound("f-1").code == "FICHA_NOT_FOUND"
    assert PersistenceError("x").retryable is True
    assert TransactionNotActive("x").retryable is False
    assert InvalidStateTransition("aprobar", "revision", "borrador").retryable is False
    assert SurfaceValidationFailed("x", errors=["a"]).details == {"errors": ["a"]}
