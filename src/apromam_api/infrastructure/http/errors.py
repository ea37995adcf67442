# src/apromam_api/infrastructure/http/errors.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""HTTP error envelope and exception handlers.

Every error response has the shape::

    {"error": {"code": ..., "http_status": ..., "message": ..., "details": ...}}

Domain errors map by category:

    NotFoundError     -> 404      AccessDenied      -> 403
    WorkflowError     -> 409      ValidationFailed  -> 422
    ApprovalReverted  -> 409      PersistenceError  -> 503
    ApprovalCompensationFailed -> 500 (details kept for reconciliation)
    anything else     -> 500
"""

from __future__ import annotations

from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.responses import Response

from apromam_api.domain.exceptions.base import DomainError
from apromam_api.domain.exceptions.fichas import (
    AccessDenied,
    ApprovalCompensationFailed,
    ApprovalReverted,
    NotFoundError,
    PersistenceError,
    ValidationFailed,
    WorkflowError,
)
from apromam_api.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

_STATUS_BY_CATEGORY: tuple[tuple[type[DomainError], int], ...] = (
    (NotFoundError, 404),
    (AccessDenied, 403),
    (WorkflowError, 409),
    (ValidationFailed, 422),
    (ApprovalReverted, 409),
    (PersistenceError, 503),
    (ApprovalCompensationFailed, 500),
)


def status_for(error: DomainError) -> int:
    """Return the HTTP status for a domain error (500 when uncategorized)."""
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(error, category):
            return status
    return 500


def error_envelope(
    *,
    code: str,
    http_status: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    err: dict[str, Any] = {
        "code": code,
        "http_status": http_status,
        "message": message,
    }
    if details:
        err["details"] = details
    return {"error": err}


async def handle_domain_error(request: Request, exc: Exception) -> Response:
    exc = cast(DomainError, exc)
    status = status_for(exc)
    if status >= 500:
        logger.error(
            "http.domain_error",
            extra={"code": exc.code, "path": request.url.path, "http_status": status},
        )
    # Store failures carry driver text; keep it out of the response.
    details = None if isinstance(exc, PersistenceError) else exc.details
    payload = error_envelope(
        code=exc.code,
        http_status=status,
        message=exc.message or "Error",
        details=details,
    )
    return JSONResponse(status_code=status, content=payload)


async def handle_validation_error(request: Request, exc: Exception) -> Response:
    exc = cast(RequestValidationError, exc)
    payload = error_envelope(
        code="VALIDATION_ERROR",
        http_status=422,
        message="Request validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=422, content=payload)


async def handle_http_exception(request: Request, exc: Exception) -> Response:
    exc = cast(HTTPException, exc)
    payload = error_envelope(
        code="HTTP_ERROR",
        http_status=exc.status_code,
        message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
        details=None if isinstance(exc.detail, str) else {"detail": exc.detail},
    )
    return JSONResponse(status_code=exc.status_code, content=payload)


async def handle_unhandled_exception(request: Request, exc: Exception) -> Response:
    logger.error(
        "http.unhandled_error",
        extra={"path": request.url.path, "error_type": exc.__class__.__name__},
    )
    payload = error_envelope(
        code="INTERNAL_ERROR",
        http_status=500,
        message="Internal server error",
    )
    return JSONResponse(status_code=500, content=payload)


def install_error_handlers(app: FastAPI) -> None:
    """Register the handlers above on ``app``."""
    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unhandled_exception)
