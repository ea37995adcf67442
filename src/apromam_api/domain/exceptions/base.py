# src/apromam_api/domain/exceptions/base.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Base Domain Exceptions.

Summary:
    Canonical base class for domain/application exceptions. Each subclass
    carries a stable ``code`` so the HTTP boundary can map it deterministically.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain/application exceptions.

    Args:
        message: Human-readable error message (safe for clients).
        details: Optional machine-readable diagnostic payload.
    """

    code: str = "DOMAIN_ERROR"
    #: Whether retrying the same call can succeed; workflow errors are permanent.
    retryable: bool = False

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        return self.message
