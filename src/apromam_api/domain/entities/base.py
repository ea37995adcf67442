# src/apromam_api/domain/entities/base.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Base Entity (Domain Layer).

Purpose:
    Mixin for immutable section entities. Provides frozen dataclass semantics,
    a validation hook that runs on construction, and a flat record view for
    the persistence adapters.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from apromam_api.domain.exceptions.fichas import FichaValidationError


@dataclass(frozen=True, slots=True)
class BaseEntity:
    """Base mixin for immutable domain entities.

    Subclasses declare their fields and override :meth:`validation_errors`;
    construction fails with :class:`FichaValidationError` when it returns
    anything.
    """

    def __post_init__(self) -> None:
        errors = self.validation_errors()
        if errors:
            raise FichaValidationError(
                f"{type(self).__name__} invalida: {', '.join(errors)}", errors=errors
            )

    def validation_errors(self) -> list[str]:
        """Return human-readable invariant violations (empty when valid)."""
        return []

    def to_record(self) -> dict[str, Any]:
        """Return a flat ``{field: value}`` mapping with enums as their values."""
        return {
            f.name: (value.value if isinstance(value, Enum) else value)
            for f in fields(self)
            for value in (getattr(self, f.name),)
        }


def check_choice(errors: list[str], label: str, value: str | None, choices: type[Enum]) -> None:
    """Append an error when ``value`` is set but not one of ``choices``."""
    if value is not None and value not in {c.value for c in choices}:
        allowed = ", ".join(c.value for c in choices)
        errors.append(f"{label} debe ser uno de: {allowed}")


def check_max_len(errors: list[str], label: str, value: str | None, limit: int) -> None:
    """Append an error when ``value`` is longer than ``limit`` characters."""
    if value is not None and len(value) > limit:
        errors.append(f"{label} no puede exceder {limit} caracteres")
