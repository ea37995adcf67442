# src/apromam_api/application/schemas/dto/base.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Shared pydantic configuration for ficha input models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseDTO(BaseModel):
    """Input model that rejects unknown keys and trims every string."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)
