# src/apromam_api/adapters/uow/__init__.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""
Transaction scopes (Adapters Layer)

Purpose:
    Provide the exclusive-connection unit of work used by repositories that
    must write several statements atomically (the ficha aggregate, the
    approval synchronization).

Exports:
    - TransactionScope: begin/query/commit/rollback over one connection,
      plus the ``run`` / ``run_all`` templates.
    - TransactionResult, TransactionState, QueryResult.
"""

from __future__ import annotations

from .transaction_scope import QueryResult, TransactionResult, TransactionScope, TransactionState

__all__ = ["QueryResult", "TransactionResult", "TransactionScope", "TransactionState"]
