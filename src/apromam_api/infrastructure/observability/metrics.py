# src/apromam_api/infrastructure/observability/metrics.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware).

Accessors return a collector bound to the *current* ``prometheus_client.REGISTRY``:

    * Safe under reload and in tests that swap the default registry.
    * No duplicate-registration errors; the cache resets when the active
      registry changes.

Collectors:
    readyz_db_latency_seconds           Histogram
    db_write_failures_total{kind}       Counter   kind = write | transaction
    fichas_transitions_total{action}    Counter   successful workflow transitions
    fichas_approval_reverted_total      Counter   compensated approvals

Example:
    get_fichas_transitions_total().labels(action="aprobar").inc()
"""

from __future__ import annotations

import threading
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

__all__ = [
    "get_db_write_failures_total",
    "get_fichas_approval_reverted_total",
    "get_fichas_transitions_total",
    "get_readyz_db_latency_seconds",
]

_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
)

_registry_id: int | None = None
_cache: dict[str, Histogram | Counter] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset the cache if the active registry changed."""
    global _registry_id
    rid = id(prom.REGISTRY)
    if _registry_id != rid:
        _cache.clear()
        _registry_id = rid


def _existing(name: str) -> Histogram | Counter | None:
    mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
    if isinstance(mapping, dict):
        col = mapping.get(name)
        if isinstance(col, Histogram | Counter):
            return col
    return None


def _histogram(name: str, help_text: str) -> Histogram:
    with _lock:
        _ensure_registry()
        found = _cache.get(name)
        if found is None:
            found = _existing(name)
        if isinstance(found, Histogram):
            _cache[name] = found
            return found
        hist = Histogram(name, help_text, buckets=_BUCKETS, registry=prom.REGISTRY)
        _cache[name] = hist
        return hist


def _counter(name: str, help_text: str, labelnames: tuple[str, ...] = ()) -> Counter:
    with _lock:
        _ensure_registry()
        found = _cache.get(name)
        if found is None:
            found = _existing(name)
        if isinstance(found, Counter):
            _cache[name] = found
            return found
        counter = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        _cache[name] = counter
        return counter


def get_readyz_db_latency_seconds() -> Histogram:
    """Return the DB readiness latency histogram."""
    return _histogram(
        "readyz_db_latency_seconds", "Latency of the database readiness probe (seconds)."
    )


def get_db_write_failures_total() -> Counter:
    """Return the counter of failed writes and transactions, labelled by ``kind``."""
    return _counter("db_write_failures", "Failed store writes and transactions.", ("kind",))


def get_fichas_transitions_total() -> Counter:
    """Return the counter of successful workflow transitions, labelled by ``action``."""
    return _counter(
        "fichas_transitions", "Successful ficha workflow transitions.", ("action",)
    )


def get_fichas_approval_reverted_total() -> Counter:
    """Return the counter of approvals compensated after a failed synchronization."""
    return _counter("fichas_approval_reverted", "Approvals reverted by the synchronization saga.")
