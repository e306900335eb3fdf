"""Prometheus metrics for the cache and rate-limit layer.

Labels stay low-cardinality: no keys, user ids or IPs. The goal is to answer
"are we serving from cache?" and "are we throttling?" rather than "for whom?".
"""

from __future__ import annotations

from prometheus_client import Counter

CACHE_EVENTS_TOTAL = Counter(
    "genie_cache_events_total",
    "Cache lookups by backend and outcome (hit, stale, miss, error).",
    labelnames=("backend", "outcome"),
)

CACHE_REVALIDATIONS_TOTAL = Counter(
    "genie_cache_revalidations_total",
    "Background revalidations by result (ok, error, skipped).",
    labelnames=("result",),
)

RATE_LIMIT_DECISIONS_TOTAL = Counter(
    "genie_rate_limit_decisions_total",
    "Rate limit checks by action and decision (allowed, denied, fail_open, fail_closed).",
    labelnames=("action", "decision"),
)

STORE_ERRORS_TOTAL = Counter(
    "genie_store_errors_total",
    "Store commands that failed, by operation.",
    labelnames=("operation",),
)


def record_cache_event(backend: str, outcome: str) -> None:
    CACHE_EVENTS_TOTAL.labels(backend=backend, outcome=outcome).inc()


def record_revalidation(result: str) -> None:
    CACHE_REVALIDATIONS_TOTAL.labels(result=result).inc()


def record_rate_limit(action: str, decision: str) -> None:
    RATE_LIMIT_DECISIONS_TOTAL.labels(action=action, decision=decision).inc()


def record_store_error(operation: str) -> None:
    STORE_ERRORS_TOTAL.labels(operation=operation).inc()


def action_label(key: str) -> str:
    """Reduce a rate-limit key like ``login:a@b.c:1.2.3.4`` to ``login``."""

    return key.split(":", 1)[0] or "unknown"


__all__ = [
    "action_label",
    "record_cache_event",
    "record_rate_limit",
    "record_revalidation",
    "record_store_error",
]
