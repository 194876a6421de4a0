"""Prometheus metrics definitions for splitcheck."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "splitcheck_http_requests_total",
    "Total number of HTTP requests processed by the splitcheck API",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "splitcheck_http_request_duration_seconds",
    "Latency of HTTP requests processed by the splitcheck API",
    ["method", "path"],
)

EXTRACTION_ATTEMPTS = Counter(
    "splitcheck_extraction_attempts_total",
    "Receipt extraction attempts by provider and outcome",
    ["provider", "outcome"],
)

EXTRACTION_FAILURES = Counter(
    "splitcheck_extraction_failures_total",
    "Receipt extraction failures by provider and failure kind",
    ["provider", "kind"],
)

EXTRACTION_LATENCY = Histogram(
    "splitcheck_extraction_duration_seconds",
    "Time spent in a single provider extraction attempt",
    ["provider"],
)

RECONCILIATIONS = Counter(
    "splitcheck_reconciliations_total",
    "Reconciliation gate outcomes for extracted receipts",
    ["status"],
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "EXTRACTION_ATTEMPTS",
    "EXTRACTION_FAILURES",
    "EXTRACTION_LATENCY",
    "RECONCILIATIONS",
]
