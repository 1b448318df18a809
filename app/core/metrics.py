"""Prometheus metric inventory for the catalogue service.

All metrics are defined here; the modules that own the behavior import
and increment them.  HTTP metrics are fed by MetricsMiddleware, the
pipeline metrics by the ledger parser, the registry client, the
registration coordinator and the clone service.

Registration outcomes are labeled by RegistrationState value, so a
dashboard can separate "schema-failed" (registry rejected the schema,
nothing else attempted) from "creddef-failed" (schema stored, credential
definition rejected) without parsing logs.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Import and clone requests wait on two sequential external calls,
    # so the upper buckets are wider than for a plain CRUD API.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Pipeline metrics
# ---------------------------------------------------------------------------

LEDGER_FETCHES = Counter(
    "ledger_fetches_total",
    "Ledger explorer lookups by transaction kind and result",
    ["kind", "result"],  # kind: schema|creddef; result: ok|<ParseError kind>|mismatch
)

REGISTRY_CALLS = Counter(
    "registry_calls_total",
    "Registry HTTP calls by phase and result",
    ["phase", "result"],  # result: ok|http-error|transport-error|no-id|not-configured
)

REGISTRY_CALL_DURATION = Histogram(
    "registry_call_duration_seconds",
    "Registry HTTP call duration in seconds",
    ["phase"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

REGISTRATION_ROUNDS = Counter(
    "registration_rounds_total",
    "Registration rounds for imported credentials by final state",
    ["state"],
)

CLONE_ROUNDS = Counter(
    "clone_rounds_total",
    "Clone-for-issuance rounds by final state",
    ["state"],
)

ROUND_LOCK_CONFLICTS = Counter(
    "round_lock_conflicts_total",
    "Rounds rejected because another round held the same key",
    ["scope"],  # import|credential
)
