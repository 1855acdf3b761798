"""Application metrics using the Prometheus client library.

All metrics are declared here so there is one inventory of what the
service measures.  Modules import the metric they own and increment it
at the point of action.

  http_*                                 : populated by MetricsMiddleware
  suite_authorization_decisions_total    : every authorize() served by the API,
                                           labelled by action and reason code
  suite_creation_checks_total            : authoritative creation checks
  trial_writebacks_total                 : outcome of trial field write-backs
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Access and entitlement metrics
# ---------------------------------------------------------------------------

AUTHORIZATION_DECISIONS = Counter(
    "suite_authorization_decisions_total",
    "Suite action authorization decisions by action and reason code",
    ["action", "code"],
)

SUITE_CREATION_CHECKS = Counter(
    "suite_creation_checks_total",
    "Authoritative suite creation checks by result",
    ["result"],  # "allowed" or the denial code
)

TRIAL_WRITEBACKS = Counter(
    "trial_writebacks_total",
    "Trial status write-back attempts by outcome",
    ["result"],  # "written", "unchanged", "skipped", "failed"
)
