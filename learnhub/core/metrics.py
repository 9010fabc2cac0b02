"""Application metrics (prometheus_client).

One inventory of everything the service measures.  Modules import the
metric they own and increment it at the point of action; /metrics
exposes the lot in Prometheus text format.

Counters only ever go up, so dashboards work with rates:

  rate(admission_rejections_total{reason="capacity_exceeded"}[5m])

answers "how often are courses turning students away right now?".
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
# Enrollment lifecycle
# ---------------------------------------------------------------------------

ENROLLMENTS_CREATED = Counter(
    "enrollments_created_total",
    "Enrollments admitted by the admission controller",
)

ADMISSION_REJECTIONS = Counter(
    "admission_rejections_total",
    "Enrollment requests rejected by an admission check",
    ["reason"],  # course_unavailable|capacity_exceeded|already_enrolled|...
)

ENROLLMENT_TRANSITIONS = Counter(
    "enrollment_transitions_total",
    "Enrollment status changes",
    ["from_status", "to_status"],
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Completion certificates issued",
)

# ---------------------------------------------------------------------------
# Aggregates / background work
# ---------------------------------------------------------------------------

AGGREGATE_RECALCULATIONS = Counter(
    "aggregate_recalculations_total",
    "Course rating recomputations by outcome",
    ["outcome"],  # ok|failed|retried|abandoned
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
