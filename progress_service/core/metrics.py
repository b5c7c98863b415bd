"""Prometheus metric inventory for progress-service.

HTTP metrics are fed by MetricsMiddleware. The domain counters are
incremented at the point of action: the event recorder, the completion
evaluator, the notification dispatcher and worker, and the progress cache.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP
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
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress engine
# ---------------------------------------------------------------------------

PROGRESS_EVENTS = Counter(
    "progress_events_total",
    "Learner events seen by the recorder",
    ["event_type", "outcome"],  # outcome: recorded|duplicate
)

COMPLETIONS = Counter(
    "completions_total",
    "Module and course completion transitions",
    ["level"],  # module|course
)

NOTIFICATIONS = Counter(
    "notifications_total",
    "Completion notifications by dispatch outcome",
    ["outcome"],  # queued|enqueue_failed|delivered|retried|dead_lettered
)

CACHE_OPERATIONS = Counter(
    "progress_cache_operations_total",
    "Course-progress cache lookups by result",
    ["operation"],  # hit|miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
