"""Prometheus collectors exposed on /metrics."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "ramsflow_http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "status"),
)
REQUEST_DURATION = Histogram(
    "ramsflow_http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("method", "route"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
AI_SUGGESTIONS = Counter(
    "ramsflow_ai_suggestions_total",
    "Control measure suggestion requests",
    labelnames=("outcome",),
)
NOTIFICATIONS = Counter(
    "ramsflow_notifications_total",
    "Notification delivery attempts",
    labelnames=("notification_type", "outcome"),
)
