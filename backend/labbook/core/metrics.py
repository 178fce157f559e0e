"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking create/extend attempts',
    ['operation', 'status']  # create/extend; success, conflict, invalid, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking create latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings moved to cancelled'
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Booking retries due to server version conflicts'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set; hit/miss
)

# Digest metrics
digest_emails = Counter(
    'digest_emails_total',
    'Weekly digest emails by result',
    ['result']  # sent, error
)

# HTTP metrics
request_latency = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_booking_attempt(status: str, operation: str = "create"):
    """Record booking attempt. Status: success, conflict, invalid, error"""
    booking_attempts.labels(operation=operation, status=status).inc()


def record_db_retry():
    db_retries.inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_digest_email(sent: bool):
    digest_emails.labels(result="sent" if sent else "error").inc()
