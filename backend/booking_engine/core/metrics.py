"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Lifecycle metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking state machine transitions',
    ['event', 'result']  # result: applied, invalid, retry_exhausted
)

transition_retries = Counter(
    'booking_transition_retries_total',
    'Transition retries due to booking version conflicts'
)

# Admission metrics
admission_decisions = Counter(
    'admission_decisions_total',
    'Admission outcomes for confirm/approve requests',
    ['outcome']  # confirmed, pending_review, conflict, blocked
)

interval_checks = Counter(
    'interval_checks_total',
    'Interval conflict checks',
    ['result']  # reserved, conflict
)

lock_wait = Histogram(
    'celebrity_lock_wait_seconds',
    'Time spent waiting for a per-celebrity reservation lock',
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# Risk metrics
risk_assessments = Counter(
    'risk_assessments_total',
    'Risk assessments by resulting level',
    ['level']  # LOW, MEDIUM, HIGH
)

review_decisions = Counter(
    'risk_review_decisions_total',
    'Reviewer transitions on risk assessments',
    ['decision']
)

# Refund metrics
refunds = Counter(
    'refunds_total',
    'Refund evaluations on cancellation',
    ['window']  # free, partial, none
)

# HTTP metrics
request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'status'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

redis_lock_fallback = Gauge(
    'redis_lock_fallback_active',
    'Reservation locks degraded to in-process locks (1=degraded, 0=redis)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_transition(event: str, result: str):
    """Record a state machine transition. Result: applied, invalid, retry_exhausted"""
    booking_transitions.labels(event=event, result=result).inc()


def record_admission(outcome: str):
    """Record admission outcome."""
    admission_decisions.labels(outcome=outcome).inc()


def record_interval_check(reserved: bool):
    result = "reserved" if reserved else "conflict"
    interval_checks.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
