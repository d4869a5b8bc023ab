"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'gym_booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, full, conflict, error
)

booking_latency = Histogram(
    'gym_booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_retries = Counter(
    'gym_booking_retry_attempts_total',
    'Booking retries after the seat guard matched no row'
)

booking_cancellations = Counter(
    'gym_booking_cancellations_total',
    'Cancelled bookings',
    ['actor']  # member, coach
)

# Generation metrics
sessions_generated = Counter(
    'gym_sessions_generated_total',
    'Sessions materialized by the generator',
    ['source']  # recurring_booking, availability_template, coach_batch
)

generation_skips = Counter(
    'gym_generation_skips_total',
    'Recurring bookings skipped during generation',
    ['reason']  # no_default_room, error
)

sessions_completed = Counter(
    'gym_sessions_marked_completed_total',
    'Scheduled sessions moved to completed once their end time passed'
)

generation_duration = Histogram(
    'gym_generation_duration_seconds',
    'Duration of a full generation run',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Conflict detector
availability_conflicts = Counter(
    'gym_availability_conflicts_detected_total',
    'Sessions found outside current availability'
)

# Cache metrics
cache_operations = Counter(
    'gym_cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, full, conflict, error"""
    booking_attempts.labels(status=status).inc()


def record_generated(source: str, count: int):
    if count:
        sessions_generated.labels(source=source).inc(count)


def record_generation_skip(reason: str):
    generation_skips.labels(reason=reason).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
