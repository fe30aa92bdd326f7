"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'seat_reservation_attempts_total',
    'Total seat reservation attempts',
    ['outcome']  # reserved, or the error code that rejected it
)

reservation_latency = Histogram(
    'seat_reservation_latency_seconds',
    'Seat reservation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seat_releases = Counter(
    'seat_releases_total',
    'Seats released through the API',
    ['actor']  # holder, admin
)

duplicate_hold_rollbacks = Counter(
    'seat_duplicate_hold_rollbacks_total',
    'Holds rolled back because the user ended up holding two seats'
)

# Reclaimer metrics
reclaim_sweeps = Counter(
    'seat_reclaim_sweeps_total',
    'Expiry sweeps executed',
    ['result']  # ok, error
)

seats_reclaimed = Counter(
    'seats_reclaimed_total',
    'Expired holds returned to the pool'
)

last_sweep_timestamp = Gauge(
    'seat_reclaim_last_success_timestamp_seconds',
    'Unix time of the last successful expiry sweep'
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


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(outcome: str):
    reservation_attempts.labels(outcome=outcome).inc()


def record_release(is_admin: bool):
    seat_releases.labels(actor="admin" if is_admin else "holder").inc()


def record_sweep(count: int | None, finished_at: float | None = None):
    """Record a sweep. A count of None means the sweep failed."""
    if count is None:
        reclaim_sweeps.labels(result="error").inc()
        return
    reclaim_sweeps.labels(result="ok").inc()
    seats_reclaimed.inc(count)
    if finished_at is not None:
        last_sweep_timestamp.set(finished_at)


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
