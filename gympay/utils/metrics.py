"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
payments_initiated_total = Counter(
    "payments_initiated_total",
    "Total number of gateway checkouts initiated",
    ["type"],
)

payment_transitions_total = Counter(
    "payment_transitions_total",
    "Payment status transitions applied from gateway notifications",
    ["status"],
)

gateway_notifications_total = Counter(
    "gateway_notifications_total",
    "Gateway notifications received",
    ["result"],  # applied, duplicate, rejected, not_found
)

bank_transfers_total = Counter(
    "bank_transfers_total",
    "Bank transfer submissions and decisions",
    ["status"],  # pending, approved, declined
)

refund_requests_total = Counter(
    "refund_requests_total",
    "Refund request submissions and decisions",
    ["status"],  # pending, approved, declined
)

email_requests_total = Counter(
    "email_requests_total",
    "Total email provider requests",
    ["template", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
refund_amount = Histogram(
    "refund_amount",
    "Approved refund amounts",
    buckets=[500, 1000, 2500, 5000, 10000, 25000, 50000],
)

email_request_duration_seconds = Histogram(
    "email_request_duration_seconds",
    "Email provider request duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
