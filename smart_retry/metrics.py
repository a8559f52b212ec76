"""
Prometheus Metrics for the Smart Retry decision service.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Business Impact Metrics - For Collections/Risk teams
   - Decision outcomes, reasons, confidence

2. Technical Metrics - For Engineering/SRE teams
   - Batch sizes, engine and history latencies, error rates
"""
from prometheus_client import Counter, Histogram, Info

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "smart_retry_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": "0.1.0",
    "service": "smart-retry",
})

# =============================================================================
# BUSINESS IMPACT METRICS
# =============================================================================

# Counter: Decisions by outcome and reason code
DECISION_TOTAL = Counter(
    "smart_retry_decision_total",
    "Total loan decisions made",
    ["decision", "reason"]  # decision: STOP/RETRY/SCHEDULE, reason: settled, micro_debt, ...
)

# Histogram: Confidence attached to decisions
DECISION_CONFIDENCE = Histogram(
    "smart_retry_decision_confidence",
    "Confidence of loan decisions",
    ["decision"],
    buckets=[0.5, 0.6, 0.65, 0.7, 0.75, 0.8, 0.85, 0.9, 0.95, 1.0]
)

# =============================================================================
# TECHNICAL METRICS
# =============================================================================

# Histogram: Loans per request
BATCH_SIZE = Histogram(
    "smart_retry_batch_size_loans",
    "Number of loans per decision request",
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000]
)

# Histogram: Engine latency (summarize + cascade for the whole batch)
ENGINE_LATENCY = Histogram(
    "smart_retry_engine_latency_seconds",
    "Time to decide a batch of loans",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0]
)

# Histogram: History store fetch latency
HISTORY_FETCH_LATENCY = Histogram(
    "smart_retry_history_fetch_latency_seconds",
    "Time to load transaction history",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Counter: History store failures
HISTORY_FETCH_FAILURES = Counter(
    "smart_retry_history_fetch_failures_total",
    "Total history store fetch failures",
    ["error_type"]
)

# Counter: Rejected requests
REQUEST_REJECTED = Counter(
    "smart_retry_request_rejected_total",
    "Decision requests rejected before reaching the engine",
    ["reason"]  # unauthorized, bad_request, payload_too_large
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_decisions(decisions, latency_seconds: float) -> None:
    """
    Record all metrics for a decided batch.

    Args:
        decisions: Decisions produced by the engine
        latency_seconds: Time taken by the engine for the whole batch
    """
    BATCH_SIZE.observe(len(decisions))
    ENGINE_LATENCY.observe(latency_seconds)

    for decision in decisions:
        outcome = decision.decision.value
        DECISION_TOTAL.labels(decision=outcome, reason=decision.decision_reason.value).inc()
        DECISION_CONFIDENCE.labels(decision=outcome).observe(decision.confidence)


def record_history_fetch(success: bool, latency_seconds: float, error_type: str = None) -> None:
    """Record history store fetch metrics."""
    HISTORY_FETCH_LATENCY.observe(latency_seconds)

    if not success:
        HISTORY_FETCH_FAILURES.labels(error_type=error_type or "unknown").inc()


def record_rejection(reason: str) -> None:
    """Record a request rejected at the boundary."""
    REQUEST_REJECTED.labels(reason=reason).inc()


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record standard HTTP request metrics."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)
