"""
Prometheus metrics for payment orchestration monitoring.

Tracks:
- Provider API calls by provider, operation and outcome
- Order create/capture outcomes
- Hosted checkout sessions
- Access token refreshes
- Webhook deliveries and verification failures
"""
from prometheus_client import Counter, Histogram

# Provider API metrics
provider_requests_total = Counter(
    "provider_requests_total",
    "Total payment provider API requests",
    ["provider", "operation", "outcome"],  # outcome: success, error, timeout, ...
)

provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Payment provider API call duration in seconds",
    ["provider", "operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 10.0, 20.0),
)

# Order metrics
orders_total = Counter(
    "orders_total",
    "Total order operations",
    ["operation", "status"],  # operation: create, capture
)

# Checkout metrics
checkout_sessions_created_total = Counter(
    "checkout_sessions_created_total",
    "Total hosted checkout sessions created",
    ["currency"],
)

# Auth metrics
token_refreshes_total = Counter(
    "token_refreshes_total",
    "Total access token refresh attempts",
    ["outcome"],
)

# Webhook metrics
webhook_events_received_total = Counter(
    "webhook_events_received_total",
    "Total verified webhook events received",
    ["event_type"],
)

webhook_events_processed_total = Counter(
    "webhook_events_processed_total",
    "Total webhook events processed",
    ["event_type", "status"],  # handled, ignored, failed
)

webhook_verification_failures_total = Counter(
    "webhook_verification_failures_total",
    "Total webhook deliveries rejected during verification",
    ["reason"],  # signature, malformed
)

webhook_processing_duration_seconds = Histogram(
    "webhook_processing_duration_seconds",
    "Webhook processing duration in seconds",
    ["event_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_provider_call(
        provider: str, operation: str, outcome: str, duration_seconds: float
    ) -> None:
        """Record a provider API call."""
        provider_requests_total.labels(
            provider=provider, operation=operation, outcome=outcome
        ).inc()
        provider_request_duration_seconds.labels(
            provider=provider, operation=operation
        ).observe(duration_seconds)

    @staticmethod
    def record_order(operation: str, status: str) -> None:
        """Record an order create/capture outcome."""
        orders_total.labels(operation=operation, status=status).inc()

    @staticmethod
    def record_checkout_session(currency: str) -> None:
        """Record a created checkout session."""
        checkout_sessions_created_total.labels(currency=currency).inc()

    @staticmethod
    def record_token_refresh(outcome: str) -> None:
        """Record an access token refresh."""
        token_refreshes_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_webhook_event(event_type: str, status: str, duration_seconds: float) -> None:
        """Record webhook event processing."""
        webhook_events_received_total.labels(event_type=event_type).inc()
        webhook_events_processed_total.labels(event_type=event_type, status=status).inc()
        webhook_processing_duration_seconds.labels(event_type=event_type).observe(
            duration_seconds
        )

    @staticmethod
    def record_webhook_rejected(reason: str) -> None:
        """Record a webhook rejected before dispatch."""
        webhook_verification_failures_total.labels(reason=reason).inc()


# Export singleton instance
metrics = MetricsCollector()
