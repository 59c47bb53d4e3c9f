"""
Metrics Collection with Prometheus.

Exposes webhook reconciliation and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from amora_billing.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    EVENT_TYPE = "event_type"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class BillingMetrics:
    """
    Centralized metrics for Amora Billing API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Webhook events (rate by type and outcome, reconciliation duration)
    - Entitlement writes (rate by resulting flag and resolution path)
    - Billing provider API calls (rate, success/failure)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "amora_billing_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "amora_billing_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "amora_billing_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "amora_billing_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Webhook Metrics
        # ====================================================================
        self.webhook_events_total = Counter(
            "amora_billing_webhook_events_total",
            "Webhook events processed by type and outcome",
            [MetricLabels.EVENT_TYPE, MetricLabels.OUTCOME],
        )

        self.webhook_verification_failures_total = Counter(
            "amora_billing_webhook_verification_failures_total",
            "Webhook deliveries rejected before processing",
        )

        self.reconciliation_duration_seconds = Histogram(
            "amora_billing_reconciliation_duration_seconds",
            "Time spent reconciling a single webhook event",
            [MetricLabels.EVENT_TYPE],
            buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )

        # ====================================================================
        # Entitlement Metrics
        # ====================================================================
        self.entitlement_updates_total = Counter(
            "amora_billing_entitlement_updates_total",
            "Entitlement writes by resulting premium flag and resolution path",
            ["premium", "resolution"],
        )

        self.resolution_fallbacks_total = Counter(
            "amora_billing_resolution_fallbacks_total",
            "Times a resolution strategy failed and the next one was tried",
            ["from_strategy", "reason"],
        )

        # ====================================================================
        # Provider Metrics
        # ====================================================================
        self.provider_calls_total = Counter(
            "amora_billing_provider_calls_total",
            "Billing provider API calls",
            [MetricLabels.OPERATION, "success"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "amora_billing_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_webhook_event(self, event_type: str, outcome: str, duration: float) -> None:
        """Record one reconciled webhook event."""
        self.webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()
        self.reconciliation_duration_seconds.labels(event_type=event_type).observe(duration)

    def record_entitlement_update(self, is_premium: bool, resolution: str) -> None:
        """Record an applied entitlement write."""
        self.entitlement_updates_total.labels(
            premium=str(is_premium), resolution=resolution
        ).inc()

    def record_resolution_fallback(self, from_strategy: str, reason: str) -> None:
        """Record a resolution strategy giving way to the next one."""
        self.resolution_fallbacks_total.labels(from_strategy=from_strategy, reason=reason).inc()

    def record_provider_call(self, operation: str, success: bool) -> None:
        """Record a billing provider API call."""
        self.provider_calls_total.labels(operation=operation, success=str(success)).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = BillingMetrics()
