"""
Metrics Collection with Prometheus.

Exposes payment, gateway and webhook metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from paygate.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class PaymentMetrics:
    """
    Centralized metrics for the payment service.

    Covers:
    - HTTP requests (rate, duration, in progress)
    - Payment intents created (by plan and period)
    - Gateway calls (rate, duration, outcome)
    - Settlement notifications (by outcome)
    - Confirmation emails (by outcome)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info("paygate_service", "Service information")
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
                "p24_sandbox": str(settings.p24_sandbox),
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "paygate_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "paygate_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "paygate_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payment_intents_created_total = Counter(
            "paygate_payment_intents_created_total",
            "Payment intents created",
            ["plan", "period"],
        )

        self.payment_amount_minor = Histogram(
            "paygate_payment_amount_minor",
            "Completed payment amounts in grosze",
            buckets=(9900, 19900, 99000, 199000, 500000),
        )

        # ====================================================================
        # Gateway Metrics
        # ====================================================================
        self.gateway_requests_total = Counter(
            "paygate_gateway_requests_total",
            "Calls made to the payment gateway",
            [MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.gateway_request_duration_seconds = Histogram(
            "paygate_gateway_request_duration_seconds",
            "Payment gateway call duration in seconds",
            [MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # ====================================================================
        # Webhook Metrics
        # ====================================================================
        self.webhook_notifications_total = Counter(
            "paygate_webhook_notifications_total",
            "Settlement notifications received",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Notification Metrics
        # ====================================================================
        self.confirmation_emails_total = Counter(
            "paygate_confirmation_emails_total",
            "Confirmation emails attempted",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "paygate_errors_total",
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

    def record_payment_created(self, plan: str, period: str) -> None:
        """Record a new payment intent."""
        self.payment_intents_created_total.labels(plan=plan, period=period).inc()

    def record_gateway_call(self, operation: str, outcome: str, duration: float) -> None:
        """Record a gateway call (outcome: success, rejected, error)."""
        self.gateway_requests_total.labels(operation=operation, outcome=outcome).inc()
        self.gateway_request_duration_seconds.labels(operation=operation).observe(duration)

    def record_webhook(self, outcome: str, amount_minor: int | None = None) -> None:
        """Record a processed settlement notification."""
        self.webhook_notifications_total.labels(outcome=outcome).inc()
        if outcome == "completed" and amount_minor is not None:
            self.payment_amount_minor.observe(amount_minor)

    def record_confirmation_email(self, outcome: str) -> None:
        """Record a confirmation email attempt (sent, failed, skipped)."""
        self.confirmation_emails_total.labels(outcome=outcome).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = PaymentMetrics()
