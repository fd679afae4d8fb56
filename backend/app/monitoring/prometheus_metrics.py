"""
Prometheus metrics for the scheduling backend.

Service timings come from the ``@measure_operation`` decorator; the
scheduling counters below track checkout, reconciliation, course lock and
notification outcomes.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "scheduling_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "scheduling_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "scheduling_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

checkouts_total = Counter(
    "scheduling_checkouts_total",
    "Checkout attempts by outcome",
    ["outcome"],  # created | slot_conflict | price_changed | gateway_error
    registry=REGISTRY,
)

reconciliations_total = Counter(
    "scheduling_payment_reconciliations_total",
    "Payment reconciliation attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

course_lock_total = Counter(
    "scheduling_course_lock_total",
    "Course schedule mutex operations",
    ["action", "outcome"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "scheduling_notifications_total",
    "Appointment notification hand-offs and deliveries",
    ["stage", "event_type", "status"],  # stage: enqueue | deliver
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_checkout')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_checkout(outcome: str) -> None:
        checkouts_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_reconciliation(outcome: str) -> None:
        reconciliations_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_course_lock(action: str, outcome: str) -> None:
        course_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_notification(stage: str, event_type: str, status: str) -> None:
        notifications_total.labels(stage=stage, event_type=event_type, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
