"""
Prometheus metrics module for the clubdesk scheduling core.

Service timings come from the @measure_operation decorator on BaseService;
the domain counters below track absence transitions, expiry sweeps and the
makeup seat locks.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "clubdesk_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "clubdesk_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "clubdesk_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

absence_transitions_total = Counter(
    "clubdesk_absence_transitions_total",
    "Absence state transitions by target status and outcome",
    ["to_status", "outcome"],
    registry=REGISTRY,
)

expiry_sweep_expired_total = Counter(
    "clubdesk_expiry_sweep_expired_total",
    "Absences moved to expired by the sweep",
    registry=REGISTRY,
)

expiry_sweep_failures_total = Counter(
    "clubdesk_expiry_sweep_failures_total",
    "Per-request failures during expiry sweeps",
    registry=REGISTRY,
)

makeup_lock_total = Counter(
    "clubdesk_makeup_lock_total",
    "Makeup seat lock operations",
    ["action", "outcome"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "clubdesk_absence_notifications_total",
    "Absence notifications handed to the dispatcher",
    ["kind", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records the scheduling core's Prometheus metrics."""

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
            service: Service name (e.g., 'AbsenceService')
            operation: Operation/method name (e.g., 'select_makeup')
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
    def record_absence_transition(to_status: str, outcome: str = "success") -> None:
        absence_transitions_total.labels(to_status=to_status, outcome=outcome).inc()

    @staticmethod
    def record_expiry_sweep(expired: int, failures: int) -> None:
        if expired:
            expiry_sweep_expired_total.inc(expired)
        if failures:
            expiry_sweep_failures_total.inc(failures)

    @staticmethod
    def record_makeup_lock(action: str, outcome: str) -> None:
        makeup_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_notification(kind: str, status: str) -> None:
        notifications_total.labels(kind=kind, status=status).inc()


# Singleton instance
prometheus_metrics = PrometheusMetrics()
