"""
Prometheus metrics for the slot engine.

Everything lives on a private registry exposed by ``GET /metrics``:

- HTTP request latency, labelled by route template
- service operation latency and errors, fed by ``BaseService.measure_operation``
- reservation gate outcomes (claimed / conflict / aborted) and retries
- how many slots each listing returns
"""

from typing import Optional, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "slotengine_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

operation_duration_seconds = Histogram(
    "slotengine_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation", "status"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

operation_errors_total = Counter(
    "slotengine_operation_errors_total",
    "Service operations that raised, by exception type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

gate_outcomes_total = Counter(
    "slotengine_reservation_gate_outcomes_total",
    "Reservation gate results",
    ["operation", "outcome"],  # claimed | conflict | aborted
    registry=REGISTRY,
)

gate_retries_total = Counter(
    "slotengine_reservation_gate_retries_total",
    "Attempts retried after a transient store abort",
    ["operation"],
    registry=REGISTRY,
)

slots_per_listing = Histogram(
    "slotengine_slots_per_listing",
    "Candidate slots returned by one slot listing",
    registry=REGISTRY,
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000),
)


class PrometheusMetrics:
    """Thin recording API over the module-level collectors."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        http_request_duration_seconds.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).observe(duration)

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record one call made through @measure_operation.

        Args:
            service: Class name (e.g. 'SlotGenerator')
            operation: Operation name (e.g. 'generate_candidate_slots')
            duration: Seconds spent
            error_type: Exception class name when the call raised
        """
        status = "error" if error_type else "success"
        operation_duration_seconds.labels(
            service=service, operation=operation, status=status
        ).observe(duration)
        if error_type:
            operation_errors_total.labels(
                service=service, operation=operation, error_type=error_type
            ).inc()

    @staticmethod
    def record_gate_outcome(operation: str, outcome: str) -> None:
        gate_outcomes_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_gate_retry(operation: str) -> None:
        gate_retries_total.labels(operation=operation).inc()

    @staticmethod
    def record_slot_listing(slot_count: int) -> None:
        slots_per_listing.observe(slot_count)

    @staticmethod
    def exposition() -> Tuple[bytes, str]:
        """Registry contents in text exposition format, with its content type."""
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
