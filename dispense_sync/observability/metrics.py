"""
Prometheus metrics collection for dispense-sync

This module provides metrics instrumentation for monitoring
sync runs, delivery outcomes and store health.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RUN METRICS
# =======================

runs_total = Counter(
    name="dispense_sync_runs_total",
    documentation="Total number of sync runs",
    labelnames=["status"],  # status: completed, aborted, skipped
    registry=REGISTRY,
)

run_duration_seconds = Histogram(
    name="dispense_sync_run_duration_seconds",
    documentation="Time spent in one sync run in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=REGISTRY,
)

# Records processed counter
records_synced_total = Counter(
    name="dispense_sync_records_total",
    documentation="Total number of records by final outcome",
    labelnames=["outcome"],  # outcome: delivered, failed
    registry=REGISTRY,
)

mapping_failures_total = Counter(
    name="dispense_sync_mapping_failures_total",
    documentation="Rows that could not be mapped to a dispense record",
    labelnames=["field_name"],
    registry=REGISTRY,
)

# =======================
# DELIVERY METRICS
# =======================

batches_sent_total = Counter(
    name="dispense_sync_batches_sent_total",
    documentation="Total number of batches posted downstream",
    labelnames=["outcome"],  # outcome: delivered, rejected, transport_failure
    registry=REGISTRY,
)

batch_size = Histogram(
    name="dispense_sync_batch_size_records",
    documentation="Number of records in each batch",
    buckets=[1, 10, 25, 50, 100, 250, 500, 1000],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    name="dispense_sync_http_request_duration_seconds",
    documentation="Latency of downstream POST requests",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

# =======================
# STORE METRICS
# =======================

reconciliations_total = Counter(
    name="dispense_sync_reconciliations_total",
    documentation="Bulk status updates by target status and result",
    labelnames=["status", "result"],  # result: success, failure
    registry=REGISTRY,
)

rows_reconciled_total = Counter(
    name="dispense_sync_rows_reconciled_total",
    documentation="Rows whose delivery status changed",
    labelnames=["status"],
    registry=REGISTRY,
)

errors_total = Counter(
    name="dispense_sync_errors_total",
    documentation="Total number of errors",
    labelnames=["error_type", "component"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    if labels:
        histogram.labels(**labels).observe(value)
    else:
        histogram.observe(value)


# =======================
# METRICS COLLECTOR CLASS
# =======================

class MetricsCollector:
    """
    Metrics collector for sync pipeline components.

    This class provides a unified interface for collecting metrics
    from the sender, reconciler and orchestrator.
    """

    def record_batch_sent(self, outcome: str, record_count: int, duration_seconds: float = 0.0) -> None:
        """
        Record a batch send event.

        Args:
            outcome: delivered, rejected or transport_failure
            record_count: Number of records in the batch
            duration_seconds: Time taken by the POST
        """
        increment_counter(batches_sent_total, 1, outcome=outcome)
        observe_histogram(batch_size, record_count)
        if duration_seconds > 0:
            observe_histogram(http_request_duration_seconds, duration_seconds)

    def record_reconciliation(self, status: str, affected_rows: int, success: bool = True) -> None:
        """
        Record a bulk status update.

        Args:
            status: Target delivery status value
            affected_rows: Rows changed by the update
            success: Whether the update succeeded
        """
        increment_counter(reconciliations_total, 1, status=status, result="success" if success else "failure")
        if success and affected_rows > 0:
            increment_counter(rows_reconciled_total, affected_rows, status=status)
        if not success:
            increment_counter(errors_total, 1, error_type="reconciliation", component="reconciler")

    def record_mapping_failure(self, field_name: str | None) -> None:
        """Record a row that failed mapping."""
        increment_counter(mapping_failures_total, 1, field_name=field_name or "unknown")

    def record_run(self, status: str, delivered: int, failed: int, duration_seconds: float) -> None:
        """
        Record the end of a sync run.

        Args:
            status: completed, aborted or skipped
            delivered: Records delivered
            failed: Records failed
            duration_seconds: Run duration
        """
        increment_counter(runs_total, 1, status=status)
        if delivered:
            increment_counter(records_synced_total, delivered, outcome="delivered")
        if failed:
            increment_counter(records_synced_total, failed, outcome="failed")
        if duration_seconds > 0:
            observe_histogram(run_duration_seconds, duration_seconds)
        if status == "aborted":
            increment_counter(errors_total, 1, error_type="connectivity", component="extractor")
