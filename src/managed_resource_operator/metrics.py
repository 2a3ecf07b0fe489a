"""Prometheus metrics for the Managed Resource Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "managed_resource_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "managed_resource_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Backend adapter metrics
backend_operations_total = Counter(
    "managed_resource_operator_backend_operations_total",
    "Total number of backend adapter operations",
    ["kind", "operation", "result"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "managed_resource_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind"],
)

error_total = Counter(
    "managed_resource_operator_error_total",
    "Total number of failed passes by error category",
    ["kind", "error_type"],
)

requeue_total = Counter(
    "managed_resource_operator_requeue_total",
    "Total number of requeues requested by the engine",
    ["kind", "reason"],
)

secret_sync_total = Counter(
    "managed_resource_operator_secret_sync_total",
    "Total number of connection secret synchronizations",
    ["kind", "result"],
)

status_conflicts_total = Counter(
    "managed_resource_operator_status_conflicts_total",
    "Total number of persisted writes that gave up on conflicts",
    ["kind", "target"],
)

resource_status_total = Counter(
    "managed_resource_operator_resource_status_total",
    "Resource readiness observed at the end of a pass",
    ["kind", "status"],
)
