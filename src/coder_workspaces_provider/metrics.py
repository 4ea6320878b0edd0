"""Prometheus metrics for the Coder Workspaces Provider."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "coder_workspaces_provider_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "coder_workspaces_provider_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Workspace operation metrics
workspace_operations_total = Counter(
    "coder_workspaces_provider_workspace_operations_total",
    "Total number of external workspace operations",
    ["operation", "result"],
)

# Provider connectivity metrics
provider_connectivity_total = Counter(
    "coder_workspaces_provider_provider_connectivity_total",
    "ProviderConfig connectivity status changes",
    ["provider", "status"],
)

# Drift detection metrics
drift_detected_total = Counter(
    "coder_workspaces_provider_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "resource_type"],
)

# API call metrics
api_call_total = Counter(
    "coder_workspaces_provider_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "coder_workspaces_provider_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 30.0],
)

# Error metrics
error_total = Counter(
    "coder_workspaces_provider_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Resource status metrics
resource_status_total = Counter(
    "coder_workspaces_provider_resource_status_total",
    "Resource status transitions",
    ["kind", "status"],
)
