"""Prometheus metrics for the Service Mesh Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "servicemesh_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "servicemesh_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "servicemesh_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "servicemesh_operator_resource_status_total",
    "Observed Active condition status per reconcile",
    ["kind", "status"],
)

# Admission metrics
validation_total = Counter(
    "servicemesh_operator_validation_total",
    "Total number of admission decisions",
    ["kind", "operation", "result"],
)

# Finalizer and idempotency metrics
finalizer_total = Counter(
    "servicemesh_operator_finalizer_total",
    "Finalizer additions and removals",
    ["kind", "finalizer", "action"],
)

retry_token_total = Counter(
    "servicemesh_operator_retry_token_total",
    "Retry token lifecycle operations",
    ["kind", "action"],
)

status_conflict_total = Counter(
    "servicemesh_operator_status_conflict_total",
    "Status writes rejected because the resource version moved",
    ["kind"],
)

# API call metrics
api_call_total = Counter(
    "servicemesh_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "servicemesh_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "servicemesh_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
