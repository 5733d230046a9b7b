"""Tests for Prometheus metrics."""

from __future__ import annotations

from servicemesh_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    error_total,
    finalizer_total,
    rate_limit_hits_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
    retry_token_total,
    status_conflict_total,
    validation_total,
)


class TestMetricDefinitions:
    """Test that metrics are properly defined."""

    def test_counter_names(self):
        """Test counters are exported under the operator prefix."""
        # prometheus_client strips the _total suffix from counter names
        assert reconcile_total._name == "servicemesh_operator_reconcile"
        assert error_total._name == "servicemesh_operator_error"
        assert resource_status_total._name == "servicemesh_operator_resource_status"
        assert validation_total._name == "servicemesh_operator_validation"
        assert finalizer_total._name == "servicemesh_operator_finalizer"
        assert retry_token_total._name == "servicemesh_operator_retry_token"
        assert status_conflict_total._name == "servicemesh_operator_status_conflict"
        assert api_call_total._name == "servicemesh_operator_api_call"
        assert rate_limit_hits_total._name == "servicemesh_operator_rate_limit_hits"

    def test_histogram_names(self):
        assert reconcile_duration_seconds._name == "servicemesh_operator_reconcile_duration_seconds"
        assert api_call_duration_seconds._name == "servicemesh_operator_api_call_duration_seconds"


class TestMetricLabels:
    """Test that metrics accept the labels the operator records."""

    def test_reconcile_labels(self):
        reconcile_total.labels(kind="Mesh", result="success").inc(0)
        reconcile_duration_seconds.labels(kind="Mesh").observe(0.5)
        error_total.labels(kind="VirtualService", error_type="ServiceError").inc(0)
        resource_status_total.labels(kind="Mesh", status="True").inc(0)

    def test_engine_labels(self):
        validation_total.labels(kind="Mesh", operation="UPDATE", result="denied").inc(0)
        finalizer_total.labels(kind="Mesh", finalizer="servicemesh.cloud37.dev/finalizer", action="added").inc(0)
        retry_token_total.labels(kind="VirtualDeployment", action="issued").inc(0)
        status_conflict_total.labels(kind="AccessPolicy").inc(0)

    def test_api_call_labels(self):
        api_call_total.labels(api_type="mesh", operation="create_mesh", result="error").inc(0)
        api_call_duration_seconds.labels(api_type="k8s", operation="get_mesh").observe(0.05)
        rate_limit_hits_total.labels(api_type="mesh").inc(0)


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        initial = reconcile_total.labels(kind="TestCounter", result="test")._value.get()

        reconcile_total.labels(kind="TestCounter", result="test").inc()

        assert reconcile_total.labels(kind="TestCounter", result="test")._value.get() == initial + 1

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        status_conflict_total.labels(kind="TestKindA").inc(3)
        status_conflict_total.labels(kind="TestKindB").inc(5)

        assert status_conflict_total.labels(kind="TestKindA")._value.get() == 3
        assert status_conflict_total.labels(kind="TestKindB")._value.get() == 5
