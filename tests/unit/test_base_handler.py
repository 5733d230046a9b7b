"""Tests for the kopf-facing handler."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock, patch

import kopf
import pytest

from conftest import make_object
from servicemesh_operator.constants import FINALIZER, KIND_MESH
from servicemesh_operator.engine.orchestrator import ServiceMeshManager
from servicemesh_operator.engine.response import ReconcileResponse
from servicemesh_operator.engine.validation import AdmissionResponse, ValidationManager
from servicemesh_operator.handlers.base import ERROR_REQUEUE_DELAY_SECONDS, REQUEUE_DELAY_SECONDS, ServiceMeshHandler
from servicemesh_operator.handlers.shared import as_dict
from servicemesh_operator.utils.errors import DoNotRequeueError, NetworkError, RequeueError


@pytest.fixture
def manager():
    return MagicMock()


@pytest.fixture
def validation():
    return MagicMock()


@pytest.fixture
def handler(manager, validation):
    return ServiceMeshHandler(KIND_MESH, manager=manager, validation=validation)


@pytest.fixture(autouse=True)
def no_events():
    """Keep kopf from posting events outside a running operator."""
    with patch("servicemesh_operator.handlers.base.emit_event"), \
            patch("servicemesh_operator.handlers.base.emit_reconcile_started") as started, \
            patch("servicemesh_operator.handlers.base.emit_reconcile_failed") as failed, \
            patch("servicemesh_operator.handlers.base.emit_validate_failed") as validate_failed:
        yield {"started": started, "failed": failed, "validate_failed": validate_failed}


class TestReconcile:
    """Test cases for translating reconcile responses."""

    def test_converged(self, handler, manager):
        body = make_object(KIND_MESH)
        manager.create_or_update.return_value = ReconcileResponse(successful=True, requeue=True, requeue_after=3600)

        handler.reconcile(body)

        manager.add_finalizers.assert_called_once_with(body)
        manager.create_or_update.assert_called_once_with(body)

    def test_deleting_is_skipped(self, handler, manager):
        """Test a resource being deleted is left to the delete handler."""
        handler.reconcile(make_object(KIND_MESH, deleting=True))
        manager.add_finalizers.assert_not_called()
        manager.create_or_update.assert_not_called()

    def test_requeue_without_error(self, handler, manager, no_events):
        manager.create_or_update.return_value = ReconcileResponse(requeue=True)
        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.reconcile(make_object(KIND_MESH))
        assert exc_info.value.delay == REQUEUE_DELAY_SECONDS
        no_events["failed"].assert_not_called()

    def test_requeue_after(self, handler, manager):
        manager.create_or_update.return_value = ReconcileResponse(requeue=True, requeue_after=30)
        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.reconcile(make_object(KIND_MESH))
        assert exc_info.value.delay == 30

    def test_retryable_error(self, handler, manager, no_events):
        """Test a surfaced error is retried and reported as an event."""
        manager.create_or_update.return_value = ReconcileResponse(requeue=True, error=NetworkError("connection reset"))
        with pytest.raises(kopf.TemporaryError, match="connection reset") as exc_info:
            handler.reconcile(make_object(KIND_MESH))
        assert exc_info.value.delay == ERROR_REQUEUE_DELAY_SECONDS
        no_events["failed"].assert_called_once()

    def test_terminal_error(self, handler, manager):
        error = DoNotRequeueError("mesh in the control plane is deleted or failed")
        manager.create_or_update.return_value = ReconcileResponse(error=error)
        with pytest.raises(kopf.PermanentError, match="deleted or failed"):
            handler.reconcile(make_object(KIND_MESH))

    def test_kopf_body_is_copied(self, handler, manager):
        """Test the engine receives plain dicts it may mutate."""
        manager.create_or_update.return_value = ReconcileResponse(successful=True)
        body = make_object(KIND_MESH, spec={"hosts": ("a", "b")})
        handler.reconcile(body)
        passed = manager.create_or_update.call_args.args[0]
        assert passed is not body
        assert passed["spec"]["hosts"] == ["a", "b"]


class TestReconcileWithMetrics:
    """Test cases for the reconcile wrapper."""

    @patch("servicemesh_operator.handlers.base.metrics")
    def test_success(self, mock_metrics, handler, no_events):
        body = make_object(KIND_MESH)
        reconcile_fn = Mock()

        handler.reconcile_with_metrics(body, reconcile_fn)

        reconcile_fn.assert_called_once()
        no_events["started"].assert_called_once_with(body)
        mock_metrics.reconcile_total.labels.assert_called_with(kind=KIND_MESH, result="started")

    @patch("servicemesh_operator.handlers.base.metrics")
    def test_kopf_errors_pass_through(self, mock_metrics, handler, no_events):
        reconcile_fn = Mock(side_effect=kopf.TemporaryError("later", delay=5))
        with pytest.raises(kopf.TemporaryError):
            handler.reconcile_with_metrics(make_object(KIND_MESH), reconcile_fn)
        no_events["failed"].assert_not_called()
        mock_metrics.error_total.labels.assert_not_called()

    @patch("servicemesh_operator.handlers.base.metrics")
    def test_unexpected_error(self, mock_metrics, handler, no_events):
        """Test unexpected failures are counted, reported and re-raised."""
        reconcile_fn = Mock(side_effect=ValueError("MESH_API_ENDPOINT is required"))
        with pytest.raises(ValueError):
            handler.reconcile_with_metrics(make_object(KIND_MESH), reconcile_fn)
        mock_metrics.error_total.labels.assert_called_once_with(kind=KIND_MESH, error_type="ValueError")
        message = no_events["failed"].call_args.args[1]
        assert message == "Reconciliation failed: MESH_API_ENDPOINT is required"


class TestDelete:
    """Test cases for the delete handler."""

    def test_done_removes_base_finalizer(self, handler, manager):
        body = make_object(KIND_MESH, finalizers=[FINALIZER])
        manager.delete.return_value = (True, None)

        handler.delete(body)

        manager.remove_finalizer.assert_called_once_with(body, FINALIZER)

    def test_pending(self, handler, manager):
        """Test pending dependants keep the finalizer and retry later."""
        error = RequeueError("mesh has pending subresources to be deleted: virtualServices")
        manager.delete.return_value = (False, error)
        with pytest.raises(kopf.TemporaryError, match="pending subresources") as exc_info:
            handler.delete(make_object(KIND_MESH, finalizers=[FINALIZER]))
        assert exc_info.value.delay == ERROR_REQUEUE_DELAY_SECONDS
        manager.remove_finalizer.assert_not_called()

    def test_pending_without_error(self, handler, manager):
        manager.delete.return_value = (False, None)
        with pytest.raises(kopf.TemporaryError, match="delete pending"):
            handler.delete(make_object(KIND_MESH))


class TestValidate:
    """Test cases for admission."""

    def test_allowed(self, handler, validation):
        validation.validate_create.return_value = AdmissionResponse.allow()
        handler.validate("CREATE", make_object(KIND_MESH), None)

    def test_denied(self, handler, validation, no_events):
        """Test a denial becomes an admission error with its code."""
        validation.validate_update.return_value = AdmissionResponse.deny("spec.certificateAuthorities is immutable")
        old = make_object(KIND_MESH)
        with pytest.raises(kopf.AdmissionError, match="immutable") as exc_info:
            handler.validate("UPDATE", make_object(KIND_MESH, generation=2), old)
        assert exc_info.value.code == 403
        assert validation.validate_update.call_args.args[1] == old
        no_events["validate_failed"].assert_called_once()

    def test_errored_request(self, handler, validation, no_events):
        validation.validate_create.return_value = AdmissionResponse.errored("object is not a mesh")
        with pytest.raises(kopf.AdmissionError) as exc_info:
            handler.validate("CREATE", {}, None)
        assert exc_info.value.code == 400
        no_events["validate_failed"].assert_not_called()

    def test_delete_uses_old_object(self, handler, validation):
        validation.validate_delete.return_value = AdmissionResponse.allow()
        old = make_object(KIND_MESH)
        handler.validate("DELETE", {}, old)
        validation.validate_delete.assert_called_once_with(old)

    def test_other_operations_allowed(self, handler, validation):
        handler.validate("CONNECT", make_object(KIND_MESH), None)
        validation.validate_create.assert_not_called()


class TestLazyManagers:
    """Test cases for building managers from the process runtime."""

    @patch("servicemesh_operator.handlers.base.get_runtime")
    def test_manager_built_from_runtime(self, mock_get_runtime):
        handler = ServiceMeshHandler(KIND_MESH)
        assert isinstance(handler.manager, ServiceMeshManager)
        assert handler.manager is handler.manager
        mock_get_runtime.assert_called_once()

    @patch("servicemesh_operator.handlers.base.get_runtime")
    def test_validation_uses_cached_resolver(self, mock_get_runtime):
        handler = ServiceMeshHandler(KIND_MESH)
        assert isinstance(handler.validation, ValidationManager)
        mock_get_runtime.return_value.admission_resolver.assert_called_once()


class TestAsDict:
    """Test cases for copying kopf bodies."""

    def test_nested_copy(self):
        source = {"spec": {"hosts": ("a",), "rules": [{"source": {"allVirtualServices": {}}}]}}
        copied = as_dict(source)
        assert copied == {"spec": {"hosts": ["a"], "rules": [{"source": {"allVirtualServices": {}}}]}}
        copied["spec"]["rules"][0]["action"] = "ALLOW"
        assert "action" not in source["spec"]["rules"][0]
