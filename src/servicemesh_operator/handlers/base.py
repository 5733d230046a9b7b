"""Base handler class binding the reconcile engine to kopf."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import (
    CONTROLLER_NAME,
    DEFAULT_ERROR_REQUEUE_DELAY_SECONDS,
    DEFAULT_REQUEUE_DELAY_SECONDS,
    FINALIZER,
)
from ..engine.orchestrator import Collaborators, ServiceMeshManager
from ..engine.response import ReconcileResponse
from ..engine.validation import AdmissionResponse, ValidationManager
from ..logging import log_resource_event
from ..resources import HANDLERS, VALIDATORS
from ..utils.errors import sanitize_exception
from ..utils.events import emit_event, emit_reconcile_failed, emit_reconcile_started, emit_validate_failed
from .shared import as_dict, get_runtime

REQUEUE_DELAY_SECONDS = float(os.getenv("REQUEUE_DELAY_SECONDS", str(DEFAULT_REQUEUE_DELAY_SECONDS)))
ERROR_REQUEUE_DELAY_SECONDS = float(
    os.getenv("ERROR_REQUEUE_DELAY_SECONDS", str(DEFAULT_ERROR_REQUEUE_DELAY_SECONDS))
)


class ServiceMeshHandler:
    """kopf-facing handler for one resource kind.

    The engine and validation managers are built on first use from the
    process runtime; tests inject their own.
    """

    def __init__(
        self,
        kind: str,
        manager: ServiceMeshManager | None = None,
        validation: ValidationManager | None = None,
    ):
        """Initialize handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Mesh", "VirtualService")
            manager: Engine for reconcile and delete
            validation: Admission checks
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self._manager = manager
        self._validation = validation

    @property
    def manager(self) -> ServiceMeshManager:
        if self._manager is None:
            runtime = get_runtime()
            handler = HANDLERS[self.kind](runtime.client, runtime.resolver(), runtime.store)
            self._manager = ServiceMeshManager(handler, runtime.store, Collaborators(events=emit_event))
        return self._manager

    @property
    def validation(self) -> ValidationManager:
        if self._validation is None:
            validator = VALIDATORS[self.kind](get_runtime().admission_resolver())
            self._validation = ValidationManager(validator)
        return self._validation

    def _log(
        self,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        level: int = logging.INFO,
        error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=meta.get("name", "unknown"),
            namespace=meta.get("namespace", "default"),
            uid=meta.get("uid", "unknown"),
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(self, meta: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **kwargs: Any) -> None:
        self._log(meta, message, event, reason, **kwargs)

    def log_warning(
        self, meta: dict[str, Any], message: str, event: str = "warning", reason: str = "Warning", **kwargs: Any
    ) -> None:
        self._log(meta, message, event, reason, level=logging.WARNING, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        self._log(meta, message, event, reason, level=logging.ERROR, error=error, **kwargs)

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], None],
    ) -> None:
        """Execute reconciliation with events and error logging.

        Outcome counters and durations are recorded by the engine; this
        wrapper covers failures raised outside of it.

        Args:
            body: Kubernetes resource body
            reconcile_fn: Function to execute for reconciliation
        """
        meta = body.get("metadata", {})
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()
        try:
            reconcile_fn()
        except (kopf.TemporaryError, kopf.PermanentError):
            raise
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            raise

    # Reconcile

    def reconcile(self, body: dict[str, Any]) -> None:
        """Run one CreateOrUpdate pass and translate its outcome for kopf.

        Raises:
            kopf.TemporaryError: When the pass asks to be retried
            kopf.PermanentError: When the pass failed terminally
        """
        obj = as_dict(body)
        if obj["metadata"].get("deletionTimestamp"):
            return
        self.manager.add_finalizers(obj)
        response = self.manager.create_or_update(obj)
        self.raise_for_response(body, response)

    def raise_for_response(self, body: dict[str, Any], response: ReconcileResponse) -> None:
        meta = body.get("metadata", {})
        if response.successful:
            self.log_info(meta, "Reconcile pass converged", event="reconcile", reason="Reconciled")
            return
        if response.error is None:
            delay = response.requeue_after if response.requeue_after is not None else REQUEUE_DELAY_SECONDS
            self.log_info(meta, f"Requeueing in {delay}s", event="reconcile", reason="Requeue")
            raise kopf.TemporaryError("reconcile requeued", delay=delay)

        message = sanitize_exception(response.error)
        emit_reconcile_failed(body, f"Reconciliation failed: {message}")
        if response.requeue:
            self.log_warning(meta, "Reconcile pass failed", event="reconcile", reason="ReconcileError", error=response.error)
            raise kopf.TemporaryError(message, delay=response.requeue_after or ERROR_REQUEUE_DELAY_SECONDS)
        self.log_error(meta, "Reconcile pass failed terminally", error=response.error, reason="ReconcileTerminal")
        raise kopf.PermanentError(message)

    # Delete

    def delete(self, body: dict[str, Any]) -> None:
        """Run the delete flow and drop the base finalizer once it is done.

        Raises:
            kopf.TemporaryError: While dependants or the remote delete are pending
        """
        obj = as_dict(body)
        meta = obj["metadata"]
        self.log_info(meta, f"{self.kind} is being deleted", event="deletion", reason="Deletion")
        done, error = self.manager.delete(obj)
        if not done:
            message = sanitize_exception(error) if error is not None else "delete pending"
            self.log_warning(meta, "Delete pending", event="deletion", reason="DeletePending", error=error)
            raise kopf.TemporaryError(message, delay=ERROR_REQUEUE_DELAY_SECONDS)
        self.manager.remove_finalizer(obj, FINALIZER)

    # Admission

    def validate(self, operation: str, body: dict[str, Any], old: dict[str, Any] | None) -> None:
        """Admit or deny a write.

        Raises:
            kopf.AdmissionError: When the write is denied
        """
        obj = as_dict(body)
        old_obj = as_dict(old) if old is not None else None
        if operation == "CREATE":
            response = self.validation.validate_create(obj)
        elif operation == "UPDATE":
            response = self.validation.validate_update(obj, old_obj)
        elif operation == "DELETE":
            response = self.validation.validate_delete(old_obj or obj)
        else:
            response = AdmissionResponse.allow()
        if response.allowed:
            return
        if isinstance(obj, dict) and obj.get("metadata"):
            emit_validate_failed(obj, response.message)
        raise kopf.AdmissionError(response.message, code=response.code)
