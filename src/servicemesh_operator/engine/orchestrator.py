"""Reconcile and delete orchestration shared by every resource kind."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .. import metrics as default_metrics
from ..constants import (
    COND_ACTIVE,
    COND_CONFIGURED,
    COND_DEPENDENCIES_ACTIVE,
    CONTROLLER_NAME,
    EVENT_REASON_COMPARTMENT_CHANGED,
    EVENT_REASON_DEPENDENCIES_PENDING,
    EVENT_REASON_FINALIZER_ADDED,
    EVENT_REASON_FINALIZER_REMOVED,
    EVENT_REASON_RESOURCE_CREATED,
    EVENT_REASON_RESOURCE_DELETED,
    EVENT_REASON_RESOURCE_UPDATED,
    FINALIZER,
    MSG_RESOURCE_CHANGE_COMPARTMENT,
    MSG_UNKNOWN_STATUS,
    REASON_LIFECYCLE_STATE_CHANGED,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)
from ..logging import log_resource_event
from ..tracing import trace_span
from ..utils.conditions import (
    get_condition,
    message_for_lifecycle,
    reason_for,
    update_condition,
)
from ..utils.context import ReconcileContext, with_correlation_id
from ..utils.errors import (
    ConflictError,
    DoNotRequeueError,
    RequeueError,
    active_condition,
    configured_condition,
    dependencies_condition,
    is_network_or_internal_error,
    sanitize_exception,
)
from ..utils.retry_token import get_or_issue_token, set_token
from .handler import ObjectStore, ResourceDetails, ResourceHandler
from .response import ReconcileResponse, response_for_error, resync_response

EventRecorder = Callable[[dict[str, Any], str, str, str], None]


@dataclass
class Collaborators:
    """Logger, metrics sink and event recorder handed to the engine."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("servicemesh_operator.engine"))
    metrics: Any = default_metrics
    events: EventRecorder | None = None


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def timestamps_differ(cp_time: str | None, operator_time: str | None) -> bool:
    """Compare remote and recorded update times at whole-second resolution."""
    if cp_time is None and operator_time is None:
        return False
    if cp_time is None or operator_time is None:
        return True
    return int(_parse_time(cp_time).timestamp()) != int(_parse_time(operator_time).timestamp())


def _active_is_true(status: dict[str, Any]) -> bool:
    conditions = status.get("conditions") or []
    if not conditions:
        return False
    return all(
        cond.get("status") == STATUS_TRUE
        for cond in conditions
        if cond.get("type") == COND_ACTIVE
    )


class ServiceMeshManager:
    """Drives one resource kind through CreateOrUpdate and Delete.

    All per-kind behaviour comes from ``handler``; status and finalizer
    writes go through ``store`` with optimistic concurrency.
    """

    def __init__(
        self,
        handler: ResourceHandler,
        store: ObjectStore,
        collaborators: Collaborators | None = None,
        conflict_retries: int | None = None,
    ) -> None:
        self.handler = handler
        self.store = store
        self.collaborators = collaborators or Collaborators()
        if conflict_retries is None:
            conflict_retries = int(os.getenv("STATUS_CONFLICT_RETRIES", "3"))
        self.conflict_retries = conflict_retries

    @property
    def kind(self) -> str:
        return self.handler.kind

    @property
    def metrics(self) -> Any:
        return self.collaborators.metrics

    def _log(
        self,
        obj: dict[str, Any],
        message: str,
        event: str = "reconcile",
        reason: str = "Info",
        level: int = logging.INFO,
        error: BaseException | None = None,
        **kwargs: Any,
    ) -> None:
        meta = obj.get("metadata", {}) if isinstance(obj, dict) else {}
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        log_resource_event(
            self.collaborators.logger,
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

    def _event(self, obj: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None:
        if self.collaborators.events is not None:
            self.collaborators.events(obj, reason, message, type_)

    # Status persistence

    def _write_status(self, obj: dict[str, Any], mutate: Callable[[dict[str, Any]], bool]) -> None:
        """Apply ``mutate`` to status and persist it if anything changed.

        On a resourceVersion conflict the object is re-read and the mutation
        replayed. The pass is abandoned with a requeue once retries run out.
        """
        for _ in range(self.conflict_retries + 1):
            status = self.handler.get_status(obj)
            if not mutate(status):
                return
            try:
                updated = self.store.patch_status(obj, status)
            except ConflictError:
                self.metrics.status_conflict_total.labels(kind=self.kind).inc()
                meta = obj["metadata"]
                fresh = self.store.get(self.kind, meta.get("namespace"), meta["name"])
                obj.clear()
                obj.update(fresh)
                continue
            _refresh_version(obj, updated)
            return
        self._log(obj, "Abandoning pass after repeated status conflicts", reason="StatusConflict", level=logging.WARNING)
        raise RequeueError("status update conflicted with concurrent writers")

    def _set_condition(
        self,
        obj: dict[str, Any],
        condition_type: str,
        value: str,
        reason: str,
        message: str,
    ) -> None:
        """Update a condition from an error mapping and persist it when changed."""

        def mutate(status: dict[str, Any]) -> bool:
            if get_condition(status, condition_type) is None:
                generation = 1
            else:
                generation = obj["metadata"].get("generation", 1)
            return update_condition(status, condition_type, value, reason, message, generation)

        self._write_status(obj, mutate)

    def update_configured(self, obj: dict[str, Any], error: BaseException | None) -> None:
        mapped = configured_condition(error)
        if mapped is not None:
            self._set_condition(obj, COND_CONFIGURED, *mapped)

    def update_active_from_error(self, obj: dict[str, Any], error: BaseException) -> None:
        mapped = active_condition(error)
        if mapped is not None:
            self._set_condition(obj, COND_ACTIVE, *mapped)

    def update_dependencies(self, obj: dict[str, Any], error: BaseException | None) -> None:
        self._set_condition(obj, COND_DEPENDENCIES_ACTIVE, *dependencies_condition(error))

    def update_retry_token(self, obj: dict[str, Any], token: str | None) -> None:
        if self.handler.get_status(obj).get("opcRetryToken") == token:
            return
        self._write_status(obj, lambda status: set_token(status, token))
        self.metrics.retry_token_total.labels(kind=self.kind, action="persist" if token else "clear").inc()

    # Change detection

    def has_spec_changed(self, obj: dict[str, Any]) -> bool:
        """True when the Active condition has not observed the current generation."""
        cond = get_condition(self.handler.get_status(obj), COND_ACTIVE)
        return cond is None or obj["metadata"].get("generation") != cond.get("observedGeneration")

    def has_resource_updated_in_cp(self, obj: dict[str, Any], details: ResourceDetails) -> bool:
        """True when the remote object changed since the time recorded in status."""
        if not self.handler.has_remote(details):
            return False
        status = self.handler.get_status(obj)
        if not _active_is_true(status):
            return False
        if status.get("lastUpdatedTime") is None:
            return False
        return timestamps_differ(self.handler.get_time_updated(details), status.get("lastUpdatedTime"))

    # CreateOrUpdate

    def create_or_update(self, obj: Any, ctx: ReconcileContext | None = None) -> ReconcileResponse:
        """Run one reconcile pass and return the requeue directive."""
        ctx = ctx or ReconcileContext.with_timeout()
        start_time = time.time()
        with with_correlation_id(ctx.correlation_id), trace_span("create_or_update", kind=self.kind):
            try:
                response = self._create_or_update(ctx, obj)
            except Exception as e:
                self._log(obj, "Reconcile pass abandoned", reason="ReconcileAbandoned",
                          level=logging.WARNING, error=e)
                response = response_for_error(e)
            finally:
                self.metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.time() - start_time)
        result = "success" if response.successful else ("error" if response.error else "requeue")
        self.metrics.reconcile_total.labels(kind=self.kind, result=result).inc()
        if response.error is not None:
            self.metrics.error_total.labels(kind=self.kind, error_type=type(response.error).__name__).inc()
        return response

    def _create_or_update(self, ctx: ReconcileContext, obj: Any) -> ReconcileResponse:
        handler = self.handler
        try:
            obj = handler.verify_entity_type(obj)
        except Exception as e:
            return response_for_error(e)

        details = ResourceDetails()

        ctx.check("resolving dependencies")
        try:
            handler.resolve_dependencies(ctx, obj, details)
        except Exception as e:
            self.update_dependencies(obj, e)
            self._log(obj, "Dependencies not resolved", reason="DependenciesNotResolved", error=e)
            self._event(obj, EVENT_REASON_DEPENDENCIES_PENDING, sanitize_exception(e), "Warning")
            return response_for_error(e)
        self.update_dependencies(obj, None)
        self._log(obj, "dependencies resolved", reason="DependenciesResolved")

        ctx.check("fetching remote state")
        try:
            handler.get_resource(ctx, obj, details)
        except Exception as e:
            self.update_configured(obj, e)
            self._log(obj, "Failed to fetch resource from the control plane", reason="GetFailed", error=e)
            return response_for_error(e)

        valid, verify_error = handler.verify_resource_status(details)
        if not valid:
            value = handler.get_condition_status(details)
            message = handler.get_message(details)
            self._set_condition(obj, COND_ACTIVE, value, REASON_LIFECYCLE_STATE_CHANGED, message)
            self.metrics.resource_status_total.labels(kind=self.kind, status=value).inc()
            if verify_error is None:
                return resync_response()
            return response_for_error(verify_error)

        try:
            handler.build_payload(obj, details)
        except Exception as e:
            self._log(obj, "Failed to build control plane payload", reason="BuildFailed", error=e)
            terminal = DoNotRequeueError(sanitize_exception(e))
            terminal.__cause__ = e
            return response_for_error(terminal)

        details.retry_token = get_or_issue_token(handler.get_status(obj))
        if not handler.has_remote(details):
            self.update_retry_token(obj, details.retry_token)

        ctx.check("mutating remote state")
        create_error: Exception | None = None
        try:
            resource_created = handler.create_resource(ctx, obj, details)
        except Exception as e:
            resource_created = False
            create_error = e

        compartment_changed = False
        updated_in_cp = self.has_resource_updated_in_cp(obj, details)
        if not resource_created:
            self.update_configured(obj, create_error)
            if create_error is not None:
                self._log(obj, "cp error while creating resource", reason="CreateFailed", error=create_error)
                if not is_network_or_internal_error(create_error):
                    self.update_retry_token(obj, None)
                return response_for_error(create_error)
            self._event(obj, EVENT_REASON_RESOURCE_CREATED, f"{self.kind} create requested in the control plane")
        elif self.has_spec_changed(obj) or updated_in_cp:
            try:
                compartment_changed = handler.has_compartment_changed(obj, details)
            except Exception as e:
                return response_for_error(e)
            mutate_error: Exception | None = None
            try:
                if compartment_changed:
                    handler.change_compartment(ctx, obj, details)
                else:
                    handler.update_resource(ctx, obj, details)
            except Exception as e:
                mutate_error = e
            self.update_configured(obj, mutate_error)
            if mutate_error is not None:
                self._log(obj, "cp error while updating resource", reason="UpdateFailed", error=mutate_error)
                return response_for_error(mutate_error)
            if compartment_changed:
                self._event(obj, EVENT_REASON_COMPARTMENT_CHANGED, "Moving resource to a new compartment")
            else:
                self._event(obj, EVENT_REASON_RESOURCE_UPDATED, f"{self.kind} update requested in the control plane")

        self.update_retry_token(obj, None)
        details.retry_token = None
        self.update_configured(obj, None)
        return self.update_k8s(obj, details, compartment_changed, updated_in_cp)

    def update_k8s(
        self,
        obj: dict[str, Any],
        details: ResourceDetails,
        compartment_changed: bool,
        updated_in_cp: bool,
    ) -> ReconcileResponse:
        """Copy remote fields to status and derive the Active condition."""
        handler = self.handler
        value = handler.get_condition_status(details)
        if compartment_changed and value != STATUS_FALSE:
            value = STATUS_UNKNOWN

        def mutate(status: dict[str, Any]) -> bool:
            changed = handler.update_status(obj, details)
            if compartment_changed and value == STATUS_UNKNOWN:
                cond = get_condition(status, COND_ACTIVE) or {}
                generation = cond.get("observedGeneration", 1)
                if updated_in_cp:
                    generation -= 1
                message = MSG_RESOURCE_CHANGE_COMPARTMENT
            else:
                generation = obj["metadata"].get("generation", 1)
                message = message_for_lifecycle(handler.get_lifecycle_state(details))
            # Active tracks the generation last sent to the control plane
            if update_condition(status, COND_ACTIVE, value, reason_for(value), message, generation,
                                hold_generation=False):
                changed = True
            return changed

        self._write_status(obj, mutate)
        self.metrics.resource_status_total.labels(kind=self.kind, status=value).inc()

        if value == STATUS_UNKNOWN:
            return response_for_error(RequeueError(MSG_UNKNOWN_STATUS))
        self._log(obj, "Resource reconciled", reason="Reconciled")
        return resync_response()

    # Delete

    def delete(self, obj: Any, ctx: ReconcileContext | None = None) -> tuple[bool, Exception | None]:
        """Run the finalizer-gated delete flow.

        Returns:
            (done, error): done is True once the base finalizer may be removed
        """
        ctx = ctx or ReconcileContext.with_timeout()
        with with_correlation_id(ctx.correlation_id), trace_span("delete", kind=self.kind):
            try:
                return self._delete(ctx, obj)
            except Exception as e:
                self._log(obj, "Delete pass abandoned", reason="DeleteAbandoned", level=logging.WARNING, error=e)
                self.metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                return False, e

    def _delete(self, ctx: ReconcileContext, obj: Any) -> tuple[bool, Exception | None]:
        handler = self.handler
        obj = handler.verify_entity_type(obj)
        custom = handler.finalizer_name()

        if custom in _finalizers(obj):
            ctx.check("checking dependants")
            self._log(obj, "Checking dependencies", event="deletion", reason="Finalize")
            finalize_error: Exception | None = None
            try:
                handler.finalize(ctx, obj)
            except Exception as e:
                finalize_error = e
            self.update_dependencies(obj, finalize_error)
            if finalize_error is not None:
                self._event(obj, EVENT_REASON_DEPENDENCIES_PENDING, sanitize_exception(finalize_error), "Warning")
                return False, finalize_error
            self.remove_finalizer(obj, custom)

        if FINALIZER in _finalizers(obj):
            ctx.check("deleting remote resource")
            self._log(obj, "Attempting to delete the resource in the control plane", event="deletion", reason="Delete")
            try:
                handler.delete_resource(ctx, obj)
            except Exception as e:
                self.update_active_from_error(obj, e)
                return False, e
            self._event(obj, EVENT_REASON_RESOURCE_DELETED, f"{self.kind} deleted from the control plane")
        return True, None

    # Finalizers

    def add_finalizers(self, obj: dict[str, Any]) -> None:
        """Ensure the base and dependency-safety finalizers are present."""
        for finalizer in (FINALIZER, self.handler.finalizer_name()):
            self._patch_finalizers(obj, finalizer, add=True)

    def remove_finalizer(self, obj: dict[str, Any], finalizer: str) -> None:
        self._patch_finalizers(obj, finalizer, add=False)

    def _patch_finalizers(self, obj: dict[str, Any], finalizer: str, add: bool) -> None:
        for _ in range(self.conflict_retries + 1):
            current = _finalizers(obj)
            if (finalizer in current) == add:
                return
            desired = current + [finalizer] if add else [f for f in current if f != finalizer]
            try:
                updated = self.store.patch_finalizers(obj, desired)
            except ConflictError:
                self.metrics.status_conflict_total.labels(kind=self.kind).inc()
                meta = obj["metadata"]
                fresh = self.store.get(self.kind, meta.get("namespace"), meta["name"])
                obj.clear()
                obj.update(fresh)
                continue
            obj["metadata"]["finalizers"] = desired
            _refresh_version(obj, updated)
            action = "added" if add else "removed"
            self.metrics.finalizer_total.labels(kind=self.kind, finalizer=finalizer, action=action).inc()
            reason = EVENT_REASON_FINALIZER_ADDED if add else EVENT_REASON_FINALIZER_REMOVED
            self._event(obj, reason, f"Finalizer {finalizer} {action}")
            return
        raise RequeueError("finalizer update conflicted with concurrent writers")


def _finalizers(obj: dict[str, Any]) -> list[str]:
    return list(obj.get("metadata", {}).get("finalizers") or [])


def _refresh_version(obj: dict[str, Any], updated: dict[str, Any] | None) -> None:
    version = ((updated or {}).get("metadata") or {}).get("resourceVersion")
    if version:
        obj["metadata"]["resourceVersion"] = version
