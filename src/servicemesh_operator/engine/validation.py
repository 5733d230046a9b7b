"""Admission checks layered over per-kind validators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .. import metrics
from ..constants import (
    COND_ACTIVE,
    COND_CONFIGURED,
    COND_DEPENDENCIES_ACTIVE,
    CONTROLLER_NAME,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)
from ..logging import log_resource_event
from ..utils.conditions import has_condition

# Denial reasons shared by every kind
NOT_ACTIVE_ON_UPDATE = "update cannot be applied as the state is not Active"
DEPENDENCIES_UNKNOWN_ON_UPDATE = "update cannot be applied as at least one dependency status is unknown"
UNKNOWN_STATE_ON_UPDATE = "update cannot be applied as the state in the mesh Control Plane is unknown"
UNKNOWN_STATE_ON_DELETE = "delete cannot be applied as the status is unknown"


@dataclass(frozen=True)
class AdmissionResponse:
    """Allow/deny decision.

    ``code`` is 400 for requests that could not be decoded as the expected
    kind and 403 for policy denials.
    """

    allowed: bool
    message: str = ""
    code: int = 200

    @classmethod
    def allow(cls) -> AdmissionResponse:
        return cls(True)

    @classmethod
    def deny(cls, message: str) -> AdmissionResponse:
        return cls(False, message, 403)

    @classmethod
    def errored(cls, message: str) -> AdmissionResponse:
        return cls(False, message, 400)


class ResourceValidator(Protocol):
    """Per-kind admission rules."""

    kind: str

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]: ...

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]: ...

    def get_status(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def resolve_ref(self, obj: dict[str, Any]) -> tuple[bool, str]:
        """Check that every reference names exactly one of ref or id."""
        ...

    def validate_object(self, obj: Any) -> dict[str, Any]:
        """Coerce to the expected kind. Raises ValueError otherwise."""
        ...

    def get_entity_type(self) -> str: ...


def validation_error_message(obj: dict[str, Any], kind: str, reason: str) -> str:
    """Format a denial so it names the object it refers to."""
    meta = obj.get("metadata", {})
    return (
        f"Failed to create Resource for Kind: {kind}, Name: {meta.get('name')}, "
        f"Namespace: {meta.get('namespace')}, Error: {reason}"
    )


class ValidationManager:
    """Runs generic create, update and delete admission checks for one kind."""

    def __init__(self, validator: ResourceValidator, logger: logging.Logger | None = None) -> None:
        self.validator = validator
        self.logger = logger or logging.getLogger("servicemesh_operator.admission")

    @property
    def kind(self) -> str:
        return self.validator.get_entity_type()

    def _record(self, obj: dict[str, Any], operation: str, response: AdmissionResponse) -> AdmissionResponse:
        result = "allowed" if response.allowed else "denied"
        metrics.validation_total.labels(kind=self.kind, operation=operation, result=result).inc()
        meta = obj.get("metadata", {}) if isinstance(obj, dict) else {}
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=meta.get("name", "unknown"),
            namespace=meta.get("namespace", "default"),
            uid=meta.get("uid", "unknown"),
            event="admission",
            reason=f"{operation.capitalize()}Request{result.capitalize()}",
            message=response.message or f"{operation} request passes validation",
            level=logging.INFO if response.allowed else logging.WARNING,
        )
        return response

    def _deny(self, obj: dict[str, Any], reason: str) -> AdmissionResponse:
        return AdmissionResponse.deny(validation_error_message(obj, self.kind, reason))

    def validate_create(self, obj: Any) -> AdmissionResponse:
        try:
            obj = self.validator.validate_object(obj)
        except ValueError as e:
            return self._record({}, "create", AdmissionResponse.errored(str(e)))

        allowed, reason = self.validator.resolve_ref(obj)
        if not allowed:
            return self._record(obj, "create", self._deny(obj, reason))

        allowed, reason = self.validator.validate_on_create(obj)
        if not allowed:
            return self._record(obj, "create", self._deny(obj, reason))
        return self._record(obj, "create", AdmissionResponse.allow())

    def validate_update(self, obj: Any, old: Any) -> AdmissionResponse:
        try:
            obj = self.validator.validate_object(obj)
            old = self.validator.validate_object(old)
        except ValueError as e:
            return self._record({}, "update", AdmissionResponse.errored(str(e)))
        status = self.validator.get_status(old)

        # Status-only and metadata-only writes keep the generation
        if obj["metadata"].get("generation") == old["metadata"].get("generation"):
            return self._record(obj, "update", AdmissionResponse.allow())

        if has_condition(status, COND_DEPENDENCIES_ACTIVE, STATUS_UNKNOWN):
            return self._record(obj, "update", self._deny(obj, DEPENDENCIES_UNKNOWN_ON_UPDATE))

        if has_condition(status, COND_CONFIGURED, STATUS_UNKNOWN):
            return self._record(obj, "update", self._deny(obj, UNKNOWN_STATE_ON_UPDATE))

        if has_condition(status, COND_CONFIGURED, STATUS_TRUE) and not has_condition(status, COND_ACTIVE, STATUS_TRUE):
            return self._record(obj, "update", self._deny(obj, NOT_ACTIVE_ON_UPDATE))

        allowed, reason = self.validator.validate_on_update(obj, old)
        if not allowed:
            return self._record(obj, "update", self._deny(obj, reason))
        return self._record(obj, "update", AdmissionResponse.allow())

    def validate_delete(self, obj: Any) -> AdmissionResponse:
        try:
            obj = self.validator.validate_object(obj)
        except ValueError as e:
            return self._record({}, "delete", AdmissionResponse.errored(str(e)))
        status = self.validator.get_status(obj)
        if (
            has_condition(status, COND_DEPENDENCIES_ACTIVE, STATUS_TRUE)
            and has_condition(status, COND_CONFIGURED, STATUS_TRUE)
            and has_condition(status, COND_ACTIVE, STATUS_UNKNOWN)
        ):
            return self._record(obj, "delete", self._deny(obj, UNKNOWN_STATE_ON_DELETE))
        return self._record(obj, "delete", AdmissionResponse.allow())
