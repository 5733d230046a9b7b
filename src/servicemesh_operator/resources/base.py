"""Shared per-kind handler and validator behaviour.

Each resource kind subclasses :class:`ControlPlaneResourceHandler` and
:class:`ServiceMeshValidator`, supplying only its field conversion,
dependency lookups and dependant checks.
"""

from __future__ import annotations

import logging
from typing import Any

from ..constants import (
    LIFECYCLE_ACTIVE,
    LIFECYCLE_DELETED,
    LIFECYCLE_FAILED,
    LIFECYCLE_UPDATING,
    MSG_UNKNOWN_STATUS,
    custom_finalizer,
)
from ..engine.handler import ObjectStore, ResourceDetails
from ..engine.orchestrator import timestamps_differ
from ..references import ENTITY_NAMES, Resolver
from ..services.mesh.base import ServiceMeshClient
from ..utils.conditions import condition_status_from_lifecycle, message_for_lifecycle
from ..utils.context import ReconcileContext
from ..utils.errors import DoNotRequeueError, RequeueError, ValidationError, is_deleted
from . import validations

logger = logging.getLogger(__name__)


def get_status(obj: dict[str, Any]) -> dict[str, Any]:
    """Return the status dict of ``obj``, creating it when missing."""
    if obj.get("status") is None:
        obj["status"] = {}
    return obj["status"]


def get_spec(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("spec") or {}


def access_logging(spec: dict[str, Any]) -> dict[str, Any] | None:
    if spec.get("accessLogging") is None:
        return None
    return {"isEnabled": bool(spec["accessLogging"].get("isEnabled"))}


def set_if_changed(status: dict[str, Any], field: str, value: Any) -> bool:
    """Store ``value`` under ``field``. Returns True if it changed."""
    if status.get(field) == value:
        return False
    status[field] = value
    return True


class ControlPlaneResourceHandler:
    """Engine handler for one kind backed by a control plane object.

    Attributes:
        kind: Custom resource kind
        id_field: Status field holding the control plane ID
        name_field: Spec field holding the display name
        stop_on_terminal_state: Stop quietly instead of raising when the
            remote object is deleted or failed
    """

    kind: str = ""
    entity: str = ""
    id_field: str = ""
    name_field: str = "name"
    stop_on_terminal_state: bool = False

    def __init__(self, client: ServiceMeshClient, resolver: Resolver, store: ObjectStore) -> None:
        self.client = client
        self.resolver = resolver
        self.store = store
        if not self.entity:
            self.entity = ENTITY_NAMES.get(self.kind, self.kind.lower())

    # Resource

    def get_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        resource_id = get_status(obj).get(self.id_field)
        if resource_id:
            details.remote = self.client.get(self.kind, resource_id)
            return
        logger.info(f"{self.entity} {obj['metadata']['name']} did not sync to the control plane")

    def create_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> bool:
        if details.remote is not None:
            return True
        logger.info(f"Creating {self.entity} {obj['metadata']['name']}")
        details.remote = self.client.create(self.kind, details.payload, details.retry_token)
        return False

    def update_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        logger.info(f"Updating {self.entity} {obj['metadata']['name']}")
        details.remote["lifecycleState"] = LIFECYCLE_UPDATING
        self.client.update(self.kind, get_status(obj)[self.id_field], details.payload)

    def change_compartment(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        logger.info(f"Moving {self.entity} {obj['metadata']['name']} to a new compartment")
        # The remote object is Active at this point; report it as Updating until the move lands
        details.remote["lifecycleState"] = LIFECYCLE_UPDATING
        self.client.change_compartment(
            self.kind,
            get_status(obj)[self.id_field],
            get_spec(obj)["compartmentId"],
        )

    def delete_resource(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        resource_id = get_status(obj).get(self.id_field)
        if not resource_id:
            return
        logger.info(f"Deleting {self.entity} {obj['metadata']['name']}")
        try:
            self.client.delete(self.kind, resource_id)
        except Exception as e:
            if not is_deleted(e):
                raise

    # Finalizer

    def finalizer_name(self) -> str:
        return custom_finalizer(self.kind)

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        """Nothing depends on this kind by default."""

    # Status

    def get_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        return get_status(obj)

    def get_condition_status(self, details: ResourceDetails) -> str:
        return condition_status_from_lifecycle(self.get_lifecycle_state(details))

    def update_status(self, obj: dict[str, Any], details: ResourceDetails) -> bool:
        status = get_status(obj)
        changed = self.update_status_fields(status, details)
        if set_if_changed(status, self.id_field, details.remote["id"]):
            changed = True
        # Track the remote update time so the next pass does not see an out-of-band change
        cp_time = self.get_time_updated(details)
        if timestamps_differ(cp_time, status.get("lastUpdatedTime")):
            status["lastUpdatedTime"] = cp_time
            changed = True
        return changed

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        """Copy kind-specific remote and dependency fields into status."""
        return False

    def get_time_updated(self, details: ResourceDetails) -> str | None:
        return (details.remote or {}).get("timeUpdated")

    # Verify

    def verify_entity_type(self, obj: Any) -> dict[str, Any]:
        if not isinstance(obj, dict) or obj.get("kind") != self.kind:
            raise ValidationError(f"object is not a {self.entity}")
        return obj

    def verify_resource_status(self, details: ResourceDetails) -> tuple[bool, Exception | None]:
        state = self.get_lifecycle_state(details)
        if details.remote is None or state == LIFECYCLE_ACTIVE:
            return True, None
        if state in (LIFECYCLE_DELETED, LIFECYCLE_FAILED):
            if self.stop_on_terminal_state:
                return False, None
            return False, DoNotRequeueError(f"{self.entity} in the control plane is deleted or failed")
        return False, RequeueError(MSG_UNKNOWN_STATUS)

    # Dependencies

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        """Kinds without parents have nothing to resolve."""

    # Payload

    def build_payload(self, obj: dict[str, Any], details: ResourceDetails) -> None:
        spec = get_spec(obj)
        payload: dict[str, Any] = {
            "compartmentId": spec.get("compartmentId"),
            self.name_field: spec.get(self.name_field) or obj["metadata"]["name"],
        }
        if details.remote is not None:
            payload["id"] = details.remote["id"]
            payload["freeformTags"] = details.remote.get("freeformTags")
            payload["definedTags"] = details.remote.get("definedTags")
        if spec.get("description") is not None:
            payload["description"] = spec["description"]
        if spec.get("freeformTags") is not None:
            payload["freeformTags"] = spec["freeformTags"]
        if spec.get("definedTags") is not None:
            payload["definedTags"] = spec["definedTags"]
        payload.update(self.payload_fields(obj, details))
        details.payload = {key: value for key, value in payload.items() if value is not None}

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        """Kind-specific payload fields."""
        return {}

    def has_compartment_changed(self, obj: dict[str, Any], details: ResourceDetails) -> bool:
        return get_spec(obj).get("compartmentId") != details.remote.get("compartmentId")

    def get_lifecycle_state(self, details: ResourceDetails) -> str | None:
        return (details.remote or {}).get("lifecycleState")

    def get_message(self, details: ResourceDetails) -> str:
        return message_for_lifecycle(self.get_lifecycle_state(details))

    def has_remote(self, details: ResourceDetails) -> bool:
        return details.remote is not None

    # Helpers for finalize checks

    def list_kind(self, kind: str) -> list[dict[str, Any]]:
        return self.store.list(kind)


class ServiceMeshValidator:
    """Admission rules common to every kind.

    Subclasses with a parent reference set ``parent_field`` (the spec field)
    and ``parent_kind``; the default create and update checks then cover
    name length, ref-xor-id, parent existence and immutability.
    """

    kind: str = ""
    entity: str = ""
    parent_field: str | None = None
    parent_kind: str | None = None
    name_field: str = "name"

    def __init__(self, resolver: Resolver) -> None:
        self.resolver = resolver
        if not self.entity:
            self.entity = ENTITY_NAMES.get(self.kind, self.kind.lower())

    def get_entity_type(self) -> str:
        return self.kind

    def validate_object(self, obj: Any) -> dict[str, Any]:
        if not isinstance(obj, dict) or obj.get("kind") != self.kind or "metadata" not in obj:
            raise ValueError(f"object is not a {self.entity}")
        return obj

    def get_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        return obj.get("status") or {}

    def resolve_ref(self, obj: dict[str, Any]) -> tuple[bool, str]:
        if self.parent_field is None:
            return True, ""
        return validations.validate_ref(self.parent_field, get_spec(obj).get(self.parent_field))

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = validations.is_metadata_name_valid(obj["metadata"]["name"])
        if not allowed:
            return False, reason
        return self.validate_parent_present(obj)

    def validate_parent_present(self, obj: dict[str, Any]) -> tuple[bool, str]:
        """Check a parent given by ref exists. Parents given by ID are not checked."""
        if self.parent_field is None:
            return True, ""
        parent = get_spec(obj).get(self.parent_field) or {}
        if parent.get("id") or parent.get("ref") is None:
            return True, ""
        return validations.is_present(self.resolver, self.parent_kind, self.parent_field, parent["ref"], obj["metadata"])

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        spec, old_spec = get_spec(obj), get_spec(old)
        if self.parent_field is not None and spec.get(self.parent_field) != old_spec.get(self.parent_field):
            return False, validations.reference_immutable(self.parent_field)
        if validations.is_spec_name_changed(spec.get(self.name_field), old_spec.get(self.name_field)):
            return False, validations.NAME_IMMUTABLE
        return True, ""
