"""Contracts between the engine and the per-kind handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..utils.context import ReconcileContext


@dataclass
class ResourceDetails:
    """Scratch state for a single reconcile pass. Never persisted."""

    remote: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None
    dependencies: dict[str, Any] = field(default_factory=dict)
    retry_token: str | None = None


class ObjectStore(Protocol):
    """Versioned desired-state store keyed by kind, namespace and name."""

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Read an object. Raises NotFoundError when it does not exist."""
        ...

    def list(self, kind: str, namespace: str | None = None) -> list[dict[str, Any]]:
        """List objects of a kind, optionally restricted to a namespace."""
        ...

    def patch_status(self, obj: dict[str, Any], status: dict[str, Any]) -> dict[str, Any]:
        """Write status guarded by the object's resourceVersion. Raises ConflictError."""
        ...

    def patch_finalizers(self, obj: dict[str, Any], finalizers: list[str]) -> dict[str, Any]:
        """Replace the finalizer list guarded by resourceVersion. Raises ConflictError."""
        ...


class ResourceHandler(Protocol):
    """Per-kind capabilities the orchestrator drives."""

    kind: str

    # Resource
    def get_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None: ...

    def create_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> bool:
        """Create the remote object when missing.

        Returns:
            True if the remote object already existed, False if a create was attempted
        """
        ...

    def update_resource(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None: ...

    def change_compartment(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None: ...

    def delete_resource(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None: ...

    # Finalizer
    def finalizer_name(self) -> str: ...

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        """Raise when other resources still depend on ``obj``."""
        ...

    # Status
    def get_status(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def get_condition_status(self, details: ResourceDetails) -> str: ...

    def update_status(self, obj: dict[str, Any], details: ResourceDetails) -> bool:
        """Copy remote fields into status. Returns True if status changed."""
        ...

    def get_time_updated(self, details: ResourceDetails) -> str | None: ...

    # Verify
    def verify_entity_type(self, obj: Any) -> dict[str, Any]: ...

    def verify_resource_status(self, details: ResourceDetails) -> tuple[bool, Exception | None]: ...

    # Dependencies
    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None: ...

    # SDK operations
    def build_payload(self, obj: dict[str, Any], details: ResourceDetails) -> None: ...

    def has_compartment_changed(self, obj: dict[str, Any], details: ResourceDetails) -> bool: ...

    def get_lifecycle_state(self, details: ResourceDetails) -> str | None: ...

    def get_message(self, details: ResourceDetails) -> str: ...

    def has_remote(self, details: ResourceDetails) -> bool: ...
