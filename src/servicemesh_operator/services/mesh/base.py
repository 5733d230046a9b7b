"""Base control plane client interface."""

from __future__ import annotations

from typing import Any, Protocol


class ServiceMeshClient(Protocol):
    """Protocol defining control plane operations.

    Every operation takes the resource kind (e.g. "Mesh", "VirtualService")
    and returns the remote object as a dict with at least ``id``,
    ``compartmentId``, ``lifecycleState`` and ``timeUpdated``. Failures are
    raised as NetworkError or ServiceError.
    """

    def get(self, kind: str, resource_id: str) -> dict[str, Any]:
        """Fetch a remote object by ID."""
        ...

    def create(self, kind: str, payload: dict[str, Any], retry_token: str | None) -> dict[str, Any]:
        """Create a remote object. The retry token makes the call idempotent."""
        ...

    def update(self, kind: str, resource_id: str, payload: dict[str, Any]) -> None:
        """Replace the mutable fields of a remote object."""
        ...

    def delete(self, kind: str, resource_id: str) -> None:
        """Delete a remote object."""
        ...

    def change_compartment(self, kind: str, resource_id: str, compartment_id: str) -> None:
        """Move a remote object to another compartment."""
        ...
