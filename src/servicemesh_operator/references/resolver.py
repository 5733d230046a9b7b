"""Resolution of cross-kind references into control plane IDs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..constants import (
    CONDITION_TYPES,
    KIND_INGRESS_GATEWAY,
    KIND_MESH,
    KIND_VIRTUAL_DEPLOYMENT,
    KIND_VIRTUAL_SERVICE,
    LIFECYCLE_ACTIVE,
    LIFECYCLE_DELETED,
    LIFECYCLE_FAILED,
    STATUS_TRUE,
)
from ..engine.handler import ObjectStore
from ..services.mesh.base import ServiceMeshClient
from ..utils.errors import NotFoundError, RequeueError, ResourceExpiredError


ENTITY_NAMES = {
    KIND_MESH: "mesh",
    KIND_VIRTUAL_SERVICE: "virtual service",
    KIND_VIRTUAL_DEPLOYMENT: "virtual deployment",
    KIND_INGRESS_GATEWAY: "ingress gateway",
}


@dataclass
class ResolvedRef:
    """Control plane identity of a referenced object."""

    id: str
    name: str | None = None
    mesh_id: str | None = None


def spec_name(obj: dict[str, Any], field: str = "name") -> str:
    """Display name of an object: ``spec.<field>`` or ``metadata.name``."""
    return (obj.get("spec") or {}).get(field) or obj["metadata"]["name"]


def check_k8s_conditions(kind: str, obj: dict[str, Any]) -> None:
    """Require a referenced object to be fully reconciled.

    Raises:
        RequeueError: Unless all three conditions are present and True
    """
    entity = ENTITY_NAMES[kind]
    conditions = (obj.get("status") or {}).get("conditions") or []
    if len(conditions) != len(CONDITION_TYPES):
        raise RequeueError(f"{entity} status condition is not yet satisfied")
    for cond in conditions:
        if cond.get("status") != STATUS_TRUE:
            raise RequeueError(f"{entity} status condition {cond.get('type')} is not yet satisfied")


def check_cp_lifecycle(kind: str, remote: dict[str, Any]) -> None:
    """Require a remote parent to be Active.

    Raises:
        ResourceExpiredError: If the remote object is deleted or failed
        RequeueError: If it is still transitioning
    """
    entity = ENTITY_NAMES[kind]
    state = remote.get("lifecycleState")
    if state in (LIFECYCLE_DELETED, LIFECYCLE_FAILED):
        raise ResourceExpiredError(f"{entity} is deleted or failed")
    if state != LIFECYCLE_ACTIVE:
        raise RequeueError(f"{entity} is not active yet")


class Resolver:
    """Looks up referenced objects in the store and in the control plane.

    References are either ``{"ref": {"name", "namespace"}}`` pointing at a
    custom resource or ``{"id": ...}`` naming a control plane object directly.
    Lookups are read-only on both sides.
    """

    def __init__(self, store: ObjectStore, client: ServiceMeshClient) -> None:
        self.store = store
        self.client = client

    @staticmethod
    def resolve_resource_ref(ref: dict[str, Any], meta: dict[str, Any]) -> tuple[str, str]:
        """Return (namespace, name), defaulting the namespace to the referrer's."""
        namespace = ref.get("namespace") or meta.get("namespace")
        return namespace, ref["name"]

    def get_reference(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Read a referenced custom resource.

        Raises:
            NotFoundError: If it does not exist
        """
        try:
            return self.store.get(kind, namespace, name)
        except NotFoundError as e:
            raise NotFoundError(
                f"referenced {ENTITY_NAMES[kind]} object with name: {name} "
                f"and namespace: {namespace} does not exist"
            ) from e

    def get_remote(self, kind: str, resource_id: str) -> dict[str, Any]:
        return self.client.get(kind, resource_id)

    def _resolve_live_reference(self, kind: str, ref: dict[str, Any], meta: dict[str, Any]) -> dict[str, Any]:
        namespace, name = self.resolve_resource_ref(ref, meta)
        obj = self.get_reference(kind, namespace, name)
        if obj["metadata"].get("deletionTimestamp"):
            raise ResourceExpiredError(
                f"referenced {ENTITY_NAMES[kind]} object with name: {name} "
                f"and namespace: {namespace} is marked for deletion"
            )
        check_k8s_conditions(kind, obj)
        return obj

    def _resolve_live_remote(self, kind: str, resource_id: str) -> dict[str, Any]:
        remote = self.get_remote(kind, resource_id)
        check_cp_lifecycle(kind, remote)
        return remote

    def resolve_mesh_id(self, ref_or_id: dict[str, Any], meta: dict[str, Any]) -> str:
        """Resolve a mesh reference to its control plane ID."""
        if ref_or_id.get("id"):
            remote = self._resolve_live_remote(KIND_MESH, ref_or_id["id"])
            return remote["id"]
        mesh = self._resolve_live_reference(KIND_MESH, ref_or_id["ref"], meta)
        return mesh["status"]["meshId"]

    def referenced_mesh_id(self, ref_or_id: dict[str, Any], meta: dict[str, Any]) -> str | None:
        """Mesh ID named by a reference, without requiring the mesh to be Active."""
        if ref_or_id.get("id"):
            return ref_or_id["id"]
        namespace, name = self.resolve_resource_ref(ref_or_id["ref"], meta)
        mesh = self.get_reference(KIND_MESH, namespace, name)
        return (mesh.get("status") or {}).get("meshId")

    def resolve_virtual_service(self, ref_or_id: dict[str, Any], meta: dict[str, Any]) -> ResolvedRef:
        """Resolve a virtual service reference to its ID, name and mesh ID."""
        if ref_or_id.get("id"):
            remote = self._resolve_live_remote(KIND_VIRTUAL_SERVICE, ref_or_id["id"])
            return ResolvedRef(id=remote["id"], name=remote.get("name"), mesh_id=remote.get("meshId"))
        vs = self._resolve_live_reference(KIND_VIRTUAL_SERVICE, ref_or_id["ref"], meta)
        return ResolvedRef(
            id=vs["status"]["virtualServiceId"],
            name=spec_name(vs),
            mesh_id=vs["status"].get("meshId"),
        )

    def resolve_virtual_deployment_id(self, ref_or_id: dict[str, Any], meta: dict[str, Any]) -> str:
        """Resolve a virtual deployment reference to its control plane ID."""
        if ref_or_id.get("id"):
            remote = self._resolve_live_remote(KIND_VIRTUAL_DEPLOYMENT, ref_or_id["id"])
            return remote["id"]
        vd = self._resolve_live_reference(KIND_VIRTUAL_DEPLOYMENT, ref_or_id["ref"], meta)
        return vd["status"]["virtualDeploymentId"]

    def resolve_ingress_gateway(self, ref_or_id: dict[str, Any], meta: dict[str, Any]) -> ResolvedRef:
        """Resolve an ingress gateway reference to its ID, name and mesh ID."""
        if ref_or_id.get("id"):
            remote = self._resolve_live_remote(KIND_INGRESS_GATEWAY, ref_or_id["id"])
            return ResolvedRef(id=remote["id"], name=remote.get("name"), mesh_id=remote.get("meshId"))
        ig = self._resolve_live_reference(KIND_INGRESS_GATEWAY, ref_or_id["ref"], meta)
        return ResolvedRef(
            id=ig["status"]["ingressGatewayId"],
            name=spec_name(ig),
            mesh_id=ig["status"].get("meshId"),
        )

    def list_virtual_services(self, namespace: str) -> list[dict[str, Any]]:
        return self.store.list(KIND_VIRTUAL_SERVICE, namespace)

    def has_virtual_deployment_with_listener(self, virtual_service_id: str | None) -> bool:
        """Check whether any virtual deployment under a virtual service declares listeners."""
        if not virtual_service_id:
            return False
        for vd in self.store.list(KIND_VIRTUAL_DEPLOYMENT):
            status = vd.get("status") or {}
            if status.get("virtualServiceId") == virtual_service_id and (vd.get("spec") or {}).get("listener"):
                return True
        return False
