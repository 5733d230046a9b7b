"""VirtualService handler and admission rules."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import (
    KIND_ACCESS_POLICY,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE,
    KIND_MESH,
    KIND_VIRTUAL_DEPLOYMENT,
    KIND_VIRTUAL_SERVICE,
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE,
)
from ..engine.handler import ResourceDetails
from ..utils.context import ReconcileContext
from ..utils.errors import RequeueError
from . import validations
from .base import ControlPlaneResourceHandler, ServiceMeshValidator, get_spec, get_status, set_if_changed

logger = logging.getLogger(__name__)


def _dependant_error(resource: str) -> RequeueError:
    return RequeueError(f"cannot delete virtual service when there are {resource} resources associated")


class VirtualServiceHandler(ControlPlaneResourceHandler):
    kind = KIND_VIRTUAL_SERVICE
    id_field = "virtualServiceId"

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        mesh_id = get_status(obj).get("meshId")
        if not mesh_id:
            mesh_id = self.resolver.resolve_mesh_id(get_spec(obj).get("mesh") or {}, obj["metadata"])
        details.dependencies["meshId"] = mesh_id

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        remote = details.remote
        changed = False
        if not status.get("meshId"):
            status["meshId"] = remote.get("meshId")
            changed = True
        if remote.get("mtls") is not None and set_if_changed(status, "virtualServiceMtls", remote["mtls"]):
            changed = True
        return changed

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        fields: dict[str, Any] = {
            "meshId": details.dependencies.get("meshId"),
            "hosts": spec.get("hosts"),
        }
        if spec.get("defaultRoutingPolicy") is not None:
            fields["defaultRoutingPolicy"] = {"type": spec["defaultRoutingPolicy"].get("type")}
        if spec.get("mtls") is not None:
            fields["mtls"] = {"mode": spec["mtls"].get("mode")}
        return fields

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        status = get_status(obj)
        vs_id = status.get("virtualServiceId")
        if not vs_id:
            return

        for vsrt in self.list_kind(KIND_VIRTUAL_SERVICE_ROUTE_TABLE):
            if (vsrt.get("status") or {}).get("virtualServiceId") == vs_id:
                raise _dependant_error("virtual service route table")

        for igrt in self.list_kind(KIND_INGRESS_GATEWAY_ROUTE_TABLE):
            for rule_ids in (igrt.get("status") or {}).get("virtualServiceIdForRules") or []:
                if vs_id in (rule_ids or []):
                    raise _dependant_error("ingress gateway route table")

        for ap in self.list_kind(KIND_ACCESS_POLICY):
            ap_status = ap.get("status") or {}
            if ap_status.get("meshId") != status.get("meshId"):
                continue
            for ref_ids in ap_status.get("refIdForRules") or []:
                if vs_id in (ref_ids.get("source"), ref_ids.get("destination")):
                    raise _dependant_error("access policy")

        for vd in self.list_kind(KIND_VIRTUAL_DEPLOYMENT):
            if (vd.get("status") or {}).get("virtualServiceId") == vs_id:
                raise _dependant_error("virtual deployment")


class VirtualServiceValidator(ServiceMeshValidator):
    kind = KIND_VIRTUAL_SERVICE
    parent_field = "mesh"
    parent_kind = KIND_MESH

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_create(obj)
        if not allowed:
            return False, reason
        if get_spec(obj).get("mtls") is not None:
            return self.is_mode_valid(obj)
        return True, ""

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_update(obj, old)
        if not allowed:
            return False, reason

        spec, old_spec = get_spec(obj), get_spec(old)
        old_status = old.get("status") or {}
        old_mode = (old_status.get("virtualServiceMtls") or {}).get("mode")
        if spec.get("mtls") is not None and spec["mtls"].get("mode") != old_mode:
            allowed, reason = self.is_mode_valid(obj)
            if not allowed:
                return False, reason

        # Listeners on virtual deployments need hosts on their virtual service
        if old_spec.get("hosts") and not spec.get("hosts"):
            if self.has_virtual_deployment_with_listener(old_status.get("virtualServiceId")):
                return False, validations.VIRTUAL_SERVICE_HOSTS_REQUIRED
        return True, ""

    def has_virtual_deployment_with_listener(self, virtual_service_id: str | None) -> bool:
        try:
            return self.resolver.has_virtual_deployment_with_listener(virtual_service_id)
        except Exception:
            logger.exception("Failed to resolve the virtual deployments under virtual service")
            return False

    def is_mode_valid(self, obj: dict[str, Any]) -> tuple[bool, str]:
        """Require the virtual service mode to meet its mesh's minimum."""
        mesh_mode, reason = self.get_mesh_mode(obj)
        if mesh_mode is None:
            return False, reason
        if validations.mtls_level(get_spec(obj)["mtls"].get("mode")) < validations.mtls_level(mesh_mode):
            return False, validations.VIRTUAL_SERVICE_MTLS_NOT_SATISFIED
        return True, ""

    def get_mesh_mode(self, obj: dict[str, Any]) -> tuple[str | None, str]:
        mesh_ref = get_spec(obj).get("mesh") or {}
        if mesh_ref.get("id"):
            try:
                remote = self.resolver.get_remote(KIND_MESH, mesh_ref["id"])
            except Exception:
                logger.exception(f"Failed to read mesh {mesh_ref['id']}")
                return None, validations.MESH_ID_NOT_FOUND
            return (remote.get("mtls") or {}).get("minimum") or "STRICT", ""

        namespace, name = self.resolver.resolve_resource_ref(mesh_ref["ref"], obj["metadata"])
        try:
            mesh = self.resolver.get_reference(KIND_MESH, namespace, name)
        except Exception:
            # A missing mesh is reported by the reconciler, not at admission
            return "DISABLED", ""
        mesh_mtls = (mesh.get("status") or {}).get("meshMtls")
        if mesh_mtls:
            return mesh_mtls.get("minimum") or "STRICT", ""
        if get_spec(mesh).get("mtls") is not None:
            return get_spec(mesh)["mtls"].get("minimum") or "STRICT", ""
        return "STRICT", ""
