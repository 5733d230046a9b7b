"""VirtualDeployment handler and admission rules."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_VIRTUAL_DEPLOYMENT, KIND_VIRTUAL_SERVICE, KIND_VIRTUAL_SERVICE_ROUTE_TABLE
from ..engine.handler import ResourceDetails
from ..references import ResolvedRef
from ..utils.context import ReconcileContext
from ..utils.errors import RequeueError
from . import validations
from .base import ControlPlaneResourceHandler, ServiceMeshValidator, access_logging, get_spec, get_status

SERVICE_DISCOVERY_DNS = "DNS"
SERVICE_DISCOVERY_DISABLED = "DISABLED"


def service_discovery(spec: dict[str, Any]) -> dict[str, Any]:
    discovery = spec.get("serviceDiscovery") or {}
    if discovery.get("type") == SERVICE_DISCOVERY_DNS:
        return {"type": SERVICE_DISCOVERY_DNS, "hostname": discovery.get("hostname")}
    return {"type": SERVICE_DISCOVERY_DISABLED}


class VirtualDeploymentHandler(ControlPlaneResourceHandler):
    kind = KIND_VIRTUAL_DEPLOYMENT
    id_field = "virtualDeploymentId"

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        status = get_status(obj)
        if status.get("virtualServiceId"):
            ref = ResolvedRef(
                id=status["virtualServiceId"],
                name=status.get("virtualServiceName"),
                mesh_id=status.get("meshId"),
            )
        else:
            ref = self.resolver.resolve_virtual_service(get_spec(obj).get("virtualService") or {}, obj["metadata"])
        details.dependencies["virtualService"] = ref

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        if status.get("virtualServiceId"):
            return False
        ref = details.dependencies["virtualService"]
        status["virtualServiceId"] = details.remote.get("virtualServiceId")
        status["virtualServiceName"] = ref.name
        status["meshId"] = ref.mesh_id
        return True

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        return {
            "virtualServiceId": details.dependencies["virtualService"].id,
            "serviceDiscovery": service_discovery(spec),
            "listeners": [
                {"protocol": listener.get("protocol"), "port": int(listener["port"])}
                for listener in spec.get("listener") or []
            ],
            "accessLogging": access_logging(spec),
        }

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        vd_id = get_status(obj).get("virtualDeploymentId")
        if not vd_id:
            return
        for vsrt in self.list_kind(KIND_VIRTUAL_SERVICE_ROUTE_TABLE):
            for rule_ids in (vsrt.get("status") or {}).get("virtualDeploymentIdForRules") or []:
                if vd_id in (rule_ids or []):
                    raise RequeueError(
                        "cannot delete virtual deployment when there are "
                        "virtual service route table resources associated"
                    )


class VirtualDeploymentValidator(ServiceMeshValidator):
    kind = KIND_VIRTUAL_DEPLOYMENT
    parent_field = "virtualService"
    parent_kind = KIND_VIRTUAL_SERVICE

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = validations.is_metadata_name_valid(obj["metadata"]["name"])
        if not allowed:
            return False, reason
        if not self.is_hostname_valid(obj):
            return False, validations.HOSTNAME_EMPTY_FOR_DNS
        return self.validate_parent_present(obj)

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_update(obj, old)
        if not allowed:
            return False, reason
        if not self.is_hostname_valid(obj):
            return False, validations.HOSTNAME_EMPTY_FOR_DNS
        return True, ""

    @staticmethod
    def is_hostname_valid(obj: dict[str, Any]) -> bool:
        discovery = get_spec(obj).get("serviceDiscovery") or {}
        return discovery.get("type") != SERVICE_DISCOVERY_DNS or bool(discovery.get("hostname"))
