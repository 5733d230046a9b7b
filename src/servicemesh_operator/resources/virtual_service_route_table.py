"""VirtualServiceRouteTable handler and admission rules."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_VIRTUAL_DEPLOYMENT, KIND_VIRTUAL_SERVICE, KIND_VIRTUAL_SERVICE_ROUTE_TABLE
from ..engine.handler import ResourceDetails
from ..references import ResolvedRef
from ..utils.context import ReconcileContext
from .base import ControlPlaneResourceHandler, get_spec, get_status, set_if_changed
from .routes import RouteTableValidator, convert_route_rule, route_destinations


class VirtualServiceRouteTableHandler(ControlPlaneResourceHandler):
    kind = KIND_VIRTUAL_SERVICE_ROUTE_TABLE
    entity = "virtual service route table"
    id_field = "virtualServiceRouteTableId"

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        meta = obj["metadata"]
        status = get_status(obj)
        if status.get("virtualServiceId"):
            ref = ResolvedRef(id=status["virtualServiceId"], name=status.get("virtualServiceName"))
        else:
            ref = self.resolver.resolve_virtual_service(get_spec(obj).get("virtualService") or {}, meta)

        vd_ids_for_rules = [
            [
                self.resolver.resolve_virtual_deployment_id(destination.get("virtualDeployment") or {}, meta)
                for destination in route_destinations(rule)
            ]
            for rule in get_spec(obj).get("routeRules") or []
        ]
        details.dependencies["virtualService"] = ref
        details.dependencies["virtualDeploymentIdForRules"] = vd_ids_for_rules

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        changed = False
        if not status.get("virtualServiceId"):
            status["virtualServiceId"] = details.remote.get("virtualServiceId")
            status["virtualServiceName"] = details.dependencies["virtualService"].name
            changed = True
        if set_if_changed(
            status, "virtualDeploymentIdForRules", details.dependencies.get("virtualDeploymentIdForRules")
        ):
            changed = True
        return changed

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        ids_for_rules = details.dependencies.get("virtualDeploymentIdForRules") or []
        return {
            "virtualServiceId": details.dependencies["virtualService"].id,
            "priority": spec.get("priority"),
            "routeRules": [
                convert_route_rule(rule, "virtualDeploymentId", ids)
                for rule, ids in zip(spec.get("routeRules") or [], ids_for_rules)
            ],
        }


class VirtualServiceRouteTableValidator(RouteTableValidator):
    kind = KIND_VIRTUAL_SERVICE_ROUTE_TABLE
    entity = "virtual service route table"
    parent_field = "virtualService"
    parent_kind = KIND_VIRTUAL_SERVICE
    destination_field = "virtualDeployment"
    destination_kind = KIND_VIRTUAL_DEPLOYMENT
    check_destination_ports = True
