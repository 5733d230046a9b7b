"""IngressGatewayRouteTable handler and admission rules."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_INGRESS_GATEWAY, KIND_INGRESS_GATEWAY_ROUTE_TABLE, KIND_VIRTUAL_SERVICE
from ..engine.handler import ResourceDetails
from ..references import ResolvedRef
from ..utils.context import ReconcileContext
from .base import ControlPlaneResourceHandler, get_spec, get_status, set_if_changed
from .routes import RouteTableValidator, convert_route_rule, route_destinations


class IngressGatewayRouteTableHandler(ControlPlaneResourceHandler):
    kind = KIND_INGRESS_GATEWAY_ROUTE_TABLE
    entity = "ingress gateway route table"
    id_field = "ingressGatewayRouteTableId"

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        meta = obj["metadata"]
        status = get_status(obj)
        if status.get("ingressGatewayId"):
            ref = ResolvedRef(id=status["ingressGatewayId"], name=status.get("ingressGatewayName"))
        else:
            ref = self.resolver.resolve_ingress_gateway(get_spec(obj).get("ingressGateway") or {}, meta)

        vs_ids_for_rules = [
            [
                self.resolver.resolve_virtual_service(destination.get("virtualService") or {}, meta).id
                for destination in route_destinations(rule)
            ]
            for rule in get_spec(obj).get("routeRules") or []
        ]
        details.dependencies["ingressGateway"] = ref
        details.dependencies["virtualServiceIdForRules"] = vs_ids_for_rules

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        changed = False
        remote_gateway_id = details.remote.get("ingressGatewayId")
        if status.get("ingressGatewayId") != remote_gateway_id:
            status["ingressGatewayId"] = remote_gateway_id
            status["ingressGatewayName"] = details.dependencies["ingressGateway"].name
            changed = True
        if set_if_changed(status, "virtualServiceIdForRules", details.dependencies.get("virtualServiceIdForRules")):
            changed = True
        return changed

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        ids_for_rules = details.dependencies.get("virtualServiceIdForRules") or []
        return {
            "ingressGatewayId": details.dependencies["ingressGateway"].id,
            "priority": spec.get("priority"),
            "routeRules": [
                convert_route_rule(rule, "virtualServiceId", ids)
                for rule, ids in zip(spec.get("routeRules") or [], ids_for_rules)
            ],
        }


class IngressGatewayRouteTableValidator(RouteTableValidator):
    kind = KIND_INGRESS_GATEWAY_ROUTE_TABLE
    entity = "ingress gateway route table"
    parent_field = "ingressGateway"
    parent_kind = KIND_INGRESS_GATEWAY
    destination_field = "virtualService"
    destination_kind = KIND_VIRTUAL_SERVICE
