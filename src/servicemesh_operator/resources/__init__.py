"""Per-kind handlers and validators, keyed by resource kind."""

from __future__ import annotations

from ..constants import (
    KIND_ACCESS_POLICY,
    KIND_INGRESS_GATEWAY,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE,
    KIND_MESH,
    KIND_VIRTUAL_DEPLOYMENT,
    KIND_VIRTUAL_SERVICE,
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE,
)
from .access_policy import AccessPolicyHandler, AccessPolicyValidator
from .base import ControlPlaneResourceHandler, ServiceMeshValidator
from .ingress_gateway import IngressGatewayHandler, IngressGatewayValidator
from .ingress_gateway_route_table import IngressGatewayRouteTableHandler, IngressGatewayRouteTableValidator
from .mesh import MeshHandler, MeshValidator
from .virtual_deployment import VirtualDeploymentHandler, VirtualDeploymentValidator
from .virtual_service import VirtualServiceHandler, VirtualServiceValidator
from .virtual_service_route_table import VirtualServiceRouteTableHandler, VirtualServiceRouteTableValidator

HANDLERS: dict[str, type[ControlPlaneResourceHandler]] = {
    KIND_MESH: MeshHandler,
    KIND_VIRTUAL_SERVICE: VirtualServiceHandler,
    KIND_VIRTUAL_DEPLOYMENT: VirtualDeploymentHandler,
    KIND_ACCESS_POLICY: AccessPolicyHandler,
    KIND_INGRESS_GATEWAY: IngressGatewayHandler,
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE: VirtualServiceRouteTableHandler,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE: IngressGatewayRouteTableHandler,
}

VALIDATORS: dict[str, type[ServiceMeshValidator]] = {
    KIND_MESH: MeshValidator,
    KIND_VIRTUAL_SERVICE: VirtualServiceValidator,
    KIND_VIRTUAL_DEPLOYMENT: VirtualDeploymentValidator,
    KIND_ACCESS_POLICY: AccessPolicyValidator,
    KIND_INGRESS_GATEWAY: IngressGatewayValidator,
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE: VirtualServiceRouteTableValidator,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE: IngressGatewayRouteTableValidator,
}

__all__ = [
    "HANDLERS",
    "VALIDATORS",
    "ControlPlaneResourceHandler",
    "ServiceMeshValidator",
]
