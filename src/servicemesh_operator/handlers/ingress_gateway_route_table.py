"""Handler for IngressGatewayRouteTable CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_INGRESS_GATEWAY_ROUTE_TABLE)


@kopf.on.create(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE)
@kopf.on.update(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE)
@kopf.on.resume(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE)
@kopf.timer(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE, interval=resync_interval())
def handle_ingress_gateway_route_table(body: kopf.Body, **kwargs: Any) -> None:
    """Handle IngressGatewayRouteTable resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE)
def handle_ingress_gateway_route_table_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle IngressGatewayRouteTable resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_INGRESS_GATEWAY_ROUTE_TABLE, id="validate-ingressgatewayroutetable")
def validate_ingress_gateway_route_table(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny IngressGatewayRouteTable writes."""
    _handler.validate(operation, body, old)
