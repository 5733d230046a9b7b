"""Handler for IngressGateway CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_INGRESS_GATEWAY
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_INGRESS_GATEWAY)


@kopf.on.create(API_GROUP_VERSION, KIND_INGRESS_GATEWAY)
@kopf.on.update(API_GROUP_VERSION, KIND_INGRESS_GATEWAY)
@kopf.on.resume(API_GROUP_VERSION, KIND_INGRESS_GATEWAY)
@kopf.timer(API_GROUP_VERSION, KIND_INGRESS_GATEWAY, interval=resync_interval())
def handle_ingress_gateway(body: kopf.Body, **kwargs: Any) -> None:
    """Handle IngressGateway resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_INGRESS_GATEWAY)
def handle_ingress_gateway_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle IngressGateway resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_INGRESS_GATEWAY, id="validate-ingressgateway")
def validate_ingress_gateway(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny IngressGateway writes."""
    _handler.validate(operation, body, old)
