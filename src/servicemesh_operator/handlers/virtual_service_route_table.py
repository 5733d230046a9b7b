"""Handler for VirtualServiceRouteTable CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_VIRTUAL_SERVICE_ROUTE_TABLE)


@kopf.on.create(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE)
@kopf.on.update(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE)
@kopf.on.resume(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE)
@kopf.timer(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE, interval=resync_interval())
def handle_virtual_service_route_table(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualServiceRouteTable resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE)
def handle_virtual_service_route_table_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualServiceRouteTable resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE_ROUTE_TABLE, id="validate-virtualserviceroutetable")
def validate_virtual_service_route_table(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny VirtualServiceRouteTable writes."""
    _handler.validate(operation, body, old)
