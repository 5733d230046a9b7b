"""Handler for VirtualService CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_VIRTUAL_SERVICE
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_VIRTUAL_SERVICE)


@kopf.on.create(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE)
@kopf.on.update(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE)
@kopf.on.resume(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE)
@kopf.timer(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE, interval=resync_interval())
def handle_virtual_service(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualService resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE)
def handle_virtual_service_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualService resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_VIRTUAL_SERVICE, id="validate-virtualservice")
def validate_virtual_service(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny VirtualService writes."""
    _handler.validate(operation, body, old)
