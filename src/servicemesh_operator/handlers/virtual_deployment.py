"""Handler for VirtualDeployment CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_VIRTUAL_DEPLOYMENT)


@kopf.on.create(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT)
@kopf.on.update(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT)
@kopf.on.resume(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT)
@kopf.timer(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT, interval=resync_interval())
def handle_virtual_deployment(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualDeployment resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT)
def handle_virtual_deployment_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualDeployment resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_VIRTUAL_DEPLOYMENT, id="validate-virtualdeployment")
def validate_virtual_deployment(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny VirtualDeployment writes."""
    _handler.validate(operation, body, old)
