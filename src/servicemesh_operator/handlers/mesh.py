"""Handler for Mesh CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_MESH
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_MESH)


@kopf.on.create(API_GROUP_VERSION, KIND_MESH)
@kopf.on.update(API_GROUP_VERSION, KIND_MESH)
@kopf.on.resume(API_GROUP_VERSION, KIND_MESH)
@kopf.timer(API_GROUP_VERSION, KIND_MESH, interval=resync_interval())
def handle_mesh(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Mesh resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_MESH)
def handle_mesh_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Mesh resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_MESH, id="validate-mesh")
def validate_mesh(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny Mesh writes."""
    _handler.validate(operation, body, old)
