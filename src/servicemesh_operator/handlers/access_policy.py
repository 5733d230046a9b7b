"""Handler for AccessPolicy CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_ACCESS_POLICY
from ..engine.response import resync_interval
from .base import ServiceMeshHandler

# Global handler instance
_handler = ServiceMeshHandler(KIND_ACCESS_POLICY)


@kopf.on.create(API_GROUP_VERSION, KIND_ACCESS_POLICY)
@kopf.on.update(API_GROUP_VERSION, KIND_ACCESS_POLICY)
@kopf.on.resume(API_GROUP_VERSION, KIND_ACCESS_POLICY)
@kopf.timer(API_GROUP_VERSION, KIND_ACCESS_POLICY, interval=resync_interval())
def handle_access_policy(body: kopf.Body, **kwargs: Any) -> None:
    """Handle AccessPolicy resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_ACCESS_POLICY)
def handle_access_policy_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle AccessPolicy resource deletion."""
    _handler.delete(body)


@kopf.on.validate(API_GROUP_VERSION, KIND_ACCESS_POLICY, id="validate-accesspolicy")
def validate_access_policy(body: kopf.Body, old: kopf.Body | None, operation: str, **kwargs: Any) -> None:
    """Admit or deny AccessPolicy writes."""
    _handler.validate(operation, body, old)
