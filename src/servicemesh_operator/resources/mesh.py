"""Mesh handler and admission rules."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import (
    KIND_ACCESS_POLICY,
    KIND_INGRESS_GATEWAY,
    KIND_MESH,
    KIND_VIRTUAL_SERVICE,
)
from ..engine.handler import ResourceDetails
from ..utils.context import ReconcileContext
from ..utils.errors import RequeueError
from . import validations
from .base import ControlPlaneResourceHandler, ServiceMeshValidator, get_spec, get_status, set_if_changed

logger = logging.getLogger(__name__)

# Kinds that block mesh deletion, with the name used in the denial message
MEMBER_KINDS = (
    (KIND_VIRTUAL_SERVICE, "virtualServices"),
    (KIND_ACCESS_POLICY, "accessPolicies"),
    (KIND_INGRESS_GATEWAY, "ingressGateways"),
)


class MeshHandler(ControlPlaneResourceHandler):
    kind = KIND_MESH
    id_field = "meshId"
    name_field = "displayName"

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        mtls = details.remote.get("mtls")
        if mtls is None:
            return False
        return set_if_changed(status, "meshMtls", mtls)

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        fields: dict[str, Any] = {
            "certificateAuthorities": [{"id": ca["id"]} for ca in spec.get("certificateAuthorities") or []],
        }
        if spec.get("mtls") is not None:
            fields["mtls"] = {"minimum": spec["mtls"].get("minimum")}
        return fields

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        mesh_id = get_status(obj).get("meshId")
        if not mesh_id:
            return
        pending = []
        for kind, label in MEMBER_KINDS:
            ctx.check(f"listing {label}")
            if any((member.get("status") or {}).get("meshId") == mesh_id for member in self.list_kind(kind)):
                pending.append(label)
        if pending:
            raise RequeueError(f"mesh has pending subresources to be deleted: {', '.join(pending)}")


class MeshValidator(ServiceMeshValidator):
    kind = KIND_MESH
    name_field = "displayName"

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        spec = get_spec(obj)
        # Only one certificate authority is supported
        if spec.get("certificateAuthorities") != get_spec(old).get("certificateAuthorities"):
            return False, validations.CERTIFICATE_AUTHORITIES_IMMUTABLE

        old_minimum = ((old.get("status") or {}).get("meshMtls") or {}).get("minimum")
        mtls = spec.get("mtls")
        if mtls is not None and mtls.get("minimum") != old_minimum:
            return self.is_mode_valid(obj, old)
        return True, ""

    def is_mode_valid(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        """Require every virtual service in the mesh to meet the new minimum mode."""
        old_status = old.get("status") or {}
        old_minimum = (old_status.get("meshMtls") or {}).get("minimum")
        required = validations.mtls_level(get_spec(obj)["mtls"].get("minimum"))
        try:
            virtual_services = self.resolver.list_virtual_services(obj["metadata"].get("namespace"))
        except Exception:
            logger.exception("Failed to list virtual services")
            return False, "error resolving virtual services for the mesh"

        for vs in virtual_services:
            try:
                mesh_id = self.resolver.referenced_mesh_id(get_spec(vs).get("mesh") or {}, vs["metadata"])
            except Exception:
                logger.exception(f"Failed to resolve mesh of virtual service {vs['metadata']['name']}")
                return False, "error resolving mesh"
            if mesh_id != old_status.get("meshId") or vs["metadata"].get("deletionTimestamp"):
                continue

            vs_status = vs.get("status") or {}
            if vs_status.get("virtualServiceMtls"):
                mode = vs_status["virtualServiceMtls"].get("mode")
            elif get_spec(vs).get("mtls") is not None:
                mode = get_spec(vs)["mtls"].get("mode")
            else:
                mode = old_minimum
            if validations.mtls_level(mode) < required:
                return False, validations.MESH_MTLS_NOT_SATISFIED
        return True, ""
