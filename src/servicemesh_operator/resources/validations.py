"""Admission rules and denial reasons shared by the per-kind validators."""

from __future__ import annotations

from typing import Any

from ..constants import METADATA_NAME_MAX_LENGTH, MTLS_LEVELS
from ..references import Resolver
from ..utils.errors import NotFoundError

CERTIFICATE_AUTHORITIES_IMMUTABLE = "spec.certificateAuthorities is immutable"
NAME_IMMUTABLE = "spec.name is immutable"
METADATA_NAME_LENGTH_EXCEEDED = f"metadata.name length should not exceed {METADATA_NAME_MAX_LENGTH} characters"
ROUTE_RULE_EMPTY = "spec.routeRule cannot be empty, should contain one of httpRoute,tcpRoute or tlsPassthroughRoute"
ROUTE_RULE_NOT_UNIQUE = "spec.routeRule cannot contain more than one type"
HOSTNAME_EMPTY_FOR_DNS = "hostname cannot be empty when service discovery type is DNS"
VIRTUAL_SERVICE_MTLS_NOT_SATISFIED = "virtualservice mtls mode does not meet the minimum level set on parent mesh"
MESH_MTLS_NOT_SATISFIED = "mtls mode of dependent virtual services does not meet the minimum level being set on mesh"
VIRTUAL_SERVICE_HOSTS_REQUIRED = "spec.hosts cannot be cleared while virtual deployments with listeners exist"
MESH_ID_NOT_FOUND = "spec.mesh.id does not exist in the control plane"


def reference_immutable(field: str) -> str:
    return f"spec.{field} is immutable"


def reference_empty(field: str) -> str:
    return f"spec.{field} cannot be empty, should contain one of ref or id"


def reference_not_unique(field: str) -> str:
    return f"spec.{field} cannot contain both ref and id"


def reference_deleting(field: str) -> str:
    return f"spec.{field} is being deleted"


def reference_not_found(field: str) -> str:
    return f"spec.{field} has been deleted or does not exist"


def validate_ref(field: str, ref_or_id: dict[str, Any] | None) -> tuple[bool, str]:
    """Require exactly one of ``ref`` or ``id`` on a reference field."""
    ref_or_id = ref_or_id or {}
    has_ref = ref_or_id.get("ref") is not None
    has_id = bool(ref_or_id.get("id"))
    if has_ref and has_id:
        return False, reference_not_unique(field)
    if not has_ref and not has_id:
        return False, reference_empty(field)
    return True, ""


def is_present(
    resolver: Resolver,
    kind: str,
    field: str,
    ref: dict[str, Any],
    meta: dict[str, Any],
) -> tuple[bool, str]:
    """Check that a referenced custom resource exists and is not being deleted."""
    namespace, name = resolver.resolve_resource_ref(ref, meta)
    try:
        referred = resolver.get_reference(kind, namespace, name)
    except NotFoundError:
        return False, reference_not_found(field)
    if referred["metadata"].get("deletionTimestamp"):
        return False, reference_deleting(field)
    return True, ""


def is_spec_name_changed(name: str | None, old_name: str | None) -> bool:
    return name != old_name


def is_metadata_name_valid(name: str) -> tuple[bool, str]:
    if len(name) <= METADATA_NAME_MAX_LENGTH:
        return True, ""
    return False, METADATA_NAME_LENGTH_EXCEEDED


def mtls_level(mode: str | None) -> int:
    return MTLS_LEVELS.get(mode or "", 0)


def count_set(obj: dict[str, Any] | None, *fields: str) -> int:
    """Number of the given one-of fields that are set on ``obj``."""
    obj = obj or {}
    return sum(1 for field in fields if obj.get(field) is not None)
