"""AccessPolicy handler and admission rules."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_ACCESS_POLICY, KIND_MESH, KIND_VIRTUAL_SERVICE
from ..engine.handler import ResourceDetails
from ..utils.context import ReconcileContext
from . import validations
from .base import ControlPlaneResourceHandler, ServiceMeshValidator, get_spec, get_status, set_if_changed

SOURCE = "source"
DESTINATION = "destination"

TARGET_FIELDS = ("externalService", "allVirtualServices", "virtualService", "ingressGateway")
EXTERNAL_SERVICE_PROTOCOLS = {
    "httpExternalService": "HTTP",
    "httpsExternalService": "HTTPS",
    "tcpExternalService": "TCP",
}


def convert_target(target: dict[str, Any], ref_id: str | None) -> dict[str, Any]:
    """Convert a traffic target into its control plane form."""
    if target.get("allVirtualServices") is not None:
        return {"type": "ALL"}
    if target.get("virtualService") is not None:
        return {"type": "VIRTUAL_SERVICE", "virtualServiceId": ref_id}
    if target.get("ingressGateway") is not None:
        return {"type": "INGRESS_GATEWAY", "ingressGatewayId": ref_id}
    if target.get("externalService") is not None:
        return convert_external_service(target["externalService"])
    raise ValueError("unknown access policy target")


def convert_external_service(service: dict[str, Any]) -> dict[str, Any]:
    for field, protocol in EXTERNAL_SERVICE_PROTOCOLS.items():
        config = service.get(field)
        if config is None:
            continue
        converted: dict[str, Any] = {"type": "EXTERNAL_SERVICE", "protocol": protocol}
        if protocol == "TCP":
            converted["ipAddresses"] = config.get("ipAddresses")
        else:
            converted["hostnames"] = config.get("hostnames")
        if config.get("ports") is not None:
            converted["ports"] = [int(port) for port in config["ports"]]
        return converted
    raise ValueError(f"invalid external service target {service}")


class AccessPolicyHandler(ControlPlaneResourceHandler):
    kind = KIND_ACCESS_POLICY
    entity = "access policy"
    id_field = "accessPolicyId"
    stop_on_terminal_state = True

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        meta = obj["metadata"]
        mesh_id = get_status(obj).get("meshId")
        if not mesh_id:
            mesh_id = self.resolver.resolve_mesh_id(get_spec(obj).get("mesh") or {}, meta)

        ref_ids_for_rules = []
        for rule in get_spec(obj).get("rules") or []:
            source = rule.get(SOURCE) or {}
            destination = rule.get(DESTINATION) or {}
            ref_ids: dict[str, str] = {}
            if source.get("virtualService") is not None:
                ref_ids[SOURCE] = self.resolver.resolve_virtual_service(source["virtualService"], meta).id
            elif source.get("ingressGateway") is not None:
                ref_ids[SOURCE] = self.resolver.resolve_ingress_gateway(source["ingressGateway"], meta).id
            if destination.get("virtualService") is not None:
                ref_ids[DESTINATION] = self.resolver.resolve_virtual_service(destination["virtualService"], meta).id
            ref_ids_for_rules.append(ref_ids)

        details.dependencies["meshId"] = mesh_id
        details.dependencies["refIdForRules"] = ref_ids_for_rules

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        changed = False
        if not status.get("meshId"):
            status["meshId"] = details.remote.get("meshId")
            changed = True
        if set_if_changed(status, "refIdForRules", details.dependencies.get("refIdForRules")):
            changed = True
        return changed

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        rules = get_spec(obj).get("rules")
        fields: dict[str, Any] = {"meshId": details.dependencies.get("meshId")}
        if rules is not None:
            ref_ids_for_rules = details.dependencies.get("refIdForRules") or []
            fields["rules"] = [
                {
                    "action": rule.get("action"),
                    "source": convert_target(rule.get(SOURCE) or {}, ref_ids.get(SOURCE)),
                    "destination": convert_target(rule.get(DESTINATION) or {}, ref_ids.get(DESTINATION)),
                }
                for rule, ref_ids in zip(rules, ref_ids_for_rules)
            ]
        return fields


def validate_one_of_target(target: dict[str, Any]) -> str:
    count = validations.count_set(target, *TARGET_FIELDS)
    if count == 0:
        return "access policy target cannot be empty"
    if count > 1:
        return "access policy target cannot contain more than one type"
    return ""


def validate_source_target(source: dict[str, Any]) -> str:
    reason = validate_one_of_target(source)
    if reason:
        return reason
    if source.get("externalService") is not None:
        return (
            "invalid source access policy target. "
            "source should be one of: allVirtualServices; virtualService; ingressGateway"
        )
    return ""


def validate_destination_target(destination: dict[str, Any]) -> str:
    reason = validate_one_of_target(destination)
    if reason:
        return reason
    if destination.get("ingressGateway") is not None:
        return (
            "invalid destination access policy target. "
            "destination should be one of: allVirtualServices; virtualService; externalService"
        )
    if destination.get("externalService") is not None:
        count = validations.count_set(destination["externalService"], *EXTERNAL_SERVICE_PROTOCOLS)
        if count == 0:
            return "missing external service target"
        if count > 1:
            return "cannot specify more than one external service type"
    return ""


class AccessPolicyValidator(ServiceMeshValidator):
    kind = KIND_ACCESS_POLICY
    entity = "access policy"
    parent_field = "mesh"
    parent_kind = KIND_MESH

    def resolve_ref(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().resolve_ref(obj)
        if not allowed:
            return False, reason
        return self.validate_target_refs(obj)

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = validations.is_metadata_name_valid(obj["metadata"]["name"])
        if not allowed:
            return False, reason
        allowed, reason = self.validate_targets(obj)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_parent_present(obj)
        if not allowed:
            return False, reason
        return self.validate_virtual_services_present(obj)

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_update(obj, old)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_targets(obj)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_target_refs(obj)
        if not allowed:
            return False, reason
        return self.validate_virtual_services_present(obj)

    @staticmethod
    def validate_targets(obj: dict[str, Any]) -> tuple[bool, str]:
        for rule in get_spec(obj).get("rules") or []:
            reason = validate_source_target(rule.get(SOURCE) or {})
            if not reason:
                reason = validate_destination_target(rule.get(DESTINATION) or {})
            if reason:
                return False, reason
        return True, ""

    @staticmethod
    def validate_target_refs(obj: dict[str, Any]) -> tuple[bool, str]:
        """Require every virtual service and ingress gateway target to name one of ref or id."""
        for rule in get_spec(obj).get("rules") or []:
            source = rule.get(SOURCE) or {}
            destination = rule.get(DESTINATION) or {}
            if source.get("virtualService") is not None:
                allowed, reason = validations.validate_ref("virtualService", source["virtualService"])
            elif source.get("ingressGateway") is not None:
                allowed, reason = validations.validate_ref("ingressGateway", source["ingressGateway"])
            else:
                allowed, reason = True, ""
            if not allowed:
                return False, reason
            if destination.get("virtualService") is not None:
                allowed, reason = validations.validate_ref("virtualService", destination["virtualService"])
                if not allowed:
                    return False, reason
        return True, ""

    def validate_virtual_services_present(self, obj: dict[str, Any]) -> tuple[bool, str]:
        for rule in get_spec(obj).get("rules") or []:
            for side in (SOURCE, DESTINATION):
                target = (rule.get(side) or {}).get("virtualService")
                if target is None or target.get("id") or target.get("ref") is None:
                    continue
                allowed, reason = validations.is_present(
                    self.resolver, KIND_VIRTUAL_SERVICE, "virtualService", target["ref"], obj["metadata"]
                )
                if not allowed:
                    return False, reason
        return True, ""
