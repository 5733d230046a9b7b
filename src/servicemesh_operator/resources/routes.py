"""Route rule conversion and admission rules shared by both route table kinds.

A route rule carries exactly one of ``httpRoute``, ``tcpRoute`` or
``tlsPassthroughRoute``; each holds a list of weighted destinations that
point at a virtual deployment (virtual service route tables) or a virtual
service (ingress gateway route tables).
"""

from __future__ import annotations

from typing import Any

from . import validations
from .base import ServiceMeshValidator, get_spec

ROUTE_TYPES = {
    "httpRoute": "HTTP",
    "tcpRoute": "TCP",
    "tlsPassthroughRoute": "TLS_PASSTHROUGH",
}

# Extra fields copied verbatim from each route type
HTTP_ROUTE_FIELDS = ("path", "isGrpc", "pathType", "isHostRewriteEnabled", "isPathRewriteEnabled")


def route_of(rule: dict[str, Any]) -> tuple[str | None, dict[str, Any]]:
    """Return the route type and body of a rule."""
    for field in ROUTE_TYPES:
        if rule.get(field) is not None:
            return field, rule[field]
    return None, {}


def route_destinations(rule: dict[str, Any]) -> list[dict[str, Any]]:
    return route_of(rule)[1].get("destinations") or []


def convert_port(port: Any) -> int | None:
    return None if port is None else int(port)


def convert_route_rule(
    rule: dict[str, Any],
    target_field: str,
    target_ids: list[str],
) -> dict[str, Any]:
    """Convert a route rule, replacing each destination reference with its ID.

    Args:
        rule: Route rule from the spec
        target_field: Control plane field naming the destination (e.g. "virtualDeploymentId")
        target_ids: Resolved destination IDs, in destination order
    """
    field, route = route_of(rule)
    if field is None:
        raise ValueError(f"missing route in route rule {rule}")
    converted: dict[str, Any] = {
        "type": ROUTE_TYPES[field],
        "destinations": [
            {target_field: target_id, "weight": destination.get("weight"), "port": convert_port(destination.get("port"))}
            for destination, target_id in zip(route.get("destinations") or [], target_ids)
        ],
    }
    if field == "httpRoute":
        for name in HTTP_ROUTE_FIELDS:
            if route.get(name) is not None:
                converted[name] = route[name]
    host = route.get("ingressGatewayHost")
    if host is not None:
        converted["ingressGatewayHost"] = {"name": host.get("name"), "port": convert_port(host.get("port"))}
    return converted


def validate_route_rule(rule: dict[str, Any]) -> tuple[bool, str]:
    count = validations.count_set(rule, *ROUTE_TYPES)
    if count == 0:
        return False, validations.ROUTE_RULE_EMPTY
    if count > 1:
        return False, validations.ROUTE_RULE_NOT_UNIQUE
    return True, ""


def validate_destination_ports(rule: dict[str, Any]) -> tuple[bool, str]:
    """Destinations without a port count as port 0."""
    ports = {convert_port(destination.get("port")) or 0 for destination in route_destinations(rule)}
    if len(ports) > 1:
        return False, "route rule destinations cannot have different ports"
    return True, ""


class RouteTableValidator(ServiceMeshValidator):
    """Admission rules for route tables.

    Attributes:
        destination_field: Destination field holding the reference
        destination_kind: Kind the destination reference points at
        check_destination_ports: Require all destinations of a rule to share a port
    """

    destination_field: str = ""
    destination_kind: str = ""
    check_destination_ports: bool = False

    def resolve_ref(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().resolve_ref(obj)
        if not allowed:
            return False, reason
        return self.validate_destination_refs(obj)

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = validations.is_metadata_name_valid(obj["metadata"]["name"])
        if not allowed:
            return False, reason
        allowed, reason = self.validate_route_rules(obj)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_parent_present(obj)
        if not allowed:
            return False, reason
        return self.validate_destinations_present(obj)

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_update(obj, old)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_route_rules(obj)
        if not allowed:
            return False, reason
        allowed, reason = self.validate_destination_refs(obj)
        if not allowed:
            return False, reason
        return self.validate_destinations_present(obj)

    def validate_route_rules(self, obj: dict[str, Any]) -> tuple[bool, str]:
        for rule in get_spec(obj).get("routeRules") or []:
            allowed, reason = validate_route_rule(rule)
            if allowed and self.check_destination_ports:
                allowed, reason = validate_destination_ports(rule)
            if not allowed:
                return False, reason
        return True, ""

    def validate_destination_refs(self, obj: dict[str, Any]) -> tuple[bool, str]:
        for rule in get_spec(obj).get("routeRules") or []:
            for destination in route_destinations(rule):
                allowed, reason = validations.validate_ref(self.destination_field, destination.get(self.destination_field))
                if not allowed:
                    return False, reason
        return True, ""

    def validate_destinations_present(self, obj: dict[str, Any]) -> tuple[bool, str]:
        for rule in get_spec(obj).get("routeRules") or []:
            for destination in route_destinations(rule):
                target = destination.get(self.destination_field) or {}
                if target.get("id") or target.get("ref") is None:
                    continue
                allowed, reason = validations.is_present(
                    self.resolver, self.destination_kind, self.destination_field, target["ref"], obj["metadata"]
                )
                if not allowed:
                    return False, reason
        return True, ""
