"""IngressGateway handler and admission rules."""

from __future__ import annotations

from typing import Any

from ..constants import (
    KIND_ACCESS_POLICY,
    KIND_INGRESS_GATEWAY,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE,
    KIND_MESH,
)
from ..engine.handler import ResourceDetails
from ..utils.context import ReconcileContext
from ..utils.errors import RequeueError
from . import validations
from .base import (
    ControlPlaneResourceHandler,
    ServiceMeshValidator,
    access_logging,
    get_spec,
    get_status,
    set_if_changed,
)

MIN_LISTENER_PORT = 1024
HOSTNAME_REQUIRED_PROTOCOLS = ("HTTP", "TLS_PASSTHROUGH")


def convert_certificate(certificate: dict[str, Any] | None) -> dict[str, Any] | None:
    if certificate is None:
        return None
    if certificate.get("ociTlsCertificate") is not None:
        return {"type": "OCI_CERTIFICATES", "certificateId": certificate["ociTlsCertificate"].get("certificateId")}
    if certificate.get("kubeSecretTlsCertificate") is not None:
        return {"type": "LOCAL_FILE", "secretName": certificate["kubeSecretTlsCertificate"].get("secretName")}
    return None


def convert_ca_bundle(bundle: dict[str, Any] | None) -> dict[str, Any] | None:
    if bundle is None:
        return None
    if bundle.get("ociCaBundle") is not None:
        return {"type": "OCI_CERTIFICATES", "caBundleId": bundle["ociCaBundle"].get("caBundleId")}
    if bundle.get("kubeSecretCaBundle") is not None:
        return {"type": "LOCAL_FILE", "secretName": bundle["kubeSecretCaBundle"].get("secretName")}
    return None


def convert_tls(tls: dict[str, Any] | None) -> dict[str, Any] | None:
    if tls is None:
        return None
    converted: dict[str, Any] = {
        "mode": tls.get("mode"),
        "serverCertificate": convert_certificate(tls.get("serverCertificate")),
    }
    client_validation = tls.get("clientValidation")
    if client_validation is not None:
        converted["clientValidation"] = {
            "trustedCaBundle": convert_ca_bundle(client_validation.get("trustedCaBundle")),
            "subjectAlternateNames": client_validation.get("subjectAlternateNames"),
        }
    return converted


def convert_hosts(hosts: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [
        {
            "name": host.get("name"),
            "hostnames": host.get("hostnames"),
            "listeners": [
                {
                    "protocol": listener.get("protocol"),
                    "port": int(listener["port"]),
                    "tls": convert_tls(listener.get("tls")),
                }
                for listener in host.get("listeners") or []
            ],
        }
        for host in hosts or []
    ]


class IngressGatewayHandler(ControlPlaneResourceHandler):
    kind = KIND_INGRESS_GATEWAY
    id_field = "ingressGatewayId"
    stop_on_terminal_state = True

    def resolve_dependencies(self, ctx: ReconcileContext, obj: dict[str, Any], details: ResourceDetails) -> None:
        mesh_id = get_status(obj).get("meshId")
        if not mesh_id:
            mesh_id = self.resolver.resolve_mesh_id(get_spec(obj).get("mesh") or {}, obj["metadata"])
        details.dependencies["meshId"] = mesh_id

    def update_status_fields(self, status: dict[str, Any], details: ResourceDetails) -> bool:
        remote = details.remote
        changed = False
        if not status.get("meshId"):
            status["meshId"] = remote.get("meshId")
            changed = True
        if remote.get("mtls") is not None and set_if_changed(status, "ingressGatewayMtls", remote["mtls"]):
            changed = True
        return changed

    def payload_fields(self, obj: dict[str, Any], details: ResourceDetails) -> dict[str, Any]:
        spec = get_spec(obj)
        return {
            "meshId": details.dependencies.get("meshId"),
            "hosts": convert_hosts(spec.get("hosts")),
            "accessLogging": access_logging(spec),
        }

    def finalize(self, ctx: ReconcileContext, obj: dict[str, Any]) -> None:
        ig_id = get_status(obj).get("ingressGatewayId")
        if not ig_id:
            return
        for igrt in self.list_kind(KIND_INGRESS_GATEWAY_ROUTE_TABLE):
            if (igrt.get("status") or {}).get("ingressGatewayId") == ig_id:
                raise RequeueError(
                    "cannot delete ingress gateway when there are "
                    "ingress gateway route table resources associated"
                )
        for ap in self.list_kind(KIND_ACCESS_POLICY):
            for ref_ids in (ap.get("status") or {}).get("refIdForRules") or []:
                if ref_ids.get("source") == ig_id:
                    raise RequeueError(
                        "cannot delete ingress gateway when there are access policy resources associated"
                    )


def validate_server_certificate(certificate: dict[str, Any] | None) -> tuple[bool, str]:
    if certificate is None:
        return False, "server certificate is missing"
    count = validations.count_set(certificate, "ociTlsCertificate", "kubeSecretTlsCertificate")
    if count == 0:
        return False, "missing certificate info"
    if count > 1:
        return False, "cannot specify more than 1 certificate source"
    return True, ""


def validate_trusted_ca_bundle(client_validation: dict[str, Any] | None) -> tuple[bool, str]:
    if client_validation is None:
        return False, "client validation config is missing"
    bundle = client_validation.get("trustedCaBundle")
    if bundle is None:
        return False, "trusted ca bundle is missing"
    count = validations.count_set(bundle, "ociCaBundle", "kubeSecretCaBundle")
    if count == 0:
        return False, "missing caBundle info"
    if count > 1:
        return False, "cannot specify more than 1 caBundle source"
    return True, ""


def validate_tls(tls: dict[str, Any] | None) -> tuple[bool, str]:
    if tls is None:
        return True, ""
    mode = tls.get("mode")
    if mode in ("TLS", "PERMISSIVE"):
        return validate_server_certificate(tls.get("serverCertificate"))
    if mode == "MUTUAL_TLS":
        allowed, reason = validate_server_certificate(tls.get("serverCertificate"))
        if not allowed:
            return False, reason
        return validate_trusted_ca_bundle(tls.get("clientValidation"))
    return True, ""


def validate_hosts(hosts: list[dict[str, Any]] | None) -> tuple[bool, str]:
    for host in hosts or []:
        for listener in host.get("listeners") or []:
            if listener.get("protocol") in HOSTNAME_REQUIRED_PROTOCOLS and not host.get("hostnames"):
                return False, "hostnames is mandatory for a host with HTTP or TLS_PASSTHROUGH listener"
            if int(listener.get("port") or 0) < MIN_LISTENER_PORT:
                return False, "listener port must be greater than or equal to 1024"
            allowed, reason = validate_tls(listener.get("tls"))
            if not allowed:
                return False, reason
    return True, ""


class IngressGatewayValidator(ServiceMeshValidator):
    kind = KIND_INGRESS_GATEWAY
    parent_field = "mesh"
    parent_kind = KIND_MESH

    def validate_on_create(self, obj: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_create(obj)
        if not allowed:
            return False, reason
        return validate_hosts(get_spec(obj).get("hosts"))

    def validate_on_update(self, obj: dict[str, Any], old: dict[str, Any]) -> tuple[bool, str]:
        allowed, reason = super().validate_on_update(obj, old)
        if not allowed:
            return False, reason
        return validate_hosts(get_spec(obj).get("hosts"))
