"""REST implementation of the service mesh control plane client."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ... import metrics
from ...constants import (
    KIND_ACCESS_POLICY,
    KIND_INGRESS_GATEWAY,
    KIND_INGRESS_GATEWAY_ROUTE_TABLE,
    KIND_MESH,
    KIND_VIRTUAL_DEPLOYMENT,
    KIND_VIRTUAL_SERVICE,
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE,
)
from ...utils.context import get_correlation_id
from ...utils.errors import NetworkError, ServiceError
from ...utils.rate_limit import call_with_rate_limit_retry, rate_limit_mesh

logger = logging.getLogger(__name__)

API_VERSION_PATH = "/20220615"

COLLECTIONS = {
    KIND_MESH: "meshes",
    KIND_VIRTUAL_SERVICE: "virtualServices",
    KIND_VIRTUAL_DEPLOYMENT: "virtualDeployments",
    KIND_ACCESS_POLICY: "accessPolicies",
    KIND_INGRESS_GATEWAY: "ingressGateways",
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE: "virtualServiceRouteTables",
    KIND_INGRESS_GATEWAY_ROUTE_TABLE: "ingressGatewayRouteTables",
}


class MeshApiClient:
    """Control plane client over HTTPS."""

    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Base URL of the control plane API
            token: Bearer token sent with every request
            timeout: Request timeout in seconds
            verify: Verify TLS certificates
            transport: Optional transport, used to inject a mock in tests
        """
        self.endpoint = endpoint.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.http = httpx.Client(
            base_url=f"{self.endpoint}{API_VERSION_PATH}",
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            verify=verify,
            transport=transport,
        )

    def close(self) -> None:
        self.http.close()

    @staticmethod
    def _collection(kind: str) -> str:
        try:
            return COLLECTIONS[kind]
        except KeyError:
            raise ValueError(f"Unsupported resource kind: {kind}") from None

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request and translate failures into operator errors.

        Raises:
            NetworkError: On connection level failures and timeouts
            ServiceError: On any non-2xx response
        """
        request_headers = dict(headers or {})
        corr_id = get_correlation_id()
        if corr_id:
            request_headers["opc-client-request-id"] = corr_id

        send = rate_limit_mesh(self.http.request)
        start_time = time.time()
        try:
            response = call_with_rate_limit_retry(
                lambda: _raise_for_status(send(method, path, json=json, headers=request_headers)),
                on_rate_limited=lambda: metrics.rate_limit_hits_total.labels(api_type="mesh").inc(),
            )
        except httpx.TransportError as e:
            metrics.api_call_total.labels(api_type="mesh", operation=operation, result="error").inc()
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        except ServiceError:
            metrics.api_call_total.labels(api_type="mesh", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="mesh", operation=operation).observe(duration)
        metrics.api_call_total.labels(api_type="mesh", operation=operation, result="success").inc()
        return response

    def get(self, kind: str, resource_id: str) -> dict[str, Any]:
        path = f"/{self._collection(kind)}/{resource_id}"
        return self._request(f"get_{kind.lower()}", "GET", path).json()

    def create(self, kind: str, payload: dict[str, Any], retry_token: str | None) -> dict[str, Any]:
        headers = {"opc-retry-token": retry_token} if retry_token else None
        path = f"/{self._collection(kind)}"
        logger.debug(f"Creating {kind} in compartment {payload.get('compartmentId')}")
        return self._request(f"create_{kind.lower()}", "POST", path, json=payload, headers=headers).json()

    def update(self, kind: str, resource_id: str, payload: dict[str, Any]) -> None:
        path = f"/{self._collection(kind)}/{resource_id}"
        self._request(f"update_{kind.lower()}", "PUT", path, json=payload)

    def delete(self, kind: str, resource_id: str) -> None:
        path = f"/{self._collection(kind)}/{resource_id}"
        self._request(f"delete_{kind.lower()}", "DELETE", path)

    def change_compartment(self, kind: str, resource_id: str, compartment_id: str) -> None:
        path = f"/{self._collection(kind)}/{resource_id}/actions/changeCompartment"
        self._request(
            f"change_{kind.lower()}_compartment",
            "POST",
            path,
            json={"compartmentId": compartment_id},
        )


def _raise_for_status(response: httpx.Response) -> httpx.Response:
    """Raise ServiceError for non-2xx responses."""
    if response.is_success:
        return response
    code = response.reason_phrase.replace(" ", "") or "Unknown"
    message = response.text
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or code
        message = body.get("message") or message
    raise ServiceError(
        status_code=response.status_code,
        code=code,
        message=message,
        request_id=response.headers.get("opc-request-id"),
    )
