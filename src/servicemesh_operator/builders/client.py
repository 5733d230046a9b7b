"""Builder for the control plane client."""

from __future__ import annotations

import os

from kubernetes import client, config

from ..services.mesh.client import MeshApiClient
from ..utils.secrets import get_secret_value


def _load_kube_config() -> None:
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def create_mesh_client_from_env() -> MeshApiClient:
    """Create a control plane client from environment configuration.

    The bearer token is read from ``MESH_API_TOKEN`` or, when
    ``MESH_API_CREDENTIALS_SECRET`` is set, from the ``token`` key of that
    Secret in ``MESH_API_CREDENTIALS_NAMESPACE``.

    Returns:
        Configured control plane client

    Raises:
        ValueError: If configuration is invalid
    """
    endpoint = os.getenv("MESH_API_ENDPOINT")
    if not endpoint:
        raise ValueError("MESH_API_ENDPOINT is required")

    token = os.getenv("MESH_API_TOKEN")
    secret_name = os.getenv("MESH_API_CREDENTIALS_SECRET")
    if secret_name:
        _load_kube_config()
        namespace = os.getenv("MESH_API_CREDENTIALS_NAMESPACE", "default")
        key = os.getenv("MESH_API_CREDENTIALS_KEY", "token")
        token = get_secret_value(client.CoreV1Api(), namespace, secret_name, key)

    return MeshApiClient(
        endpoint=endpoint,
        token=token,
        timeout=float(os.getenv("MESH_API_TIMEOUT_SECONDS", "30")),
        verify=os.getenv("MESH_API_INSECURE_SKIP_VERIFY", "false").lower() != "true",
    )
