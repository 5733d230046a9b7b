"""Shared clients for handlers."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Mapping

from ..builders.client import create_mesh_client_from_env
from ..references import Resolver
from ..services.k8s import KubernetesStore, get_k8s_client
from ..services.mesh import ServiceMeshClient


@dataclass(frozen=True)
class Runtime:
    """Process-wide store and control plane client.

    Attributes:
        store: Direct store used by reconciles
        client: Control plane client
    """

    store: KubernetesStore
    client: ServiceMeshClient

    def resolver(self) -> Resolver:
        """Resolver for reconciles. Reads go straight to the API server."""
        return Resolver(self.store, self.client)

    def admission_resolver(self) -> Resolver:
        """Resolver for admission checks. Reads are served from the TTL cache."""
        return Resolver(self.store.cached(), self.client)


@functools.lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    """Build the runtime on first use.

    Raises:
        ValueError: If the control plane client is not configured
    """
    return Runtime(store=KubernetesStore(get_k8s_client()), client=create_mesh_client_from_env())


def as_dict(value: Any) -> Any:
    """Recursively copy a kopf body (or any mapping) into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {key: as_dict(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [as_dict(item) for item in value]
    return value
