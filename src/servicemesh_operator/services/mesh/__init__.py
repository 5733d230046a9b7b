"""Service mesh control plane client."""

from .base import ServiceMeshClient
from .client import MeshApiClient

__all__ = ["MeshApiClient", "ServiceMeshClient"]
