"""Kubernetes-backed desired-state store."""

from .store import KubernetesStore, get_k8s_client

__all__ = ["KubernetesStore", "get_k8s_client"]
