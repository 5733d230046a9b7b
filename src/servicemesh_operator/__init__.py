"""Kubernetes operator reconciling service mesh resources against the mesh control plane."""

__version__ = "0.1.0"
