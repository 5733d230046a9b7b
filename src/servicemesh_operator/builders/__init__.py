"""Builders for control plane clients and payloads."""

from .client import create_mesh_client_from_env

__all__ = ["create_mesh_client_from_env"]
