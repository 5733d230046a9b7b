"""Clients for the control plane API and the Kubernetes desired-state store."""
