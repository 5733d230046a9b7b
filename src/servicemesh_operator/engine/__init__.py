"""Generic reconcile, delete and admission engine shared by every resource kind."""

from .handler import ObjectStore, ResourceDetails, ResourceHandler
from .orchestrator import ServiceMeshManager
from .response import ReconcileResponse, response_for_error
from .validation import AdmissionResponse, ResourceValidator, ValidationManager

__all__ = [
    "AdmissionResponse",
    "ObjectStore",
    "ReconcileResponse",
    "ResourceDetails",
    "ResourceHandler",
    "ResourceValidator",
    "ServiceMeshManager",
    "ValidationManager",
    "response_for_error",
]
