"""Shared fakes and object builders for unit tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import MagicMock

import pytest

from servicemesh_operator.constants import (
    API_GROUP_VERSION,
    COND_ACTIVE,
    COND_CONFIGURED,
    COND_DEPENDENCIES_ACTIVE,
    STATUS_TRUE,
)
from servicemesh_operator.references import Resolver
from servicemesh_operator.utils.cache import invalidate_cache
from servicemesh_operator.utils.errors import ConflictError, NotFoundError

TIME_UPDATED = "2024-05-01T10:00:00.000Z"


class FakeStore:
    """In-memory desired-state store with resourceVersion conflicts on demand."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.status_patches: list[dict[str, Any]] = []
        self.finalizer_patches: list[list[str]] = []
        self.conflicts = 0
        self.list_error: Exception | None = None

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        self.objects[(obj["kind"], meta.get("namespace"), meta["name"])] = obj
        return obj

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(f"get_{kind.lower()}: not found") from None

    def list(self, kind: str, namespace: str | None = None) -> list[dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        return [
            copy.deepcopy(obj)
            for (obj_kind, obj_namespace, _), obj in self.objects.items()
            if obj_kind == kind and (namespace is None or obj_namespace == namespace)
        ]

    def _bump(self, obj: dict[str, Any]) -> dict[str, Any]:
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError("resource version conflict")
        version = str(int(obj["metadata"].get("resourceVersion") or "0") + 1)
        return {"metadata": {"resourceVersion": version}}

    def patch_status(self, obj: dict[str, Any], status: dict[str, Any]) -> dict[str, Any]:
        updated = self._bump(obj)
        self.status_patches.append(copy.deepcopy(status))
        return updated

    def patch_finalizers(self, obj: dict[str, Any], finalizers: list[str]) -> dict[str, Any]:
        updated = self._bump(obj)
        self.finalizer_patches.append(list(finalizers))
        return updated


def make_object(
    kind: str,
    name: str = "sample",
    namespace: str = "default",
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    generation: int = 1,
    finalizers: list[str] | None = None,
    deleting: bool = False,
) -> dict[str, Any]:
    """Build a custom resource body."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "generation": generation,
        "resourceVersion": "1",
        "finalizers": list(finalizers or []),
    }
    if deleting:
        metadata["deletionTimestamp"] = "2024-05-01T11:00:00Z"
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": kind,
        "metadata": metadata,
        "spec": spec or {},
        "status": status if status is not None else {},
    }


def conditions(
    dependencies: str = STATUS_TRUE,
    configured: str = STATUS_TRUE,
    active: str = STATUS_TRUE,
    generation: int = 1,
) -> list[dict[str, Any]]:
    """Build the three condition entries."""
    return [
        {"type": condition_type, "status": value, "reason": "Successful", "message": "", "observedGeneration": generation}
        for condition_type, value in (
            (COND_DEPENDENCIES_ACTIVE, dependencies),
            (COND_CONFIGURED, configured),
            (COND_ACTIVE, active),
        )
    ]


def remote_object(resource_id: str, lifecycle_state: str = "ACTIVE", **fields: Any) -> dict[str, Any]:
    """Build a control plane object."""
    remote = {
        "id": resource_id,
        "compartmentId": "ocid1.compartment.one",
        "lifecycleState": lifecycle_state,
        "timeUpdated": TIME_UPDATED,
        "freeformTags": {},
        "definedTags": {},
    }
    remote.update(fields)
    return remote


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty reference cache."""
    invalidate_cache()
    yield
    invalidate_cache()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def resolver(store: FakeStore, client: MagicMock) -> Resolver:
    return Resolver(store, client)
