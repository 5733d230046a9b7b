"""Desired-state store backed by the Kubernetes custom objects API."""

from __future__ import annotations

import time
from typing import Any, Callable

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...constants import API_GROUP, API_VERSION, PLURALS
from ...utils.cache import get_cached_object, invalidate_object, make_cache_key, set_cached_object
from ...utils.errors import ConflictError, NotFoundError
from ...utils.rate_limit import call_with_rate_limit_retry, rate_limit_k8s


class KubernetesStore:
    """CustomObjectsApi wrapper with caching, rate limiting and metrics.

    Status and finalizer patches carry ``metadata.resourceVersion`` so the
    API server rejects them with 409 when the object moved in between.
    """

    def __init__(self, api: client.CustomObjectsApi, use_cache: bool = False) -> None:
        """Initialize store.

        Args:
            api: Kubernetes CustomObjectsApi instance
            use_cache: Serve reads from the TTL cache (for reference lookups)
        """
        self.api = api
        self.use_cache = use_cache

    def cached(self) -> KubernetesStore:
        """Return a view of this store that serves reads from the TTL cache."""
        return KubernetesStore(self.api, use_cache=True)

    def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        start_time = time.time()
        try:
            result = call_with_rate_limit_retry(
                rate_limit_k8s(func),
                on_rate_limited=lambda: metrics.rate_limit_hits_total.labels(api_type="k8s").inc(),
            )
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            if e.status == 404:
                raise NotFoundError(f"{operation}: not found") from e
            if e.status == 409:
                raise ConflictError(f"{operation}: resource version conflict") from e
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Get a custom resource.

        Raises:
            NotFoundError: If the resource does not exist
        """
        cache_key = make_cache_key(kind, namespace, name)
        if self.use_cache:
            cached_obj = get_cached_object(cache_key)
            if cached_obj is not None:
                metrics.api_call_total.labels(api_type="k8s", operation=f"get_{kind.lower()}", result="cache_hit").inc()
                return cached_obj

        obj = self._call(
            f"get_{kind.lower()}",
            lambda: self.api.get_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURALS[kind],
                name=name,
            ),
        )
        set_cached_object(cache_key, obj)
        return obj

    def list(self, kind: str, namespace: str | None = None) -> list[dict[str, Any]]:
        """List custom resources of a kind, cluster-wide when namespace is None."""
        if namespace is None:
            result = self._call(
                f"list_{kind.lower()}",
                lambda: self.api.list_cluster_custom_object(
                    group=API_GROUP,
                    version=API_VERSION,
                    plural=PLURALS[kind],
                ),
            )
        else:
            result = self._call(
                f"list_{kind.lower()}",
                lambda: self.api.list_namespaced_custom_object(
                    group=API_GROUP,
                    version=API_VERSION,
                    namespace=namespace,
                    plural=PLURALS[kind],
                ),
            )
        return list(result.get("items", []))

    def patch_status(self, obj: dict[str, Any], status: dict[str, Any]) -> dict[str, Any]:
        """Patch the status subresource.

        Raises:
            ConflictError: If resourceVersion moved since ``obj`` was read
        """
        kind = obj["kind"]
        meta = obj["metadata"]
        body = {
            "metadata": {"resourceVersion": meta.get("resourceVersion")},
            "status": status,
        }
        updated = self._call(
            f"patch_{kind.lower()}_status",
            lambda: self.api.patch_namespaced_custom_object_status(
                group=API_GROUP,
                version=API_VERSION,
                namespace=meta["namespace"],
                plural=PLURALS[kind],
                name=meta["name"],
                body=body,
            ),
        )
        invalidate_object(kind, meta["namespace"], meta["name"])
        return updated

    def patch_finalizers(self, obj: dict[str, Any], finalizers: list[str]) -> dict[str, Any]:
        """Replace the finalizer list.

        Raises:
            ConflictError: If resourceVersion moved since ``obj`` was read
        """
        kind = obj["kind"]
        meta = obj["metadata"]
        body = {
            "metadata": {
                "resourceVersion": meta.get("resourceVersion"),
                "finalizers": finalizers or None,
            },
        }
        updated = self._call(
            f"patch_{kind.lower()}_finalizers",
            lambda: self.api.patch_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=meta["namespace"],
                plural=PLURALS[kind],
                name=meta["name"],
                body=body,
            ),
        )
        invalidate_object(kind, meta["namespace"], meta["name"])
        return updated


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    return client.CustomObjectsApi()
