"""TTL cache for referenced custom resources."""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Optional

_cache: dict[str, tuple[Any, float]] = {}
_lock = threading.Lock()


def _ttl() -> float:
    return float(os.getenv("K8S_CACHE_TTL_SECONDS", "30.0"))


def get_cached_object(key: str) -> Optional[Any]:
    """Get an object from cache if it hasn't expired.

    Args:
        key: Cache key (typically "kind:namespace:name")

    Returns:
        Cached object or None if not found or expired
    """
    with _lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        obj, timestamp = entry
        if time.time() - timestamp > _ttl():
            del _cache[key]
            return None
        return obj


def set_cached_object(key: str, obj: Any) -> None:
    with _lock:
        _cache[key] = (obj, time.time())


def invalidate_cache(pattern: Optional[str] = None) -> None:
    """Invalidate cache entries.

    Args:
        pattern: Optional substring to match keys (if None, clears all)
    """
    with _lock:
        if pattern is None:
            _cache.clear()
            return
        for key in [key for key in _cache if pattern in key]:
            del _cache[key]


def invalidate_object(kind: str, namespace: str, name: str) -> None:
    """Drop a single resource from the cache after it was written."""
    with _lock:
        _cache.pop(make_cache_key(kind, namespace, name), None)


def make_cache_key(kind: str, namespace: str, name: str) -> str:
    return f"{kind}:{namespace}:{name}"
