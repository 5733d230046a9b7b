"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

_F = TypeVar("_F", bound=Callable[..., Any])


class _MinIntervalLimiter:
    """Spaces calls at least ``1 / rate`` seconds apart."""

    def __init__(self, env_var: str, default_rate: str) -> None:
        self.env_var = env_var
        self.default_rate = default_rate
        self.last_call = 0.0
        self.lock = threading.Lock()

    def wait(self) -> None:
        min_interval = 1.0 / float(os.getenv(self.env_var, self.default_rate))
        with self.lock:
            elapsed = time.time() - self.last_call
            if elapsed < min_interval:
                time.sleep(min_interval - elapsed)
            self.last_call = time.time()


_k8s_limiter = _MinIntervalLimiter("K8S_RATE_LIMIT_PER_SECOND", "10.0")
_mesh_limiter = _MinIntervalLimiter("MESH_API_RATE_LIMIT_PER_SECOND", "5.0")


def _limited(limiter: _MinIntervalLimiter, func: _F) -> _F:
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        limiter.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls."""
    return _limited(_k8s_limiter, func)


def rate_limit_mesh(func: _F) -> _F:
    """Decorator to rate limit control plane API calls."""
    return _limited(_mesh_limiter, func)


def is_rate_limit_error(e: Exception) -> bool:
    """Check whether an exception is a throttling response (429 or throttled 503)."""
    status = getattr(e, "status", None) or getattr(e, "status_code", None)
    return status == 429 or (status == 503 and "rate limit" in str(e).lower())


def call_with_rate_limit_retry(
    func: Callable[[], Any],
    on_rate_limited: Callable[[], None] | None = None,
    max_retries: int = 3,
) -> Any:
    """Call ``func``, backing off exponentially (1s, 2s, 4s) on throttling.

    Args:
        func: Zero argument callable performing the API call
        on_rate_limited: Optional hook invoked on every throttled attempt
        max_retries: Maximum number of retries

    Returns:
        Whatever ``func`` returns
    """
    attempt = 0
    while True:
        try:
            return func()
        except Exception as e:
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            if on_rate_limited is not None:
                on_rate_limited()
            time.sleep(2 ** attempt)
            attempt += 1
