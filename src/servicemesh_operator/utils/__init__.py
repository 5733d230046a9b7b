"""Utility functions for the Service Mesh Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    invalidate_object,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    get_condition,
    has_condition,
    update_condition,
)
from .context import (
    ReconcileContext,
    get_context_dict,
    get_correlation_id,
    with_correlation_id,
)
from .events import emit_event
from .rate_limit import call_with_rate_limit_retry, rate_limit_k8s, rate_limit_mesh
from .retry_token import get_or_issue_token, set_token
from .secrets import get_secret_value

__all__ = [
    "get_condition",
    "has_condition",
    "update_condition",
    "emit_event",
    "get_secret_value",
    "get_or_issue_token",
    "set_token",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "invalidate_object",
    "make_cache_key",
    "rate_limit_k8s",
    "rate_limit_mesh",
    "call_with_rate_limit_retry",
    "ReconcileContext",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
