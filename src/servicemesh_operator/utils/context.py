"""Per-reconcile context: correlation IDs, trace propagation and deadlines."""

from __future__ import annotations

import contextvars
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from .errors import RequeueError

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Context manager to set a correlation ID for the duration of a block.

    Args:
        corr_id: Correlation ID to use

    Yields:
        The correlation ID
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    if additional:
        ctx.update(additional)

    return ctx


def default_timeout() -> float:
    return float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "300"))


@dataclass
class ReconcileContext:
    """Deadline and correlation ID shared by every step of one pass."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    deadline: float | None = None

    @classmethod
    def with_timeout(cls, timeout: float | None = None, corr_id: str | None = None) -> ReconcileContext:
        """Create a context that expires ``timeout`` seconds from now."""
        if timeout is None:
            timeout = default_timeout()
        ctx = cls(deadline=time.monotonic() + timeout)
        if corr_id:
            ctx.correlation_id = corr_id
        return ctx

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, step: str) -> None:
        """Abandon the pass when the deadline has passed.

        Raises:
            RequeueError: If the deadline expired before ``step``
        """
        if self.expired():
            raise RequeueError(f"reconcile deadline exceeded before {step}")
