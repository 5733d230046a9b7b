"""Translate engine errors into requeue directives."""

from __future__ import annotations

import os
from dataclasses import dataclass

from ..constants import DEFAULT_RESYNC_INTERVAL_SECONDS
from ..utils.errors import DoNotRequeueError, RequeueError


@dataclass(frozen=True)
class ReconcileResponse:
    """Outcome of a reconcile pass.

    Attributes:
        successful: The pass converged without error
        requeue: The key should be processed again
        requeue_after: Delay before the next pass, None meaning "soon"
        error: Error surfaced to the caller, if any
    """

    successful: bool = False
    requeue: bool = False
    requeue_after: float | None = None
    error: BaseException | None = None


def resync_interval() -> float:
    return float(os.getenv("RESYNC_INTERVAL_SECONDS", str(DEFAULT_RESYNC_INTERVAL_SECONDS)))


def resync_response() -> ReconcileResponse:
    """Converged: check again after the periodic resync interval."""
    return ReconcileResponse(successful=True, requeue=True, requeue_after=resync_interval())


def response_for_error(error: BaseException | None) -> ReconcileResponse:
    """Map an error to a response directive.

    A terminal error is surfaced without requeue, a requeue request is
    retried without surfacing an error, and every other error is retried
    and surfaced.
    """
    if error is None:
        return ReconcileResponse(successful=True)
    if isinstance(error, DoNotRequeueError):
        return ReconcileResponse(requeue=False, error=error)
    if isinstance(error, RequeueError):
        return ReconcileResponse(requeue=True)
    return ReconcileResponse(requeue=True, error=error)
