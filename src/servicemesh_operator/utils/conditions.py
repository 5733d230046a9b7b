"""Utilities for managing the DependenciesActive / Configured / Active conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    LIFECYCLE_ACTIVE,
    LIFECYCLE_CREATING,
    LIFECYCLE_DELETED,
    LIFECYCLE_DELETING,
    LIFECYCLE_FAILED,
    LIFECYCLE_UPDATING,
    REASON_LIFECYCLE_STATE_CHANGED,
    REASON_SUCCESSFUL,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)


def get_condition(status: dict[str, Any], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    for cond in status.get("conditions") or []:
        if cond.get("type") == condition_type:
            return cond
    return None


def has_condition(status: dict[str, Any], condition_type: str, value: str) -> bool:
    """Check whether a condition exists with the given status value."""
    cond = get_condition(status, condition_type)
    return cond is not None and cond.get("status") == value


def update_condition(
    status: dict[str, Any],
    condition_type: str,
    value: str,
    reason: str,
    message: str,
    generation: int,
    hold_generation: bool = True,
) -> bool:
    """Update or add a condition in place.

    A new condition is appended with the given generation. On an existing
    condition an Unknown value keeps the previous observedGeneration unless
    ``hold_generation`` is False.

    Args:
        status: Resource status dict, mutated in place
        condition_type: Type of condition
        value: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        generation: Generation the caller observed
        hold_generation: Keep the stored generation when value is Unknown

    Returns:
        True if the stored condition changed and status needs to be written
    """
    now = datetime.now(timezone.utc).isoformat()
    conditions = status.setdefault("conditions", [])
    existing = get_condition(status, condition_type)

    if existing is None:
        conditions.append({
            "type": condition_type,
            "status": value,
            "reason": reason,
            "message": message,
            "observedGeneration": generation,
            "lastTransitionTime": now,
        })
        return True

    if value == STATUS_UNKNOWN and hold_generation:
        generation = existing.get("observedGeneration", generation)

    changed = False
    if existing.get("status") != value:
        existing["status"] = value
        existing["lastTransitionTime"] = now
        changed = True
    if existing.get("observedGeneration") != generation:
        existing["observedGeneration"] = generation
        changed = True
    if existing.get("reason") != reason:
        existing["reason"] = reason
        changed = True
    if existing.get("message") != message:
        existing["message"] = message
        changed = True
    return changed


def condition_status_from_lifecycle(state: str | None) -> str:
    """Map a remote lifecycle state to a condition status."""
    if state == LIFECYCLE_ACTIVE:
        return STATUS_TRUE
    if state in (LIFECYCLE_FAILED, LIFECYCLE_DELETED):
        return STATUS_FALSE
    return STATUS_UNKNOWN


def reason_for(value: str) -> str:
    """Reason recorded on the Active condition for a given status."""
    return REASON_SUCCESSFUL if value == STATUS_TRUE else REASON_LIFECYCLE_STATE_CHANGED


_LIFECYCLE_MESSAGES = {
    LIFECYCLE_ACTIVE: "Resource in the control plane is Active, successfully reconciled",
    LIFECYCLE_DELETED: "Resource in the control plane is Deleted",
    LIFECYCLE_CREATING: "Resource in the control plane is Creating, about to reconcile",
    LIFECYCLE_UPDATING: "Resource in the control plane is Updating, about to reconcile",
    LIFECYCLE_DELETING: "Resource in the control plane is Deleting, about to reconcile",
}


def message_for_lifecycle(state: str | None) -> str:
    return _LIFECYCLE_MESSAGES.get(state or "", "Resource in the control plane is Failed")
