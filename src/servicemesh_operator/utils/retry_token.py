"""Idempotency tokens for remote create calls."""

from __future__ import annotations

import secrets
from typing import Any

STATUS_FIELD = "opcRetryToken"


def new_retry_token() -> str:
    """Mint a fresh opaque retry token."""
    return secrets.token_hex(16)


def get_or_issue_token(status: dict[str, Any]) -> str:
    """Return the persisted token, or mint a new one without persisting it."""
    token = status.get(STATUS_FIELD)
    if token:
        return token
    return new_retry_token()


def set_token(status: dict[str, Any], token: str | None) -> bool:
    """Store or clear the retry token in status.

    Args:
        status: Resource status dict, mutated in place
        token: Token to store, or None to clear it

    Returns:
        True if status changed and needs to be written
    """
    if status.get(STATUS_FIELD) == token:
        return False
    # None is kept so the merge patch removes the field
    status[STATUS_FIELD] = token
    return True
