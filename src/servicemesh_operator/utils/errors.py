"""Error types, classification and sanitization helpers."""

from __future__ import annotations

import re
from enum import Enum

from ..constants import (
    MSG_DEPENDENCIES_RESOLVED,
    MSG_RESOURCE_CONFIGURED,
    REASON_CONNECTION_ERROR,
    REASON_DEPENDENCIES_NOT_RESOLVED,
    REASON_SUCCESSFUL,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)


class ErrorKind(str, Enum):
    """Discriminant carried by every operator error."""

    NETWORK = "network"
    SERVICE = "service"
    VALIDATION = "validation"
    REQUEUE = "requeue"
    TERMINAL = "terminal"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    CONFLICT = "conflict"


class MeshOperatorError(Exception):
    """Base class for errors raised by the reconciliation engine."""

    kind: ErrorKind = ErrorKind.TERMINAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(MeshOperatorError):
    """Connection-level failure talking to the control plane."""

    kind = ErrorKind.NETWORK


class ServiceError(MeshOperatorError):
    """Error response returned by the control plane."""

    kind = ErrorKind.SERVICE

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        request_id: str | None = None,
    ) -> None:
        """Initialize service error.

        Args:
            status_code: HTTP status code of the response
            code: Machine readable error code from the response body
            message: Human readable error message
            request_id: Value of the opc-request-id response header
        """
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.request_id = request_id

    def __str__(self) -> str:
        return f"{self.status_code} {self.code}: {self.message}"


class ValidationError(MeshOperatorError):
    """Desired object failed a structural or semantic check."""

    kind = ErrorKind.VALIDATION


class RequeueError(MeshOperatorError):
    """Deliberate request to retry soon without reporting a failure."""

    kind = ErrorKind.REQUEUE


class DoNotRequeueError(MeshOperatorError):
    """Terminal failure that must not be retried automatically."""

    kind = ErrorKind.TERMINAL


class NotFoundError(MeshOperatorError):
    """Referenced object does not exist in the store."""

    kind = ErrorKind.NOT_FOUND


class ResourceExpiredError(MeshOperatorError):
    """Referenced object is marked for deletion."""

    kind = ErrorKind.EXPIRED


class ConflictError(MeshOperatorError):
    """Optimistic concurrency write was rejected by the store."""

    kind = ErrorKind.CONFLICT


def error_kind(error: BaseException | None) -> ErrorKind | None:
    """Return the discriminant of an error, or None for foreign exceptions."""
    if isinstance(error, MeshOperatorError):
        return error.kind
    return None


def is_network_or_internal_error(error: BaseException | None) -> bool:
    """Check whether an error is transient (connection failure or 5xx)."""
    if isinstance(error, NetworkError):
        return True
    return isinstance(error, ServiceError) and error.status_code >= 500


def is_deleted(error: BaseException | None) -> bool:
    """Check whether a delete failure means the object is already gone."""
    return isinstance(error, ServiceError) and error.status_code == 404


def service_error_message(error: ServiceError) -> str:
    """Format a service error for a condition message."""
    return f"{error.message} (opc-request-id: {error.request_id} )"


ConditionUpdate = tuple[str, str, str]


def configured_condition(error: BaseException | None) -> ConditionUpdate | None:
    """Map the outcome of a remote mutation to a Configured condition.

    Returns:
        (status, reason, message) or None when the error has no Configured mapping
    """
    if error is None:
        return STATUS_TRUE, REASON_SUCCESSFUL, MSG_RESOURCE_CONFIGURED
    if isinstance(error, NetworkError):
        return STATUS_UNKNOWN, REASON_CONNECTION_ERROR, str(error)
    if isinstance(error, ServiceError):
        status = STATUS_UNKNOWN if error.status_code >= 500 else STATUS_FALSE
        return status, error.code, service_error_message(error)
    return None


def active_condition(error: BaseException) -> ConditionUpdate | None:
    """Map a remote delete failure to an Active condition."""
    if isinstance(error, NetworkError):
        return STATUS_UNKNOWN, REASON_CONNECTION_ERROR, str(error)
    if isinstance(error, ServiceError):
        status = STATUS_FALSE if error.status_code == 404 else STATUS_UNKNOWN
        return status, error.code, service_error_message(error)
    return None


def dependencies_condition(error: BaseException | None) -> ConditionUpdate:
    """Map a dependency resolution outcome to a DependenciesActive condition."""
    if error is None:
        return STATUS_TRUE, REASON_SUCCESSFUL, MSG_DEPENDENCIES_RESOLVED
    mapped = active_condition(error)
    if mapped is not None:
        return mapped
    if error_kind(error) in (ErrorKind.NOT_FOUND, ErrorKind.EXPIRED):
        return STATUS_FALSE, REASON_DEPENDENCIES_NOT_RESOLVED, str(error)
    return STATUS_UNKNOWN, REASON_DEPENDENCIES_NOT_RESOLVED, str(error)


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"bearer\s+([A-Za-z0-9\-\._~\+/=]+)",
    r"opc-retry-token[:\s]+([A-Za-z0-9\-]+)",
    r"authorization[:\s]+([^\s,;\)]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "credentials",
    "token",
    "apikey",
    "privatekey",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}[=:\s]+([^\s,;\)]+)",
            f"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))
