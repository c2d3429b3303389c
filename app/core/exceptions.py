from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors.

    `kind` is the machine-readable error category rendered next to the message;
    `context` carries identifiers (entity ids, competing entity names) the
    caller needs to build a precise message.
    """

    kind = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.context = context or {}


class ValidationError(ServiceError):
    """Malformed, missing or out-of-range input."""

    kind = "validation_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, context)


class NotFoundError(ServiceError):
    kind = "not_found"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND, context)


class PermissionDeniedError(ServiceError):
    """Caller lacks the role/capability, or is blocked from mutating scheduling state."""

    kind = "permission_denied"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN, context)


class ConflictError(ServiceError):
    """Duplicate unique value, slot occupancy collision or one-subject-per-term violation."""

    kind = "conflict"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT, context)


class NoCurrentTerm(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No active term found for current date")
