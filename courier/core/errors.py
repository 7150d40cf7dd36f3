"""
Domain error taxonomy for the courier marketplace.

Every failure a service operation can report is one of the classes below.
Each carries a human readable message plus arbitrary structured context
that is logged and returned to API clients as ``details``.
"""

from enum import Enum
from typing import Any


class CourierError(Exception):
    """Base exception for courier domain errors."""

    code = "COURIER_ERROR"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.context.items()},
        }


class InputValidationError(CourierError):
    """Raised when input is missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(CourierError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(CourierError):
    """Raised when the actor may not act on the entity."""

    code = "PERMISSION_DENIED"
    status_code = 403


class PreconditionFailedError(CourierError):
    """Raised when an operation is attempted in an illegal state."""

    code = "PRECONDITION_FAILED"
    status_code = 409


class InvalidTransitionError(CourierError):
    """Raised when the lifecycle transition table forbids a move."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(
        self,
        message: str,
        current_state: Any = None,
        target_state: Any = None,
        **context: Any,
    ):
        super().__init__(
            message,
            current_state=current_state,
            target_state=target_state,
            **context,
        )
        self.current_state = current_state
        self.target_state = target_state


class ConcurrencyConflictError(CourierError):
    """Raised when an optimistic version check fails."""

    code = "CONCURRENCY_CONFLICT"
    status_code = 409


class RemoteCallFailedError(CourierError):
    """Raised when persistence, the payment gateway or the bills aggregator fails."""

    code = "REMOTE_CALL_FAILED"
    status_code = 502

    def __init__(self, message: str, service: str = "unknown", **context: Any):
        super().__init__(message, service=service, **context)
        self.service = service
        if service == "database":
            self.status_code = 503


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
