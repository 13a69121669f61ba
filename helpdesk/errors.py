"""Error taxonomy shared by the helpdesk services."""

from __future__ import annotations


class HelpdeskError(RuntimeError):
    """Base error for helpdesk operations."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(HelpdeskError):
    """Raised for malformed or missing input."""

    status_code = 400


class NotFoundError(HelpdeskError):
    """Raised when a referenced ticket, attachment or notification does not exist."""

    status_code = 404


class PermissionDeniedError(HelpdeskError):
    """Raised when the actor's role or relationship does not allow the operation."""

    status_code = 403


class StateConflictError(HelpdeskError):
    """Raised when an operation is not legal in the ticket's current state."""

    status_code = 409


class TransientInfraError(HelpdeskError):
    """Raised when the store or the mail transport fails."""

    status_code = 503


__all__ = [
    "HelpdeskError",
    "NotFoundError",
    "PermissionDeniedError",
    "StateConflictError",
    "TransientInfraError",
    "ValidationError",
]
