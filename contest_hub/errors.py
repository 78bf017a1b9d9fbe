"""Error taxonomy shared by the service layer and the HTTP surface.

Every error carries a user-facing ``message`` and the HTTP status it maps to.
Only :class:`Transient` is safe to retry.
"""
from typing import ClassVar


class ContestError(Exception):
    kind: ClassVar[str] = "error"
    status_code: ClassVar[int] = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ContestError):
    """Malformed or missing input; rejected before any mutation."""
    kind = "validation_error"
    status_code = 422


class PermissionDenied(ContestError):
    """Caller lacks the leader/organizer/member role the operation needs."""
    kind = "permission_denied"
    status_code = 403


class Conflict(ContestError):
    """Uniqueness violation or a concurrent modification."""
    kind = "conflict"
    status_code = 409


class NotFound(ContestError):
    kind = "not_found"
    status_code = 404


class InvalidOperation(ContestError):
    """Well-formed request that the current state does not allow."""
    kind = "invalid_operation"
    status_code = 400


class Transient(ContestError):
    """Network, driver or timeout failure. Safe to retry with backoff."""
    kind = "transient"
    status_code = 503


__all__ = [
    "ContestError",
    "ValidationError",
    "PermissionDenied",
    "Conflict",
    "NotFound",
    "InvalidOperation",
    "Transient",
]
