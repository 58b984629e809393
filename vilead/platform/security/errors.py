from __future__ import annotations

from typing import Any


class CRMError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthorizationError(CRMError):
    """Base authorization error for capability and scope enforcement failures."""

    kind = "permission_denied"
    status_code = 403


class PermissionDeniedError(AuthorizationError):
    """Raised when the caller's role lacks the capability for an action."""

    def __init__(self, role: str, resource: str, action: str) -> None:
        self.role = role
        self.resource = resource
        self.action = action
        super().__init__(f"role '{role}' is not allowed to {action.replace('_', '/')} {resource}")


class NotFoundError(CRMError):
    """Record is absent or outside the caller's scope; the two are not distinguished."""

    kind = "not_found"
    status_code = 404


class InvalidArgumentError(CRMError):
    kind = "invalid_argument"
    status_code = 422


class ConflictError(CRMError):
    kind = "conflict"
    status_code = 409


class AuthenticationError(CRMError):
    kind = "unauthenticated"
    status_code = 401
