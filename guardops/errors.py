"""
Domain error taxonomy.
Services raise these; the HTTP layer maps them to status codes.
"""
from typing import Any, List, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400


class AuthenticationError(DomainError):
    """Raised when a credential is missing, invalid or expired."""

    status_code = 401


class AuthorizationError(DomainError):
    """Raised when an authenticated caller lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    """Raised on unique-key collisions, schedule overlaps and illegal state changes."""

    status_code = 409


class InternalError(DomainError):
    status_code = 500
