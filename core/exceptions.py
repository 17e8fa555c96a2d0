"""
Exception hierarchy for portal business rules.

Services raise these; the handlers in middleware/error_handlers.py turn
them into the `{success: false, error}` envelope with the matching status.
"""
from typing import Optional


class PortalError(Exception):
    """Base exception for portal errors."""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PortalError):
    """Raised when request data or a requested transition is invalid."""
    status_code = 400


class AuthenticationError(PortalError):
    """Raised when credentials are missing or invalid."""
    status_code = 401


class ForbiddenError(PortalError):
    """Raised on role or company-scope violations."""
    status_code = 403


class NotFoundError(PortalError):
    """Raised when a record does not exist (or is not visible)."""
    status_code = 404


class ConflictError(PortalError):
    """Raised when a write would duplicate an existing record."""
    status_code = 409
