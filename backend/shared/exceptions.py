"""
Base exception classes for the vARY backend.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application.
"""

from typing import Optional, Any


class VaryError(Exception):
    """
    Base exception for all vARY errors.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(VaryError):
    """Resource not found."""

    status_code = 404


class ValidationError(VaryError):
    """Input validation failed."""

    status_code = 400


class AuthenticationError(VaryError):
    """Authentication failed (invalid or missing credentials)."""

    status_code = 401


class AuthorizationError(VaryError):
    """Authorization failed (insufficient permissions)."""

    status_code = 403


class ConflictError(VaryError):
    """The request conflicts with the current state of a resource."""

    status_code = 409


class ExternalServiceError(VaryError):
    """Error communicating with an external service."""

    status_code = 502

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service


class StoreError(VaryError):
    """
    The transactional store failed.

    A StoreError does not mean nothing was written. Callers must re-read
    state (e.g. the generation charge) before retrying a mutation.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(
            f"Store operation '{operation}' failed: {message}",
            code="STORE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation
