"""Custom exception hierarchy for the portal API."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Upstream services
    KEYCLOAK_ERROR = "KEYCLOAK_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PortalException(Exception):
    """
    Base exception for all portal API errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(PortalException):
    """Requested resource does not exist or is not owned by the caller."""

    def __init__(self, message: str = "Resource not found", resource_id: Optional[Any] = None):
        details = {"id": resource_id} if resource_id is not None else {}
        super().__init__(
            message,
            ErrorCode.NOT_FOUND,
            status_code=404,
            details=details
        )


class ValidationError(PortalException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class ConflictError(PortalException):
    """Operation conflicts with existing state (duplicate name, taken email)."""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
        )


class AuthenticationError(PortalException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(PortalException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class KeycloakError(PortalException):
    """Keycloak is unreachable or answered with an unexpected error."""

    def __init__(self, message: str = "Identity provider request failed", upstream_status: Optional[int] = None):
        details = {"upstream_status": upstream_status} if upstream_status else {}
        super().__init__(
            message,
            ErrorCode.KEYCLOAK_ERROR,
            status_code=502,
            details=details
        )


class StorageError(PortalException):
    """Object storage operation failed."""

    def __init__(self, message: str = "Object storage request failed"):
        super().__init__(
            message,
            ErrorCode.STORAGE_ERROR,
            status_code=502,
        )


class DatabaseError(PortalException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
