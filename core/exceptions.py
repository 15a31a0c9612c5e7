"""
Exceptions for the access-control layer.

Every exception carries the HTTP status it maps to and a caller-safe message.
The handlers in middleware.exceptions turn them into ``{"error": message}``.
"""

from fastapi import status


class AccessControlError(Exception):
    """Base exception"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "ACCESS_CONTROL_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Convert exception to dictionary for API responses."""
        return {"error": self.message}


class AuthenticationError(AccessControlError):
    """Missing, invalid or expired token"""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_ERROR"


class InvalidCredentialsError(AuthenticationError):
    """Unknown username or wrong password"""

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class AuthorizationError(AccessControlError):
    """Authenticated but lacking the required permission or role"""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "AUTHORIZATION_ERROR"


class ConflictError(AccessControlError):
    """Duplicate assignment, role in use, duplicate unique name"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class SelfDeletionError(AccessControlError):
    """A principal tried to delete their own account"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "SELF_DELETION"

    def __init__(self, message: str = "Cannot delete your own account"):
        super().__init__(message)


class NotFoundError(AccessControlError):
    """Role, permission or user id does not resolve"""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ValidationError(AccessControlError):
    """Request body is missing required fields or has bad values"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class StoreError(AccessControlError):
    """Connectivity or transaction failure in the relational store"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "STORE_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
