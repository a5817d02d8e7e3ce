"""Custom exception classes for the TaRL portal."""

from fastapi import status


class PortalError(Exception):
    """Base exception for the portal. Subclasses pin an HTTP status."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(PortalError):
    """Raised when there is no valid session."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(PortalError):
    """Raised when a resolved permission is false."""
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(PortalError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(PortalError):
    """Raised when input validation fails."""
    status_code = status.HTTP_400_BAD_REQUEST


class ResourceConflictError(PortalError):
    """Raised when a resource already exists."""
    status_code = status.HTTP_409_CONFLICT


class RoleInUseError(ResourceConflictError):
    """Raised when deleting a role that users still reference."""
    pass


class StoreUnavailableError(PortalError):
    """Raised when the database cannot answer a permission query."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

