"""Domain errors raised by services and rendered as ``{"error": ...}`` responses."""

from fastapi import status


class DomainError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Bad Request"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class BadRequestError(DomainError):
    """Malformed or semantically invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad Request"


class InvalidTargetError(BadRequestError):
    """The user an operation targets is not in a valid state for it."""

    message = "Invalid target"


class UnauthorizedError(DomainError):
    """Missing, invalid or expired session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authenticated"


class ForbiddenError(DomainError):
    """Authenticated, but lacking access to the entity."""

    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class ConflictError(DomainError):
    """Duplicate unique value or an operation conflicting with current state."""

    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"
