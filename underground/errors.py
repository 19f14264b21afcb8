"""
Service-layer error taxonomy.

Engines raise these; the API layer renders them as ``{"message": ...}``
with the attached HTTP status. Store-internal exceptions never cross this
boundary.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error."
    recoverable: bool = False

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class InvalidStatus(ValidationError):
    default_message = "A valid status is required."


class NotRsvped(ValidationError):
    default_message = "You are not RSVPd for this event."


class AuthError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials."


class Unauthenticated(AuthError):
    default_message = "Authentication token is required."


class InvalidToken(AuthError):
    default_message = "Invalid or expired token."


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied."


class Forbidden(AuthorizationError):
    pass


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Request conflicts with the current state."


class EmailAlreadyInvited(ConflictError):
    default_message = "This person is already a member or has been invited."


class AlreadyClaimed(ConflictError):
    default_message = "Access code has already been used."


class AlreadyRsvped(ConflictError):
    default_message = "You have already RSVPd for this event."


class EventFull(ConflictError):
    default_message = "This event is currently full."


class TransientStoreError(ServiceError):
    """Contention or timeout that outlived the bounded retries."""

    default_message = "The service is busy, please retry."
    recoverable = True
