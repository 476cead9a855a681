"""Error taxonomy shared by the conversation core.

Every failure raised by the core is a :class:`CircleError`. The subclasses map
onto the categories the presentation layer cares about; ``status_code`` is the
HTTP status the FastAPI adapter reports and ``code`` is a stable
machine-readable identifier.
"""
from __future__ import annotations

from fastapi import status


class CircleError(Exception):
    """Base class for all core failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()


class ValidationError(CircleError):
    """The request was malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class EmptyMessageError(ValidationError):
    """Message text must not be empty."""

    code = "empty_message"


class SelfReferenceError(ValidationError):
    """An identity cannot reference itself."""

    code = "self_reference"


class UsernameTooShortError(ValidationError):
    """Username is too short."""

    code = "username_too_short"


class UsernameTooLongError(ValidationError):
    """Username is too long."""

    code = "username_too_long"


class UsernameCooldownError(ValidationError):
    """Username was changed too recently."""

    code = "username_cooldown"


class ConflictError(CircleError):
    """The write conflicts with existing state."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class AlreadyExistsError(ConflictError):
    """Document already exists."""

    code = "already_exists"


class DuplicateEdgeError(ConflictError):
    """Already friends."""

    code = "duplicate_edge"


class UsernameTakenError(ConflictError):
    """Username already taken."""

    code = "username_taken"


class PermissionDenied(CircleError):
    """The actor is not allowed to perform this operation."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class NotFoundError(CircleError):
    """The referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class EdgeNotFoundError(NotFoundError):
    """Friend not found."""

    code = "edge_not_found"


class ResourceExhausted(CircleError):
    """A bounded resource ran out."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "resource_exhausted"


class TagExhausted(ResourceExhausted):
    """No free tag found for this username; choose a different username."""

    code = "tag_exhausted"


class TransientStoreError(CircleError):
    """The document store is temporarily unavailable; the operation may be retried."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"


__all__ = [
    "CircleError",
    "ValidationError",
    "EmptyMessageError",
    "SelfReferenceError",
    "UsernameTooShortError",
    "UsernameTooLongError",
    "UsernameCooldownError",
    "ConflictError",
    "AlreadyExistsError",
    "DuplicateEdgeError",
    "UsernameTakenError",
    "PermissionDenied",
    "NotFoundError",
    "EdgeNotFoundError",
    "ResourceExhausted",
    "TagExhausted",
    "TransientStoreError",
]
