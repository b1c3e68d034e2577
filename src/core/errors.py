"""
Error taxonomy shared by every layer.

Each error carries the HTTP status it maps to at the request boundary,
so the API layer can translate any of them into a JSON response without
knowing where it was raised. Core code raises these; it never imports
FastAPI.
"""


class AppError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AppError):
    """No bearer token was supplied."""
    status_code = 401
    default_message = "Unauthorized"


class InvalidToken(AppError):
    """A token was supplied but is malformed, expired, or badly signed."""
    status_code = 403
    default_message = "Invalid token"


class Forbidden(AppError):
    """Valid identity, wrong role."""
    status_code = 403
    default_message = "Unauthorized"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class VideoNotFound(NotFound):
    default_message = "Video not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class ObjectNotFound(NotFound):
    default_message = "Stored object not found"


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class PayloadTooLarge(ValidationError):
    default_message = "File size exceeds limit (500MB)"


class UnsupportedFormat(ValidationError):
    default_message = "Invalid video format. Allowed formats: MP4, MPEG, MOV, AVI, WMV, WebM"


class InvalidCredentials(AppError):
    status_code = 400
    default_message = "Invalid credentials"


class Conflict(AppError):
    status_code = 400
    default_message = "Email is already registered"


class StorageUnavailable(AppError):
    """The object store could not be reached or rejected the write."""
    status_code = 503
    default_message = "Storage is unavailable. Please try again later."
