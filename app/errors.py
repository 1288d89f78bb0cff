"""
Error hierarchy for share operations.

Each error carries a short, user-facing message and the HTTP status it
maps to. Internal errors never expose storage paths or hash values.
"""


class ShareError(Exception):
    """Base error for share operations."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShareError):
    """Missing or malformed input."""
    status_code = 400


class UnauthorizedError(ShareError):
    """Password missing or incorrect."""
    status_code = 401


class ForbiddenError(ShareError):
    """Operation not permitted for this share's state."""
    status_code = 403


class NotFoundError(ShareError):
    """Share is absent or expired."""
    status_code = 404


class ConflictError(ShareError):
    """Slug already in use by an active share."""
    status_code = 409


class PayloadTooLargeError(ShareError):
    """Uploaded file exceeds the size cap."""
    status_code = 413


class InternalError(ShareError):
    """Storage or hashing failure."""
    status_code = 500


class StorageError(InternalError):
    pass


class PasswordHashError(InternalError):
    pass
