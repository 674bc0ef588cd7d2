# backend/app/core/errors.py

from typing import Optional


class AppError(Exception):
    """
    Base class for errors the API layer knows how to render.

    `status_code` and `code` are what the exception handler in main.py
    turns into the JSON error body.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed", code: Optional[str] = None):
        super().__init__(message, code=code)


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", code: Optional[str] = None):
        super().__init__(message, code=code)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", code: Optional[str] = None):
        super().__init__(message, code=code)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class ReasonerError(AppError):
    """The external reasoning service failed, timed out or answered nothing."""

    status_code = 503
    code = "REASONER_ERROR"


class StoreError(AppError):
    status_code = 500
    code = "STORE_ERROR"


class StoreWriteError(StoreError):
    """A write against the itinerary store failed and was rolled back."""

    code = "STORE_WRITE_ERROR"
