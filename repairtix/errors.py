"""
HTTP error types raised by services and dependencies.

Each error is a FastAPI HTTPException so it renders as ``{"detail": ...}``
with the matching status code without extra handlers.
"""

from typing import Optional

from fastapi import HTTPException, status


class HttpError(HTTPException):
    """Base class for RepairTix HTTP errors."""

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message_default: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=message or self.message_default,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class BadRequestError(HttpError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    message_default = "Bad request"


class ValidationError(BadRequestError):
    """Bad request carrying per-field error messages."""

    message_default = "Validation error"

    def __init__(self, message: Optional[str] = None, errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}
        self.detail = {"message": self.detail, "errors": self.errors}

    @property
    def message(self) -> str:
        return self.detail["message"]


class UnauthorizedError(HttpError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    message_default = "Unauthorized"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(HttpError):
    status_code_default = status.HTTP_403_FORBIDDEN
    message_default = "Forbidden"


class NotFoundError(HttpError):
    status_code_default = status.HTTP_404_NOT_FOUND
    message_default = "Resource not found"


class ConflictError(HttpError):
    status_code_default = status.HTTP_409_CONFLICT
    message_default = "Resource already exists"


class InternalServerError(HttpError):
    pass


class EncryptionError(Exception):
    """Raised when credentials cannot be encrypted or decrypted."""


class PaymentError(Exception):
    """Raised by payment adapters when a charge or card operation fails."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
