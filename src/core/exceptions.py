"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes.

    The profile and avatar kinds form a closed set; backend transport codes
    never leave the adapter that produced them except inside ``details``.
    """

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Profile / avatar kinds
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    USER_CANCELLED = "USER_CANCELLED"
    STORE_ERROR = "STORE_ERROR"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"

    # Validation errors (400/422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_IMAGE = "INVALID_IMAGE"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class ProfileNotFoundError(AppException):
    """No profile row exists for the user.

    Recovered locally into a stub record; never surfaced as a failure.
    """

    def __init__(self, user_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOT_FOUND,
            message=f"Profile not found: {user_id}",
            status_code=404,
            details={"user_id": user_id},
        )


class PermissionDeniedError(AppException):
    """The user refused access to the camera or photo library."""

    def __init__(self, source: str) -> None:
        super().__init__(
            error_code=ErrorCode.PERMISSION_DENIED,
            message=f"Permission to use the {source} was denied",
            status_code=403,
            details={"source": source},
        )


class UserCancelledError(AppException):
    """The user dismissed the image picker without choosing an image."""

    def __init__(self, source: str) -> None:
        super().__init__(
            error_code=ErrorCode.USER_CANCELLED,
            message="Image selection cancelled",
            status_code=400,
            details={"source": source},
        )


class StoreError(AppException):
    """The relational or blob store rejected or failed an operation."""

    def __init__(
        self,
        operation: str,
        message: str = "Backend store operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            error_code=ErrorCode.STORE_ERROR,
            message=message,
            status_code=502,
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation


class PreconditionError(AppException):
    """An operation requiring an active session ran without one."""

    def __init__(self, message: str = "No active session") -> None:
        super().__init__(
            error_code=ErrorCode.PRECONDITION_FAILED,
            message=message,
            status_code=412,
        )


class InvalidImageError(AppException):
    """Acquired image bytes could not be decoded or are unsupported."""

    def __init__(self, message: str = "Unsupported or unreadable image") -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_IMAGE,
            message=message,
            status_code=422,
        )


class InvalidTransitionError(AppException):
    """The avatar state machine was driven along an edge it does not have."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_TRANSITION,
            message=f"Invalid avatar transition: {current} -> {target}",
            status_code=500,
            details={"from": current, "to": target},
        )
