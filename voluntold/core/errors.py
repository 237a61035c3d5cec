from enum import StrEnum

from fastapi import status


class AppError(Exception):
    """Domain failure that is safe to show to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class Gone(AppError):
    status_code = status.HTTP_410_GONE
    code = "GONE"


class DependencyFailure(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "DEPENDENCY_FAILURE"


class RejectionReason(StrEnum):
    NOT_FOUND = "not_found"
    CONSUMED = "consumed"
    EXPIRED = "expired"


_REJECTION_MESSAGES = {
    RejectionReason.NOT_FOUND: "This link is invalid or no longer exists",
    RejectionReason.CONSUMED: "This link has already been used",
    RejectionReason.EXPIRED: "This link has expired. Please request a new one.",
}

_REJECTION_STATUS = {
    RejectionReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.CONSUMED: status.HTTP_410_GONE,
    RejectionReason.EXPIRED: status.HTTP_410_GONE,
}


class TokenRejected(AppError):
    def __init__(self, reason: RejectionReason, message: str | None = None):
        super().__init__(
            message or _REJECTION_MESSAGES[reason],
            code=f"TOKEN_{reason.name}",
        )
        self.reason = reason
        self.status_code = _REJECTION_STATUS[reason]
