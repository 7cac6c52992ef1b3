"""Event recorder error hierarchy

Every failure surfaces to the caller as an EventRecorderError carrying an
ErrorCode and a localized message. Geofence violations are never errors.
"""

from enum import StrEnum
from typing import Self

from .messages import get_message


class ErrorCode(StrEnum):
    """Error taxonomy"""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    ATTACHMENTS_REQUIRED = "ATTACHMENTS_REQUIRED"
    CONFLICT = "CONFLICT"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    TRANSACTION_TIMEOUT = "TRANSACTION_TIMEOUT"


class EventRecorderError(Exception):
    """Base error of the recording engine"""

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        recoverable: bool = False,
        code: ErrorCode | None = None,
    ) -> None:
        """
        Args:
            message: localized description
            recoverable: whether the caller may safely retry the same call
            code: overrides the class-level code
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        if code is not None:
            self.code = code

    @classmethod
    def from_key(cls, key: str, locale: str | None = None, **params: object) -> Self:
        """Build the error from a message catalog key"""
        return cls(get_message(key, locale, **params))


class NotFoundError(EventRecorderError):
    code = ErrorCode.NOT_FOUND


class TaskNotFoundError(NotFoundError):
    pass


class AttachmentNotFoundError(NotFoundError):
    pass


class ForbiddenError(EventRecorderError):
    code = ErrorCode.FORBIDDEN


class InvalidStateError(EventRecorderError):
    code = ErrorCode.INVALID_STATE


class PreconditionFailedError(EventRecorderError):
    code = ErrorCode.PRECONDITION_FAILED


class AttachmentsRequiredError(EventRecorderError):
    code = ErrorCode.ATTACHMENTS_REQUIRED


class TaskConflictError(EventRecorderError):
    """Lost the conditional status update race

    The task no longer has the status the caller validated against.
    """

    code = ErrorCode.CONFLICT


class UploadFailedError(EventRecorderError):
    """Storage provider failure before any task mutation; safe to retry"""

    code = ErrorCode.UPLOAD_FAILED

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, recoverable=True)
        self.original_error = original_error


class InvalidInputError(EventRecorderError):
    code = ErrorCode.INVALID_INPUT


class TransactionTimeoutError(EventRecorderError):
    code = ErrorCode.TRANSACTION_TIMEOUT
