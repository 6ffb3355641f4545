"""
Error taxonomy for cloud sync operations.

Errors are classified by kind (ErrorCode) rather than by exception type.
The retryable flag is a hint for the UI only; the engine never retries.
"""

from enum import Enum
from typing import Any, Dict


class ErrorCode(Enum):
    """Kinds of cloud sync failure."""
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_CANCELLED = "AUTH_CANCELLED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    NETWORK_ERROR = "NETWORK_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN = "UNKNOWN"


class CloudSyncError(Exception):
    """Error raised by providers and the token layer."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.is_retryable = is_retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code.value,
            "is_retryable": self.is_retryable,
        }

    def to_log_string(self) -> str:
        retry = "retryable" if self.is_retryable else "not retryable"
        return f"[{self.code.value}] {self.message} ({retry})"


# HTTP status -> (code, retryable)
_STATUS_CODES = {
    401: (ErrorCode.TOKEN_EXPIRED, True),
    403: (ErrorCode.PERMISSION_DENIED, False),
    404: (ErrorCode.FILE_NOT_FOUND, False),
    507: (ErrorCode.QUOTA_EXCEEDED, False),
}


def error_for_status(status_code: int, message: str) -> CloudSyncError:
    """
    Classify a failed HTTP response.

    Args:
        status_code: HTTP status of the response
        message: Human-readable message for the error

    Returns:
        CloudSyncError with the matching code and retry hint
    """
    code, retryable = _STATUS_CODES.get(status_code, (ErrorCode.UNKNOWN, True))
    return CloudSyncError(message, code, retryable)


def get_error_message(error: BaseException, default: str = "Sync failed") -> str:
    """Extract a human-readable message from any caught error."""
    if isinstance(error, CloudSyncError):
        return error.message
    return str(error) or default
