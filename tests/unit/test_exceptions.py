"""
Tests for the error taxonomy.
"""

from cloudsync.exceptions import (
    CloudSyncError,
    ErrorCode,
    error_for_status,
    get_error_message,
)


class TestCloudSyncError:
    """Tests for CloudSyncError."""

    def test_defaults(self):
        error = CloudSyncError("boom")
        assert error.code is ErrorCode.UNKNOWN
        assert error.is_retryable is False
        assert str(error) == "boom"

    def test_to_dict(self):
        error = CloudSyncError("offline", ErrorCode.NETWORK_ERROR, True)
        assert error.to_dict() == {
            "message": "offline",
            "code": "NETWORK_ERROR",
            "is_retryable": True,
        }

    def test_to_log_string(self):
        error = CloudSyncError("denied", ErrorCode.PERMISSION_DENIED)
        assert error.to_log_string() == "[PERMISSION_DENIED] denied (not retryable)"


class TestHelpers:
    """Tests for module helpers."""

    def test_error_for_status(self):
        error = error_for_status(401, "expired")
        assert error.code is ErrorCode.TOKEN_EXPIRED
        assert error.is_retryable is True
        assert error.message == "expired"

    def test_unknown_status_is_retryable(self):
        error = error_for_status(418, "teapot")
        assert error.code is ErrorCode.UNKNOWN
        assert error.is_retryable is True

    def test_get_error_message(self):
        assert get_error_message(CloudSyncError("typed")) == "typed"
        assert get_error_message(RuntimeError("plain")) == "plain"
        assert get_error_message(RuntimeError()) == "Sync failed"
        assert get_error_message(RuntimeError(), default="Oops") == "Oops"
