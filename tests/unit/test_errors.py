"""Unit tests for error classification utilities."""

import httpx
import pytest

from src.core.errors import (
    DatabaseError,
    DuplicateRecordError,
    DuplicateRefundRequestError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
    InvalidStateTransitionError,
    LookupUnavailableError,
    RecordNotFoundError,
    RefundNotEligibleError,
    SubmissionInProgressError,
    classify_error_with_response,
    classify_external_error,
)


@pytest.mark.unit
class TestClassifyExternalError:
    """Tests for classify_external_error function."""

    def test_quota_exceeded(self):
        """Test classification of an exhausted AI quota."""
        exception = Exception("OpenRouter API error: insufficient credits remaining")

        assert classify_external_error(exception) == ErrorCategory.SERVICE_QUOTA_EXCEEDED

    def test_rate_limited(self):
        """Test classification of a throttled dictionary call."""
        exception = Exception("HTTP 429: Too many requests")

        assert classify_external_error(exception) == ErrorCategory.RATE_LIMIT_EXCEEDED

    def test_authentication_failed(self):
        """Test classification of a rejected API key."""
        exception = Exception("401 Unauthorized: invalid api key")

        assert classify_external_error(exception) == ErrorCategory.AUTHENTICATION_FAILED

    def test_network_error_by_type(self):
        """Test classification by exception type when the message says nothing."""
        exception = httpx.ConnectError("")

        assert classify_external_error(exception) == ErrorCategory.NETWORK_ERROR

    def test_wrapped_cause_is_classified(self):
        """Test that the original cause is inspected for wrapped errors."""
        try:
            try:
                raise httpx.ReadTimeout("")
            except httpx.ReadTimeout as e:
                raise LookupUnavailableError("Dictionary lookup failed for 'rain'") from e
        except LookupUnavailableError as wrapped:
            assert classify_external_error(wrapped) == ErrorCategory.NETWORK_ERROR

    def test_unknown(self):
        """Test classification of an unrecognized error."""
        assert classify_external_error(Exception("Something odd happened")) == ErrorCategory.UNKNOWN


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response function."""

    @pytest.mark.parametrize(
        ("exception", "code"),
        [
            (DuplicateRefundRequestError("Milestone 7 already has one"), ErrorCode.ERR_DUPLICATE_REFUND_REQUEST),
            (DuplicateRecordError("UNIQUE constraint failed"), ErrorCode.ERR_DUPLICATE_RECORD),
            (RecordNotFoundError("Record not found in tasks: 9"), ErrorCode.ERR_RECORD_NOT_FOUND),
            (InvalidStateTransitionError("Cannot move refund request 3"), ErrorCode.ERR_INVALID_STATE_TRANSITION),
            (RefundNotEligibleError("Milestone 7 has not met its target"), ErrorCode.ERR_REFUND_NOT_ELIGIBLE),
            (SubmissionInProgressError("already in progress"), ErrorCode.ERR_SUBMISSION_IN_PROGRESS),
            (ValueError("words_written must not be negative"), ErrorCode.ERR_INVALID_INPUT),
        ],
    )
    def test_domain_errors_keep_their_message(self, exception, code):
        """Test that domain errors are reported with their own message at low severity."""
        response = classify_error_with_response(exception)

        assert response.code == code
        assert response.message == str(exception)
        assert response.severity == ErrorSeverity.LOW
        assert response.suggestion

    def test_database_error_hides_details(self):
        """Test that persistence failures do not leak internals."""
        response = classify_error_with_response(DatabaseError("Failed to query tasks: disk I/O error"))

        assert response.code == ErrorCode.ERR_DATABASE_UNAVAILABLE
        assert "disk" not in response.message
        assert response.severity == ErrorSeverity.CRITICAL

    def test_rate_limit_response(self):
        """Test structured response for a rate-limited external call."""
        response = classify_error_with_response(Exception("Rate limit exceeded"))

        assert response.code == ErrorCode.ERR_RATE_LIMIT_EXCEEDED
        assert response.severity == ErrorSeverity.MEDIUM
        assert "wait" in response.suggestion.lower()

    def test_quota_response(self):
        """Test structured response for an exhausted quota."""
        response = classify_error_with_response(Exception("quota exceeded"))

        assert response.code == ErrorCode.ERR_SERVICE_QUOTA_EXCEEDED
        assert response.severity == ErrorSeverity.HIGH

    def test_unknown_response(self):
        """Test structured response for anything else."""
        response = classify_error_with_response(Exception("Something odd happened"))

        assert response.code == ErrorCode.ERR_UNKNOWN
        assert response.message == "An unexpected error occurred."
