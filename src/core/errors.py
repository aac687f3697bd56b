"""Exception taxonomy and error classification for the validation pipeline."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class NoRushError(Exception):
    """Base class for all application errors."""


class DatabaseError(NoRushError):
    """Persistence is unavailable or a query failed. Always propagated."""


class DataIntegrityError(NoRushError):
    """A write was rejected because it would break a data invariant."""


class RecordNotFoundError(DataIntegrityError):
    """The requested record does not exist."""


class DuplicateRecordError(DataIntegrityError):
    """An insert collided with a uniqueness constraint."""


class DuplicateRefundRequestError(DuplicateRecordError):
    """A milestone already has an outstanding refund request."""


class InvalidStateTransitionError(DataIntegrityError):
    """The requested status change is not allowed from the current status."""


class RefundNotEligibleError(DataIntegrityError):
    """The milestone has not passed validation, so no refund can be claimed."""


class SubmissionInProgressError(NoRushError):
    """A full-document validation is already running for this editor session."""


class ExternalServiceError(NoRushError):
    """An external dependency failed. Callers degrade to a fallback policy."""


class LookupUnavailableError(ExternalServiceError):
    """The dictionary lookup service could not give a definitive answer."""


class OracleUnavailableError(ExternalServiceError):
    """The quality oracle could not be reached or refused the request."""


class ErrorCategory(Enum):
    """Categories of errors raised by external dependencies."""

    SERVICE_QUOTA_EXCEEDED = "service_quota_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Service errors
    ERR_SERVICE_QUOTA_EXCEEDED = "ERR_SERVICE_QUOTA_EXCEEDED"
    ERR_RATE_LIMIT_EXCEEDED = "ERR_RATE_LIMIT_EXCEEDED"
    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_DATABASE_UNAVAILABLE = "ERR_DATABASE_UNAVAILABLE"

    # Integrity errors
    ERR_RECORD_NOT_FOUND = "ERR_RECORD_NOT_FOUND"
    ERR_DUPLICATE_REFUND_REQUEST = "ERR_DUPLICATE_REFUND_REQUEST"
    ERR_DUPLICATE_RECORD = "ERR_DUPLICATE_RECORD"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_REFUND_NOT_ELIGIBLE = "ERR_REFUND_NOT_ELIGIBLE"

    # Editor errors
    ERR_SUBMISSION_IN_PROGRESS = "ERR_SUBMISSION_IN_PROGRESS"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_ERROR_PATTERNS: dict[
    Literal["quota", "rate_limit", "auth", "network"],
    dict[str, list[str] | set[str]],
] = {
    "quota": {
        "phrases": [
            "quota exceeded",
            "insufficient credits",
            "credit limit",
            "credits exhausted",
            "out of credits",
        ],
        "exception_types": set(),
    },
    "rate_limit": {
        "phrases": [
            "rate limit",
            "too many requests",
            "rate_limit_exceeded",
            "throttled",
            "429",
        ],
        "exception_types": set(),
    },
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "api key",
            "401",
            "403",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "timed out",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout", "ConnectTimeout"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["quota", "rate_limit", "auth", "network"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_external_error(exception: BaseException) -> ErrorCategory:
    """Classify a failure raised by the dictionary service or the quality oracle.

    The category is attached to log records so degraded lookups can be told
    apart (a quota problem needs a different fix than a network blip).
    """
    cause = exception.__cause__ or exception
    error_str = f"{exception} {cause}".lower()
    exception_type = type(cause).__name__

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="quota"):
        return ErrorCategory.SERVICE_QUOTA_EXCEEDED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="rate_limit"):
        return ErrorCategory.RATE_LIMIT_EXCEEDED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        return ErrorCategory.AUTHENTICATION_FAILED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorCategory.NETWORK_ERROR
    return ErrorCategory.UNKNOWN


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, DuplicateRefundRequestError):
        return ErrorResponse(
            code=ErrorCode.ERR_DUPLICATE_REFUND_REQUEST,
            message=str(exception),
            suggestion="Wait for the outstanding refund request to be reviewed.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DuplicateRecordError):
        return ErrorResponse(
            code=ErrorCode.ERR_DUPLICATE_RECORD,
            message=str(exception),
            suggestion="The record already exists; refresh and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_RECORD_NOT_FOUND,
            message=str(exception),
            suggestion="Check the task and day number and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidStateTransitionError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message=str(exception),
            suggestion="Refresh the current status before retrying.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RefundNotEligibleError):
        return ErrorResponse(
            code=ErrorCode.ERR_REFUND_NOT_ELIGIBLE,
            message=str(exception),
            suggestion="Submit content that passes every validation stage first.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, SubmissionInProgressError):
        return ErrorResponse(
            code=ErrorCode.ERR_SUBMISSION_IN_PROGRESS,
            message=str(exception),
            suggestion="Wait for the current submission to finish.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_DATABASE_UNAVAILABLE,
            message="The data store is unavailable.",
            suggestion="Please try again later. If the problem persists, contact support.",
            severity=ErrorSeverity.CRITICAL,
        )

    if isinstance(exception, ValueError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_INPUT,
            message=str(exception),
            suggestion="Check the request values and try again.",
            severity=ErrorSeverity.LOW,
        )

    category = classify_external_error(exception)
    if category == ErrorCategory.SERVICE_QUOTA_EXCEEDED:
        return ErrorResponse(
            code=ErrorCode.ERR_SERVICE_QUOTA_EXCEEDED,
            message="The AI service quota has been exceeded.",
            suggestion="Please try again later or contact support.",
            severity=ErrorSeverity.HIGH,
        )
    if category == ErrorCategory.RATE_LIMIT_EXCEEDED:
        return ErrorResponse(
            code=ErrorCode.ERR_RATE_LIMIT_EXCEEDED,
            message="Too many requests.",
            suggestion="Please wait a moment and try again.",
            severity=ErrorSeverity.MEDIUM,
        )
    if category == ErrorCategory.AUTHENTICATION_FAILED:
        return ErrorResponse(
            code=ErrorCode.ERR_AUTHENTICATION_FAILED,
            message="Service authentication failed.",
            suggestion="Please contact support.",
            severity=ErrorSeverity.CRITICAL,
        )
    if category == ErrorCategory.NETWORK_ERROR:
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
