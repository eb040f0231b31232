"""
Error taxonomy for sync, scheduling and webhook failures.

Guesty and Supabase do not return structured codes for every failure mode, so
`classify_error` falls back to inspecting the message of untyped exceptions.
"""
from enum import Enum
from typing import Optional, List


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    DATA_STORE = "data_store"
    EMPTY_RESPONSE = "empty_response"
    RATE_LIMIT = "rate_limit"
    CANCELLED = "cancelled"
    GENERIC = "generic"


class SyncError(Exception):
    """Base exception for housekeeping sync errors."""
    category = ErrorCategory.GENERIC

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(SyncError):
    """Raised when required environment or credential values are missing."""
    category = ErrorCategory.CONFIGURATION


class AuthenticationError(SyncError):
    """Raised when credentials are rejected (401, 403) or cannot be obtained."""
    category = ErrorCategory.AUTHENTICATION


class DataStoreError(SyncError):
    """Raised when the local persistence layer rejects a read or write."""
    category = ErrorCategory.DATA_STORE


class EmptyResponseError(SyncError):
    """Raised when the upstream returns nothing where data was expected."""
    category = ErrorCategory.EMPTY_RESPONSE


class SyncCancelledError(SyncError):
    """Raised when a caller cancels an in-flight sync or retry loop."""
    category = ErrorCategory.CANCELLED


class ApiError(SyncError):
    """Raised on a non-2xx response from the Guesty API."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RateLimitError(ApiError):
    """Raised when Guesty answers 429."""
    category = ErrorCategory.RATE_LIMIT

    def __init__(self, message: str, retry_after: Optional[float] = None, response_body: Optional[str] = None):
        super().__init__(message, 429, response_body)
        self.retry_after = retry_after


class InvalidDateRangeError(ValueError):
    """Raised when a stay's check-out is not after its check-in."""


class MissingFieldsError(ValueError):
    """Raised when an inbound booking lacks required fields."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing required booking fields: {', '.join(missing)}")


_MESSAGE_PATTERNS = (
    (ErrorCategory.CONFIGURATION, ("environment variable", "not configured", "missing configuration", "configuration missing")),
    (ErrorCategory.AUTHENTICATION, ("unauthorized", "forbidden", "invalid token", "expired token", "token expired",
                                    "permission denied", "invalid_client", "authentication")),
    (ErrorCategory.RATE_LIMIT, ("rate limit", "too many requests", "429")),
    (ErrorCategory.DATA_STORE, ("database", "supabase", "violates", "relation", "postgres", "upsert")),
    (ErrorCategory.EMPTY_RESPONSE, ("no listings", "no bookings", "empty response")),
)


def classify_error(error: BaseException) -> ErrorCategory:
    """Map any exception to an ErrorCategory."""
    if isinstance(error, SyncError):
        if isinstance(error, ApiError) and error.category is ErrorCategory.GENERIC:
            if error.status_code in (401, 403):
                return ErrorCategory.AUTHENTICATION
            if error.status_code == 429:
                return ErrorCategory.RATE_LIMIT
        return error.category

    message = str(error).lower()
    for category, needles in _MESSAGE_PATTERNS:
        if any(needle in message for needle in needles):
            return category
    return ErrorCategory.GENERIC


def is_retryable(error: BaseException) -> bool:
    """Whether a retry loop should attempt the operation again."""
    return classify_error(error) not in (
        ErrorCategory.CONFIGURATION,
        ErrorCategory.AUTHENTICATION,
        ErrorCategory.EMPTY_RESPONSE,
        ErrorCategory.CANCELLED,
    )


OPERATOR_HINTS = {
    ErrorCategory.CONFIGURATION: "Environment variables are missing. Check the Guesty and Supabase secrets.",
    ErrorCategory.AUTHENTICATION: "Guesty API authentication failed. Check the Guesty client credentials.",
    ErrorCategory.DATA_STORE: "Failed to read or write Supabase. Verify the Supabase configuration.",
    ErrorCategory.EMPTY_RESPONSE: "Guesty returned no data. Make sure there are active listings.",
    ErrorCategory.RATE_LIMIT: "Guesty rate limit reached. Wait before retrying.",
    ErrorCategory.CANCELLED: "The sync was cancelled before it finished.",
    ErrorCategory.GENERIC: "Sync failed.",
}


def operator_hint(error: BaseException) -> str:
    """Human-readable remediation hint for an error."""
    return OPERATOR_HINTS[classify_error(error)]
