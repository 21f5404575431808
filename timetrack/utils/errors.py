"""
Error taxonomy and helpers.

- ValidationError: field-level input problems, surfaced to the caller.
- IdentityError: identity provider failures carrying a provider code.
- RecordStoreError: persistence failures, raised after logging.

Provider codes are mapped to user-facing messages through ERROR_MESSAGES;
unknown codes fall back to GENERIC_ERROR_MESSAGE.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger("timetrack.errors")

T = TypeVar("T")

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


class ErrorCodes:
    """Provider error codes"""
    AUTH_USER_NOT_FOUND = "auth/user-not-found"
    AUTH_WRONG_PASSWORD = "auth/wrong-password"
    AUTH_INVALID_EMAIL = "auth/invalid-email"
    AUTH_USER_DISABLED = "auth/user-disabled"
    AUTH_EMAIL_ALREADY_IN_USE = "auth/email-already-in-use"
    AUTH_WEAK_PASSWORD = "auth/weak-password"
    AUTH_TOO_MANY_REQUESTS = "auth/too-many-requests"
    AUTH_NETWORK_REQUEST_FAILED = "auth/network-request-failed"
    AUTH_REQUIRES_RECENT_LOGIN = "auth/requires-recent-login"
    AUTH_OPERATION_NOT_ALLOWED = "auth/operation-not-allowed"
    AUTH_INVALID_TOKEN = "auth/invalid-id-token"

    STORE_PERMISSION_DENIED = "permission-denied"
    STORE_NOT_FOUND = "not-found"
    STORE_ALREADY_EXISTS = "already-exists"
    STORE_RESOURCE_EXHAUSTED = "resource-exhausted"
    STORE_FAILED_PRECONDITION = "failed-precondition"
    STORE_ABORTED = "aborted"
    STORE_INTERNAL = "internal"
    STORE_UNAVAILABLE = "unavailable"


ERROR_MESSAGES = {
    # Authentication errors
    ErrorCodes.AUTH_USER_NOT_FOUND: "No account found with this email address.",
    ErrorCodes.AUTH_WRONG_PASSWORD: "Incorrect password. Please try again.",
    ErrorCodes.AUTH_INVALID_EMAIL: "Please enter a valid email address.",
    ErrorCodes.AUTH_USER_DISABLED: "This account has been disabled. Please contact support.",
    ErrorCodes.AUTH_EMAIL_ALREADY_IN_USE: "An account with this email already exists.",
    ErrorCodes.AUTH_WEAK_PASSWORD: "Password is too weak. Please choose a stronger password.",
    ErrorCodes.AUTH_TOO_MANY_REQUESTS: "Too many failed attempts. Please try again later.",
    ErrorCodes.AUTH_NETWORK_REQUEST_FAILED: "Network error. Please check your connection and try again.",
    ErrorCodes.AUTH_REQUIRES_RECENT_LOGIN: "Please log in again to continue.",
    ErrorCodes.AUTH_OPERATION_NOT_ALLOWED: "This sign-in method is not enabled.",
    ErrorCodes.AUTH_INVALID_TOKEN: "Your session has expired. Please log in again.",

    # Record store errors
    ErrorCodes.STORE_PERMISSION_DENIED: "You don't have permission to perform this action.",
    ErrorCodes.STORE_NOT_FOUND: "The requested data was not found.",
    ErrorCodes.STORE_ALREADY_EXISTS: "This item already exists.",
    ErrorCodes.STORE_RESOURCE_EXHAUSTED: "Service is temporarily overloaded. Please try again later.",
    ErrorCodes.STORE_FAILED_PRECONDITION: "Operation failed due to a conflict. Please refresh and try again.",
    ErrorCodes.STORE_ABORTED: "Operation was cancelled. Please try again.",
    ErrorCodes.STORE_INTERNAL: "An internal error occurred. Please try again.",
    ErrorCodes.STORE_UNAVAILABLE: "Service is temporarily unavailable. Please try again later.",
}

NON_RETRYABLE_CODES = {
    ErrorCodes.AUTH_USER_NOT_FOUND,
    ErrorCodes.AUTH_WRONG_PASSWORD,
    ErrorCodes.AUTH_INVALID_EMAIL,
    ErrorCodes.STORE_PERMISSION_DENIED,
    ErrorCodes.STORE_NOT_FOUND,
}

RETRYABLE_CODES = {
    ErrorCodes.AUTH_NETWORK_REQUEST_FAILED,
    ErrorCodes.AUTH_TOO_MANY_REQUESTS,
    ErrorCodes.STORE_UNAVAILABLE,
    ErrorCodes.STORE_INTERNAL,
    ErrorCodes.STORE_RESOURCE_EXHAUSTED,
    ErrorCodes.STORE_ABORTED,
}


class TimetrackError(Exception):
    """Base class for application errors"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(TimetrackError):
    """Invalid user input for a specific field"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="validation")
        self.field = field


class IdentityError(TimetrackError):
    """Failure reported by the identity provider"""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or ERROR_MESSAGES.get(code, GENERIC_ERROR_MESSAGE), code=code)


class RecordStoreError(TimetrackError):
    """Failure reported by the record store"""

    def __init__(self, message: str, code: str = ErrorCodes.STORE_INTERNAL):
        super().__init__(message, code=code)


class NotFoundError(RecordStoreError):
    def __init__(self, message: str):
        super().__init__(message, code=ErrorCodes.STORE_NOT_FOUND)


def get_error_message(error: Any) -> str:
    """
    User-facing message for any error value.

    Identity errors are looked up by code; unknown codes get the generic
    message. Store errors, validation errors and plain exceptions keep
    their own text.
    """
    if isinstance(error, IdentityError):
        return ERROR_MESSAGES.get(error.code, GENERIC_ERROR_MESSAGE)
    if isinstance(error, Exception):
        return str(error) or GENERIC_ERROR_MESSAGE
    if isinstance(error, str):
        return error
    return GENERIC_ERROR_MESSAGE


def is_retryable_error(error: Any) -> bool:
    return isinstance(error, TimetrackError) and error.code in RETRYABLE_CODES


def is_network_error(error: Any) -> bool:
    return isinstance(error, TimetrackError) and error.code in (
        ErrorCodes.AUTH_NETWORK_REQUEST_FAILED,
        ErrorCodes.STORE_UNAVAILABLE,
    )


@dataclass
class AppError:
    """Structured error record for logging and display"""
    message: str
    code: Optional[str] = None
    context: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def create_app_error(error: Any, context: Optional[str] = None,
                     user_id: Optional[str] = None) -> AppError:
    return AppError(
        message=get_error_message(error),
        code=getattr(error, "code", None),
        context=context,
        user_id=user_id,
    )


def log_error(error: AppError) -> None:
    logger.error(
        "App error: %s (code=%s, context=%s, user=%s)",
        error.message, error.code, error.context, error.user_id,
    )


@dataclass
class OperationResult:
    """Either ``data`` or ``error`` is set."""
    data: Any = None
    error: Optional[AppError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def handle_operation(operation: Callable[[], T], context: Optional[str] = None,
                     user_id: Optional[str] = None) -> OperationResult:
    """Run ``operation``, converting any application error into an AppError."""
    try:
        return OperationResult(data=operation())
    except TimetrackError as e:
        app_error = create_app_error(e, context, user_id)
        log_error(app_error)
        return OperationResult(error=app_error)


def retry_operation(operation: Callable[[], T], max_retries: int = 3,
                    delay: float = 1.0,
                    sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Call ``operation`` up to ``max_retries`` times with linear backoff.

    Only use for idempotent reads. Errors with a non-retryable code are
    re-raised immediately.

    Args:
        operation: Zero-argument callable
        max_retries: Total attempts
        delay: Base delay in seconds; attempt n waits delay * n
        sleep: Sleep function (injectable for tests)
    """
    last_error: Optional[Exception] = None

    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except TimetrackError as e:
            last_error = e
            if e.code in NON_RETRYABLE_CODES:
                raise
            if attempt == max_retries:
                break
            logger.warning("Attempt %d/%d failed: %s", attempt, max_retries, e)
            sleep(delay * attempt)

    raise last_error
