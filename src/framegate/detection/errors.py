"""
Detection Errors
================

Error taxonomy for recognition service failures.

Retryable (transient):
    Rate limiting, transient server faults, network failures. Retried with
    linear backoff by the dispatcher; surfaced only after exhaustion.

Fatal:
    Bad input, missing or stopped model, access denied, permanent service
    limits, and anything unrecognized. Surfaced immediately.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Coarse classification of a recognition failure."""

    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    ACCESS_DENIED = "ACCESS_DENIED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    UNKNOWN = "UNKNOWN"


RETRYABLE_CATEGORIES = frozenset({
    ErrorCategory.RATE_LIMITED,
    ErrorCategory.SERVER_ERROR,
    ErrorCategory.NETWORK_ERROR,
})


_CODE_CATEGORIES: dict[str, ErrorCategory] = {
    "ThrottlingException": ErrorCategory.RATE_LIMITED,
    "ProvisionedThroughputExceededException": ErrorCategory.RATE_LIMITED,
    "InternalServerError": ErrorCategory.SERVER_ERROR,
    "ServiceUnavailableException": ErrorCategory.SERVER_ERROR,
    "RequestTimeout": ErrorCategory.NETWORK_ERROR,
    "NetworkingError": ErrorCategory.NETWORK_ERROR,
    "InvalidParameterException": ErrorCategory.INVALID_INPUT,
    "InvalidImageFormatException": ErrorCategory.INVALID_INPUT,
    "ImageTooLargeException": ErrorCategory.INVALID_INPUT,
    "ResourceNotFoundException": ErrorCategory.MODEL_UNAVAILABLE,
    "ResourceNotReadyException": ErrorCategory.MODEL_UNAVAILABLE,
    "AccessDeniedException": ErrorCategory.ACCESS_DENIED,
    "LimitExceededException": ErrorCategory.LIMIT_EXCEEDED,
}


_CATEGORY_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.RATE_LIMITED: "Too many requests. Please wait and try again",
    ErrorCategory.SERVER_ERROR: "Recognition service error. Please try again",
    ErrorCategory.NETWORK_ERROR: "Network error reaching the recognition service",
    ErrorCategory.INVALID_INPUT: "Invalid image format or parameters",
    ErrorCategory.MODEL_UNAVAILABLE: "Custom Labels model not found or not running",
    ErrorCategory.ACCESS_DENIED: "Access denied. Check AWS credentials and permissions",
    ErrorCategory.LIMIT_EXCEEDED: "Service limit exceeded",
}


class RecognitionServiceError(Exception):
    """
    Raw failure reported by a recognition service adapter.

    Attributes:
        code: Stable service error code (e.g. "ThrottlingException")
        message: Service-provided message
        status_code: HTTP status, if known
    """

    def __init__(
        self,
        code: str,
        message: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code
        self.message = message
        self.status_code = status_code


def classify(code: str, status_code: Optional[int] = None) -> ErrorCategory:
    """Map a service error code (and HTTP status) to a category."""
    category = _CODE_CATEGORIES.get(code)
    if category is not None:
        return category
    if status_code is not None and status_code >= 500:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.UNKNOWN


def is_retryable(error: RecognitionServiceError) -> bool:
    """Whether a raw service error is worth retrying."""
    return classify(error.code, error.status_code) in RETRYABLE_CATEGORIES


class DetectionError(Exception):
    """
    Classified failure raised by the DetectionDispatcher.

    `str(error)` is a one-line, human-readable status message.

    Attributes:
        code: Underlying service error code
        category: ErrorCategory
        retryable: Whether the category is transient
        attempts: Number of service calls made before giving up
    """

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        attempts: int = 1,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.retryable = category in RETRYABLE_CATEGORIES
        self.attempts = attempts

    @property
    def is_rate_limit(self) -> bool:
        return self.category == ErrorCategory.RATE_LIMITED

    @classmethod
    def from_service_error(
        cls,
        error: RecognitionServiceError,
        attempts: int = 1,
    ) -> "DetectionError":
        """Build a classified error from a raw service error."""
        category = classify(error.code, error.status_code)
        message = _CATEGORY_MESSAGES.get(category)
        if message is None:
            message = f"Recognition error: {error.message or error.code}"
        return cls(message=message, code=error.code, category=category, attempts=attempts)
