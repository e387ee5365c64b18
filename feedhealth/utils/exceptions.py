"""
FeedHealth Custom Exceptions
============================

Exception hierarchy for the feed health checker with error codes,
context information and a recoverable flag used by the retry layer.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Feed catalog errors (F001-F099)
    CATALOG_UNAVAILABLE = "F001"
    CATALOG_INVALID_RESPONSE = "F002"

    # Ingestion count errors (I001-I099)
    COUNT_NETWORK_ERROR = "I001"
    COUNT_TIMEOUT = "I002"
    COUNT_HTTP_STATUS = "I003"
    COUNT_DECODE_ERROR = "I004"

    # Owner lookup errors (O001-O099)
    OWNER_CREDENTIALS = "O001"
    OWNER_QUERY_FAILED = "O002"
    OWNER_INVALID_RESPONSE = "O003"

    # Delivery errors (L001-L099)
    DELIVERY_FAILED = "L001"
    DELIVERY_REJECTED = "L002"

    # Report errors (R001-R099)
    REPORT_WRITE_FAILED = "R001"


class FeedHealthError(Exception):
    """Base exception for all FeedHealth errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedHealth error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            recoverable: Whether retrying the operation may succeed
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(FeedHealthError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            **kwargs,
        )


class CatalogError(FeedHealthError):
    """Feed catalog lookup errors. Always fatal to the run."""

    def __init__(self, message: str, db_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if db_name:
            context["db_name"] = db_name

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CATALOG_UNAVAILABLE),
            context=context,
            recoverable=False,
            **kwargs,
        )


class CountFetchError(FeedHealthError):
    """Transient ingestion count failure (network, timeout, non-2xx status)."""

    def __init__(
        self,
        message: str,
        magazine: Optional[str] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
        **kwargs,
    ):
        """Initialize count fetch error.

        Args:
            message: Error message
            magazine: Magazine whose count was being fetched
            status: HTTP status returned by the counting service, if any
            body: Raw response body, if any
            **kwargs: Additional arguments for FeedHealthError
        """
        context = kwargs.pop("context", {})
        if magazine:
            context["magazine"] = magazine
        if status is not None:
            context["status"] = status
        if body:
            context["body"] = body

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.COUNT_NETWORK_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )
        self.status = status
        self.body = body


class CountDecodeError(CountFetchError):
    """A 2xx response whose body is not a list of article rows.

    The data is malformed rather than transient, so it is never retried.
    """

    def __init__(self, message: str, magazine: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            magazine=magazine,
            error_code=ErrorCode.COUNT_DECODE_ERROR,
            recoverable=False,
            **kwargs,
        )


class CredentialError(FeedHealthError):
    """Access token exchange failure. Always fatal to the run."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.OWNER_CREDENTIALS),
            context=kwargs.pop("context", {}),
            recoverable=False,
            **kwargs,
        )


class OwnerLookupError(FeedHealthError):
    """Owner resolver query failure for a single magazine."""

    def __init__(self, message: str, magazine: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if magazine:
            context["magazine"] = magazine

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.OWNER_QUERY_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class DeliveryError(FeedHealthError):
    """Email delivery errors."""

    def __init__(
        self,
        message: str,
        recipients: Optional[list] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if recipients:
            context["recipients"] = recipients
        if status is not None:
            context["status"] = status

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DELIVERY_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedHealthError:
    """Convert generic exceptions to FeedHealth exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FeedHealth exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FeedHealthError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    if isinstance(exception, (ConnectionError, TimeoutError)):
        error = FeedHealthError(
            message=f"Network error during {operation}: {exception}",
            error_code=ErrorCode.COUNT_NETWORK_ERROR,
            context=context,
            recoverable=True,
        )
    else:
        error = FeedHealthError(
            message=f"Unexpected error during {operation}: {exception}",
            context=context,
            recoverable=False,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error
