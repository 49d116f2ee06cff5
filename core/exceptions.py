"""
Custom exceptions for the sync pipeline with structured error context.

Every exception carries a context dictionary so failures can be logged and
stored in sync metadata without losing the upstream details.

Exception Hierarchy:
    SyncException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError
    │       └── UpstreamHTTPError
    ├── LoadError
    │   ├── UpsertError
    │   └── MetadataError
    ├── LinkError
    ├── DatasetValidationError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (dataset, url, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that the fetcher retries.

    Network failures, timeouts, non-2xx upstream responses and undecodable
    bodies all fall in this bucket for the open-data API.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_count: int = 0
    ):
        super().__init__(message, context, original_exception)
        self.retry_count = retry_count
        if retry_count:
            self.context["retry_count"] = retry_count


class NonRetryableError(SyncException):
    """Mixin for errors that are rejected immediately (bad input, config)."""
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(SyncException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when fetching from the open-data API fails.

    Context should include:
        - resource_id: The upstream resource that failed
        - status_code: HTTP status code (if applicable)
        - attempts: Number of attempts made
    """
    pass


class NetworkError(RetryableError, APIExtractionError):
    """Transport or decode failure that survived every retry."""
    pass


class UpstreamHTTPError(RetryableError, APIExtractionError):
    """Upstream answered with a non-2xx status on the final attempt."""

    def __init__(
        self,
        message: str,
        status_code: int,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_count: int = 0
    ):
        super().__init__(message, context, original_exception, retry_count)
        self.status_code = status_code
        self.context["status_code"] = status_code


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(SyncException):
    """Base exception for persistence failures."""
    pass


class UpsertError(LoadError):
    """
    Exception raised when a single record upsert fails.

    Context should include:
        - dataset: Target store name
        - record_id: ID of the record being upserted
        - record_hash: Content hash of the payload
    """
    pass


class MetadataError(LoadError):
    """
    Exception raised when sync metadata cannot be written or read.

    This is an infrastructure failure and is never converted into a
    per-dataset error status.
    """
    pass


# ============================================================================
# Linker / Validation Errors
# ============================================================================

class LinkError(SyncException):
    """Exception raised when the cross-reference linker cannot read or write."""
    pass


class DatasetValidationError(NonRetryableError):
    """
    Exception raised for unknown dataset ids or malformed sync requests.

    Raised before any network call or database write is made.
    """
    pass


class RegistryError(NonRetryableError):
    """Exception raised when the dataset registry file is missing or invalid."""
    pass
