# src/sales_ingestor/exceptions.py

"""
Shared custom exceptions for the Sales Ingestor service.

Centralizing exception definitions in a separate module prevents circular
import errors between other modules that need to raise or catch them.

Exception Hierarchy:
- SalesIngestorError (base)
  - RetryableError (a redelivered notification may succeed)
    - S3ThrottlingError
    - S3TimeoutError
    - QueueDispatchError
    - PartialDispatchError
  - NonRetryableError (re-running on the same input will fail again)
    - S3ObjectNotFoundError
    - S3AccessDeniedError
    - ParseError
    - InvalidObjectKeyError
    - ConfigurationError
  - ProviderError (any object-store or queue-provider fault)
    - S3Error
      - S3ObjectNotFoundError, S3AccessDeniedError, S3ThrottlingError,
        S3TimeoutError, S3OperationError
    - QueueDispatchError, PartialDispatchError
  - RelocationError
  - FileProcessingError
  - MessageProcessingError
"""

from typing import Any, Dict, Optional


class SalesIngestorError(Exception):
    """Base exception for all Sales Ingestor service errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}  # Copy context to prevent mutation
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "retryable": isinstance(self, RetryableError),
        }


class RetryableError(SalesIngestorError):
    """Base class for errors that can be retried."""
    pass


class NonRetryableError(SalesIngestorError):
    """Base class for errors that should not be retried."""
    pass


# === Provider Errors ===

class ProviderError(SalesIngestorError):
    """Base class for faults raised by the object store or the queue provider."""
    pass


class S3Error(ProviderError):
    """Base class for S3-related errors."""
    pass


class S3ObjectNotFoundError(S3Error, NonRetryableError):
    """Raised when a requested S3 object does not exist."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"S3 object not found: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_OBJECT_NOT_FOUND", context=context, **kwargs)


class S3AccessDeniedError(S3Error, NonRetryableError):
    """Raised when access is denied to an S3 object."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"Access denied to S3 object: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_ACCESS_DENIED", context=context, **kwargs)


class S3ThrottlingError(S3Error, RetryableError):
    """Raised when S3 operations are being throttled."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation throttled: {operation}"
        context = {"operation": operation}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_THROTTLING", context=context, **kwargs)


class S3TimeoutError(S3Error, RetryableError):
    """Raised when S3 operations time out or the endpoint is unreachable."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation timed out: {operation}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context") or {})
        context.update({"operation": operation})
        super().__init__(message, error_code="S3_TIMEOUT", context=context, **kwargs)


class S3OperationError(S3Error):
    """Raised for any other S3 client error."""

    def __init__(self, operation: str, reason: str, **kwargs):
        message = f"S3 {operation} failed: {reason}"
        context = {"operation": operation, "reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_OPERATION_FAILED", context=context, **kwargs)


class QueueDispatchError(ProviderError, RetryableError):
    """Raised when a batch submission call to the queue provider fails."""

    def __init__(self, queue_url: str, reason: str, sent_count: int = 0, **kwargs):
        message = f"Failed to send messages to {queue_url}: {reason}"
        context = {"queue_url": queue_url, "reason": reason, "sent_count": sent_count}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="QUEUE_DISPATCH_FAILED", context=context, **kwargs)


class PartialDispatchError(ProviderError, RetryableError):
    """Raised when the provider accepted the call but rejected some entries."""

    def __init__(self, queue_url: str, failed_count: int, total_count: int, **kwargs):
        message = f"{failed_count} of {total_count} messages were rejected by {queue_url}"
        context = {
            "queue_url": queue_url,
            "failed_count": failed_count,
            "total_count": total_count,
        }
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="PARTIAL_DISPATCH", context=context, **kwargs)


# === Pipeline Errors ===

class ParseError(NonRetryableError):
    """Raised when a byte stream is not well-formed delimited text."""

    def __init__(self, reason: str, **kwargs):
        message = f"Failed to parse CSV: {reason}"
        context = {"reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="CSV_PARSE_ERROR", context=context, **kwargs)


class InvalidObjectKeyError(NonRetryableError):
    """Raised when an object key cannot be used by the pipeline."""

    def __init__(self, message: str, **kwargs):
        if "error_code" not in kwargs:
            kwargs["error_code"] = "INVALID_OBJECT_KEY"
        super().__init__(message, **kwargs)


class RelocationError(SalesIngestorError):
    """
    Raised when a copy-then-delete move fails.

    The source object's terminal state is undefined afterwards: the copy may
    exist with the source still in place.
    """

    def __init__(
        self,
        step: str,
        source: str,
        destination: str,
        reason: str,
        **kwargs,
    ):
        message = f"Failed to move {source} to {destination} during {step}: {reason}"
        context = {
            "step": step,
            "source": source,
            "destination": destination,
            "reason": reason,
        }
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="RELOCATION_FAILED", context=context, **kwargs)


class FileProcessingError(SalesIngestorError):
    """
    Terminal failure of one file's pipeline run.

    When the compensating action (the move to the failed location, or the
    removal of a half-finished copy) also fails, both the original cause and
    the compensation failure are carried in ``context``.
    """

    def __init__(
        self,
        bucket: str,
        key: str,
        state: str,
        original_error: Exception,
        relocation_error: Optional[Exception] = None,
        **kwargs,
    ):
        if relocation_error is None:
            message = f"Failed to process file s3://{bucket}/{key}: {original_error}"
        else:
            message = (
                f"Failed to process file s3://{bucket}/{key} and the compensating "
                f"action also failed: {relocation_error}"
            )
        context = {
            "bucket": bucket,
            "key": key,
            "state": state,
            "original_error": get_error_context(original_error),
        }
        if relocation_error is not None:
            context["relocation_error"] = get_error_context(relocation_error)
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="FILE_PROCESSING_FAILED", context=context, **kwargs)
        self.original_error = original_error
        self.relocation_error = relocation_error


class MessageProcessingError(SalesIngestorError):
    """Raised when a queue consumer cannot handle a message."""

    def __init__(self, message_id: str, reason: str, **kwargs):
        message = f"Failed to process message {message_id}: {reason}"
        context = {"message_id": message_id, "reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="MESSAGE_PROCESSING_FAILED", context=context, **kwargs)


# === Configuration Errors ===

class ConfigurationError(NonRetryableError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Utility Functions ===

def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable."""
    return isinstance(error, RetryableError)


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, SalesIngestorError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,  # Unknown errors default to non-retryable
        }
