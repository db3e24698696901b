# tests/unit/test_exceptions.py

import json

import pytest

from sales_ingestor.exceptions import (
    ConfigurationError,
    FileProcessingError,
    InvalidObjectKeyError,
    MessageProcessingError,
    NonRetryableError,
    ParseError,
    PartialDispatchError,
    ProviderError,
    QueueDispatchError,
    RelocationError,
    RetryableError,
    S3AccessDeniedError,
    S3Error,
    S3ObjectNotFoundError,
    S3OperationError,
    S3ThrottlingError,
    S3TimeoutError,
    SalesIngestorError,
    get_error_context,
    is_retryable_error,
)


class TestSalesIngestorError:
    """Test the base SalesIngestorError class."""

    def test_basic_initialization(self):
        error = SalesIngestorError("Test message")
        assert str(error) == "Test message"
        assert error.message == "Test message"
        assert error.error_code == "SalesIngestorError"
        assert error.context == {}
        assert error.correlation_id is None

    def test_full_initialization(self):
        context = {"key": "value"}
        error = SalesIngestorError(
            "Test message",
            error_code="CUSTOM_CODE",
            context=context,
            correlation_id="test-123",
        )
        assert error.error_code == "CUSTOM_CODE"
        assert error.context == context
        assert error.correlation_id == "test-123"

    def test_context_is_copied(self):
        context = {"key": "value"}
        error = SalesIngestorError("Test message", context=context)
        context["key"] = "changed"
        assert error.context == {"key": "value"}

    def test_to_dict_is_json_serializable(self):
        error = SalesIngestorError("Test message", error_code="X", context={"n": 1})

        result = error.to_dict()

        assert result == {
            "error_type": "SalesIngestorError",
            "error_code": "X",
            "message": "Test message",
            "context": {"n": 1},
            "correlation_id": None,
            "retryable": False,
        }
        json.dumps(result)


class TestProviderErrors:
    def test_object_not_found(self):
        error = S3ObjectNotFoundError("bucket", "incoming/a.csv")
        assert error.message == "S3 object not found: s3://bucket/incoming/a.csv"
        assert error.error_code == "S3_OBJECT_NOT_FOUND"
        assert error.context == {"bucket": "bucket", "key": "incoming/a.csv"}
        assert isinstance(error, S3Error)
        assert isinstance(error, ProviderError)
        assert isinstance(error, NonRetryableError)

    def test_extra_context_is_merged(self):
        error = S3AccessDeniedError("b", "k", context={"aws_error_code": "AccessDenied"})
        assert error.context == {"bucket": "b", "key": "k", "aws_error_code": "AccessDenied"}

    @pytest.mark.parametrize(
        "error, code",
        [
            (S3ThrottlingError("GetObject"), "S3_THROTTLING"),
            (S3TimeoutError("GetObject"), "S3_TIMEOUT"),
        ],
    )
    def test_transient_s3_errors_are_retryable(self, error, code):
        assert error.error_code == code
        assert error.context["operation"] == "GetObject"
        assert is_retryable_error(error)

    def test_timeout_keeps_operation_over_context(self):
        error = S3TimeoutError("CopyObject", context={"operation": "other", "bucket": "b"})
        assert error.context == {"operation": "CopyObject", "bucket": "b"}

    def test_operation_error_has_no_retry_classification(self):
        error = S3OperationError("DeleteObject", "InternalError")
        assert error.message == "S3 DeleteObject failed: InternalError"
        assert not isinstance(error, RetryableError)
        assert not isinstance(error, NonRetryableError)

    def test_queue_dispatch_error(self):
        error = QueueDispatchError("https://q", "connection reset", sent_count=20)
        assert error.error_code == "QUEUE_DISPATCH_FAILED"
        assert error.context == {
            "queue_url": "https://q",
            "reason": "connection reset",
            "sent_count": 20,
        }
        assert is_retryable_error(error)

    def test_partial_dispatch_error(self):
        error = PartialDispatchError("https://q", failed_count=2, total_count=10)
        assert error.message == "2 of 10 messages were rejected by https://q"
        assert error.error_code == "PARTIAL_DISPATCH"
        assert isinstance(error, ProviderError)


class TestPipelineErrors:
    def test_parse_error(self):
        error = ParseError("unterminated quote")
        assert error.message == "Failed to parse CSV: unterminated quote"
        assert error.error_code == "CSV_PARSE_ERROR"
        assert not is_retryable_error(error)

    def test_invalid_object_key_default_and_custom_code(self):
        assert InvalidObjectKeyError("bad").error_code == "INVALID_OBJECT_KEY"
        assert (
            InvalidObjectKeyError("bad", error_code="MISSING_INCOMING_PREFIX").error_code
            == "MISSING_INCOMING_PREFIX"
        )

    def test_relocation_error(self):
        error = RelocationError("delete", "s3://b/incoming/a", "s3://b/failed/a", "denied")
        assert error.error_code == "RELOCATION_FAILED"
        assert error.context["step"] == "delete"
        assert "during delete" in error.message

    def test_file_processing_error_without_relocation_failure(self):
        cause = ParseError("bad quote")

        error = FileProcessingError("b", "incoming/a.csv", "PARSING", cause)

        assert error.original_error is cause
        assert error.relocation_error is None
        assert error.context["state"] == "PARSING"
        assert error.context["original_error"]["error_code"] == "CSV_PARSE_ERROR"
        assert "relocation_error" not in error.context
        assert "bad quote" in error.message

    def test_file_processing_error_carries_both_causes(self):
        cause = S3ObjectNotFoundError("b", "incoming/a.csv")
        relocation = RelocationError("copy", "s3://b/incoming/a.csv", "s3://b/failed/a.csv", "gone")

        error = FileProcessingError("b", "incoming/a.csv", "FETCHING", cause, relocation)

        assert error.context["original_error"]["error_code"] == "S3_OBJECT_NOT_FOUND"
        assert error.context["relocation_error"]["error_code"] == "RELOCATION_FAILED"
        assert "compensating action also failed" in error.message
        json.dumps(error.to_dict())

    def test_message_processing_error(self):
        error = MessageProcessingError("msg-1", "invalid body")
        assert error.message == "Failed to process message msg-1: invalid body"
        assert error.context["message_id"] == "msg-1"

    def test_configuration_error(self):
        error = ConfigurationError("missing", context={"missing_variables": ["X"]})
        assert error.error_code == "CONFIGURATION_ERROR"
        assert isinstance(error, NonRetryableError)


class TestUtilityFunctions:
    def test_is_retryable_error_with_plain_exception(self):
        assert is_retryable_error(ValueError("x")) is False

    def test_get_error_context_for_service_error(self):
        error = S3ThrottlingError("GetObject")
        assert get_error_context(error) == error.to_dict()

    def test_get_error_context_for_plain_exception(self):
        assert get_error_context(ValueError("boom")) == {
            "error_type": "ValueError",
            "message": "boom",
            "retryable": False,
        }
