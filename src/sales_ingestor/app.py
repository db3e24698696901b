# src/sales_ingestor/app.py

"""
The Lambda adapters for the Sales Ingestor service.

This module holds the three AWS Lambda entry points:
1.  ``csv_processor_handler``: triggered by S3 notifications for files under
    the incoming prefix; runs the ingestion pipeline once per file.
2.  ``sales_processor_handler``: consumes the processing queue (valid rows).
3.  ``validation_failed_handler``: consumes the validation-failed queue.

Every handler initializes AWS Lambda Powertools (Logger, Tracer, Metrics),
validates configuration before touching any record, isolates failures per
record so one bad file or message never aborts the rest of the batch, and
answers with the standard response envelope.
"""

import os
from functools import cached_property, lru_cache
from typing import Any, Callable, cast

import boto3
import pydantic
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.batch.types import PartialItemFailures
from aws_lambda_powertools.utilities.data_classes.sqs_event import SQSRecord
from aws_lambda_powertools.utilities.typing import LambdaContext

from . import responses
from .clients import S3Client, SQSClient
from .config import AppConfig, get_config
from .consumers import process_sales_record, process_validation_failure
from .core import FileStatus, IngestionPipeline
from .exceptions import (
    ConfigurationError,
    FileProcessingError,
    SalesIngestorError,
    get_error_context,
    is_retryable_error,
)
from .schemas import S3EventNotificationRecord, S3EventRecord
from .summary import ResultAggregator

# --- Global & Reusable Components ---
SERVICE_NAME = os.getenv("SERVICE_NAME", "sales-ingestor")

logger = Logger(service=SERVICE_NAME)
tracer = Tracer(service=SERVICE_NAME)
metrics = Metrics(namespace="SalesIngestor", service=SERVICE_NAME)

_FILE_STATUS_METRICS = {
    FileStatus.PROCESSED: "FilesProcessed",
    FileStatus.FAILED: "FilesWithInvalidRows",
    FileStatus.EMPTY: "EmptyFiles",
}


class Dependencies:
    """Lazily-instantiated dependency container, reused across warm invocations."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    @cached_property
    def s3_client(self) -> S3Client:
        return S3Client(s3_client=boto3.client("s3"))

    @cached_property
    def sqs_client(self) -> SQSClient:
        return SQSClient(sqs_client=boto3.client("sqs"))

    @cached_property
    def pipeline(self) -> IngestionPipeline:
        return IngestionPipeline.from_config(self.config, self.s3_client, self.sqs_client)


@lru_cache(maxsize=1)
def get_dependencies() -> Dependencies:
    """Loads configuration (failing fast if invalid) and builds the container."""
    config = get_config()
    logger.setLevel(config.log_level)
    return Dependencies(config)


def _s3_record_info(raw_record: S3EventRecord) -> dict[str, Any]:
    s3 = raw_record.get("s3") or {}
    return {
        "bucket": (s3.get("bucket") or {}).get("name"),
        "key": (s3.get("object") or {}).get("key"),
    }


def _sqs_record_info(record: SQSRecord) -> dict[str, Any]:
    return {"messageId": record.message_id, "receiptHandle": record.receipt_handle}


def _configuration_failure(e: ConfigurationError) -> dict[str, Any]:
    logger.error(f"Invalid configuration: {e}", extra={"error": e.to_dict()})
    return responses.error(e.message, 500, details=e.context)


def _unhandled_failure(operation: str, e: Exception, config: AppConfig) -> dict[str, Any]:
    logger.exception(f"Unhandled error during {operation}")
    return responses.error(
        str(e),
        500,
        details={"operation": operation, "error_type": type(e).__name__},
        exc=e,
        include_stack=not config.is_production,
    )


def _record_failure(
    aggregator: ResultAggregator, record_info: dict[str, Any], e: Exception
) -> None:
    if isinstance(e, SalesIngestorError):
        aggregator.record_failure(record_info, e.message, e.error_code, details=e.context)
    else:
        aggregator.record_failure(record_info, str(e), type(e).__name__)


# --- S3-triggered ingestion ---


def _ingest_record(
    raw_record: S3EventRecord, deps: Dependencies, aggregator: ResultAggregator
) -> None:
    record_info = _s3_record_info(raw_record)
    try:
        task = S3EventNotificationRecord.model_validate(raw_record).to_task()
        outcome = deps.pipeline.process(task)
    except pydantic.ValidationError as e:
        metrics.add_metric(name="InvalidS3Records", unit=MetricUnit.Count, value=1)
        logger.warning(
            "Invalid S3 record failed validation.",
            extra={**record_info, "validation_errors": e.errors(include_url=False)},
        )
        aggregator.record_failure(record_info, "Invalid S3 event record", "INVALID_S3_EVENT")
        return
    except SalesIngestorError as e:
        metrics.add_metric(name="FilesFailed", unit=MetricUnit.Count, value=1)
        cause = e.original_error if isinstance(e, FileProcessingError) else e
        if is_retryable_error(cause):
            # A redelivered notification may succeed
            metrics.add_metric(name="RetryableFileErrors", unit=MetricUnit.Count, value=1)
            logger.warning(
                f"Retryable file processing error: {e}", extra={"error": get_error_context(e)}
            )
        else:
            metrics.add_metric(name="NonRetryableFileErrors", unit=MetricUnit.Count, value=1)
            logger.error(f"File processing failed: {e}", extra={"error": get_error_context(e)})
        _record_failure(aggregator, record_info, e)
        return
    except Exception as e:
        metrics.add_metric(name="UnexpectedRecordErrors", unit=MetricUnit.Count, value=1)
        logger.exception("Unexpected error processing S3 record.", extra=record_info)
        _record_failure(aggregator, record_info, e)
        return

    metrics.add_metric(name=_FILE_STATUS_METRICS[outcome.status], unit=MetricUnit.Count, value=1)
    metrics.add_metric(name="AcceptedRows", unit=MetricUnit.Count, value=outcome.valid_rows)
    metrics.add_metric(name="RejectedRows", unit=MetricUnit.Count, value=outcome.invalid_rows)
    aggregator.record_success()


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def csv_processor_handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Entry point for S3 notifications about newly uploaded CSV files."""
    try:
        deps = get_dependencies()
    except ConfigurationError as e:
        return _configuration_failure(e)

    metrics.add_dimension("environment", deps.config.environment)
    try:
        s3_records: list[S3EventRecord] = [
            r for r in event.get("Records", []) if r.get("eventSource") == "aws:s3"
        ]
        logger.info(
            "Starting CSV processing",
            extra={
                "record_count": len(s3_records),
                "s3_keys": [
                    f"{info['bucket']}/{info['key']}"
                    for info in map(_s3_record_info, s3_records)
                ],
            },
        )

        aggregator = ResultAggregator(max_errors=deps.config.max_error_details)
        for raw_record in s3_records:
            _ingest_record(raw_record, deps, aggregator)

        summary = aggregator.summary()
        logger.info("Completed CSV processing", extra=summary.to_dict())
        return responses.batch_processing(summary, "CSV processing")
    except Exception as e:
        return _unhandled_failure("CSV processing", e, deps.config)


# --- SQS-triggered consumers ---


def _consume(
    event: dict,
    operation: str,
    process: Callable[[SQSRecord, float], Any],
) -> dict[str, Any]:
    try:
        deps = get_dependencies()
    except ConfigurationError as e:
        return _configuration_failure(e)

    metrics.add_dimension("environment", deps.config.environment)
    try:
        records = [SQSRecord(raw) for raw in event.get("Records", [])]
        logger.info(f"Starting {operation}", extra={"record_count": len(records)})

        aggregator = ResultAggregator(max_errors=deps.config.max_error_details)
        failed_message_ids: list[str] = []
        for record in records:
            try:
                process(record, deps.config.consumer_delay_seconds)
            except Exception as e:
                metrics.add_metric(name="MessagesFailed", unit=MetricUnit.Count, value=1)
                logger.exception(
                    f"{operation} failed for message",
                    extra={"message_id": record.message_id},
                )
                _record_failure(aggregator, _sqs_record_info(record), e)
                failed_message_ids.append(record.message_id)
            else:
                metrics.add_metric(name="MessagesProcessed", unit=MetricUnit.Count, value=1)
                aggregator.record_success()

        response = responses.batch_processing(aggregator.summary(), operation)
        response["batchItemFailures"] = [
            cast(PartialItemFailures, {"itemIdentifier": mid}) for mid in failed_message_ids
        ]
        return response
    except Exception as e:
        return _unhandled_failure(operation, e, deps.config)


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def sales_processor_handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Entry point for the processing queue (rows that passed validation)."""
    return _consume(event, "Sales processing", process_sales_record)


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def validation_failed_handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Entry point for the validation-failed queue (rows that failed validation)."""
    return _consume(event, "Validation failure processing", process_validation_failure)
