# src/sales_ingestor/consumers.py

"""
Downstream consumers for the processing and validation-failed queues.

Neither consumer does real work yet: each parses the routed message, logs
it, and waits a configurable delay standing in for downstream processing.
"""

import logging
import time

import pydantic
from aws_lambda_powertools.utilities.data_classes.sqs_event import SQSRecord

from .exceptions import MessageProcessingError
from .schemas import AcceptedMessage, RejectedMessage

logger = logging.getLogger(__name__)


def _parse(record: SQSRecord, model: type[pydantic.BaseModel]):
    try:
        return model.model_validate_json(record.body)
    except pydantic.ValidationError as e:
        logger.warning(
            "Malformed message body",
            extra={
                "message_id": record.message_id,
                "validation_errors": e.errors(include_url=False),
            },
        )
        raise MessageProcessingError(
            record.message_id,
            f"invalid {model.__name__} body",
            context={"receipt_handle": record.receipt_handle},
        ) from e


def process_sales_record(record: SQSRecord, delay_seconds: float = 0.1) -> AcceptedMessage:
    message = _parse(record, AcceptedMessage)
    logger.info(
        "Processing sales data",
        extra={
            "source_file": message.source_file,
            "row_index": message.row_index,
            "message_id": record.message_id,
        },
    )

    time.sleep(delay_seconds)

    logger.info(
        "Successfully processed sales record",
        extra={"source_file": message.source_file, "row_index": message.row_index},
    )
    return message


def process_validation_failure(
    record: SQSRecord, delay_seconds: float = 0.1
) -> RejectedMessage:
    message = _parse(record, RejectedMessage)
    logger.warning(
        "Validation errors detected",
        extra={
            "source_file": message.source_file,
            "row_index": message.row_index,
            "message_id": record.message_id,
            "errors": message.errors,
            "error_count": len(message.errors),
            "failed_at": message.failed_at.isoformat(),
        },
    )

    time.sleep(delay_seconds)

    logger.info(
        "Validation failure processed successfully",
        extra={"source_file": message.source_file, "row_index": message.row_index},
    )
    return message
