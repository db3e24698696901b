# src/sales_ingestor/clients.py

"""
Client wrappers for interacting with AWS services (S3 and SQS).

These classes provide a clean, abstracted interface over raw boto3 clients,
translating botocore failures into the service's own exception types. The
pipeline depends only on the small protocols declared here, so tests and
alternative backends can supply in-memory implementations.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .exceptions import (
    QueueDispatchError,
    S3AccessDeniedError,
    S3Error,
    S3ObjectNotFoundError,
    S3OperationError,
    S3ThrottlingError,
    S3TimeoutError,
)

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client as S3ClientType
    from mypy_boto3_sqs.client import SQSClient as SQSClientType

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_ACCESS_DENIED_CODES = {"AccessDenied", "403", "Forbidden"}
_THROTTLING_CODES = {"Throttling", "ThrottlingException", "RequestLimitExceeded", "SlowDown"}
_TIMEOUT_CODES = {"RequestTimeout", "RequestTimeoutException"}


# --- Collaborator protocols ---


@dataclass(frozen=True)
class FailedEntry:
    """A single message the queue provider refused to accept."""

    item: Any
    reason: str
    code: str | None = None
    sender_fault: bool = False


@dataclass(frozen=True)
class BatchSendResult:
    succeeded: int
    failed: list[FailedEntry] = field(default_factory=list)


class ObjectStore(Protocol):
    def get_object(self, bucket: str, key: str) -> bytes: ...

    def copy_object(
        self, source_bucket: str, source_key: str, dest_bucket: str, dest_key: str
    ) -> None: ...

    def delete_object(self, bucket: str, key: str) -> None: ...


class MessageQueue(Protocol):
    def send_batch(
        self, queue_url: str, messages: Sequence[dict[str, Any]]
    ) -> BatchSendResult: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# --- S3 ---


def _map_s3_error(
    e: Exception, operation: str, bucket: str, key: str
) -> S3Error:
    """Translate a botocore exception into the matching S3Error subtype."""
    if isinstance(e, ClientError):
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))
        aws_context = {
            "aws_error_code": error_code,
            "aws_error_message": error_message,
        }

        if error_code in _NOT_FOUND_CODES:
            return S3ObjectNotFoundError(bucket=bucket, key=key, context=aws_context)
        if error_code in _ACCESS_DENIED_CODES:
            return S3AccessDeniedError(bucket=bucket, key=key, context=aws_context)
        if error_code in _THROTTLING_CODES:
            return S3ThrottlingError(
                operation, context={"bucket": bucket, "key": key, **aws_context}
            )
        if error_code in _TIMEOUT_CODES:
            return S3TimeoutError(
                operation, context={"bucket": bucket, "key": key, **aws_context}
            )
        return S3OperationError(
            operation,
            error_message,
            context={"bucket": bucket, "key": key, **aws_context},
        )
    if isinstance(e, (ReadTimeoutError, EndpointConnectionError)):
        return S3TimeoutError(
            operation,
            context={"bucket": bucket, "key": key, "connection_error": str(e)},
        )
    return S3OperationError(
        operation, str(e), context={"bucket": bucket, "key": key}
    )


class S3Client:
    """
    A wrapper for the S3 operations the ingestion pipeline needs.
    """

    def __init__(self, s3_client: "S3ClientType"):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
        """
        self._client = s3_client

    def get_object(self, bucket: str, key: str) -> bytes:
        """
        Retrieves an S3 object's full body.
        Raises specific S3 exceptions based on the error type.
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                data = body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            raise _map_s3_error(e, "GetObject", bucket, key) from e

        logger.debug(
            "S3 getObject operation",
            extra={"bucket": bucket, "key": key, "size": len(data)},
        )
        return data

    def copy_object(
        self, source_bucket: str, source_key: str, dest_bucket: str, dest_key: str
    ) -> None:
        try:
            self._client.copy_object(
                Bucket=dest_bucket,
                Key=dest_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
            )
        except (ClientError, BotoCoreError) as e:
            raise _map_s3_error(e, "CopyObject", source_bucket, source_key) from e

        logger.debug(
            "S3 copyObject operation",
            extra={
                "source_bucket": source_bucket,
                "source_key": source_key,
                "dest_bucket": dest_bucket,
                "dest_key": dest_key,
            },
        )

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _map_s3_error(e, "DeleteObject", bucket, key) from e

        logger.debug("S3 deleteObject operation", extra={"bucket": bucket, "key": key})


# --- SQS ---


class SQSClient:
    """
    A wrapper for SQS batch sends.

    Messages are serialised to JSON and given positional entry ids so the
    provider's per-entry failures can be mapped back to the original items.
    """

    def __init__(self, sqs_client: "SQSClientType"):
        self._client = sqs_client

    def send_batch(
        self, queue_url: str, messages: Sequence[dict[str, Any]]
    ) -> BatchSendResult:
        entries = [
            {"Id": str(index), "MessageBody": json.dumps(message)}
            for index, message in enumerate(messages)
        ]
        try:
            response = self._client.send_message_batch(
                QueueUrl=queue_url, Entries=entries
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            raise QueueDispatchError(
                queue_url,
                e.response.get("Error", {}).get("Message", str(e)),
                context={"aws_error_code": error_code, "message_count": len(messages)},
            ) from e
        except BotoCoreError as e:
            raise QueueDispatchError(
                queue_url, str(e), context={"message_count": len(messages)}
            ) from e

        failed = [
            FailedEntry(
                item=messages[int(entry["Id"])],
                reason=entry.get("Message", "unknown"),
                code=entry.get("Code"),
                sender_fault=bool(entry.get("SenderFault", False)),
            )
            for entry in response.get("Failed", [])
        ]
        succeeded = len(response.get("Successful", []))

        logger.debug(
            "SQS sendMessageBatch operation",
            extra={
                "queue_url": queue_url,
                "message_count": len(messages),
                "successful": succeeded,
                "failed": len(failed),
            },
        )
        return BatchSendResult(succeeded=succeeded, failed=failed)
