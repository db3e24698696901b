"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from sales_ingestor.clients import BatchSendResult, FailedEntry
from sales_ingestor.exceptions import S3ObjectNotFoundError

PROCESSING_QUEUE_URL = "https://sqs.eu-west-1.amazonaws.com/000000000000/processing"
VALIDATION_FAILED_QUEUE_URL = (
    "https://sqs.eu-west-1.amazonaws.com/000000000000/validation-failed"
)


@pytest.fixture(scope="session", autouse=True)
def _env_vars():
    """
    Ensures a deterministic environment for every test run.
    Overwrite *only* the variables needed by the handlers.
    """
    original = os.environ.copy()
    os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "sales-ingestor-test")
    os.environ.setdefault("POWERTOOLS_LOG_LEVEL", "INFO")
    os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
    os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "SalesIngestorTest")
    os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
    yield
    os.environ.clear()
    os.environ.update(original)


@pytest.fixture
def valid_env(monkeypatch):
    """The two required queue URLs, everything else left at its default."""
    monkeypatch.setenv("PROCESSING_QUEUE_URL", PROCESSING_QUEUE_URL)
    monkeypatch.setenv("VALIDATION_FAILED_QUEUE_URL", VALIDATION_FAILED_QUEUE_URL)
    monkeypatch.setenv("CONSUMER_DELAY_MS", "0")


# ---------- In-memory collaborators ---------- #
class InMemoryObjectStore:
    """Dict-backed stand-in for S3 that records every call."""

    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None):
        self.objects = dict(objects or {})
        self.calls: list[tuple] = []
        self.fail_on: dict[str, Exception] = {}
        self.fail_once: dict[str, Exception] = {}

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]
        if operation in self.fail_once:
            raise self.fail_once.pop(operation)

    def get_object(self, bucket: str, key: str) -> bytes:
        self.calls.append(("get", bucket, key))
        self._maybe_fail("get")
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise S3ObjectNotFoundError(bucket=bucket, key=key) from None

    def copy_object(self, source_bucket, source_key, dest_bucket, dest_key) -> None:
        self.calls.append(("copy", source_bucket, source_key, dest_bucket, dest_key))
        self._maybe_fail("copy")
        try:
            data = self.objects[(source_bucket, source_key)]
        except KeyError:
            raise S3ObjectNotFoundError(bucket=source_bucket, key=source_key) from None
        self.objects[(dest_bucket, dest_key)] = data

    def delete_object(self, bucket: str, key: str) -> None:
        self.calls.append(("delete", bucket, key))
        self._maybe_fail("delete")
        self.objects.pop((bucket, key), None)


class RecordingQueue:
    """Captures every batch per queue URL; can reject chosen row indexes."""

    def __init__(self, reject_row_indexes: set[int] | None = None):
        self.batches: dict[str, list[list[dict]]] = {}
        self.reject_row_indexes = reject_row_indexes or set()
        self.error: Exception | None = None

    def send_batch(self, queue_url, messages) -> BatchSendResult:
        if self.error is not None:
            raise self.error
        self.batches.setdefault(queue_url, []).append(list(messages))
        failed = [
            FailedEntry(item=m, reason="rejected", code="InternalError")
            for m in messages
            if m.get("rowIndex") in self.reject_row_indexes
        ]
        return BatchSendResult(succeeded=len(messages) - len(failed), failed=failed)

    def messages(self, queue_url: str) -> list[dict]:
        return [m for batch in self.batches.get(queue_url, []) for m in batch]


class FixedClock:
    def __init__(self, moment: datetime | None = None):
        self.moment = moment or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.moment


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ---------- Minimal, realistic dummy events ---------- #
CSV_HEADER = "saleId,productId,quantity,amount,saleDate\n"


def make_csv(*rows: str) -> bytes:
    return (CSV_HEADER + "".join(f"{row}\n" for row in rows)).encode("utf-8")


def s3_record(key: str, bucket: str = "sales-bucket") -> dict:
    return {
        "eventVersion": "2.1",
        "eventSource": "aws:s3",
        "awsRegion": "eu-west-1",
        "eventTime": datetime.now(timezone.utc).isoformat(),
        "eventName": "ObjectCreated:Put",
        "s3": {
            "bucket": {"name": bucket},
            "object": {"key": key, "size": 123},
        },
    }


def sqs_record(body: dict | str) -> dict:
    return {
        "messageId": str(uuid.uuid4()),
        "receiptHandle": "ignore",
        "body": body if isinstance(body, str) else json.dumps(body),
        "attributes": {},
        "messageAttributes": {},
        "md5OfBody": "dummy",
        "eventSource": "aws:sqs",
        "eventSourceARN": "arn:aws:sqs:eu-west-1:000000000000:dummy",
        "awsRegion": "eu-west-1",
    }


@pytest.fixture
def lambda_context():
    """A small stand-in for the LambdaContext object."""
    context = MagicMock()
    context.function_name = "sales-ingestor-test"
    context.memory_limit_in_mb = 128
    context.invoked_function_arn = "arn:aws:lambda:eu-west-1:000000000000:function:dummy"
    context.aws_request_id = "req-" + uuid.uuid4().hex
    context.get_remaining_time_in_millis.return_value = 30000
    return context
