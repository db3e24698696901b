# In src/sales_ingestor/schemas.py

from datetime import datetime
from typing import Any, NotRequired, TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import InvalidObjectKeyError
from .security import decode_s3_key, validate_object_key

# --- Static Type Hinting (for mypy and IDEs) ---


class S3BucketDict(TypedDict):
    name: str


class S3ObjectDict(TypedDict):
    key: str
    size: NotRequired[int]


class S3DataDict(TypedDict):
    bucket: S3BucketDict
    object: S3ObjectDict


class S3EventRecord(TypedDict):
    """
    A TypedDict representing the structure of a single S3 event record.
    Used for static type analysis throughout the application.
    """

    eventSource: str
    eventName: NotRequired[str]
    s3: S3DataDict


# --- Runtime Validation (using Pydantic) ---


class S3BucketModel(BaseModel):
    name: str = Field(..., min_length=1)


class S3ObjectModel(BaseModel):
    key: str = Field(..., min_length=1)
    size: int | None = None

    # Notification keys are URL-encoded; everything downstream works with
    # the decoded key.
    @field_validator("key")
    @classmethod
    def decode_and_validate_key(cls, value: str) -> str:
        try:
            return validate_object_key(decode_s3_key(value))
        except InvalidObjectKeyError as e:
            raise ValueError(str(e))


class S3DataModel(BaseModel):
    bucket: S3BucketModel
    object: S3ObjectModel


class IngestTask(BaseModel):
    """One file to ingest, scoped to a single pipeline run."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    event_name: str = "ObjectCreated:Put"

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class S3EventNotificationRecord(BaseModel):
    """
    Pydantic model for runtime parsing and validation of an S3 event record.
    """

    model_config = ConfigDict(populate_by_name=True)

    event_source: str = Field("aws:s3", alias="eventSource")
    event_name: str = Field("ObjectCreated:Put", alias="eventName")
    s3: S3DataModel

    def to_task(self) -> IngestTask:
        return IngestTask(
            bucket=self.s3.bucket.name,
            key=self.s3.object.key,
            event_name=self.event_name,
        )


# --- Routed messages (bodies sent to the two queues) ---


class RoutedMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_file: str = Field(..., alias="sourceFile")
    row_index: int = Field(..., alias="rowIndex", ge=0)
    data: dict[str, Any]

    def to_body(self) -> dict[str, Any]:
        """Returns the JSON-ready message body with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class AcceptedMessage(RoutedMessage):
    """Body sent to the processing queue for a row that passed validation."""

    enqueued_at: datetime = Field(..., alias="enqueuedAt")


class RejectedMessage(RoutedMessage):
    """Body sent to the validation-failed queue, with the row's violations."""

    errors: list[str] = Field(..., min_length=1)
    failed_at: datetime = Field(..., alias="failedAt")
