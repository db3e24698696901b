# src/sales_ingestor/core.py

"""
Core business logic for ingesting one uploaded sales file.

The pipeline fetches the object, parses it, validates every row, sends
valid rows to the processing queue and invalid rows to the validation-failed
queue, then moves the file out of the incoming prefix:

    FETCHING -> PARSING -> PARTITIONING -> DISPATCHING_ACCEPTED
             -> DISPATCHING_REJECTED -> RELOCATING -> DONE

Any step may end in FAILED. On failure the pipeline makes exactly one
compensating attempt and then raises a FileProcessingError carrying the
original cause (and the compensation error, if that attempt also failed).
Before RELOCATING the compensation is a move to the failed prefix. A failed
terminal move is never repeated: a file is never left under both the
processed and the failed prefix.

A file lands in processed/ only when every row validated and every message
was accepted by the queue. A file with even one invalid row lands in
failed/, although its valid rows are still forwarded. Empty files go to
failed/ without any messages being sent.

Nothing here retries: the notification that triggered the run is redelivered
at-least-once, and re-running against the same untouched object produces the
same routing decision.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from .clients import Clock, MessageQueue, ObjectStore, SystemClock
from .config import AppConfig
from .dispatcher import SQS_MAX_BATCH_SIZE, BatchDispatcher
from .exceptions import (
    FileProcessingError,
    InvalidObjectKeyError,
    PartialDispatchError,
    RelocationError,
    get_error_context,
)
from .parser import clean_row, parse_csv
from .relocation import FileRelocator
from .schemas import AcceptedMessage, IngestTask, RejectedMessage
from .validator import SALES_SCHEMA, FieldRule, ValidationOutcome, partition, validate_rows

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    FETCHING = "FETCHING"
    PARSING = "PARSING"
    PARTITIONING = "PARTITIONING"
    DISPATCHING_ACCEPTED = "DISPATCHING_ACCEPTED"
    DISPATCHING_REJECTED = "DISPATCHING_REJECTED"
    RELOCATING = "RELOCATING"
    DONE = "DONE"
    FAILED = "FAILED"


class FileStatus(str, Enum):
    PROCESSED = "processed"
    FAILED = "failed"
    EMPTY = "empty"


@dataclass(frozen=True)
class FileOutcome:
    """Result of a pipeline run that reached DONE."""

    bucket: str
    key: str
    destination_key: str
    status: FileStatus
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "destinationKey": self.destination_key,
            "status": self.status.value,
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": self.invalid_rows,
        }


class IngestionPipeline:
    def __init__(
        self,
        store: ObjectStore,
        queue: MessageQueue,
        *,
        processing_queue_url: str,
        validation_failed_queue_url: str,
        relocator: FileRelocator | None = None,
        clock: Clock | None = None,
        batch_size: int = SQS_MAX_BATCH_SIZE,
        schema: Sequence[FieldRule] = SALES_SCHEMA,
    ):
        self._store = store
        self._dispatcher = BatchDispatcher(queue)
        self._relocator = relocator or FileRelocator(store)
        self._clock = clock or SystemClock()
        self._processing_queue_url = processing_queue_url
        self._validation_failed_queue_url = validation_failed_queue_url
        self._batch_size = batch_size
        self._schema = schema

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        store: ObjectStore,
        queue: MessageQueue,
        clock: Clock | None = None,
    ) -> "IngestionPipeline":
        relocator = FileRelocator(
            store,
            incoming_prefix=config.incoming_prefix,
            processed_prefix=config.processed_prefix,
            failed_prefix=config.failed_prefix,
        )
        return cls(
            store,
            queue,
            processing_queue_url=config.processing_queue_url,
            validation_failed_queue_url=config.validation_failed_queue_url,
            relocator=relocator,
            clock=clock,
            batch_size=config.sqs_batch_size,
        )

    def process(self, task: IngestTask) -> FileOutcome:
        """
        Runs the pipeline for one file.

        Returns a FileOutcome on DONE; raises FileProcessingError on FAILED.
        """
        bucket, key = task.bucket, task.key
        logger.info(f"Processing file: {task.uri}", extra={"bucket": bucket, "key": key})

        # Both terminal keys must be derivable before anything is sent.
        try:
            self._relocator.processed_path(key)
            self._relocator.failed_path(key)
        except InvalidObjectKeyError as e:
            logger.error(
                "Object key has no incoming prefix; leaving it in place",
                extra={"bucket": bucket, "key": key},
            )
            raise FileProcessingError(bucket, key, PipelineState.FETCHING.value, e) from e

        state = PipelineState.FETCHING
        status: FileStatus | None = None
        try:
            data = self._store.get_object(bucket, key)

            state = self._transition(state, PipelineState.PARSING, task)
            raw_rows = parse_csv(data)
            if not raw_rows:
                logger.warning("CSV file is empty", extra={"bucket": bucket, "key": key})
                state = self._transition(state, PipelineState.RELOCATING, task)
                status = FileStatus.EMPTY
                destination = self._relocator.to_failed(bucket, key)
                self._transition(state, PipelineState.DONE, task)
                return FileOutcome(bucket, key, destination, FileStatus.EMPTY)

            state = self._transition(state, PipelineState.PARTITIONING, task)
            outcomes = validate_rows([clean_row(row) for row in raw_rows], self._schema)
            valid, invalid = partition(outcomes)

            if valid:
                state = self._transition(state, PipelineState.DISPATCHING_ACCEPTED, task)
                self._send(self._processing_queue_url, self._accepted_bodies(key, valid))

            if invalid:
                state = self._transition(state, PipelineState.DISPATCHING_REJECTED, task)
                self._send(
                    self._validation_failed_queue_url, self._rejected_bodies(key, invalid)
                )

            state = self._transition(state, PipelineState.RELOCATING, task)
            if invalid:
                status = FileStatus.FAILED
                destination = self._relocator.to_failed(bucket, key)
            else:
                status = FileStatus.PROCESSED
                destination = self._relocator.to_processed(bucket, key)

        except RelocationError as e:
            if state is not PipelineState.RELOCATING or status is None:
                raise self._fail(task, state, e) from e
            raise self._relocation_failed(task, status, e) from e
        except Exception as e:
            raise self._fail(task, state, e) from e

        self._transition(state, PipelineState.DONE, task)
        logger.info(
            "Completed file processing",
            extra={
                "key": key,
                "destination_key": destination,
                "valid_rows": len(valid),
                "invalid_rows": len(invalid),
                "total_rows": len(outcomes),
            },
        )
        return FileOutcome(
            bucket,
            key,
            destination,
            status,
            total_rows=len(outcomes),
            valid_rows=len(valid),
            invalid_rows=len(invalid),
        )

    # --- Helpers ---

    def _transition(
        self, current: PipelineState, target: PipelineState, task: IngestTask
    ) -> PipelineState:
        logger.debug(
            f"{current.value} -> {target.value}",
            extra={"bucket": task.bucket, "key": task.key},
        )
        return target

    def _accepted_bodies(
        self, key: str, outcomes: list[ValidationOutcome]
    ) -> list[dict[str, Any]]:
        now = self._clock.now()
        return [
            AcceptedMessage(
                source_file=key, row_index=o.row_index, data=o.row, enqueued_at=now
            ).to_body()
            for o in outcomes
        ]

    def _rejected_bodies(
        self, key: str, outcomes: list[ValidationOutcome]
    ) -> list[dict[str, Any]]:
        now = self._clock.now()
        return [
            RejectedMessage(
                source_file=key,
                row_index=o.row_index,
                data=o.row,
                errors=o.violations,
                failed_at=now,
            ).to_body()
            for o in outcomes
        ]

    def _send(self, queue_url: str, bodies: list[dict[str, Any]]) -> None:
        result = self._dispatcher.dispatch(queue_url, bodies, self._batch_size)
        # Rows the queue refused would be lost if the file were marked done.
        if result.failed:
            raise PartialDispatchError(
                queue_url,
                failed_count=len(result.failed),
                total_count=result.total,
                context={"reasons": sorted({entry.reason for entry in result.failed})},
            )

    def _fail(
        self, task: IngestTask, state: PipelineState, error: Exception
    ) -> FileProcessingError:
        """Makes the single compensating move to failed/ and builds the terminal error."""
        logger.error(
            f"Error processing file {task.key} during {state.value}",
            extra={"bucket": task.bucket, "key": task.key, "error": get_error_context(error)},
        )
        try:
            self._relocator.to_failed(task.bucket, task.key)
        except Exception as relocation_error:
            logger.error(
                "Failed to move file to failed folder",
                extra={
                    "bucket": task.bucket,
                    "key": task.key,
                    "relocation_error": get_error_context(relocation_error),
                },
            )
            return FileProcessingError(
                task.bucket,
                task.key,
                state.value,
                original_error=error,
                relocation_error=relocation_error,
            )
        return FileProcessingError(task.bucket, task.key, state.value, original_error=error)

    def _relocation_failed(
        self, task: IngestTask, target: FileStatus, error: RelocationError
    ) -> FileProcessingError:
        """
        Handles a failed terminal move without leaving copies under both prefixes.

        A move to processed that broke while copying gets the usual move to
        failed. One that broke while deleting the source is undone by removing
        the processed copy, so the file stays under the incoming prefix for the
        redelivered notification. A failed move to the failed prefix is not
        repeated.
        """
        state = PipelineState.RELOCATING
        log_extra = {"bucket": task.bucket, "key": task.key, "error": get_error_context(error)}

        if target is not FileStatus.PROCESSED:
            logger.error("Failed to move file to failed folder", extra=log_extra)
            return FileProcessingError(
                task.bucket,
                task.key,
                state.value,
                original_error=error,
                context={"terminal_state": "undefined"},
            )

        if error.context.get("step") != "delete":
            return self._fail(task, state, error)

        processed_key = self._relocator.processed_path(task.key)
        logger.error("Source delete failed after copy; removing the processed copy", extra=log_extra)
        try:
            self._store.delete_object(task.bucket, processed_key)
        except Exception as undo_error:
            logger.error(
                "Failed to remove the processed copy",
                extra={
                    "bucket": task.bucket,
                    "key": processed_key,
                    "relocation_error": get_error_context(undo_error),
                },
            )
            return FileProcessingError(
                task.bucket,
                task.key,
                state.value,
                original_error=error,
                relocation_error=undo_error,
                context={"terminal_state": "undefined"},
            )
        return FileProcessingError(
            task.bucket,
            task.key,
            state.value,
            original_error=error,
            context={"terminal_state": "incoming"},
        )
