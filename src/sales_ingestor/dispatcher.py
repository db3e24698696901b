# src/sales_ingestor/dispatcher.py

"""
Batched dispatch of routed messages to a queue.

SQS accepts at most ten entries per SendMessageBatch call. Items are split
into contiguous batches no larger than that, sent in order, and the
per-entry results are aggregated. Failed entries are reported, never retried
here: redelivery of the triggering notification is the retry mechanism.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence, TypeVar

from .clients import FailedEntry, MessageQueue
from .exceptions import QueueDispatchError

logger = logging.getLogger(__name__)

SQS_MAX_BATCH_SIZE = 10

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Splits items into contiguous, order-preserving chunks of at most size."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


@dataclass
class DispatchResult:
    succeeded: int = 0
    failed: list[FailedEntry] = field(default_factory=list)
    batches: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + len(self.failed)


class BatchDispatcher:
    """Sends message bodies to a queue in provider-compliant batches."""

    def __init__(self, queue: MessageQueue, max_batch_size: int = SQS_MAX_BATCH_SIZE):
        self._queue = queue
        self._max_batch_size = max_batch_size

    def effective_batch_size(self, requested: int | None) -> int:
        if requested is None:
            return self._max_batch_size
        if requested > self._max_batch_size:
            logger.warning(
                f"Batch size {requested} exceeds provider limit, using {self._max_batch_size}",
                extra={"requested": requested, "max_allowed": self._max_batch_size},
            )
            return self._max_batch_size
        return requested

    def dispatch(
        self,
        queue_url: str,
        items: Sequence[dict[str, Any]],
        batch_size: int | None = None,
    ) -> DispatchResult:
        """
        Sends every item, one SendMessageBatch call per batch.

        Raises QueueDispatchError if a submission call itself fails; the
        error's context records how many messages were accepted before it.
        """
        size = self.effective_batch_size(batch_size)
        result = DispatchResult()

        for batch in chunk(items, size):
            try:
                sent = self._queue.send_batch(queue_url, batch)
            except QueueDispatchError as e:
                e.context["sent_count"] = result.succeeded
                logger.error(
                    f"Batch submission failed: {e}",
                    extra={
                        "queue_url": queue_url,
                        "batch_number": result.batches + 1,
                        "sent_count": result.succeeded,
                    },
                )
                raise
            except Exception as e:
                raise QueueDispatchError(
                    queue_url, str(e), sent_count=result.succeeded
                ) from e

            result.batches += 1
            result.succeeded += sent.succeeded
            result.failed.extend(sent.failed)

        if result.failed:
            logger.warning(
                "Some messages were rejected by the queue",
                extra={
                    "queue_url": queue_url,
                    "failed_count": len(result.failed),
                    "reasons": sorted({entry.reason for entry in result.failed}),
                },
            )

        logger.info(
            "Dispatched messages",
            extra={
                "queue_url": queue_url,
                "message_count": len(items),
                "batch_size": size,
                "batches": result.batches,
                "succeeded": result.succeeded,
                "failed": len(result.failed),
            },
        )
        return result
