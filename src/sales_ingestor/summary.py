# src/sales_ingestor/summary.py

"""Per-invocation tally of processed and failed records."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProcessingSummary:
    processed: int
    failed: int
    errors: tuple[dict[str, Any], ...] = ()
    errors_truncated: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.failed

    def to_dict(self) -> dict[str, Any]:
        summary = {
            "processed": self.processed,
            "failed": self.failed,
            "total": self.total,
            "errors": list(self.errors),
        }
        if self.errors_truncated:
            summary["errorsTruncated"] = self.errors_truncated
        return summary


@dataclass
class ResultAggregator:
    """
    Accumulates one outcome per record of an inbound batch.

    A "record" is whatever unit the caller processes: a file for S3-triggered
    runs, a queue message for SQS-triggered runs. Only the first
    ``max_errors`` failures keep a descriptor; the rest are counted.
    """

    max_errors: int = 50
    _processed: int = field(default=0, init=False)
    _failed: int = field(default=0, init=False)
    _errors: list[dict[str, Any]] = field(default_factory=list, init=False)
    _truncated: int = field(default=0, init=False)

    def record_success(self) -> None:
        self._processed += 1

    def record_failure(
        self,
        record_info: dict[str, Any],
        message: str,
        kind: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._failed += 1
        if len(self._errors) < self.max_errors:
            descriptor = {"record": record_info, "error": message, "type": kind}
            if details:
                descriptor["details"] = details
            self._errors.append(descriptor)
        else:
            self._truncated += 1

    def summary(self) -> ProcessingSummary:
        return ProcessingSummary(
            processed=self._processed,
            failed=self._failed,
            errors=tuple(self._errors),
            errors_truncated=self._truncated,
        )
