# src/sales_ingestor/validator.py

"""
Row validation for sales records.

Validation is driven by an explicit, ordered schema binding each column to
one check. Every check runs on every row, so a row reports all of its
violations at once. Violations are plain strings; nothing here raises.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Sequence

from .parser import CleanedRow

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_SLASH_DATE_FORMATS = ("%Y/%m/%d", "%m/%d/%Y")


class Check(str, Enum):
    REQUIRED = "required"
    POSITIVE_INTEGER = "positive_integer"
    NON_NEGATIVE_NUMBER = "non_negative_number"
    DATE = "date"


@dataclass(frozen=True)
class FieldRule:
    field: str
    check: Check


SALES_SCHEMA: tuple[FieldRule, ...] = (
    FieldRule("saleId", Check.REQUIRED),
    FieldRule("productId", Check.REQUIRED),
    FieldRule("quantity", Check.POSITIVE_INTEGER),
    FieldRule("amount", Check.NON_NEGATIVE_NUMBER),
    FieldRule("saleDate", Check.DATE),
)


@dataclass(frozen=True)
class ValidationOutcome:
    row: CleanedRow
    row_index: int
    violations: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def _to_number(value: Any) -> float | None:
    """Strict numeric conversion; returns None for anything that isn't a finite number."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str) and _NUMBER_PATTERN.match(value.strip()):
            number = float(value.strip())
        else:
            return None
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _SLASH_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _check_required(name: str, value: Any) -> str | None:
    if _is_blank(value):
        return f"{name} is required"
    return None


def _check_positive_integer(name: str, value: Any) -> str | None:
    number = _to_number(value)
    if number is None or not number.is_integer() or number <= 0:
        return f"{name} must be a positive integer, got: {value}"
    return None


def _check_non_negative_number(name: str, value: Any) -> str | None:
    number = _to_number(value)
    if number is None or number < 0:
        return f"{name} must be a non-negative number, got: {value}"
    return None


def _check_date(name: str, value: Any) -> str | None:
    if _is_blank(value):
        return f"{name} is required"
    if _to_date(value) is None:
        return f"{name} must be a valid date, got: {value}"
    return None


_CHECKS = {
    Check.REQUIRED: _check_required,
    Check.POSITIVE_INTEGER: _check_positive_integer,
    Check.NON_NEGATIVE_NUMBER: _check_non_negative_number,
    Check.DATE: _check_date,
}


def validate_row(
    row: CleanedRow, schema: Sequence[FieldRule] = SALES_SCHEMA
) -> list[str]:
    """Returns the row's violations in schema order; empty means valid."""
    violations = []
    for rule in schema:
        message = _CHECKS[rule.check](rule.field, row.get(rule.field))
        if message is not None:
            violations.append(message)
    return violations


def validate_rows(
    rows: Iterable[CleanedRow], schema: Sequence[FieldRule] = SALES_SCHEMA
) -> list[ValidationOutcome]:
    return [
        ValidationOutcome(row=row, row_index=index, violations=validate_row(row, schema))
        for index, row in enumerate(rows)
    ]


def partition(
    outcomes: Iterable[ValidationOutcome],
) -> tuple[list[ValidationOutcome], list[ValidationOutcome]]:
    """Splits outcomes into (valid, invalid), preserving row order within each."""
    valid: list[ValidationOutcome] = []
    invalid: list[ValidationOutcome] = []
    for outcome in outcomes:
        (valid if outcome.is_valid else invalid).append(outcome)
    return valid, invalid
