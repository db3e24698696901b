# src/sales_ingestor/parser.py

"""
CSV parsing for uploaded sales files.

The first record of a file is its header; every later record is mapped
positionally onto the header's column names. The whole file is decoded in
memory because the pipeline must see every row before it can decide where
the file goes.
"""

import csv
import io
import logging
from typing import Any

from .exceptions import ParseError

logger = logging.getLogger(__name__)

RawRow = dict[str, str | None]
CleanedRow = dict[str, Any]


def parse_csv(data: bytes) -> list[RawRow]:
    """
    Parse CSV bytes into rows keyed by the header's column names.

    Returns an empty list for an empty or header-only file. Raises ParseError
    if the data is not UTF-8, is not well-formed CSV, has a blank or
    duplicated column name, or has a row with more fields than the header.
    Rows with fewer fields than the header get None for the missing columns.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(
            "file is not valid UTF-8",
            context={"position": e.start},
        ) from e

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    rows: list[RawRow] = []
    try:
        header: list[str] | None = None
        for record in reader:
            # Only truly empty lines are skipped; ",,,," is a data row
            if not record:
                continue

            if header is None:
                header = _validate_header(record)
                continue

            if len(record) > len(header):
                raise ParseError(
                    f"line {reader.line_num} has {len(record)} fields, "
                    f"header has {len(header)}",
                    context={"line": reader.line_num},
                )
            padded: list[str | None] = list(record)
            padded.extend([None] * (len(header) - len(record)))
            rows.append(dict(zip(header, padded)))
    except csv.Error as e:
        raise ParseError(
            f"line {reader.line_num}: {e}", context={"line": reader.line_num}
        ) from e

    logger.debug("Parsed CSV", extra={"row_count": len(rows)})
    return rows


def _validate_header(record: list[str]) -> list[str]:
    names = [name.strip() for name in record]
    if any(not name for name in names):
        raise ParseError("header contains a blank column name")
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ParseError(
            f"header contains duplicate column names: {', '.join(duplicates)}",
            context={"duplicates": duplicates},
        )
    return record


def clean_row(row: dict[str, Any]) -> CleanedRow:
    """Trim keys and string values; anything else is passed through as-is."""
    return {
        str(key).strip(): value.strip() if isinstance(value, str) else value
        for key, value in row.items()
    }
