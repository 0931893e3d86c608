"""
Tolerant parser for spreadsheet CSV exports.

Quoted fields may contain commas, doubled quotes and line breaks. Rows are
split with a single scan that tracks whether the cursor is inside quotes,
then each row is split into fields with a second scan of the same shape.
The first non-blank row is the header; every following row becomes a
``dict`` keyed by the lower-cased header cells.

Parsing never raises. Malformed input yields an empty list and a warning in
the log.
"""

from __future__ import annotations

import logging
from typing import Any, List

from .models import Record
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

QUOTE = '"'
DELIMITER = ','


def _clean_value(value: str) -> str:
    """Trim whitespace and drop a surrounding pair of quotes if one survived."""
    value = value.strip()
    if value.startswith(QUOTE) and value.endswith(QUOTE):
        value = value[1:-1]
    return value


def split_fields(row: str) -> List[str]:
    """Split one logical row into cleaned field values."""
    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(row)

    while i < length:
        char = row[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and row[i + 1] == QUOTE:
                # Escaped quote inside a quoted field
                current.append(QUOTE)
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            values.append(_clean_value(''.join(current)))
            current = []
        else:
            current.append(char)
        i += 1

    values.append(_clean_value(''.join(current)))
    return values


def split_rows(text: str) -> List[str]:
    """Split *text* into logical rows, keeping line breaks that sit inside quotes.

    Quote characters are preserved verbatim so :func:`split_fields` can decode
    them. Blank and whitespace-only rows are dropped.
    """
    rows: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and text[i + 1] == QUOTE:
                current.append(QUOTE * 2)
                i += 2
                continue
            in_quotes = not in_quotes
            current.append(char)
        elif char in '\r\n' and not in_quotes:
            row = ''.join(current)
            if row.strip():
                rows.append(row)
            current = []
            if char == '\r' and i + 1 < length and text[i + 1] == '\n':
                i += 1
        else:
            current.append(char)
        i += 1

    row = ''.join(current)
    if row.strip():
        rows.append(row)
    return rows


def parse_csv_result(text: Any) -> Result[List[Record]]:
    """Parse *text* into records, reporting faults instead of hiding them.

    Returns ``Ok([])`` for empty or header-only input and ``Err`` for
    non-string input or an unexpected fault during the scan.
    """
    if not isinstance(text, str):
        return Err(f"expected str, got {type(text).__name__}")
    if not text:
        return Ok([])

    try:
        rows = split_rows(text)
        if len(rows) < 2:
            return Ok([])

        headers = [h.lower() for h in split_fields(rows[0])]
        records: List[Record] = []
        for row in rows[1:]:
            values = split_fields(row)
            record: Record = {}
            for index, header in enumerate(headers):
                record[header] = values[index] if index < len(values) else ''
            if any(v.strip() for v in record.values()):
                records.append(record)
        return Ok(records)
    except Exception as exc:
        return Err(f"CSV parsing error: {exc}")


def parse_csv(text: Any) -> List[Record]:
    """Parse CSV text into a list of header-keyed records; never raises."""
    result = parse_csv_result(text)
    if not result.ok:
        logger.warning("Discarding unparsable CSV input: %s", result.error)
    return result.unwrap_or([])


parse = parse_csv

__all__ = [
    "Record",
    "parse",
    "parse_csv",
    "parse_csv_result",
    "split_fields",
    "split_rows",
]
