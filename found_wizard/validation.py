"""
Field-level validation of canonical records.

The error list is always recomputed from the records and the schema; there
is no stored "resolved" state. An error exists for a (row, field) pair only
while the current value still fails its rule.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable

import pandas as pd

from found_wizard.records import StandardRecord
from found_wizard.schema import DATE_FORMAT_HINT, CanonicalField, Schema

ISO_DATETIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})([T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)$"
)
# Time parts are read on this day so the calendar date never meets pandas' Timestamp bounds.
TIME_ANCHOR_DAY = "2000-01-01"

# Textual forms that cannot be read two ways. Day/month numeric forms such as
# 01/02/2024 or 15.01.2024 are deliberately absent.
UNAMBIGUOUS_DATE_FORMATS = [
    ("%Y-%m-%d", re.compile(r"^\d{4}-\d{2}-\d{2}$")),
    ("%Y/%m/%d", re.compile(r"^\d{4}/\d{1,2}/\d{1,2}$")),
    ("%B %d %Y", re.compile(r"^[A-Za-z]+\s+\d{1,2}\s+\d{4}$")),
    ("%b %d %Y", re.compile(r"^[A-Za-z]{3}\s+\d{1,2}\s+\d{4}$")),
    ("%d %B %Y", re.compile(r"^\d{1,2}\s+[A-Za-z]+\s+\d{4}$")),
    ("%d %b %Y", re.compile(r"^\d{1,2}\s+[A-Za-z]{3}\s+\d{4}$")),
    ("%B %d, %Y", re.compile(r"^[A-Za-z]+\s+\d{1,2},\s+\d{4}$")),
    ("%b %d, %Y", re.compile(r"^[A-Za-z]{3}\s+\d{1,2},\s+\d{4}$")),
]


@dataclass(frozen=True)
class ValidationError:
    """One failing (row, field) pair. Plain data, never raised."""

    row_index: int
    field: str
    message: str
    current_value: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_iso_datetime(text: str) -> datetime | None:
    match = ISO_DATETIME_RE.fullmatch(text)
    if match is None:
        return None
    try:
        day = datetime.strptime(match.group(1), "%Y-%m-%d")
    except ValueError:
        return None
    anchored = pd.to_datetime(TIME_ANCHOR_DAY + match.group(2), format="ISO8601", errors="coerce")
    if pd.isna(anchored):
        return None
    return datetime.combine(day.date(), anchored.time())


def parse_date(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    for fmt, pattern in UNAMBIGUOUS_DATE_FORMATS:
        if not pattern.fullmatch(text):
            continue
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return _parse_iso_datetime(text)


def is_valid_date(value: str) -> bool:
    return parse_date(value) is not None


def is_valid_enum(value: str, examples: Iterable[str]) -> bool:
    lowered = value.strip().lower()
    if not lowered:
        return False
    return any(example.lower() == lowered for example in examples)


def check_field(record: StandardRecord, row_index: int, field: CanonicalField) -> ValidationError | None:
    raw = record.value(field.name)
    text = raw.strip()

    if not text:
        if field.required:
            return ValidationError(
                row_index=row_index,
                field=field.name,
                message=f'Required field "{field.label}" is empty',
                current_value=None,
            )
        return None

    if field.type == "date" and not is_valid_date(text):
        return ValidationError(
            row_index=row_index,
            field=field.name,
            message=f'Invalid date format for field "{field.label}". Expected format: {DATE_FORMAT_HINT}',
            current_value=raw,
        )

    if field.is_enum and not is_valid_enum(text, field.examples):
        return ValidationError(
            row_index=row_index,
            field=field.name,
            message=f'Invalid value for field "{field.label}". Allowed values: {", ".join(field.examples)}',
            current_value=raw,
        )

    return None


def validate_record(record: StandardRecord, row_index: int, schema: Schema) -> list[ValidationError]:
    errors = []
    for field in schema:
        error = check_field(record, row_index, field)
        if error is not None:
            errors.append(error)
    return errors


def validate(records: Iterable[StandardRecord], schema: Schema) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for row_index, record in enumerate(records):
        errors.extend(validate_record(record, row_index, schema))
    return errors


def errors_by_row(errors: Iterable[ValidationError]) -> dict[int, list[ValidationError]]:
    grouped: dict[int, list[ValidationError]] = {}
    for error in errors:
        grouped.setdefault(error.row_index, []).append(error)
    return grouped


def summarize_errors(errors: list[ValidationError], total_records: int) -> dict[str, Any]:
    rows_with_errors = len({error.row_index for error in errors})
    return {
        "total_records": total_records,
        "error_count": len(errors),
        "rows_with_errors": rows_with_errors,
        "clean_rows": total_records - rows_with_errors,
        "errors_by_field": dict(sorted(Counter(error.field for error in errors).items())),
    }
