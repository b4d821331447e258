"""
Inline fixes for validation errors.

A fix edits one cell and then re-validates every record. The new error
list replaces the old one outright, so re-introducing a bad value brings
its error back and there is never a stale "already fixed" marker.
"""

from __future__ import annotations

from dataclasses import dataclass

from found_wizard.records import StandardRecord
from found_wizard.session import WorkingSet
from found_wizard.validation import ValidationError, validate


@dataclass(frozen=True)
class FixResult:
    records: list[StandardRecord]
    errors: list[ValidationError]
    changed: bool


def is_value_changed(old_value: str | None, new_value: str | None) -> bool:
    return (old_value or "").strip() != (new_value or "").strip()


def apply_fix(working_set: WorkingSet, row_index: int, field_name: str, new_value: str) -> FixResult:
    schema = working_set.schema
    schema.field(field_name)
    if not 0 <= row_index < len(working_set.records):
        raise IndexError(f"Row index {row_index} is out of range (0..{len(working_set.records) - 1})")

    record = working_set.records[row_index]
    if not is_value_changed(record.value(field_name), new_value):
        # Whitespace-only edits must not dismiss an existing error.
        return FixResult(records=working_set.records, errors=working_set.errors, changed=False)

    header = working_set.mapping.header_for(field_name) if working_set.mapping is not None else None
    if header is not None and row_index < len(working_set.rows):
        working_set.rows[row_index] = {**working_set.rows[row_index], header: new_value}

    record.set(field_name, new_value)
    working_set.errors = validate(working_set.records, schema)
    return FixResult(records=working_set.records, errors=working_set.errors, changed=True)
