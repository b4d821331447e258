from __future__ import annotations

from typing import Iterable

from found_wizard.mapping import ColumnMapping
from found_wizard.records import StandardRecord
from found_wizard.schema import Schema


def transform_row(row: dict[str, str], mapping: ColumnMapping, schema: Schema) -> StandardRecord:
    record = StandardRecord(schema)
    for field in schema:
        header = mapping.header_for(field.name)
        if header is not None and header in row:
            record.set(field.name, row[header] or "")
        elif header is not None or field.required:
            record.set(field.name, "")
        # optional and unmapped: left absent
    return record


def transform(
    rows: Iterable[dict[str, str]],
    mapping: ColumnMapping,
    schema: Schema,
) -> list[StandardRecord]:
    """Turn raw CSV rows into canonical records, one per row, same order.

    Never rejects a value; malformed data is left for the validator so the
    record index always equals the source row index.
    """
    return [transform_row(row, mapping, schema) for row in rows]
