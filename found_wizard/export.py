"""Preview and export of validated records, always in schema column order."""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Iterable

import pandas as pd

from found_wizard.records import StandardRecord
from found_wizard.schema import Schema

EXPORT_BASENAME = "odnalezione_zguby"
EXPORT_FORMATS = ("csv", "json", "xlsx")
EXPORT_MIME_TYPES = {
    "csv": "text/csv;charset=utf-8",
    "json": "application/json;charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
PREVIEW_LIMIT = 5
CATEGORY_FIELD = "item_category"
LOCATION_FIELD = "found_location_name"


def export_filename(fmt: str) -> str:
    return f"{EXPORT_BASENAME}.{fmt}"


def records_frame(records: Iterable[StandardRecord], schema: Schema, *, use_labels: bool = False) -> pd.DataFrame:
    columns = [field.label if use_labels else field.name for field in schema]
    data = [[record.value(field.name) for field in schema] for record in records]
    return pd.DataFrame(data, columns=columns, dtype=str)


def _distinct(records: list[StandardRecord], schema: Schema, name: str) -> int | None:
    if name not in schema:
        return None
    return len({record.value(name) for record in records if record.value(name)})


def build_preview(records: list[StandardRecord], schema: Schema, limit: int = PREVIEW_LIMIT) -> dict[str, Any]:
    return {
        "total_records": len(records),
        "distinct_categories": _distinct(records, schema, CATEGORY_FIELD),
        "distinct_locations": _distinct(records, schema, LOCATION_FIELD),
        "head": records_frame(records[:limit], schema, use_labels=True),
    }


def build_csv(records: Iterable[StandardRecord], schema: Schema) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(schema.names)
    for record in records:
        writer.writerow([record.value(field.name) for field in schema])
    text = buffer.getvalue()
    return text[:-1] if text.endswith("\n") else text


def build_json(records: Iterable[StandardRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)


def build_xlsx(records: Iterable[StandardRecord], schema: Schema) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        records_frame(records, schema).to_excel(writer, index=False, sheet_name="Records")
        schema_rows = [
            [field.name, field.label, field.type, "yes" if field.required else "no", ", ".join(field.examples)]
            for field in schema
        ]
        pd.DataFrame(schema_rows, columns=["name", "label", "type", "required", "examples"]).to_excel(
            writer, index=False, sheet_name="Schema"
        )
    return buffer.getvalue()


def build_export(records: list[StandardRecord], schema: Schema, fmt: str) -> bytes:
    if fmt == "csv":
        return build_csv(records, schema).encode("utf-8")
    if fmt == "json":
        return build_json(records).encode("utf-8")
    if fmt == "xlsx":
        return build_xlsx(records, schema)
    raise ValueError(f"Unsupported export format '{fmt}'. Supported: {', '.join(EXPORT_FORMATS)}")
