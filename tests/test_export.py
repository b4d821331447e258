from __future__ import annotations

import io
import json
import unittest

from openpyxl import load_workbook

from found_wizard.export import (
    build_csv,
    build_export,
    build_json,
    build_preview,
    export_filename,
)
from found_wizard.records import StandardRecord
from found_wizard.schema import default_schema


class ExportTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.schema = default_schema()

    def make_records(self) -> list[StandardRecord]:
        base = {
            "item_description": "Parasol",
            "found_date": "2024-05-01",
            "municipality_name": "Kraków",
            "status": "przechowywany",
        }
        return [
            StandardRecord(self.schema, {**base, "id": "1", "item_category": "Parasole", "found_location_name": "Rynek"}),
            StandardRecord(
                self.schema,
                {**base, "id": "2", "item_category": "Parasole", "found_location_name": "Dworzec", "contact_channel": "telefon, e-mail"},
            ),
            StandardRecord(self.schema, {**base, "id": "3", "item_category": "Klucze", "found_location_name": "Rynek"}),
        ]

    def test_file_names(self):
        self.assertEqual(export_filename("csv"), "odnalezione_zguby.csv")
        self.assertEqual(export_filename("xlsx"), "odnalezione_zguby.xlsx")

    def test_csv_uses_schema_order_and_quotes_when_needed(self):
        text = build_csv(self.make_records(), self.schema)
        lines = text.split("\n")
        self.assertEqual(lines[0], ",".join(self.schema.names))
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[2].endswith('"telefon, e-mail"'))
        self.assertFalse(text.endswith("\n"))

    def test_csv_absent_fields_are_empty_cells(self):
        text = build_csv(self.make_records()[:1], self.schema)
        row = text.split("\n")[1].split(",")
        self.assertEqual(len(row), len(self.schema))
        self.assertEqual(row[self.schema.names.index("storage_place")], "")

    def test_csv_escapes_quotes(self):
        record = StandardRecord(self.schema, {"id": "1", "item_description": 'Torba "Puma"'})
        self.assertIn('"Torba ""Puma"""', build_csv([record], self.schema))

    def test_json_omits_absent_fields(self):
        payload = json.loads(build_json(self.make_records()))
        self.assertEqual(len(payload), 3)
        self.assertNotIn("storage_place", payload[0])
        self.assertEqual(payload[1]["contact_channel"], "telefon, e-mail")
        self.assertEqual(list(payload[0])[0], "id")

    def test_json_keeps_polish_characters(self):
        self.assertIn("Kraków", build_json(self.make_records()))

    def test_xlsx_has_records_and_schema_sheets(self):
        workbook = load_workbook(io.BytesIO(build_export(self.make_records(), self.schema, "xlsx")))
        self.assertEqual(workbook.sheetnames, ["Records", "Schema"])
        header = [cell.value for cell in workbook["Records"][1]]
        self.assertEqual(header, list(self.schema.names))
        self.assertEqual(workbook["Records"].max_row, 4)

    def test_unknown_format(self):
        with self.assertRaisesRegex(ValueError, "Unsupported export format"):
            build_export(self.make_records(), self.schema, "parquet")

    def test_preview_counts(self):
        preview = build_preview(self.make_records(), self.schema, limit=2)
        self.assertEqual(preview["total_records"], 3)
        self.assertEqual(preview["distinct_categories"], 2)
        self.assertEqual(preview["distinct_locations"], 2)
        self.assertEqual(len(preview["head"]), 2)
        self.assertEqual(list(preview["head"].columns)[0], "Identyfikator")


if __name__ == "__main__":
    unittest.main()
