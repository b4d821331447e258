from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from found_wizard.mapping import ColumnMapping
from found_wizard.profiles import (
    MAPPING_PROFILE_KEY,
    MappingProfile,
    MemoryProfileStore,
    ProfileStore,
    can_apply_profile,
    resolve_initial_mapping,
)
from found_wizard.schema import SCHEMA_VERSION, default_schema

HEADERS = ["Nr", "Rodzaj", "Co", "Kiedy", "Gdzie", "Gmina", "Stan"]
CONFIRMED = {
    "id": "Nr",
    "item_category": "Rodzaj",
    "item_description": "Co",
    "found_date": "Kiedy",
    "found_location_name": "Gdzie",
    "municipality_name": "Gmina",
    "status": "Stan",
}


class ProfileStoreTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.schema = default_schema()

    def test_memory_store_round_trip(self):
        store = MemoryProfileStore()
        self.assertIsNone(store.load())
        store.save(ColumnMapping(self.schema, CONFIRMED), HEADERS)
        profile = store.load()
        self.assertEqual(profile.schema_version, SCHEMA_VERSION)
        self.assertEqual(profile.mapping["found_date"], "Kiedy")
        self.assertIsNone(profile.mapping["storage_place"])
        self.assertEqual(profile.csv_headers, HEADERS)
        store.clear()
        self.assertIsNone(store.load())

    def test_file_store_writes_under_profile_key(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "profile.json"
            store = ProfileStore(path)
            store.save(ColumnMapping(self.schema, CONFIRMED), HEADERS)
            document = json.loads(path.read_text(encoding="utf-8"))
            self.assertIn(MAPPING_PROFILE_KEY, document)
            self.assertEqual(ProfileStore(path).load().mapping["id"], "Nr")

    def test_corrupt_file_loads_as_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "profile.json"
            path.write_text("{not json", encoding="utf-8")
            self.assertIsNone(ProfileStore(path).load())
            path.write_text(json.dumps({MAPPING_PROFILE_KEY: {"mapping": "nope"}}), encoding="utf-8")
            self.assertIsNone(ProfileStore(path).load())

    def test_profile_from_dict_validation(self):
        with self.assertRaises(ValueError):
            MappingProfile.from_dict(["not", "an", "object"])


class ResolveInitialMappingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.schema = default_schema()

    def setUp(self):
        self.store = MemoryProfileStore()
        self.store.save(ColumnMapping(self.schema, CONFIRMED), HEADERS)

    def test_profile_wins_when_headers_are_present(self):
        mapping, source = resolve_initial_mapping(self.schema, HEADERS + ["Extra"], self.store)
        self.assertEqual(source, "profile")
        self.assertEqual(mapping.header_for("found_date"), "Kiedy")

    def test_missing_header_falls_back_to_auto(self):
        headers = [header for header in HEADERS if header != "Kiedy"]
        mapping, source = resolve_initial_mapping(self.schema, headers, self.store)
        self.assertEqual(source, "auto")
        self.assertEqual(mapping.header_for("municipality_name"), "Gmina")

    def test_other_schema_version_is_ignored(self):
        profile = self.store.load()
        profile.schema_version = "v0"
        self.assertFalse(can_apply_profile(profile, HEADERS))

    def test_profile_naming_unknown_fields_falls_back(self):
        self.store._write({"schema_version": SCHEMA_VERSION, "mapping": {"colour": "Nr"}, "csv_headers": HEADERS})
        _, source = resolve_initial_mapping(self.schema, HEADERS, self.store)
        self.assertEqual(source, "auto")

    def test_without_store_uses_auto_mapper(self):
        _, source = resolve_initial_mapping(self.schema, HEADERS, None)
        self.assertEqual(source, "auto")


if __name__ == "__main__":
    unittest.main()
