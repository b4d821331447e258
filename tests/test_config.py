from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from found_wizard.config import ConfigError, WizardConfig, load_config
from found_wizard.mapping import MappingHeuristics


class LoadConfigTests(unittest.TestCase):
    def write_config(self, tmpdir: str, payload) -> Path:
        path = Path(tmpdir) / "found-wizard.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_defaults(self):
        config = load_config(environ={})
        self.assertEqual(config, WizardConfig())
        self.assertEqual(config.heuristics, MappingHeuristics())

    def test_file_values_are_applied(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"perfect_match_ratio": 0.9, "use_profiles": False})
            config = load_config(path, environ={})
        self.assertEqual(config.perfect_match_ratio, 0.9)
        self.assertFalse(config.use_profiles)

    def test_environment_wins_over_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"perfect_match_ratio": 0.9, "profile_path": "a.json"})
            config = load_config(
                path,
                environ={
                    "FOUND_WIZARD_PERFECT_RATIO": "0.7",
                    "FOUND_WIZARD_PROFILE_PATH": "b.json",
                    "FOUND_WIZARD_NO_PROFILE": "yes",
                },
            )
        self.assertEqual(config.perfect_match_ratio, 0.7)
        self.assertEqual(config.profile_path, "b.json")
        self.assertFalse(config.use_profiles)

    def test_unknown_keys_are_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"colour": "blue"})
            with self.assertRaisesRegex(ConfigError, "Unknown config key"):
                load_config(path, environ={})

    def test_out_of_range_ratio(self):
        with self.assertRaisesRegex(ConfigError, "perfect_match_ratio"):
            load_config(environ={"FOUND_WIZARD_PERFECT_RATIO": "1.5"})
        with self.assertRaisesRegex(ConfigError, "must be a number"):
            load_config(environ={"FOUND_WIZARD_PERFECT_RATIO": "lots"})

    def test_wrong_types(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"min_label_word_length": "3"})
            with self.assertRaisesRegex(ConfigError, "integer"):
                load_config(path, environ={})

    def test_missing_file(self):
        with self.assertRaisesRegex(ConfigError, "Config not found"):
            load_config("nowhere/found-wizard.json", environ={})

    def test_non_object_root(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, [1, 2])
            with self.assertRaisesRegex(ConfigError, "JSON object"):
                load_config(path, environ={})


if __name__ == "__main__":
    unittest.main()
