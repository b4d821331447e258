from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "found_wizard.cli"]
FIXED_STAMP = "20260301T010203Z"
REGISTER = "sample-data/rejestr_zgub.csv"
TEMPLATE = "sample-data/szablon_standardowy.csv"
REGISTER_FIXES = [
    "--fix",
    "1:found_date=2024-01-15",
    "--fix",
    "2:municipality_name=Kraków",
    "--fix",
    "3:status=przechowywany",
]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["FOUND_WIZARD_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["FOUND_WIZARD_NO_PROFILE"] = "1"
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class FoundWizardCliTests(unittest.TestCase):
    def test_schema_json_lists_fields_in_order(self):
        proc = run_cli("schema", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        fields = json.loads(proc.stdout)
        self.assertEqual(len(fields), 10)
        self.assertEqual(fields[0]["name"], "id")

    def test_schema_text_describes_fields(self):
        proc = run_cli("schema")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("found_date (Data znalezienia): Type: date. required. Expected format: YYYY-MM-DD.", proc.stdout)

    def test_map_standard_template_is_perfect(self):
        proc = run_cli("map", TEMPLATE, "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "found_wizard.mapping")
        self.assertTrue(payload["perfect"])
        self.assertEqual(payload["mapping_source"], "auto")
        self.assertEqual(payload["missing_required"], [])

    def test_map_reports_missing_required_with_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "rejestr.csv"
            path.write_text("Lp;Gmina\n1;Kraków\n", encoding="utf-8")
            proc = run_cli("map", str(path), "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertIn("id", payload["missing_required"])
        self.assertEqual(payload["mapping"]["municipality_name"], "Gmina")

    def test_validate_register_returns_exit_4_with_errors(self):
        proc = run_cli("validate", REGISTER, "--json")
        self.assertEqual(proc.returncode, 4, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "found_wizard.validation")
        self.assertFalse(payload["valid"])
        self.assertEqual(
            [(error["row_index"], error["field"]) for error in payload["errors"]],
            [(1, "found_date"), (2, "municipality_name"), (3, "status")],
        )
        self.assertEqual(payload["errors"][0]["current_value"], "15.01.2024")
        self.assertEqual(proc.stderr.strip(), "")

    def test_validate_with_fixes_is_clean(self):
        proc = run_cli("validate", REGISTER, *REGISTER_FIXES, "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertTrue(payload["valid"])
        self.assertEqual(payload["fixes_applied"], 3)
        self.assertEqual(payload["run_summary"]["status"], "ok")

    def test_validate_writes_report_to_out_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("validate", REGISTER, "--out", tmpdir)
            self.assertEqual(proc.returncode, 4, proc.stderr)
            self.assertIn("Validation report:", proc.stderr)
            report = json.loads((Path(tmpdir) / "validation.json").read_text(encoding="utf-8"))
            self.assertEqual(report["summary"]["error_count"], 3)

    def test_validate_map_override_unmaps_field(self):
        proc = run_cli("validate", TEMPLATE, "--map", "id=", "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "found_wizard.mapping")
        self.assertEqual(payload["run_summary"]["command"], "validate")
        self.assertEqual(payload["run_summary"]["status"], "mapping_incomplete")
        self.assertIn("id", payload["missing_required"])

    def test_validate_unknown_map_field_is_command_error(self):
        proc = run_cli("validate", TEMPLATE, "--map", "colour=id")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("colour", proc.stderr)

    def test_export_refuses_while_errors_remain(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "out.csv"
            proc = run_cli("export", REGISTER, "--output", str(output))
            self.assertEqual(proc.returncode, 4, proc.stderr)
            self.assertIn("Refusing to export", proc.stderr)
            self.assertFalse(output.exists())

    def test_export_csv_after_fixes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "odnalezione_zguby.csv"
            proc = run_cli("export", REGISTER, *REGISTER_FIXES, "--map", "storage_place=", "--output", str(output))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            lines = output.read_text(encoding="utf-8").split("\n")
            self.assertEqual(lines[0].split(",")[:3], ["id", "item_category", "item_description"])
            self.assertEqual(len(lines), 6)
            self.assertIn("ZG/2024/002,Klucze,Pęk kluczy z brelokiem,2024-01-15", lines[2])

    def test_export_default_name_in_out_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("export", TEMPLATE, "--format", "json", "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            records = json.loads((Path(tmpdir) / "odnalezione_zguby.json").read_text(encoding="utf-8"))
            self.assertEqual(len(records), 3)
            self.assertEqual(records[0]["contact_channel"], "telefon, e-mail")

    def test_export_refuses_to_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "existing.csv"
            output.write_text("keep me", encoding="utf-8")
            proc = run_cli("export", TEMPLATE, "--output", str(output))
            self.assertEqual(proc.returncode, 1)
            self.assertEqual(output.read_text(encoding="utf-8"), "keep me")

    def test_empty_input_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.csv"
            path.write_text("", encoding="utf-8")
            proc = run_cli("validate", str(path))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("CSV file is empty", proc.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("validate", "sample-data/nope.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_saved_profile_is_reused(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            profile_env = {"FOUND_WIZARD_NO_PROFILE": "", "FOUND_WIZARD_PROFILE_PATH": str(Path(tmpdir) / "profile.json")}
            first = run_cli("map", REGISTER, "--map", "storage_place=", "--save-profile", "--json", env=profile_env)
            self.assertEqual(first.returncode, 0, first.stderr)
            second = run_cli("map", REGISTER, "--json", env=profile_env)
            payload = json.loads(second.stdout)
            self.assertEqual(payload["mapping_source"], "profile")
            self.assertIsNone(payload["mapping"]["storage_place"])

    def test_config_init_writes_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "found-wizard.json"
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("perfect_match_ratio", json.loads(config_path.read_text()))
            again = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(again.returncode, 1)

    def test_config_show_reflects_environment(self):
        proc = run_cli("config", "show", env={"FOUND_WIZARD_PERFECT_RATIO": "0.6"})
        self.assertEqual(proc.returncode, 0, proc.stderr)
        config = json.loads(proc.stdout)
        self.assertEqual(config["perfect_match_ratio"], 0.6)
        self.assertFalse(config["use_profiles"])

    def test_bad_arguments_return_exit_1(self):
        proc = run_cli("export", TEMPLATE, "--format", "parquet")
        self.assertEqual(proc.returncode, 1)

    def test_version_prints_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertRegex(proc.stdout.strip(), r"^\d+\.\d+\.\d+$")


if __name__ == "__main__":
    unittest.main()
