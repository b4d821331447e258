from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from found_wizard import __version__ as TOOL_VERSION
from found_wizard.config import ConfigError, WizardConfig, load_config
from found_wizard.contracts import build_run_summary, wrap_payload
from found_wizard.export import EXPORT_FORMATS, build_export, export_filename
from found_wizard.loader import IngestionError, ParsedCSVData, load_csv
from found_wizard.mapping import parse_assignment
from found_wizard.profiles import ProfileStore
from found_wizard.remote import fetch_remote_csv, is_remote_source
from found_wizard.schema import Schema, SchemaError, default_schema, describe_field, load_schema
from found_wizard.validation import summarize_errors
from found_wizard.wizard import Step, Wizard

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_MAPPING_INCOMPLETE = 3
EXIT_VALIDATE_FAILED = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class FoundWizardArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("FOUND_WIZARD_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def input_stem(source: str) -> str:
    if is_remote_source(source):
        return "remote"
    return Path(source).stem


def determine_output_dir(args: argparse.Namespace) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return Path.cwd() / "found-wizard-output" / f"{input_stem(args.input)}-{timestamp_token()}"


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_bytes(path: Path, payload: bytes) -> None:
    ensure_parent(path)
    path.write_bytes(payload)


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def safe_output_path(explicit: Path | None, default_path: Path) -> Path:
    path = explicit or default_path
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (SchemaError, ConfigError)):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (IngestionError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


# ══════════════════════════════════════════════════════════════════════════════
# PIPELINE HELPERS
# ══════════════════════════════════════════════════════════════════════════════

def resolve_config(args: argparse.Namespace) -> WizardConfig:
    return load_config(getattr(args, "config", None))


def resolve_schema(args: argparse.Namespace, config: WizardConfig) -> Schema:
    schema_path = getattr(args, "schema", None) or config.schema_path
    if schema_path:
        return load_schema(schema_path)
    return default_schema()


def build_wizard(args: argparse.Namespace) -> Wizard:
    config = resolve_config(args)
    schema = resolve_schema(args, config)
    store = None
    if config.use_profiles and not getattr(args, "no_profile", False):
        store = ProfileStore(config.profile_path)
    return Wizard(schema, profile_store=store, heuristics=config.heuristics)


def read_input(source: str) -> tuple[ParsedCSVData, str]:
    if is_remote_source(source):
        return fetch_remote_csv(source)
    path = Path(source)
    if not path.exists():
        raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
    return load_csv(path), path.name


def parse_fix(text: str) -> tuple[int, str, str]:
    """Parse ``ROW:FIELD=VALUE`` where ROW is the 0-based record index."""
    try:
        location, value = text.split("=", 1)
        row_text, field_name = location.split(":", 1)
        row_index = int(row_text)
    except ValueError as exc:
        raise CliError(f"Expected ROW:FIELD=VALUE for --fix, got {text!r}", EXIT_COMMAND_ERROR) from exc
    return row_index, field_name.strip(), value


def prepare_wizard(args: argparse.Namespace) -> Wizard:
    wizard = build_wizard(args)
    parsed, file_name = read_input(args.input)
    wizard.load_data(parsed, file_name)
    for assignment in getattr(args, "map", None) or []:
        field_name, header = parse_assignment(assignment, wizard.schema)
        try:
            wizard.set_field_mapping(field_name, header)
        except ValueError as exc:
            raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    return wizard


def advance_to_validation(wizard: Wizard, quiet: bool) -> bool:
    wizard.go_next()
    if wizard.go_next():
        return True
    missing = ", ".join(field.name for field in wizard.missing_required)
    emit_human(f"Required field(s) without a mapped column: {missing}", quiet=quiet)
    emit_human("Map them with --map FIELD=HEADER.", quiet=quiet)
    return False


def apply_cli_fixes(wizard: Wizard, fixes: list[str] | None) -> int:
    applied = 0
    for text in fixes or []:
        row_index, field_name, value = parse_fix(text)
        if wizard.apply_fix(row_index, field_name, value).changed:
            applied += 1
    return applied


def validation_body(wizard: Wizard, fixes_applied: int) -> dict[str, Any]:
    return {
        "input": wizard.working_set.file_name,
        "mapping_source": wizard.mapping_source,
        "mapping": wizard.mapping_report(),
        "valid": wizard.is_step_complete(Step.VALIDATE),
        "summary": summarize_errors(wizard.errors, len(wizard.records)),
        "errors": [error.to_dict() for error in wizard.errors],
        "fixes_applied": fixes_applied,
    }


# ══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def render_mapping_text(wizard: Wizard) -> str:
    report = wizard.mapping_report()
    lines = [
        "found-wizard map",
        f"File: {wizard.working_set.file_name or '[unknown]'}",
        f"Rows: {len(wizard.rows)}",
        f"Mapping source: {wizard.mapping_source}",
    ]
    for field in wizard.schema:
        header = report["mapping"][field.name]
        marker = "*" if field.required else " "
        lines.append(f"{marker} {field.name:<24} <- {header if header is not None else '[unmapped]'}")
    if report["perfect"]:
        lines.append("Standard template recognised: all required fields matched automatically.")
    if report["missing_required"]:
        lines.append(f"Missing required: {', '.join(report['missing_required'])}")
    if report["duplicate_headers"]:
        lines.append(f"Columns used more than once: {', '.join(report['duplicate_headers'])}")
    if report["unused_headers"]:
        lines.append(f"Unused columns: {', '.join(report['unused_headers'])}")
    return "\n".join(lines) + "\n"


def render_validation_text(payload: dict[str, Any], limit: int = 50) -> str:
    summary = payload["summary"]
    lines = [
        "found-wizard validate",
        f"File: {payload.get('input') or '[unknown]'}",
        f"Records: {summary['total_records']}",
        f"Errors: {summary['error_count']}",
        f"Clean rows: {summary['clean_rows']}",
    ]
    if payload.get("fixes_applied"):
        lines.append(f"Fixes applied: {payload['fixes_applied']}")
    for error in payload["errors"][:limit]:
        value = "[empty]" if error["current_value"] is None else repr(error["current_value"])
        lines.append(f"- row {error['row_index']} {error['field']}: {error['message']} (value: {value})")
    hidden = len(payload["errors"]) - limit
    if hidden > 0:
        lines.append(f"... and {hidden} more")
    return "\n".join(lines) + "\n"


def render_schema_text(schema: Schema) -> str:
    lines = ["found-wizard schema"]
    for field in schema:
        lines.append(f"{field.name} ({field.label}): {describe_field(field)}")
    return "\n".join(lines) + "\n"


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_schema(args: argparse.Namespace) -> int:
    try:
        schema = resolve_schema(args, resolve_config(args))
    except (SchemaError, ConfigError) as exc:
        eprint(str(exc))
        return EXIT_COMMAND_ERROR
    if args.json:
        maybe_emit_json_stdout(schema.to_list(), True)
    else:
        print(render_schema_text(schema).rstrip())
    return EXIT_SUCCESS


def run_map(args: argparse.Namespace) -> int:
    try:
        wizard = prepare_wizard(args)
        if args.save_profile:
            if wizard.profile_store is None:
                raise CliError("--save-profile needs profiles enabled (drop --no-profile).", EXIT_COMMAND_ERROR)
            wizard.profile_store.save(wizard.mapping, wizard.headers)
            emit_human(f"Mapping profile saved: {wizard.profile_store.path}", quiet=args.quiet)
        for warning in wizard.warnings:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
        report = wizard.mapping_report()
        if args.json:
            payload = wrap_payload(
                "found_wizard.mapping",
                {"input": wizard.working_set.file_name, "mapping_source": wizard.mapping_source, **report},
                build_run_summary(command="map", input_source=args.input, warnings=wizard.warnings),
            )
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_mapping_text(wizard).rstrip(), quiet=args.quiet)
        return EXIT_MAPPING_INCOMPLETE if report["missing_required"] else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_validate(args: argparse.Namespace) -> int:
    try:
        wizard = prepare_wizard(args)
        for warning in wizard.warnings:
            emit_human(f"Warning: {warning}", quiet=args.quiet or args.json)
        if not advance_to_validation(wizard, args.quiet or args.json):
            if args.json:
                payload = wrap_payload(
                    "found_wizard.mapping",
                    {"input": wizard.working_set.file_name, "mapping_source": wizard.mapping_source, **wizard.mapping_report()},
                    build_run_summary(
                        command="validate",
                        input_source=args.input,
                        status="mapping_incomplete",
                        warnings=wizard.warnings,
                    ),
                )
                maybe_emit_json_stdout(payload, True)
            return EXIT_MAPPING_INCOMPLETE
        fixes_applied = apply_cli_fixes(wizard, args.fix)
        body = validation_body(wizard, fixes_applied)
        summary = build_run_summary(
            command="validate",
            input_source=args.input,
            status="ok" if body["valid"] else "errors",
            metrics={"error_count": body["summary"]["error_count"], "records": body["summary"]["total_records"]},
            warnings=wizard.warnings,
        )
        payload = wrap_payload("found_wizard.validation", body, summary)
        if args.output or args.out_dir:
            output_path = Path(args.output) if args.output else determine_output_dir(args) / "validation.json"
            write_json(output_path, payload)
            emit_human(f"Validation report: {output_path}", quiet=args.quiet or args.json)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_validation_text(body).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS if body["valid"] else EXIT_VALIDATE_FAILED
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_export(args: argparse.Namespace) -> int:
    try:
        wizard = prepare_wizard(args)
        if not advance_to_validation(wizard, args.quiet):
            return EXIT_MAPPING_INCOMPLETE
        fixes_applied = apply_cli_fixes(wizard, args.fix)
        if not wizard.go_next():
            emit_human(render_validation_text(validation_body(wizard, fixes_applied)).rstrip(), quiet=args.quiet)
            eprint(f"Refusing to export: {len(wizard.errors)} validation error(s) remain.")
            return EXIT_VALIDATE_FAILED
        wizard.go_next()

        default_path = determine_output_dir(args) / export_filename(args.format)
        output_path = safe_output_path(Path(args.output) if args.output else None, default_path)
        write_bytes(output_path, build_export(wizard.records, wizard.schema, args.format))

        summary = build_run_summary(
            command="export",
            input_source=args.input,
            output_path=str(output_path),
            metrics={"records": len(wizard.records), "format": args.format, "fixes_applied": fixes_applied},
            warnings=wizard.warnings,
        )
        if args.json:
            maybe_emit_json_stdout(wrap_payload("found_wizard.export_summary", {"output": str(output_path)}, summary), True)
        else:
            emit_human(f"Exported {len(wizard.records)} record(s): {output_path}", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, WizardConfig().to_dict())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_config_show(args: argparse.Namespace) -> int:
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        eprint(str(exc))
        return EXIT_COMMAND_ERROR
    print(json_dumps(config.to_dict()))
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--schema", help="Schema JSON path (defaults to the bundled lost items schema)")
    parser.add_argument("--config", help="Config JSON path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")


def add_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="CSV file path or public http(s) URL")
    parser.add_argument("--map", action="append", metavar="FIELD=HEADER", help="Override the mapping of one field; empty HEADER unmaps it")
    parser.add_argument("--no-profile", dest="no_profile", action="store_true", help="Ignore and do not update the saved mapping profile")
    add_common_arguments(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = FoundWizardArgumentParser(prog="found-wizard", description="Turn lost & found register CSV exports into schema-valid datasets.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    schema = subparsers.add_parser("schema", help="Describe the canonical schema.")
    schema.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    add_common_arguments(schema)

    map_cmd = subparsers.add_parser("map", help="Propose a column mapping for a CSV file.")
    add_pipeline_arguments(map_cmd)
    map_cmd.add_argument("--save-profile", dest="save_profile", action="store_true", help="Remember this mapping for the next upload")
    map_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    validate = subparsers.add_parser("validate", help="Transform and validate a CSV file.")
    add_pipeline_arguments(validate)
    validate.add_argument("--fix", action="append", metavar="ROW:FIELD=VALUE", help="Apply a fix before reporting (ROW is the 0-based record index)")
    validate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    validate.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    validate.add_argument("--output", help="Explicit validation report path")

    export = subparsers.add_parser("export", help="Export a fully valid dataset.")
    add_pipeline_arguments(export)
    export.add_argument("--format", choices=list(EXPORT_FORMATS), default="csv", help="Export format")
    export.add_argument("--fix", action="append", metavar="ROW:FIELD=VALUE", help="Apply a fix before exporting")
    export.add_argument("--json", action="store_true", help="Write machine JSON summary to stdout")
    export.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    export.add_argument("--output", help="Explicit export file path")

    config = subparsers.add_parser("config", help="Generate or inspect configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="found-wizard.json", help="Config output path")
    config_show = config_subparsers.add_parser("show", help="Print the effective configuration.")
    config_show.add_argument("--config", help="Config JSON path")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "schema":
            return run_schema(args)
        if args.command == "map":
            return run_map(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
            if args.config_command == "show":
                return run_config_show(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
