"""Shared versioned contracts for machine-readable found-wizard outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from found_wizard import __version__ as TOOL_VERSION

CONTRACT_VERSIONS = {
    "found_wizard.mapping": "1.0.0",
    "found_wizard.validation": "1.0.0",
    "found_wizard.export_summary": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_source: str,
    status: str = "ok",
    output_path: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "found-wizard",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input": input_source,
        "output_file": output_path,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def wrap_payload(name: str, body: dict[str, Any], run_summary: dict[str, Any]) -> dict[str, Any]:
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        **body,
        "run_summary": run_summary,
    }
