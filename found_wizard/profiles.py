"""
Remembered column mappings.

The last mapping a user confirmed is stored together with the headers it
was made for. On the next upload it replaces the auto-mapper's guess, but
only when every header it points at still exists. Any problem reading or
applying a stored profile falls back to the auto-mapper without surfacing
an error.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from found_wizard.mapping import ColumnMapping, MappingHeuristics, map_headers_to_schema
from found_wizard.schema import SCHEMA_VERSION, Schema

MAPPING_PROFILE_KEY = "lost_items_mapping_profile"


@dataclass
class MappingProfile:
    schema_version: str
    mapping: dict[str, str | None]
    csv_headers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "mapping": dict(self.mapping),
            "csv_headers": list(self.csv_headers),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "MappingProfile":
        if not isinstance(payload, dict):
            raise ValueError("Mapping profile must be an object")
        mapping = payload.get("mapping")
        if not isinstance(mapping, dict):
            raise ValueError("Mapping profile has no mapping object")
        headers = payload.get("csv_headers") or []
        if not isinstance(headers, list):
            raise ValueError("Mapping profile csv_headers must be a list")
        return cls(
            schema_version=str(payload.get("schema_version", "")),
            mapping=dict(mapping),
            csv_headers=[str(header) for header in headers],
        )


class MemoryProfileStore:
    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def save(self, mapping: ColumnMapping, csv_headers: Iterable[str]) -> MappingProfile:
        profile = MappingProfile(SCHEMA_VERSION, mapping.to_dict(), list(csv_headers))
        self._write(profile.to_dict())
        return profile

    def load(self) -> MappingProfile | None:
        payload = self._read()
        if payload is None:
            return None
        try:
            return MappingProfile.from_dict(payload)
        except ValueError:
            return None

    def clear(self) -> None:
        self._entries.pop(MAPPING_PROFILE_KEY, None)

    def _write(self, payload: dict[str, Any]) -> None:
        self._entries[MAPPING_PROFILE_KEY] = payload

    def _read(self) -> dict[str, Any] | None:
        return self._entries.get(MAPPING_PROFILE_KEY)


class ProfileStore(MemoryProfileStore):
    """JSON file holding the profile under ``MAPPING_PROFILE_KEY``."""

    def __init__(self, path: "str | Path") -> None:
        super().__init__()
        self.path = Path(path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def _write(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({MAPPING_PROFILE_KEY: payload}, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(document, dict):
            return None
        return document.get(MAPPING_PROFILE_KEY)


def can_apply_profile(profile: MappingProfile, csv_headers: Iterable[str]) -> bool:
    if profile.schema_version != SCHEMA_VERSION:
        return False
    available = set(csv_headers)
    return all(header in available for header in profile.mapping.values() if header is not None)


def resolve_initial_mapping(
    schema: Schema,
    csv_headers: list[str],
    store: MemoryProfileStore | None = None,
    heuristics: MappingHeuristics | None = None,
) -> tuple[ColumnMapping, str]:
    """Return the starting mapping for an upload and where it came from."""
    profile = store.load() if store is not None else None
    if profile is not None and can_apply_profile(profile, csv_headers):
        try:
            return ColumnMapping.from_dict(schema, profile.mapping), "profile"
        except ValueError:
            # mapping names fields this schema does not have
            pass
    return map_headers_to_schema(csv_headers, schema, heuristics), "auto"
