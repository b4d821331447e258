"""Canonical field schema for the lost & found register."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterator

SCHEMA_VERSION = "v1"
DEFAULT_SCHEMA_RESOURCE = "lost_items_schema.json"

FIELD_TYPES = ("string", "date", "enum")
DATE_FORMAT_HINT = "YYYY-MM-DD"

TYPE_LABELS = {
    "string": "text",
    "date": "date",
    "enum": "enum",
}


class SchemaError(ValueError):
    pass


class UnknownFieldError(SchemaError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown schema field: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class CanonicalField:
    name: str
    label: str
    type: str = "string"
    required: bool = False
    examples: tuple[str, ...] = ()

    @property
    def is_enum(self) -> bool:
        return self.type == "enum" and bool(self.examples)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "required": self.required,
            "type": self.type,
        }
        if self.examples:
            payload["examples"] = list(self.examples)
        return payload


class Schema:
    """Ordered, immutable set of canonical fields.

    Field names are resolved only through ``field()``, so a typo in a field
    name fails loudly instead of silently reading an empty value.
    """

    def __init__(self, fields: list[CanonicalField] | tuple[CanonicalField, ...]) -> None:
        self._fields = tuple(fields)
        self._by_name = {field.name: field for field in self._fields}
        if len(self._by_name) != len(self._fields):
            raise SchemaError("Schema field names must be unique")

    @classmethod
    def from_list(cls, payload: Any) -> "Schema":
        if not isinstance(payload, list):
            raise SchemaError("Schema root must be a JSON array of field objects.")
        fields: list[CanonicalField] = []
        for index, item in enumerate(payload):
            fields.append(_parse_field(item, index))
        if not fields:
            raise SchemaError("Schema must define at least one field.")
        seen: set[str] = set()
        for field in fields:
            if field.name in seen:
                raise SchemaError(f"Duplicate schema field name: {field.name!r}")
            seen.add(field.name)
        return cls(fields)

    def __iter__(self) -> Iterator[CanonicalField]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        return f"Schema({', '.join(self.names)})"

    @property
    def fields(self) -> tuple[CanonicalField, ...]:
        return self._fields

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(field.name for field in self._fields)

    @property
    def required_fields(self) -> tuple[CanonicalField, ...]:
        return tuple(field for field in self._fields if field.required)

    def field(self, name: str) -> CanonicalField:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def to_list(self) -> list[dict[str, Any]]:
        return [field.to_dict() for field in self._fields]


def _parse_field(item: Any, index: int) -> CanonicalField:
    if not isinstance(item, dict):
        raise SchemaError(f"Schema entry #{index} must be an object.")
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SchemaError(f"Schema entry #{index} is missing a non-empty 'name'.")
    label = item.get("label", name)
    if not isinstance(label, str):
        raise SchemaError(f"Field {name!r}: 'label' must be a string.")
    field_type = item.get("type", "string")
    if field_type not in FIELD_TYPES:
        raise SchemaError(
            f"Field {name!r}: unsupported type {field_type!r}. Supported: {', '.join(FIELD_TYPES)}"
        )
    required = item.get("required", False)
    if not isinstance(required, bool):
        raise SchemaError(f"Field {name!r}: 'required' must be true or false.")
    examples = item.get("examples") or []
    if not isinstance(examples, list) or not all(isinstance(value, str) for value in examples):
        raise SchemaError(f"Field {name!r}: 'examples' must be a list of strings.")
    return CanonicalField(
        name=name,
        label=label,
        type=field_type,
        required=required,
        examples=tuple(examples),
    )


def load_schema(path: "str | Path") -> Schema:
    path = Path(path)
    if not path.exists():
        raise SchemaError(f"Schema not found: {path}")
    if path.suffix.lower() != ".json":
        raise SchemaError("Schema must be a .json file")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SchemaError(f"Could not read schema: {exc}") from exc
    return Schema.from_list(payload)


def default_schema() -> Schema:
    text = resources.files("found_wizard").joinpath("data").joinpath(DEFAULT_SCHEMA_RESOURCE).read_text(encoding="utf-8")
    return Schema.from_list(json.loads(text))


def describe_field(field: CanonicalField) -> str:
    """One-line description shown next to a field in the mapping step."""
    parts = [f"Type: {TYPE_LABELS.get(field.type, field.type)}"]
    parts.append("required" if field.required else "optional field")
    if field.type == "date":
        parts.append(f"Expected format: {DATE_FORMAT_HINT}")
    elif field.type == "enum" and field.examples:
        if len(field.examples) > 3:
            examples = f"{', '.join(field.examples[:3])}, …"
        else:
            examples = ", ".join(field.examples)
        parts.append(f"Examples: {examples}")
    return ". ".join(parts) + "."
