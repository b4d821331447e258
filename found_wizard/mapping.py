"""
Column mapping between uploaded CSV headers and the canonical schema.

The auto-mapper is a first-hit heuristic, not an optimal assignment: each
field independently takes the first header that satisfies the earliest
matching strategy, so two fields can end up claiming the same header.
``is_perfect_mapping`` decides whether the result is trustworthy enough to
tell the user they can move on without reviewing it.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from found_wizard.schema import CanonicalField, Schema, UnknownFieldError

PERFECT_MATCH_RATIO = 0.8
MIN_LABEL_WORD_LENGTH = 1


@dataclass(frozen=True)
class MappingHeuristics:
    perfect_match_ratio: float = PERFECT_MATCH_RATIO
    min_label_word_length: int = MIN_LABEL_WORD_LENGTH


DEFAULT_HEURISTICS = MappingHeuristics()


class ColumnMapping:
    """Schema field name -> CSV header (or None when unmapped).

    Always holds exactly one entry per schema field.
    """

    __slots__ = ("_schema", "_headers")

    def __init__(self, schema: Schema, assignments: dict[str, str | None] | None = None) -> None:
        self._schema = schema
        self._headers: dict[str, str | None] = {name: None for name in schema.names}
        for name, header in (assignments or {}).items():
            self.assign(name, header)

    @classmethod
    def from_dict(cls, schema: Schema, payload: Any) -> "ColumnMapping":
        if not isinstance(payload, dict):
            raise ValueError("Mapping must be an object of field name -> CSV header")
        for name, header in payload.items():
            if header is not None and not isinstance(header, str):
                raise ValueError(f"Mapped header for {name!r} must be a string or null")
        return cls(schema, payload)

    def __repr__(self) -> str:
        return f"ColumnMapping({self._headers!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnMapping):
            return NotImplemented
        return self._headers == other._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    @property
    def schema(self) -> Schema:
        return self._schema

    def header_for(self, name: str) -> str | None:
        self._schema.field(name)
        return self._headers[name]

    def assign(self, name: str, header: str | None) -> None:
        self._schema.field(name)
        self._headers[name] = header or None

    def items(self) -> list[tuple[str, str | None]]:
        return list(self._headers.items())

    def mapped_headers(self) -> list[str]:
        return [header for header in self._headers.values() if header is not None]

    def copy(self) -> "ColumnMapping":
        return ColumnMapping(self._schema, dict(self._headers))

    def to_dict(self) -> dict[str, str | None]:
        return dict(self._headers)


def _label_words(field: CanonicalField, heuristics: MappingHeuristics) -> list[str]:
    return [
        word
        for word in field.label.lower().split()
        if len(word) >= heuristics.min_label_word_length
    ]


def match_header(
    field: CanonicalField,
    csv_headers: Iterable[str],
    heuristics: MappingHeuristics | None = None,
) -> str | None:
    heuristics = heuristics or DEFAULT_HEURISTICS
    candidates = [header for header in csv_headers if header]
    name = field.name.lower()

    for header in candidates:
        if header.lower() == name:
            return header

    for header in candidates:
        lowered = header.lower()
        if name in lowered or lowered in name:
            return header

    words = _label_words(field, heuristics)
    if words:
        for header in candidates:
            lowered = header.lower()
            if any(word in lowered for word in words):
                return header

    return None


def map_headers_to_schema(
    csv_headers: Iterable[str],
    schema: Schema,
    heuristics: MappingHeuristics | None = None,
) -> ColumnMapping:
    headers = list(csv_headers)
    mapping = ColumnMapping(schema)
    for field in schema:
        mapping.assign(field.name, match_header(field, headers, heuristics))
    return mapping


def normalize_label(label: str) -> str:
    return re.sub(r"[()]", "", re.sub(r"\s+", "_", label.lower()))


def header_matches_field(header: str, field: CanonicalField) -> bool:
    lowered = header.lower().strip()
    if not lowered:
        return False
    forms = (field.name.lower(), normalize_label(field.label))
    for form in forms:
        if lowered == form:
            return True
        if form and (form in lowered or lowered in form):
            return True
    return False


def missing_required(schema: Schema, mapping: ColumnMapping) -> list[CanonicalField]:
    return [field for field in schema.required_fields if mapping.header_for(field.name) is None]


def is_perfect_mapping(
    schema: Schema,
    mapping: ColumnMapping,
    csv_headers: Iterable[str],
    heuristics: MappingHeuristics | None = None,
) -> bool:
    heuristics = heuristics or DEFAULT_HEURISTICS
    if missing_required(schema, mapping):
        return False

    mapped = mapping.mapped_headers()
    if len(mapped) != len(set(mapped)):
        return False

    available = set(csv_headers)
    if any(header not in available for header in mapped):
        return False

    if not mapped:
        return False

    matches = 0
    for field in schema:
        header = mapping.header_for(field.name)
        if header is not None and header_matches_field(header, field):
            matches += 1
    return matches / len(mapped) >= heuristics.perfect_match_ratio


def mapping_report(
    schema: Schema,
    mapping: ColumnMapping,
    csv_headers: list[str],
    heuristics: MappingHeuristics | None = None,
) -> dict[str, Any]:
    counts = Counter(mapping.mapped_headers())
    return {
        "mapping": mapping.to_dict(),
        "perfect": is_perfect_mapping(schema, mapping, csv_headers, heuristics),
        "missing_required": [field.name for field in missing_required(schema, mapping)],
        "duplicate_headers": sorted(header for header, count in counts.items() if count > 1),
        "unused_headers": [header for header in csv_headers if header not in counts],
    }


def parse_assignment(text: str, schema: Schema) -> tuple[str, str | None]:
    """Parse a ``FIELD=HEADER`` override; an empty header unmaps the field."""
    if "=" not in text:
        raise ValueError(f"Expected FIELD=HEADER, got {text!r}")
    name, header = text.split("=", 1)
    name = name.strip()
    if name not in schema:
        raise UnknownFieldError(name)
    return name, header.strip() or None
