from __future__ import annotations

from dataclasses import dataclass, field

from found_wizard.mapping import ColumnMapping
from found_wizard.records import StandardRecord
from found_wizard.schema import Schema
from found_wizard.validation import ValidationError


@dataclass
class WorkingSet:
    """Everything one wizard session mutates, passed explicitly to each step."""

    schema: Schema
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    mapping: ColumnMapping | None = None
    records: list[StandardRecord] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    file_name: str | None = None

    @property
    def has_data(self) -> bool:
        return bool(self.headers)

    def ensure_mapping(self) -> ColumnMapping:
        if self.mapping is None:
            self.mapping = ColumnMapping(self.schema)
        return self.mapping

    def clear(self) -> None:
        self.headers = []
        self.rows = []
        self.mapping = None
        self.records = []
        self.errors = []
        self.file_name = None
