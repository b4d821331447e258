"""
Five-step wizard: upload -> map -> validate & fix -> preview -> export.

Progress is strictly linear. Moving forward needs the current step to be
complete; moving back is always allowed and keeps everything computed
downstream. Entering the validation step re-transforms the source rows, so
fixes written back into those rows survive a trip back to the mapping step.
"""

from __future__ import annotations

from enum import IntEnum

from found_wizard.fixes import FixResult, apply_fix
from found_wizard.loader import ParsedCSVData
from found_wizard.mapping import (
    ColumnMapping,
    MappingHeuristics,
    is_perfect_mapping,
    mapping_report,
    missing_required,
)
from found_wizard.profiles import MemoryProfileStore, resolve_initial_mapping
from found_wizard.records import StandardRecord
from found_wizard.schema import CanonicalField, Schema
from found_wizard.session import WorkingSet
from found_wizard.transform import transform
from found_wizard.validation import ValidationError, validate


class Step(IntEnum):
    UPLOAD = 1
    MAP = 2
    VALIDATE = 3
    PREVIEW = 4
    EXPORT = 5


STEP_TITLES = {
    Step.UPLOAD: "Data source",
    Step.MAP: "Column mapping",
    Step.VALIDATE: "Validation",
    Step.PREVIEW: "Preview",
    Step.EXPORT: "Export",
}


class Wizard:
    def __init__(
        self,
        schema: Schema,
        *,
        profile_store: MemoryProfileStore | None = None,
        heuristics: MappingHeuristics | None = None,
    ) -> None:
        self.working_set = WorkingSet(schema=schema)
        self.profile_store = profile_store
        self.heuristics = heuristics
        self.current_step = Step.UPLOAD
        self.mapping_source: str | None = None
        self.warnings: list[str] = []
        self._validated = False
        self._reached: set[Step] = {Step.UPLOAD}

    # ── state accessors ───────────────────────────────────────────────────────

    @property
    def schema(self) -> Schema:
        return self.working_set.schema

    @property
    def headers(self) -> list[str]:
        return self.working_set.headers

    @property
    def rows(self) -> list[dict[str, str]]:
        return self.working_set.rows

    @property
    def mapping(self) -> ColumnMapping:
        return self.working_set.ensure_mapping()

    @property
    def records(self) -> list[StandardRecord]:
        return self.working_set.records

    @property
    def errors(self) -> list[ValidationError]:
        return self.working_set.errors

    @property
    def missing_required(self) -> list[CanonicalField]:
        return missing_required(self.schema, self.mapping)

    @property
    def perfect_mapping(self) -> bool:
        if not self.headers:
            return False
        return is_perfect_mapping(self.schema, self.mapping, self.headers, self.heuristics)

    def mapping_report(self) -> dict:
        return mapping_report(self.schema, self.mapping, self.headers, self.heuristics)

    # ── step 1/2 ─────────────────────────────────────────────────────────────

    def load_data(self, parsed: ParsedCSVData, file_name: str | None = None) -> str:
        """Start over at step 1 with a freshly parsed upload and propose a mapping for it."""
        working_set = self.working_set
        working_set.headers = list(parsed.headers)
        working_set.rows = [dict(row) for row in parsed.rows]
        working_set.file_name = file_name
        working_set.records = []
        working_set.errors = []
        self.warnings = list(parsed.warnings)
        self._validated = False
        self.current_step = Step.UPLOAD
        self._reached = {Step.UPLOAD}
        mapping, source = resolve_initial_mapping(
            self.schema, working_set.headers, self.profile_store, self.heuristics
        )
        working_set.mapping = mapping
        self.mapping_source = source
        return source

    def set_field_mapping(self, field_name: str, header: str | None) -> None:
        if header and header not in self.headers:
            raise ValueError(f"Column {header!r} is not in the uploaded file")
        self.mapping.assign(field_name, header)
        self._validated = False

    def replace_mapping(self, mapping: ColumnMapping) -> None:
        if mapping.schema != self.schema:
            raise ValueError("Mapping was built for a different schema")
        self.working_set.mapping = mapping.copy()
        self._validated = False

    # ── step 3 ───────────────────────────────────────────────────────────────

    def run_validation(self) -> list[ValidationError]:
        working_set = self.working_set
        working_set.records = transform(working_set.rows, self.mapping, self.schema)
        working_set.errors = validate(working_set.records, self.schema)
        self._validated = True
        return working_set.errors

    def apply_fix(self, row_index: int, field_name: str, new_value: str) -> FixResult:
        if self.current_step != Step.VALIDATE:
            raise RuntimeError("Fixes can only be applied in the validation step")
        return apply_fix(self.working_set, row_index, field_name, new_value)

    # ── navigation ───────────────────────────────────────────────────────────

    def is_step_complete(self, step: Step) -> bool:
        if step == Step.UPLOAD:
            return self.working_set.has_data
        if step == Step.MAP:
            return self.working_set.has_data and not self.missing_required
        if step == Step.VALIDATE:
            return self._validated and not self.errors
        return step in self._reached and self.is_step_complete(Step.VALIDATE)

    @property
    def can_go_next(self) -> bool:
        return self.current_step < Step.EXPORT and self.is_step_complete(self.current_step)

    @property
    def can_go_prev(self) -> bool:
        return self.current_step > Step.UPLOAD

    def _enter(self, step: Step) -> None:
        if step == Step.VALIDATE:
            if self.profile_store is not None:
                self.profile_store.save(self.mapping, self.headers)
            self.run_validation()
        self._reached.add(step)
        self.current_step = step

    def go_next(self) -> bool:
        if not self.can_go_next:
            return False
        self._enter(Step(self.current_step + 1))
        return True

    def go_prev(self) -> bool:
        if not self.can_go_prev:
            return False
        self.current_step = Step(self.current_step - 1)
        return True

    def go_to(self, step: Step) -> bool:
        step = Step(step)
        if step <= self.current_step:
            self.current_step = step
            return True
        while self.current_step < step:
            if not self.go_next():
                return False
        return True

    def restart(self) -> None:
        """Drop everything derived from the upload; the schema stays loaded."""
        self.working_set.clear()
        self.current_step = Step.UPLOAD
        self.mapping_source = None
        self.warnings = []
        self._validated = False
        self._reached = {Step.UPLOAD}
