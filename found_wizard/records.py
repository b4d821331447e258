from __future__ import annotations

from typing import Any, Iterator

from found_wizard.schema import Schema


class StandardRecord:
    """One row of the register expressed in canonical field terms.

    Keys are checked against the schema on every access. A field that was
    never set is *absent*, which is different from being set to "".
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, schema: Schema, values: dict[str, str] | None = None) -> None:
        self._schema = schema
        self._values: dict[str, str] = {}
        for name, value in (values or {}).items():
            self.set(name, value)

    def __repr__(self) -> str:
        return f"StandardRecord({self.to_dict()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StandardRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    @property
    def schema(self) -> Schema:
        return self._schema

    def has(self, name: str) -> bool:
        self._schema.field(name)
        return name in self._values

    def get(self, name: str) -> str | None:
        self._schema.field(name)
        return self._values.get(name)

    def value(self, name: str) -> str:
        return self.get(name) or ""

    def set(self, name: str, value: Any) -> None:
        self._schema.field(name)
        self._values[name] = "" if value is None else str(value)

    def to_dict(self) -> dict[str, str]:
        return {name: self._values[name] for name in self._schema.names if name in self._values}
