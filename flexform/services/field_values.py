from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union


@dataclass(frozen=True)
class TextValue:
    value: str
    kind: str = field(default="text", init=False)

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int | float
    kind: str = field(default="number", init=False)

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class DateValue:
    value: date
    kind: str = field(default="date", init=False)

    def to_json(self) -> Any:
        return self.value.isoformat()


@dataclass(frozen=True)
class StringListValue:
    value: tuple[str, ...]
    kind: str = field(default="list", init=False)

    def to_json(self) -> Any:
        return list(self.value)


@dataclass(frozen=True)
class BoolValue:
    value: bool
    kind: str = field(default="bool", init=False)

    def to_json(self) -> Any:
        return self.value


FieldValue = Union[TextValue, NumberValue, DateValue, StringListValue, BoolValue]


def record_to_json(values: dict[str, FieldValue]) -> dict[str, Any]:
    return {name: item.to_json() for name, item in values.items()}
