"""
Bound values for EqualityQuery conditions.

A bound value is a closed, tagged variant:
    - NumberValue  (int or float)
    - TextValue    (str)
    - DateValue    (datetime)

The variant is chosen ONCE, from the declared type of the field the
bound is compared to (see `coerce_value`). Downstream code (codecs,
renderers) never has to guess what kind of scalar it is holding.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Union

from qexpr.errors import QueryValueError
from qexpr.fields import ColumnDataType, SchemaField


_COMPACT_DATE_RE = re.compile(r"^\d{8}$")


class QueryValue(ABC):
    """Base class for bound values."""

    @abstractmethod
    def to_command_string(self) -> str:
        """Render the value for the submission command."""

    @abstractmethod
    def to_json(self) -> Any:
        """Render the value as a JSON scalar for persistence."""

    def __str__(self) -> str:
        return self.to_command_string()


@dataclass(frozen=True)
class NumberValue(QueryValue):
    value: Union[int, float]

    def to_command_string(self) -> str:
        return str(self.value)

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class TextValue(QueryValue):
    value: str

    def to_command_string(self) -> str:
        return self.value

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class DateValue(QueryValue):
    value: datetime

    def to_command_string(self) -> str:
        return self.value.isoformat()

    def to_json(self) -> Any:
        return self.value.isoformat()


def _to_number(raw: Any) -> NumberValue:
    if isinstance(raw, (int, float)):
        return NumberValue(raw)
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return NumberValue(int(text))
        except ValueError:
            pass
        try:
            return NumberValue(float(text))
        except ValueError:
            pass
    raise QueryValueError(f"Expected a number, got {raw!r}")


def _to_date(raw: Any) -> DateValue:
    if isinstance(raw, datetime):
        return DateValue(raw)
    if isinstance(raw, date):
        return DateValue(datetime.combine(raw, time()))
    if isinstance(raw, str):
        text = raw.strip()
        # Dates without dashes, e.g. 20240131
        if _COMPACT_DATE_RE.match(text):
            text = f"{text[:4]}-{text[4:6]}-{text[6:]}"
        try:
            return DateValue(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise QueryValueError(f"Expected a date, got {raw!r}")


def _to_text(raw: Any) -> TextValue:
    if isinstance(raw, (str, int, float)):
        return TextValue(str(raw))
    raise QueryValueError(f"Expected text, got {raw!r}")


_COERCERS = {
    ColumnDataType.NUMBER: (NumberValue, _to_number),
    ColumnDataType.STRING: (TextValue, _to_text),
    ColumnDataType.DATETIME: (DateValue, _to_date),
}


def coerce_value(field: SchemaField, raw: Any) -> QueryValue:
    """
    Resolve a raw scalar into the bound-value variant for `field`.

    Args:
        field: The field the value will be compared against
        raw: int, float, str, date/datetime, or an existing QueryValue

    Returns:
        NumberValue, TextValue or DateValue

    Raises:
        QueryValueError: If the value cannot represent the field's type
    """
    variant, convert = _COERCERS[field.data_type]
    if isinstance(raw, QueryValue):
        if isinstance(raw, variant):
            return raw
        raise QueryValueError(
            f"{type(raw).__name__} cannot be compared to {field.data_type.value} field {field.name}"
        )
    # bool is an int subclass, but never a meaningful bound
    if raw is None or isinstance(raw, bool):
        raise QueryValueError(f"Invalid bound value for {field.name}: {raw!r}")
    return convert(raw)
