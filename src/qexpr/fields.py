"""
Field references borrowed from the remote schema catalog.

A SchemaField names one column of one table.
The catalog owns field metadata; queries only hold references to it
and never mutate it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ColumnDataType(Enum):
    """Declared type of a column, used to resolve bound values."""

    STRING = "string"
    NUMBER = "number"
    DATETIME = "datetime"


_EXECUTOR_TYPES = {
    "char": ColumnDataType.STRING,
    "int": ColumnDataType.NUMBER,
    "long": ColumnDataType.NUMBER,
    "float": ColumnDataType.NUMBER,
    "double": ColumnDataType.NUMBER,
    "timestamp": ColumnDataType.DATETIME,
}


def parse_column_data_type(data_type: str) -> ColumnDataType:
    """
    Convert a type name reported by the query executor.

    Raises:
        ValueError: If the type name is unknown
    """
    try:
        return _EXECUTOR_TYPES[data_type]
    except KeyError:
        raise ValueError(f"Unknown data type: {data_type}") from None


@dataclass(frozen=True)
class SchemaField:
    """
    A column of a table in the remote dataset.

    Properties:
        schema: Name of the table containing the column
        name: Column name
        data_type: Declared ColumnDataType
        unit: Physical unit (optional, for labels)
        description: Human-readable description (optional)
    """

    schema: str
    name: str
    data_type: ColumnDataType
    unit: Optional[str] = None
    description: Optional[str] = None

    @property
    def column(self) -> str:
        """Fully qualified column name, as sent to the executor."""
        return f"{self.schema}.{self.name}"

    @property
    def label(self) -> str:
        return self.name if self.unit is None else f"{self.name} ({self.unit})"

    @property
    def is_string(self) -> bool:
        return self.data_type == ColumnDataType.STRING

    @property
    def is_numerical(self) -> bool:
        return self.data_type == ColumnDataType.NUMBER

    @property
    def is_datetime(self) -> bool:
        return self.data_type == ColumnDataType.DATETIME
