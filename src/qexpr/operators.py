"""
Operator taxonomies for query expressions.

Two closed enumerations:
    - EqualityOperator: compares a field against a bound value
    - QueryOperator: combines two or more queries

Each member carries its display symbol and the machine-readable
name(s) used by the remote query executor.

IMPORTANT:
    There are no "greater than" comparison operators.
    A bound can sit on either side of the field ("3 < x" or "x < 8"),
    so the same symbol flips direction depending on its side:

        3 < x   ->   x > 3   ->   wire name "gt"
        x < 8   ->               wire name "lt"

    This is why EqualityOperator carries both a left and a right
    wire name.
"""

from enum import Enum
from typing import Optional


class EqualityOperator(Enum):
    """
    Comparison operators for an EqualityQuery bound.

    Properties:
        symbol: Symbol shown to the user
        query_left: Wire name when the operator sits left of the field
            (None for string operators, which have no left form)
        query_right: Wire name when the operator sits right of the field
    """

    EQ = ("=", "eq", "eq")
    NEQ = ("≠", "neq", "neq")
    LT = ("<", "gt", "lt")
    LTE = ("≤", "gte", "lte")
    BLANK = (" ", " ", " ")
    STARTS_WITH = ("starts with", None, "starts with")
    ENDS_WITH = ("ends with", None, "ends with")
    CONTAINS = ("contains", None, "contains")

    def __init__(self, symbol: str, query_left: Optional[str], query_right: str):
        self.symbol = symbol
        self.query_left = query_left
        self.query_right = query_right

    @property
    def persisted_name(self) -> str:
        """Name used in the persistence format (e.g. "eq", "starts_with")."""
        return self.name.lower()

    def wire_name(self, left: bool) -> Optional[str]:
        return self.query_left if left else self.query_right

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional["EqualityOperator"]:
        for op in cls:
            if op.symbol == symbol:
                return op
        return None

    @classmethod
    def from_name(cls, name: str) -> Optional["EqualityOperator"]:
        for op in cls:
            if op.persisted_name == name:
                return op
        return None


class QueryOperator(Enum):
    """
    Boolean operators combining the children of a ParentQuery.

    Properties:
        symbol: Symbol shown to the user
        wire_name: Name used both on the wire and in persistence
    """

    AND = ("∧", "AND")
    OR = ("∨", "OR")
    XOR = ("⊕", "XOR")
    NOT = ("¬", "NOT")
    BLANK = (" ", "")

    def __init__(self, symbol: str, wire_name: str):
        self.symbol = symbol
        self.wire_name = wire_name

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional["QueryOperator"]:
        for op in cls:
            if op.symbol == symbol:
                return op
        return None

    @classmethod
    def from_name(cls, name: str) -> Optional["QueryOperator"]:
        for op in cls:
            if op.wire_name == name:
                return op
        return None
