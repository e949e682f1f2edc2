"""
Query node variants.

A query expression is a forest of two kinds of nodes:

    EqualityQuery  (leaf)
        A comparison of one field against one or two bounds.
        Examples: 3 < x, x < 8, 3 < x < 8

    ParentQuery  (combinator)
        A boolean operator applied to two or more child queries.

ARCHITECTURAL RULE:
    Nodes do NOT hold references to their children or parents.
    Structure lives in the QueryExpression adjacency maps.
    This keeps nodes immutable and the forest cycle-safe.

Both variants are frozen dataclasses; edits produce copies.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from qexpr.errors import QueryError
from qexpr.fields import SchemaField
from qexpr.ids import UniqueId
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.values import QueryValue, coerce_value


@dataclass(frozen=True)
class Query:
    """
    Base class for all query nodes.

    Properties:
        id: Identifier of the node within its expression
    """

    id: UniqueId


@dataclass(frozen=True)
class EqualityQuery(Query):
    """
    A leaf condition on a single field, bounded on one or both sides.

    Example:
        3 < x < 8

    Becomes:
        EqualityQuery(
            id=UniqueId(1),
            field=x,
            left_operator=EqualityOperator.LT,
            left_value=NumberValue(3),
            right_operator=EqualityOperator.LT,
            right_value=NumberValue(8),
        )

    Properties:
        field: The SchemaField the condition applies to (borrowed)
        left_operator / left_value: Bound to the left of the field (optional)
        right_operator / right_value: Bound to the right of the field (optional)

    IMPORTANT:
        The operator and value of a side are both set or both None.
        A leaf with NO side at all is allowed while editing; it is
        rejected when the expression is turned into a command.

        Raw scalars given as values are resolved to QueryValue variants
        using the field's declared type.
    """

    field: SchemaField
    left_operator: Optional[EqualityOperator] = None
    left_value: Optional[QueryValue] = None
    right_operator: Optional[EqualityOperator] = None
    right_value: Optional[QueryValue] = None

    def __post_init__(self):
        if (self.left_operator is None) != (self.left_value is None):
            raise QueryError(f"Query {self.id!r}: left operator and left value must be set together")
        if (self.right_operator is None) != (self.right_value is None):
            raise QueryError(f"Query {self.id!r}: right operator and right value must be set together")
        if self.left_value is not None:
            object.__setattr__(self, "left_value", coerce_value(self.field, self.left_value))
        if self.right_value is not None:
            object.__setattr__(self, "right_value", coerce_value(self.field, self.right_value))

    @property
    def has_left(self) -> bool:
        return self.left_operator is not None

    @property
    def has_right(self) -> bool:
        return self.right_operator is not None

    @property
    def is_complete(self) -> bool:
        """True once at least one bound is present."""
        return self.has_left or self.has_right

    def with_field(self, field: SchemaField) -> "EqualityQuery":
        return replace(self, field=field)

    def update_left(self, operator: EqualityOperator, value: Any) -> "EqualityQuery":
        return replace(self, left_operator=operator, left_value=value)

    def update_right(self, operator: EqualityOperator, value: Any) -> "EqualityQuery":
        return replace(self, right_operator=operator, right_value=value)

    def clear_left(self) -> "EqualityQuery":
        return replace(self, left_operator=None, left_value=None)

    def clear_right(self) -> "EqualityQuery":
        return replace(self, right_operator=None, right_value=None)

    def __str__(self) -> str:
        parts = []
        if self.has_left:
            parts.append(f"{self.left_value} {self.left_operator.symbol}")
        parts.append(self.field.name)
        if self.has_right:
            parts.append(f"{self.right_operator.symbol} {self.right_value}")
        return " ".join(parts)


@dataclass(frozen=True)
class ParentQuery(Query):
    """
    Combines the queries below it with a boolean operator.

    Properties:
        operator: QueryOperator applied to the children

    The children themselves are NOT stored here.
    Use QueryExpression.get_children(parent.id).
    """

    operator: QueryOperator = QueryOperator.AND

    def with_operator(self, operator: QueryOperator) -> "ParentQuery":
        return replace(self, operator=operator)

    def __str__(self) -> str:
        return f"ParentQuery<{self.operator.symbol}>"
