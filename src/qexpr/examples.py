"""
Example schema and expression builders.

Builds a small "exposure" table and the expression

    ((airmass < 1.5 ∧ 10 < exp_time < 60) ∨ physical_filter starts with r)

using only the public structural operations, the same way an editor would.
A long left-nested chain is also available for exercising deep trees.
"""
from typing import Dict, Optional

from qexpr.expression import QueryExpression
from qexpr.fields import ColumnDataType, SchemaField
from qexpr.ids import IdGenerator
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.queries import EqualityQuery


def build_example_schema(table: str = "exposure") -> Dict[str, SchemaField]:
    fields = [
        SchemaField(table, "airmass", ColumnDataType.NUMBER, description="Airmass at exposure start"),
        SchemaField(table, "exp_time", ColumnDataType.NUMBER, unit="s", description="Exposure time"),
        SchemaField(table, "physical_filter", ColumnDataType.STRING, description="Filter in the beam"),
        SchemaField(table, "obs_start", ColumnDataType.DATETIME, description="Start of the exposure"),
    ]
    return {f.name: f for f in fields}


def build_example_expression(id_generator: Optional[IdGenerator] = None) -> QueryExpression:
    gen = id_generator if id_generator is not None else IdGenerator()
    schema = build_example_schema()

    airmass = EqualityQuery(
        id=gen.next(),
        field=schema["airmass"],
        right_operator=EqualityOperator.LT,
        right_value=1.5,
    )
    exp_time = EqualityQuery(
        id=gen.next(),
        field=schema["exp_time"],
        left_operator=EqualityOperator.LT,
        left_value=10,
        right_operator=EqualityOperator.LT,
        right_value=60,
    )
    band = EqualityQuery(
        id=gen.next(),
        field=schema["physical_filter"],
        right_operator=EqualityOperator.STARTS_WITH,
        right_value="r",
    )

    expr = QueryExpression.empty(id_generator=gen)
    for query in (airmass, exp_time, band):
        expr = expr.add_node(query)

    expr = expr.connect_queries(airmass.id, exp_time.id, QueryOperator.AND)
    (both,) = expr.roots - {band.id}
    return expr.connect_queries(both, band.id, QueryOperator.OR)


def build_chain_expression(length: int, id_generator: Optional[IdGenerator] = None) -> QueryExpression:
    """
    Left-nested AND chain of `length` airmass leaves:

        (((airmass < 0 ∧ airmass < 1) ∧ airmass < 2) ∧ ...)

    The deepest leaf sits `length` levels below the root.
    """
    gen = id_generator if id_generator is not None else IdGenerator()
    field = build_example_schema()["airmass"]
    expr = QueryExpression.empty(id_generator=gen)
    root = None
    for bound in range(length):
        query = EqualityQuery(id=gen.next(), field=field, right_operator=EqualityOperator.LT, right_value=bound)
        expr = expr.add_node(query)
        if root is None:
            root = query.id
        else:
            expr = expr.connect_queries(root, query.id, QueryOperator.AND)
            (root,) = expr.roots
    return expr
