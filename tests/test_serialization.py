"""
Tests for serialization and deserialization of query expressions.

These tests ensure lossless JSON/YAML round-trip using the explicit
serialization functions in `qexpr.serialization`, and that loading
moves the id generator past every loaded id.
"""

import json
from datetime import datetime

import pytest

from qexpr.examples import build_example_expression, build_example_schema
from qexpr.expression import QueryExpression
from qexpr.fields import ColumnDataType, SchemaField
from qexpr.ids import IdGenerator, UniqueId
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.queries import EqualityQuery, ParentQuery
from qexpr.serialization import (
    SerializationError,
    expression_from_dict,
    expression_from_json,
    expression_from_yaml,
    expression_to_dict,
    expression_to_json,
    expression_to_yaml,
    query_from_dict,
    query_to_dict,
)
from qexpr.values import DateValue


def build_sample_expression() -> QueryExpression:
    return build_example_expression(IdGenerator())


def test_dict_layout():
    d = expression_to_dict(build_sample_expression())
    assert d["roots"] == ["4"]
    assert d["children"] == {"3": ["0", "1"], "4": ["3", "2"]}
    assert d["parents"] == {"0": "3", "1": "3", "2": "4", "3": "4"}
    assert d["nodes"]["4"] == {"type": "ParentQuery", "id": "4", "operator": "OR"}
    assert d["nodes"]["1"] == {
        "type": "EqualityQuery",
        "id": "1",
        "field": {"schema": "exposure", "name": "exp_time", "dataType": "number", "unit": "s",
                  "description": "Exposure time"},
        "leftOperator": "lt",
        "leftValue": 10,
        "rightOperator": "lt",
        "rightValue": 60,
    }


def test_dict_roundtrip():
    expr = build_sample_expression()
    assert expression_from_dict(expression_to_dict(expr), IdGenerator()) == expr


def test_json_roundtrip():
    expr = build_sample_expression()
    json_str = expression_to_json(expr)
    restored = expression_from_json(json_str, IdGenerator())
    assert restored == expr
    assert expression_to_dict(restored) == json.loads(json_str)


def test_yaml_roundtrip():
    expr = build_sample_expression()
    before = expression_to_dict(expr)
    restored = expression_from_yaml(expression_to_yaml(expr), IdGenerator())
    assert expression_to_dict(restored) == before
    assert restored == expr


def test_date_values_roundtrip():
    when = SchemaField("exposure", "obs_start", ColumnDataType.DATETIME)
    q = EqualityQuery(id=UniqueId(0), field=when, left_operator=EqualityOperator.LTE, left_value="2024-05-01")
    expr = QueryExpression.empty().add_node(q)
    d = expression_to_dict(expr)
    assert d["nodes"]["0"]["leftValue"] == "2024-05-01T00:00:00"
    assert expression_from_yaml(expression_to_yaml(expr), IdGenerator()) == expr


def build_date_range_expression() -> QueryExpression:
    when = build_example_schema()["obs_start"]
    q = EqualityQuery(
        id=UniqueId(0),
        field=when,
        left_operator=EqualityOperator.LT,
        left_value="20240131",
        right_operator=EqualityOperator.LTE,
        right_value=datetime(2024, 2, 1, 12, 30, 5, 7),
    )
    return QueryExpression.empty(IdGenerator()).add_node(q)


def test_two_sided_date_range_roundtrip():
    expr = build_date_range_expression()
    d = expression_to_dict(expr)
    assert d["nodes"]["0"]["leftValue"] == "2024-01-31T00:00:00"
    assert d["nodes"]["0"]["rightValue"] == "2024-02-01T12:30:05.000007"
    assert expression_from_yaml(expression_to_yaml(expr), IdGenerator()) == expr
    assert expression_from_json(expression_to_json(expr), IdGenerator()) == expr
    restored = expression_from_json(expression_to_json(expr), IdGenerator()).nodes[UniqueId(0)]
    assert restored.left_value == DateValue(datetime(2024, 1, 31))
    assert restored.right_value == DateValue(datetime(2024, 2, 1, 12, 30, 5, 7))


def test_empty_roundtrip():
    expr = QueryExpression.empty()
    assert expression_from_json(expression_to_json(expr), IdGenerator()) == expr


def test_load_advances_generator():
    gen = IdGenerator()
    loaded = expression_from_json(expression_to_json(build_sample_expression()), gen)
    assert gen.peek == 5
    assert loaded.id_generator is gen

    leaf = EqualityQuery(
        id=gen.next(),
        field=loaded.nodes[UniqueId(0)].field,
        right_operator=EqualityOperator.EQ,
        right_value=1,
    )
    expr = loaded.add_node(leaf).connect_queries(UniqueId(4), leaf.id, QueryOperator.AND)
    assert expr.roots == {UniqueId(6)}
    assert expr.is_valid()


def test_load_keeps_larger_counter():
    gen = IdGenerator(start=100)
    expression_from_dict(expression_to_dict(build_sample_expression()), gen)
    assert gen.peek == 100


def test_load_does_not_validate():
    d = {
        "nodes": {"1": {"type": "ParentQuery", "id": "1", "operator": "AND"}},
        "roots": [],
        "children": {},
        "parents": {},
    }
    expr = expression_from_dict(d, IdGenerator())
    assert not expr.is_valid()


def test_inconsistent_parent_warns():
    d = {
        "nodes": {
            "1": {"type": "ParentQuery", "id": "1", "operator": "AND"},
            "2": {"type": "ParentQuery", "id": "2", "operator": "AND"},
        },
        "roots": ["1"],
        "children": {"1": ["2"]},
        "parents": {},
    }
    with pytest.warns(UserWarning):
        expression_from_dict(d, IdGenerator())


def test_query_roundtrip():
    p = ParentQuery(id=UniqueId(9), operator=QueryOperator.XOR)
    assert query_from_dict(query_to_dict(p)) == p


@pytest.mark.parametrize(
    "data",
    [
        {"nodes": {"1": {"type": "Mystery", "id": "1"}}, "roots": [], "children": {}, "parents": {}},
        {"nodes": {"1": {"type": "ParentQuery", "id": "1", "operator": "NAND"}}, "roots": [], "children": {},
         "parents": {}},
        {"nodes": {"1": {"type": "ParentQuery", "id": "2", "operator": "AND"}}, "roots": [], "children": {},
         "parents": {}},
        {"nodes": {}, "roots": ["x"], "children": {}, "parents": {}},
        {"roots": []},
        None,
    ],
)
def test_malformed_input(data):
    with pytest.raises(SerializationError):
        expression_from_dict(data, IdGenerator())


def test_invalid_json():
    with pytest.raises(SerializationError):
        expression_from_json("{nodes", IdGenerator())
