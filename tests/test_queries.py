"""
Tests for query nodes and bound values.

These tests verify:
    - Bound values are resolved from the field type at construction
    - Operator/value pairs must be set together
    - Query nodes are immutable and edited through copies
"""

from datetime import date, datetime

import pytest

from qexpr.errors import QueryError, QueryValueError
from qexpr.fields import ColumnDataType, SchemaField, parse_column_data_type
from qexpr.ids import UniqueId
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.queries import EqualityQuery, ParentQuery
from qexpr.values import DateValue, NumberValue, TextValue, coerce_value


NUM = SchemaField("visit", "airmass", ColumnDataType.NUMBER)
TEXT = SchemaField("visit", "band", ColumnDataType.STRING)
WHEN = SchemaField("visit", "obs_start", ColumnDataType.DATETIME)


class TestCoerceValue:
    """Resolving raw scalars to tagged values."""

    def test_numbers(self):
        assert coerce_value(NUM, 5) == NumberValue(5)
        assert coerce_value(NUM, 1.5) == NumberValue(1.5)
        assert coerce_value(NUM, "7") == NumberValue(7)
        assert coerce_value(NUM, " 2.25 ") == NumberValue(2.25)

    def test_integral_numbers_stay_integers(self):
        assert coerce_value(NUM, "5").to_command_string() == "5"
        assert coerce_value(NUM, 5.0).to_command_string() == "5.0"

    def test_text(self):
        assert coerce_value(TEXT, "r") == TextValue("r")
        assert coerce_value(TEXT, 3) == TextValue("3")

    def test_dates(self):
        assert coerce_value(WHEN, "2024-01-31") == DateValue(datetime(2024, 1, 31))
        assert coerce_value(WHEN, "20240131") == DateValue(datetime(2024, 1, 31))
        assert coerce_value(WHEN, date(2024, 1, 31)) == DateValue(datetime(2024, 1, 31))
        assert coerce_value(WHEN, "2024-01-31T12:30:00").to_command_string() == "2024-01-31T12:30:00"

    def test_existing_value_passes_through(self):
        value = NumberValue(3)
        assert coerce_value(NUM, value) is value

    @pytest.mark.parametrize(
        "field, raw",
        [(NUM, "abc"), (NUM, True), (NUM, None), (WHEN, "yesterday"), (WHEN, 5), (TEXT, [1]), (NUM, TextValue("1"))],
    )
    def test_invalid(self, field, raw):
        with pytest.raises(QueryValueError):
            coerce_value(field, raw)


def test_parse_column_data_type():
    assert parse_column_data_type("char") == ColumnDataType.STRING
    assert parse_column_data_type("double") == ColumnDataType.NUMBER
    assert parse_column_data_type("timestamp") == ColumnDataType.DATETIME
    with pytest.raises(ValueError):
        parse_column_data_type("blob")


def test_field_names():
    field = SchemaField("visit", "exp_time", ColumnDataType.NUMBER, unit="s")
    assert field.column == "visit.exp_time"
    assert field.label == "exp_time (s)"
    assert field.is_numerical and not field.is_string


class TestEqualityQuery:
    """Leaf conditions."""

    def test_values_resolved_at_construction(self):
        q = EqualityQuery(
            id=UniqueId(1),
            field=NUM,
            left_operator=EqualityOperator.LT,
            left_value=3,
            right_operator=EqualityOperator.LTE,
            right_value="8",
        )
        assert q.left_value == NumberValue(3)
        assert q.right_value == NumberValue(8)
        assert q.has_left and q.has_right and q.is_complete

    def test_empty_leaf_is_allowed(self):
        q = EqualityQuery(id=UniqueId(1), field=NUM)
        assert not q.is_complete

    def test_operator_without_value(self):
        with pytest.raises(QueryError):
            EqualityQuery(id=UniqueId(1), field=NUM, left_operator=EqualityOperator.LT)

    def test_value_without_operator(self):
        with pytest.raises(QueryError):
            EqualityQuery(id=UniqueId(1), field=NUM, right_value=3)

    def test_bad_value_for_field(self):
        with pytest.raises(QueryValueError):
            EqualityQuery(id=UniqueId(1), field=NUM, right_operator=EqualityOperator.EQ, right_value="x")

    def test_immutable(self):
        q = EqualityQuery(id=UniqueId(1), field=NUM)
        with pytest.raises(AttributeError):
            q.field = TEXT

    def test_copy_helpers(self):
        q = EqualityQuery(id=UniqueId(1), field=NUM)
        bounded = q.update_left(EqualityOperator.LT, 3).update_right(EqualityOperator.LT, 8)
        assert str(bounded) == "3 < airmass < 8"
        assert str(bounded.clear_left()) == "airmass < 8"
        assert bounded.clear_left().clear_right() == q
        moved = bounded.with_field(SchemaField("visit", "zenith", ColumnDataType.NUMBER))
        assert moved.id == q.id
        assert moved.field.name == "zenith"
        assert not q.is_complete

    def test_string_operator(self):
        q = EqualityQuery(id=UniqueId(1), field=TEXT, right_operator=EqualityOperator.STARTS_WITH, right_value="r")
        assert str(q) == "band starts with r"


class TestParentQuery:
    """Combinators."""

    def test_default_operator(self):
        assert ParentQuery(id=UniqueId(1)).operator == QueryOperator.AND

    def test_with_operator(self):
        p = ParentQuery(id=UniqueId(1))
        q = p.with_operator(QueryOperator.OR)
        assert q.operator == QueryOperator.OR
        assert p.operator == QueryOperator.AND
        assert q.id == p.id
        assert str(q) == "ParentQuery<∨>"
