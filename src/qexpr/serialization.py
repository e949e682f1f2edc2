"""
Serialization helpers for query expressions.

Provides lossless JSON/YAML round-trip via intermediate dict representation.
This is the durable persistence format: every node, every root and both
adjacency maps are written out, with ids in their canonical string form.

Loading advances the id generator past the largest loaded id, so that
queries created afterwards can never collide with loaded ones.
Loading does NOT validate the forest; call `is_valid()` on untrusted input.
"""
from __future__ import annotations

import json
import logging
import warnings
from typing import Any, Dict, Optional

import yaml

from qexpr.errors import QueryError
from qexpr.expression import QueryExpression
from qexpr.fields import ColumnDataType, SchemaField
from qexpr.ids import IdGenerator, UniqueId, default_generator
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.queries import EqualityQuery, ParentQuery, Query


logger = logging.getLogger(__name__)


class SerializationError(QueryError):
    """Raised when persisted data cannot be turned back into an expression."""
    pass


def field_to_dict(f: SchemaField) -> Dict[str, Any]:
    d: Dict[str, Any] = {"schema": f.schema, "name": f.name, "dataType": f.data_type.value}
    if f.unit is not None:
        d["unit"] = f.unit
    if f.description is not None:
        d["description"] = f.description
    return d


def field_from_dict(d: Dict[str, Any]) -> SchemaField:
    return SchemaField(
        schema=d["schema"],
        name=d["name"],
        data_type=ColumnDataType(d["dataType"]),
        unit=d.get("unit"),
        description=d.get("description"),
    )


def _equality_operator_from_name(name: str) -> EqualityOperator:
    op = EqualityOperator.from_name(name)
    if op is None:
        raise SerializationError(f"Unknown equality operator: {name!r}")
    return op


def query_to_dict(q: Query) -> Dict[str, Any]:
    if isinstance(q, EqualityQuery):
        d: Dict[str, Any] = {
            "type": "EqualityQuery",
            "id": q.id.to_serializable_string(),
            "field": field_to_dict(q.field),
        }
        if q.has_left:
            d["leftOperator"] = q.left_operator.persisted_name
            d["leftValue"] = q.left_value.to_json()
        if q.has_right:
            d["rightOperator"] = q.right_operator.persisted_name
            d["rightValue"] = q.right_value.to_json()
        return d
    if isinstance(q, ParentQuery):
        return {
            "type": "ParentQuery",
            "id": q.id.to_serializable_string(),
            "operator": q.operator.wire_name,
        }
    raise TypeError(f"Unsupported Query type: {type(q)}")


def query_from_dict(d: Dict[str, Any]) -> Query:
    t = d.get("type")
    if t == "EqualityQuery":
        left_operator = d.get("leftOperator")
        right_operator = d.get("rightOperator")
        return EqualityQuery(
            id=UniqueId.from_string(d["id"]),
            field=field_from_dict(d["field"]),
            left_operator=_equality_operator_from_name(left_operator) if left_operator is not None else None,
            left_value=d.get("leftValue"),
            right_operator=_equality_operator_from_name(right_operator) if right_operator is not None else None,
            right_value=d.get("rightValue"),
        )
    if t == "ParentQuery":
        op = QueryOperator.from_name(d["operator"])
        if op is None:
            raise SerializationError(f"Unknown query operator: {d['operator']!r}")
        return ParentQuery(id=UniqueId.from_string(d["id"]), operator=op)
    raise SerializationError(f"Unknown query type: {t}")


def expression_to_dict(expr: QueryExpression) -> Dict[str, Any]:
    return {
        "nodes": {
            uid.to_serializable_string(): query_to_dict(expr.nodes[uid]) for uid in sorted(expr.nodes)
        },
        "roots": [uid.to_serializable_string() for uid in sorted(expr.roots)],
        "children": {
            uid.to_serializable_string(): [c.to_serializable_string() for c in expr.children[uid]]
            for uid in sorted(expr.children)
        },
        "parents": {
            uid.to_serializable_string(): expr.parents[uid].to_serializable_string()
            for uid in sorted(expr.parents)
        },
    }


def expression_from_dict(d: Dict[str, Any], id_generator: Optional[IdGenerator] = None) -> QueryExpression:
    """
    Rebuild an expression from its persisted dict form.

    Args:
        d: Output of expression_to_dict (possibly loaded from disk)
        id_generator: Generator the expression should use; it is advanced
            past every loaded id. Defaults to the process generator.

    Raises:
        SerializationError: If the data is malformed
    """
    generator = id_generator if id_generator is not None else default_generator
    try:
        nodes: Dict[UniqueId, Query] = {}
        for key, node_dict in d["nodes"].items():
            node = query_from_dict(node_dict)
            if node.id != UniqueId.from_string(key):
                raise SerializationError(f"Node stored under {key} has id {node.id}")
            nodes[node.id] = node
        roots = {UniqueId.from_string(r) for r in d["roots"]}
        children = {
            UniqueId.from_string(k): [UniqueId.from_string(c) for c in v] for k, v in d["children"].items()
        }
        parents = {UniqueId.from_string(k): UniqueId.from_string(v) for k, v in d["parents"].items()}
    except SerializationError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError, QueryError) as e:
        raise SerializationError(f"Malformed query expression: {e}") from e

    for parent_id, child_ids in children.items():
        for child_id in child_ids:
            if parents.get(child_id) != parent_id:
                warnings.warn(
                    f"Child {child_id} of {parent_id} records parent {parents.get(child_id)}",
                    UserWarning,
                )

    expr = QueryExpression(nodes, roots, children, parents, generator)
    if expr.max_id is not None:
        generator.advance_past(expr.max_id)
    logger.debug("Loaded query expression with %d nodes, next id %d", len(nodes), generator.peek)
    return expr


def expression_to_json(expr: QueryExpression) -> str:
    return json.dumps(expression_to_dict(expr), sort_keys=True)


def expression_from_json(s: str, id_generator: Optional[IdGenerator] = None) -> QueryExpression:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON: {e}") from e
    return expression_from_dict(d, id_generator)


def expression_to_yaml(expr: QueryExpression) -> str:
    return yaml.safe_dump(expression_to_dict(expr), allow_unicode=True)


def expression_from_yaml(s: str, id_generator: Optional[IdGenerator] = None) -> QueryExpression:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise SerializationError(f"Invalid YAML: {e}") from e
    return expression_from_dict(d, id_generator)
