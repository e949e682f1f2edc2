"""
Submission command generator for query expressions.

Converts a single-rooted QueryExpression into the minimal command tree
the remote query executor consumes:

    {"name": "EqualityQuery", "content": {"column", "operator", "value"}}
    {"name": "ParentQuery",   "content": {"operator", "children": [...]}}

This is a ONE-WAY format. It differs from the persistence format in two ways:
    - comparison operators use their left or right wire name, depending
      on which side of the field the bound sits (3 < x  ->  "gt")
    - a leaf bounded on both sides (3 < x < 8) is emitted as an AND of
      two one-sided leaves; the expression itself is not changed
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from qexpr.errors import QueryError
from qexpr.expression import QueryExpression
from qexpr.fields import SchemaField
from qexpr.ids import UniqueId
from qexpr.operators import EqualityOperator, QueryOperator
from qexpr.queries import EqualityQuery, ParentQuery
from qexpr.values import QueryValue


LOAD_COLUMNS = "load columns"


class CommandError(QueryError):
    """Raised when an expression cannot be submitted to the executor."""
    pass


def _leaf(field: SchemaField, operator: EqualityOperator, value: QueryValue, left: bool) -> Dict[str, Any]:
    wire_name = operator.wire_name(left)
    if wire_name is None:
        raise CommandError(f"Operator '{operator.symbol}' cannot be used left of {field.name}")
    return {
        "name": "EqualityQuery",
        "content": {
            "column": field.column,
            "operator": wire_name,
            "value": value.to_command_string(),
        },
    }


def equality_query_to_command(query: EqualityQuery) -> Dict[str, Any]:
    left = None
    right = None
    if query.has_left:
        left = _leaf(query.field, query.left_operator, query.left_value, left=True)
    if query.has_right:
        right = _leaf(query.field, query.right_operator, query.right_value, left=False)

    if left is not None and right is not None:
        return {
            "name": "ParentQuery",
            "content": {
                "operator": QueryOperator.AND.wire_name,
                "children": [left, right],
            },
        }
    if left is not None:
        return left
    if right is not None:
        return right
    raise CommandError(f"EqualityQuery {query.id!r} has no left or right value")


def query_to_command(expression: QueryExpression, node_id: UniqueId) -> Dict[str, Any]:
    """Render the subtree rooted at node_id."""
    rendered: Dict[UniqueId, Dict[str, Any]] = {}
    open_ids: Set[UniqueId] = set()
    # Post-order walk with an explicit stack; deep trees stay off the call stack
    stack: List[Tuple[UniqueId, bool]] = [(node_id, False)]
    while stack:
        current, expanded = stack.pop()
        if not expanded and current in rendered:
            continue
        node = expression.get_node(current)
        if node is None:
            raise CommandError(f"Referenced node does not exist: {current!r}")
        if isinstance(node, EqualityQuery):
            rendered[current] = equality_query_to_command(node)
        elif isinstance(node, ParentQuery):
            child_ids = expression.get_children(current)
            if expanded:
                rendered[current] = {
                    "name": "ParentQuery",
                    "content": {
                        "operator": node.operator.wire_name,
                        "children": [rendered[c] for c in child_ids],
                    },
                }
            else:
                if current in open_ids:
                    raise CommandError(f"Cycle through {current!r}")
                open_ids.add(current)
                stack.append((current, True))
                stack.extend((c, False) for c in child_ids if c not in rendered)
        else:
            raise TypeError(f"Unsupported Query type: {type(node)}")
    return rendered[node_id]


def expression_to_command(expression: QueryExpression) -> Dict[str, Any]:
    """
    Render a whole expression for submission.

    The expression must be connected into a single tree first.

    Raises:
        CommandError: If the expression does not have exactly one root,
            or a leaf cannot be expressed on the wire
    """
    root = expression.root
    if root is None:
        raise CommandError(
            f"Expression must have exactly one root to be submitted, found {len(expression.roots)}"
        )
    return query_to_command(expression, root)


def columns_for_fields(fields: Iterable[SchemaField]) -> List[str]:
    return [f.column for f in fields]


def build_load_columns_command(
    database: str,
    columns: Sequence[str],
    query: Optional[QueryExpression] = None,
    global_query: Optional[QueryExpression] = None,
    data_ids: Optional[Iterable[Tuple[Any, Any]]] = None,
    day_obs: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Wrap query commands in the "load columns" request envelope.

    Args:
        database: Name of the database to query
        columns: Fully qualified column names ("table.column")
        query: Expression filtering this request (optional)
        global_query: Expression shared by every request (optional)
        data_ids: (day_obs, seq_num) pairs restricting the rows (optional)
        day_obs: Observation day restricting the rows (optional)
        request_id: Identifier echoed back by the executor (optional)

    Empty expressions are sent as no query at all.
    """
    def render(expr: Optional[QueryExpression]) -> Optional[Dict[str, Any]]:
        if expr is None or expr.is_empty:
            return None
        return expression_to_command(expr)

    command: Dict[str, Any] = {
        "name": LOAD_COLUMNS,
        "parameters": {
            "database": database,
            "columns": list(columns),
            "query": render(query),
            "global_query": render(global_query),
            "data_ids": [list(d) for d in data_ids] if data_ids is not None else None,
            "day_obs": day_obs,
        },
    }
    if request_id is not None:
        command["requestId"] = request_id
    return command
