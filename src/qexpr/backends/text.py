"""
Plain-text rendering of query expressions.

Leaves render the way they read:      3 < x < 8
Combinators join their children:      (x = 5 ∧ y < 2)

Useful for labels, logging and debugging. Not a parseable format.
"""

from typing import Dict, List, Set, Tuple

from qexpr.expression import QueryExpression
from qexpr.ids import UniqueId
from qexpr.queries import EqualityQuery, ParentQuery


def render_query(expression: QueryExpression, node_id: UniqueId) -> str:
    rendered: Dict[UniqueId, str] = {}
    open_ids: Set[UniqueId] = set()
    stack: List[Tuple[UniqueId, bool]] = [(node_id, False)]
    while stack:
        current, expanded = stack.pop()
        if current in rendered:
            continue
        node = expression.get_node(current)
        if isinstance(node, EqualityQuery):
            rendered[current] = str(node)
        elif isinstance(node, ParentQuery):
            child_ids = expression.get_children(current)
            if expanded:
                parts = [rendered.get(c, "?") for c in child_ids]
                rendered[current] = "(" + f" {node.operator.symbol} ".join(parts) + ")"
            else:
                open_ids.add(current)
                stack.append((current, True))
                # A child already open is a cycle; it renders as "?"
                stack.extend((c, False) for c in child_ids if c not in open_ids)
        else:
            rendered[current] = "?"
    return rendered[node_id]


def render_expression(expression: QueryExpression) -> str:
    """Render every tree of the forest, one root per line, in id order."""
    lines: List[str] = [render_query(expression, root) for root in sorted(expression.roots)]
    return "\n".join(lines)
