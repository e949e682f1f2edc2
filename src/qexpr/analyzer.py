"""
Expression Analyzer: diagnostics for QueryExpression forests.

This module provides lightweight, read-only analysis of an expression:
    - Node inventory (leaves, combinators, roots, depth)
    - Cycles, orphaned nodes and dangling references
    - Leaves that have no bound yet
    - Combinators with fewer than two children
    - Whether the expression can be submitted

IMPORTANT: This module does NOT modify the expression.
It only produces reports. `QueryExpression.is_valid()` is the quick
yes/no check; this is the detailed one for showing problems to a user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from qexpr.expression import QueryExpression
from qexpr.ids import UniqueId
from qexpr.queries import EqualityQuery, ParentQuery


def _find_cycle_dfs(children: Dict[UniqueId, Tuple[UniqueId, ...]], start: UniqueId,
                    visited: Set[UniqueId]) -> Optional[List[UniqueId]]:
    """DFS to find a cycle starting from a node."""
    visited.add(start)
    path: List[UniqueId] = [start]
    stack = [iter(children.get(start, ()))]

    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            path.pop()
            continue
        if child in path:
            cycle_start_idx = path.index(child)
            return path[cycle_start_idx:] + [child]
        if child not in visited:
            visited.add(child)
            path.append(child)
            stack.append(iter(children.get(child, ())))

    return None


def _depth(expression: QueryExpression, node_id: UniqueId) -> int:
    """Number of levels below and including node_id, counting each node once."""
    depth = 0
    seen: Set[UniqueId] = set()
    level = [node_id]
    while level:
        depth += 1
        seen.update(level)
        level = [c for n in level for c in expression.get_children(n) if c in expression and c not in seen]
    return depth


@dataclass
class ExpressionReport:
    """Analysis report for a query expression."""

    total_nodes: int = 0
    total_leaves: int = 0
    total_parents: int = 0
    total_roots: int = 0
    max_depth: int = 0

    # Structure
    has_cycles: bool = False
    cycle_example: Optional[List[UniqueId]] = None
    orphaned_nodes: Set[UniqueId] = field(default_factory=set)
    dangling_references: Set[UniqueId] = field(default_factory=set)

    # Editing leftovers
    empty_leaves: Set[UniqueId] = field(default_factory=set)
    undersized_parents: Set[UniqueId] = field(default_factory=set)

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)

    @property
    def is_structurally_valid(self) -> bool:
        return not (self.has_cycles or self.orphaned_nodes or self.dangling_references)

    @property
    def is_submittable(self) -> bool:
        """Exactly one tree, well formed, and every leaf has a bound."""
        return (
            self.total_roots == 1
            and self.is_structurally_valid
            and not self.empty_leaves
            and not self.undersized_parents
        )


def _ids(ids: Set[UniqueId]) -> str:
    return ", ".join(str(i) for i in sorted(ids))


def analyze_expression(expression: QueryExpression) -> ExpressionReport:
    """
    Perform a full analysis of a QueryExpression.

    Returns an ExpressionReport with counts, findings and warnings.
    """
    report = ExpressionReport()
    nodes = expression.nodes
    children = expression.children

    report.total_nodes = len(nodes)
    report.total_roots = len(expression.roots)

    for node_id, node in nodes.items():
        if isinstance(node, EqualityQuery):
            report.total_leaves += 1
            if not node.is_complete:
                report.empty_leaves.add(node_id)
        elif isinstance(node, ParentQuery):
            report.total_parents += 1
            if len(children.get(node_id, ())) < 2:
                report.undersized_parents.add(node_id)

    # Dangling: referenced anywhere but never defined
    referenced: Set[UniqueId] = set(expression.roots) | set(expression.parents) | set(expression.parents.values())
    for parent_id, child_ids in children.items():
        referenced.add(parent_id)
        referenced.update(child_ids)
    report.dangling_references = {uid for uid in referenced if uid not in nodes}

    # Reachability from the roots
    reachable: Set[UniqueId] = set()
    for root_id in expression.roots:
        reachable.update(uid for uid in expression.iter_subtree(root_id) if uid in nodes)
    report.orphaned_nodes = set(nodes) - reachable

    # Cycle detection
    visited: Set[UniqueId] = set()
    for node_id in sorted(children):
        if node_id not in visited:
            cycle = _find_cycle_dfs(dict(children), node_id, visited)
            if cycle:
                report.has_cycles = True
                report.cycle_example = cycle
                break

    root_depths = [_depth(expression, r) for r in expression.roots if r in nodes]
    report.max_depth = max(root_depths, default=0)

    # =========================================================================
    # WARNING FLAGS
    # =========================================================================

    if report.has_cycles:
        report.add_warning(f"Cycle detected: {' -> '.join(str(i) for i in report.cycle_example)}")

    if report.dangling_references:
        report.add_warning(f"Dangling references: {_ids(report.dangling_references)}")

    if report.orphaned_nodes:
        report.add_warning(f"Unreachable queries: {_ids(report.orphaned_nodes)}")

    if report.empty_leaves:
        report.add_warning(f"Queries without a bound: {_ids(report.empty_leaves)}")

    if report.undersized_parents:
        report.add_warning(f"Operators with fewer than two queries: {_ids(report.undersized_parents)}")

    if report.total_roots > 1:
        report.add_warning(f"Expression has {report.total_roots} unconnected queries")

    return report
