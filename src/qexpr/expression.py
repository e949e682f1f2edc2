"""
Query Expression engine.

A QueryExpression is a forest of query nodes stored as an arena:

    nodes:    id -> Query              (every node, exclusively owned)
    roots:    {id, ...}                (nodes without a parent)
    children: id -> (id, ...)          (ordered, ParentQuery ids only)
    parents:  id -> id                 (absent for roots)

INVARIANTS (hold after every public operation):
    1. Every id in roots/children/parents exists in nodes
    2. roots == ids without a parents entry
    3. children[p] == (c1..cn)  =>  parents[ci] == p and nodes[p] is a ParentQuery
    4. No id is its own ancestor
    5. No ParentQuery is left with fewer than two children after an edit
       (single-child parents collapse, empty parents are deleted)

ARCHITECTURAL RULE:
    A QueryExpression is never mutated.
    Every structural operation returns a NEW expression and the receiver
    stays valid, so callers can keep old values for undo/redo.

    If an operation raises, the caller still holds the unchanged value.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple

from qexpr.errors import QueryError
from qexpr.ids import IdGenerator, UniqueId, default_generator
from qexpr.operators import QueryOperator
from qexpr.queries import ParentQuery, Query


logger = logging.getLogger(__name__)


class StructuralErrorReason(Enum):
    """Why a structural operation was refused."""

    MISSING_NODE = "node does not exist"
    NOT_A_PARENT = "node is not a ParentQuery"
    SELF_REFERENCE = "cannot connect a query to itself"
    CYCLE = "operation would create a cycle"
    NOT_A_ROOT = "node is not a root"
    DUPLICATE_ID = "node id already exists"


class StructuralError(QueryError):
    """
    Raised when a structural edit is given ids it cannot work with.

    Properties:
        reason: StructuralErrorReason
        node_id: The offending id
    """

    def __init__(self, reason: StructuralErrorReason, node_id: UniqueId, message: Optional[str] = None):
        self.reason = reason
        self.node_id = node_id
        super().__init__(message or f"{reason.value}: {node_id!r}")


class ExpressionState(Enum):
    """Shape of the forest. Only a SINGLE_ROOTED expression can be submitted."""

    EMPTY = "empty"
    FOREST = "forest"
    SINGLE_ROOTED = "single-rooted"


class _Draft:
    """Mutable working copy of an expression, used inside one operation."""

    def __init__(self, expression: "QueryExpression"):
        self.nodes: Dict[UniqueId, Query] = dict(expression._nodes)
        self.roots: Set[UniqueId] = set(expression._roots)
        self.children: Dict[UniqueId, Tuple[UniqueId, ...]] = dict(expression._children)
        self.parents: Dict[UniqueId, UniqueId] = dict(expression._parents)

    def attach(self, node_id: UniqueId, parent_id: Optional[UniqueId]) -> None:
        if parent_id is None:
            self.parents.pop(node_id, None)
            self.roots.add(node_id)
            return
        self.children[parent_id] = self.children.get(parent_id, ()) + (node_id,)
        self.parents[node_id] = parent_id
        self.roots.discard(node_id)

    def drop(self, node_id: UniqueId) -> None:
        """Forget a single node. Its structure must already be detached."""
        self.nodes.pop(node_id, None)
        self.roots.discard(node_id)
        self.parents.pop(node_id, None)
        self.children.pop(node_id, None)

    def detach(self, node_id: UniqueId) -> None:
        """
        Unlink node_id from its parent, collapsing the parent if needed.

        Parent left with no children:
            deleted, and the same fix-up runs on ITS parent.
        Parent left with one child:
            deleted, the survivor takes its place (appended to the
            grandparent's children, or promoted to a root).
        The grandparent's child count is unchanged by a promotion,
        so the cascade never continues past one.
        """
        parent_id = self.parents.pop(node_id, None)
        self.roots.discard(node_id)
        if parent_id is None:
            return

        remaining = tuple(c for c in self.children.get(parent_id, ()) if c != node_id)
        if len(remaining) >= 2:
            self.children[parent_id] = remaining
            return

        self.children[parent_id] = ()
        if not remaining:
            logger.debug("Deleting empty parent %r", parent_id)
            self.detach(parent_id)
            self.drop(parent_id)
            return

        survivor = remaining[0]
        grandparent_id = self.parents.get(parent_id)
        logger.debug("Collapsing parent %r, promoting %r", parent_id, survivor)
        if grandparent_id is not None:
            siblings = tuple(c for c in self.children.get(grandparent_id, ()) if c != parent_id)
            self.children[grandparent_id] = siblings
        self.drop(parent_id)
        self.attach(survivor, grandparent_id)

    def delete_subtree(self, node_id: UniqueId) -> None:
        stack = [node_id]
        seen: Set[UniqueId] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.children.get(current, ()))
            self.drop(current)


class QueryExpression:
    """
    Forest of queries plus the structural edits that keep it consistent.

    Example:
        gen = IdGenerator(start=1)
        expr = QueryExpression.empty(id_generator=gen)
        expr = expr.add_node(EqualityQuery(id=gen.next(), field=x, right_operator=EqualityOperator.EQ, right_value=5))
        expr = expr.add_node(EqualityQuery(id=gen.next(), field=y, right_operator=EqualityOperator.LT, right_value=2))
        expr = expr.connect_queries(UniqueId(1), UniqueId(2), QueryOperator.AND)
        # roots == {Id<3>}, children[Id<3>] == (Id<1>, Id<2>)

    The id generator is only used by connect_queries, which has to mint
    the id of the new combinator. It is carried over to every derived
    expression and ignored by equality.
    """

    def __init__(
        self,
        nodes: Optional[Mapping[UniqueId, Query]] = None,
        roots: Optional[Set[UniqueId]] = None,
        children: Optional[Mapping[UniqueId, List[UniqueId]]] = None,
        parents: Optional[Mapping[UniqueId, UniqueId]] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self._nodes: Dict[UniqueId, Query] = dict(nodes or {})
        self._roots: Set[UniqueId] = set(roots or ())
        self._children: Dict[UniqueId, Tuple[UniqueId, ...]] = {
            k: tuple(v) for k, v in (children or {}).items()
        }
        self._parents: Dict[UniqueId, UniqueId] = dict(parents or {})
        self._id_generator = id_generator if id_generator is not None else default_generator

    @classmethod
    def empty(cls, id_generator: Optional[IdGenerator] = None) -> "QueryExpression":
        return cls(id_generator=id_generator)

    def _from_draft(self, draft: _Draft) -> "QueryExpression":
        # Parents without children are never kept as empty entries
        children = {k: v for k, v in draft.children.items() if v}
        return QueryExpression(draft.nodes, draft.roots, children, draft.parents, self._id_generator)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Mapping[UniqueId, Query]:
        return MappingProxyType(self._nodes)

    @property
    def roots(self) -> frozenset:
        return frozenset(self._roots)

    @property
    def children(self) -> Mapping[UniqueId, Tuple[UniqueId, ...]]:
        return MappingProxyType(self._children)

    @property
    def parents(self) -> Mapping[UniqueId, UniqueId]:
        return MappingProxyType(self._parents)

    @property
    def id_generator(self) -> IdGenerator:
        return self._id_generator

    def get_node(self, node_id: UniqueId) -> Optional[Query]:
        return self._nodes.get(node_id)

    def get_children(self, node_id: UniqueId) -> Tuple[UniqueId, ...]:
        return self._children.get(node_id, ())

    def get_parent(self, node_id: UniqueId) -> Optional[UniqueId]:
        return self._parents.get(node_id)

    @property
    def root(self) -> Optional[UniqueId]:
        """The single root, or None when the forest is empty or has several trees."""
        if len(self._roots) != 1:
            return None
        return next(iter(self._roots))

    @property
    def state(self) -> ExpressionState:
        if not self._nodes:
            return ExpressionState.EMPTY
        if len(self._roots) == 1:
            return ExpressionState.SINGLE_ROOTED
        return ExpressionState.FOREST

    @property
    def is_empty(self) -> bool:
        return not self._nodes

    @property
    def max_id(self) -> Optional[UniqueId]:
        return max(self._nodes) if self._nodes else None

    def iter_subtree(self, node_id: UniqueId) -> Iterator[UniqueId]:
        """Yield node_id and its descendants, parents before children."""
        stack = [node_id]
        seen: Set[UniqueId] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            yield current
            stack.extend(reversed(self._children.get(current, ())))

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryExpression):
            return NotImplemented
        return (
            self._nodes == other._nodes
            and self._roots == other._roots
            and self._children == other._children
            and self._parents == other._parents
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"QueryExpression(nodes={len(self._nodes)}, roots={sorted(self._roots)!r})"

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def _require_node(self, node_id: UniqueId) -> Query:
        node = self._nodes.get(node_id)
        if node is None:
            raise StructuralError(StructuralErrorReason.MISSING_NODE, node_id)
        return node

    def _require_parent(self, parent_id: UniqueId) -> ParentQuery:
        node = self._require_node(parent_id)
        if not isinstance(node, ParentQuery):
            raise StructuralError(
                StructuralErrorReason.NOT_A_PARENT,
                parent_id,
                f"Parent must be a ParentQuery, got {node}",
            )
        return node

    def add_node(self, node: Query, parent_id: Optional[UniqueId] = None) -> "QueryExpression":
        """
        Insert a node, either as a new root or as the last child of parent_id.

        The id generator is moved past node.id so ids minted later by
        connect_queries cannot collide with it.

        Raises:
            StructuralError: DUPLICATE_ID, MISSING_NODE or NOT_A_PARENT
        """
        if node.id in self._nodes:
            raise StructuralError(StructuralErrorReason.DUPLICATE_ID, node.id)
        if parent_id is not None:
            self._require_parent(parent_id)

        draft = _Draft(self)
        draft.nodes[node.id] = node
        draft.attach(node.id, parent_id)
        self._id_generator.advance_past(node.id)
        logger.debug("Added %r under %r", node.id, parent_id)
        return self._from_draft(draft)

    def update_node(self, node: Query) -> "QueryExpression":
        """Replace the node stored under node.id; structure is untouched."""
        self._require_node(node.id)
        if self._children.get(node.id) and not isinstance(node, ParentQuery):
            raise StructuralError(
                StructuralErrorReason.NOT_A_PARENT,
                node.id,
                f"Node {node.id!r} has children and must stay a ParentQuery",
            )
        nodes = dict(self._nodes)
        nodes[node.id] = node
        return QueryExpression(nodes, self._roots, self._children, self._parents, self._id_generator)

    def remove_node(self, node_id: UniqueId, keep_children: bool = False) -> "QueryExpression":
        """
        Remove a node and, by default, its whole subtree.

        With keep_children=True the node's children take its place:
        they are appended to the removed node's parent, or become roots.

        The former parent is collapsed if it is left with fewer than
        two children.
        """
        self._require_node(node_id)
        draft = _Draft(self)

        if keep_children:
            parent_id = draft.parents.get(node_id)
            orphans = draft.children.pop(node_id, ())
            for child_id in orphans:
                draft.attach(child_id, parent_id)
            draft.detach(node_id)
            draft.drop(node_id)
        else:
            draft.detach(node_id)
            draft.delete_subtree(node_id)

        logger.debug("Removed %r (keep_children=%s)", node_id, keep_children)
        return self._from_draft(draft)

    def reparent_node(self, node_id: UniqueId, new_parent_id: Optional[UniqueId] = None) -> "QueryExpression":
        """
        Move a node (with its subtree) under new_parent_id, or make it a root.

        Raises:
            StructuralError: MISSING_NODE, NOT_A_PARENT, SELF_REFERENCE or CYCLE
        """
        self._require_node(node_id)
        if new_parent_id is not None:
            self._require_parent(new_parent_id)
            if new_parent_id == node_id:
                raise StructuralError(StructuralErrorReason.SELF_REFERENCE, node_id)
            if new_parent_id in set(self.iter_subtree(node_id)):
                raise StructuralError(
                    StructuralErrorReason.CYCLE,
                    node_id,
                    f"Cannot move {node_id!r} below its own descendant {new_parent_id!r}",
                )

        current_parent = self._parents.get(node_id)
        if new_parent_id == current_parent and (current_parent is not None or node_id in self._roots):
            return self

        draft = _Draft(self)
        draft.detach(node_id)
        if new_parent_id is not None and new_parent_id not in draft.nodes:
            raise StructuralError(
                StructuralErrorReason.MISSING_NODE,
                new_parent_id,
                f"Parent {new_parent_id!r} was collapsed while detaching {node_id!r}",
            )
        draft.attach(node_id, new_parent_id)
        logger.debug("Reparented %r from %r to %r", node_id, current_parent, new_parent_id)
        return self._from_draft(draft)

    def connect_queries(
        self,
        target_id: UniqueId,
        query_id: UniqueId,
        operator: QueryOperator = QueryOperator.AND,
    ) -> "QueryExpression":
        """
        Combine two root queries under a new ParentQuery.

        The new parent gets a freshly minted id and the children
        (target_id, query_id), in that order, and replaces both in roots.

        Raises:
            StructuralError: MISSING_NODE, SELF_REFERENCE, NOT_A_ROOT, or
                DUPLICATE_ID when the generator hands out an id in use
        """
        self._require_node(target_id)
        self._require_node(query_id)
        if target_id == query_id:
            raise StructuralError(StructuralErrorReason.SELF_REFERENCE, target_id)
        for node_id in (target_id, query_id):
            if node_id not in self._roots:
                raise StructuralError(StructuralErrorReason.NOT_A_ROOT, node_id)

        parent = ParentQuery(id=self._id_generator.next(), operator=operator)
        if parent.id in self._nodes:
            raise StructuralError(
                StructuralErrorReason.DUPLICATE_ID,
                parent.id,
                f"Generated id {parent.id!r} is already in use",
            )
        draft = _Draft(self)
        draft.nodes[parent.id] = parent
        draft.roots.add(parent.id)
        draft.attach(target_id, parent.id)
        draft.attach(query_id, parent.id)
        logger.debug("Connected %r and %r with %s as %r", target_id, query_id, operator.wire_name, parent.id)
        return self._from_draft(draft)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        """
        Check that the expression is a proper forest.

        Walks every tree depth-first from its root. Fails on:
            - a node revisited while still on the current path (cycle)
            - a child id with no node (dangling reference)
            - any node not reachable from a root (orphan)

        Never raises, never mutates.
        """
        visited: Set[UniqueId] = set()

        for root_id in self._roots:
            if root_id not in self._nodes:
                return False
            if root_id in visited:
                continue
            # Explicit stack of (node, remaining children); path holds the nodes on it
            visited.add(root_id)
            path: Set[UniqueId] = {root_id}
            stack = [(root_id, iter(self._children.get(root_id, ())))]
            while stack:
                node_id, pending = stack[-1]
                child_id = next(pending, None)
                if child_id is None:
                    stack.pop()
                    path.discard(node_id)
                    continue
                if child_id in path or child_id not in self._nodes:
                    return False
                if child_id in visited:
                    continue
                visited.add(child_id)
                path.add(child_id)
                stack.append((child_id, iter(self._children.get(child_id, ()))))
        return visited == set(self._nodes)
