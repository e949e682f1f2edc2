"""
Unique identifiers for query nodes.

Every node of a query expression is keyed by a UniqueId.
Ids are minted by an IdGenerator, which is a plain counter.

ARCHITECTURAL RULE:
    The generator is the ONLY mutable shared state in qexpr.
    Engines receive the generator they should use; when none is given
    they fall back to `default_generator`, the process-wide instance.

    When a persisted expression is loaded, the generator must be moved
    past the largest loaded id before any further edits, otherwise a
    freshly minted id could collide with a loaded one.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class UniqueId:
    """
    Opaque, totally ordered identifier.

    Properties:
        value: Non-negative integer backing the id

    The canonical string form (used on the wire) is the decimal integer.
    """

    value: int

    @classmethod
    def from_string(cls, text: str) -> "UniqueId":
        return cls(int(text))

    def to_serializable_string(self) -> str:
        return str(self.value)

    def __str__(self) -> str:
        return self.to_serializable_string()

    def __repr__(self) -> str:
        return f"Id<{self.value}>"


class IdGenerator:
    """
    Issues monotonically increasing UniqueIds.

    Example:
        gen = IdGenerator()
        gen.next()  # Id<0>
        gen.next()  # Id<1>
        gen.set_next(10)
        gen.next()  # Id<10>
    """

    def __init__(self, start: int = 0):
        self._next = start

    @property
    def peek(self) -> int:
        """Value the next call to `next()` will use."""
        return self._next

    def next(self) -> UniqueId:
        uid = UniqueId(self._next)
        self._next += 1
        return uid

    def set_next(self, value: int) -> None:
        """
        Reset the counter.

        This should only be used when loading a persisted expression,
        so that the counter can be persisted along with the ids.
        """
        self._next = value

    def advance_past(self, uid: UniqueId) -> None:
        """Make sure `uid` can never be issued again. Never moves backwards."""
        if self._next <= uid.value:
            self._next = uid.value + 1


default_generator = IdGenerator()
