"""
trait_clauses/errors.py - Exception taxonomy

Clause synthesis for an unprovable or unknown goal yields an empty clause
set. It fails only when the goal is too unconstrained to enumerate its
clauses (``FlounderedError``). Malformed program input is rejected when
the database is built or loaded.
"""
from __future__ import annotations


class TraitClausesError(Exception):
    """Base class for errors raised by this package."""


class MalformedProgramError(TraitClausesError):
    """The program database violates a construction invariant.

    Examples: duplicate item ids, an impl of an undeclared trait, an
    unknown node tag in a serialized database.
    """


class UnknownItemError(MalformedProgramError, KeyError):
    """Lookup of an item id that the database does not declare."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"Unknown {kind}: {item_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class FlounderedError(TraitClausesError):
    """The goal's self type is an unresolved variable and the clauses that
    could match it cannot be listed.

    The solver should treat the goal as ambiguous and retry once more of
    its type is known.
    """

    def __init__(self, goal):
        self.goal = goal
        super().__init__(f"Cannot enumerate clauses for {goal!r}: self type is unresolved")
