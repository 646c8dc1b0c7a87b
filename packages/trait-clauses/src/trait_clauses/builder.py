"""
trait_clauses/builder.py - Clause Builder

Collects the clauses one builder category emits for one goal.

Declarations in the database are written over ``Param`` names. Before a
clause is emitted those params are replaced with fresh bound variables
(``fresh_substitution``); ``push_clause`` then canonicalizes the clause,
stamps it with the builder's category and rejects any clause that still
mentions a declaration param or a goal inference variable.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from .context import SynthesisContext, VariableAllocator
from .database import ProgramDatabase
from .fold import Substitution, canonicalize_clause
from .ir import BuilderCategory, DomainGoal, InferenceVar, Param, ProgramClause

logger = logging.getLogger(__name__)


class ClauseBuilder:
    """Accumulates program clauses for one builder category.

    Example:
        builder = ClauseBuilder(db, ctx, BuilderCategory.IMPL)
        theta = builder.fresh_substitution(impl.params)
        builder.push_clause(
            Implemented(substitute(impl.trait_ref, theta)),
            substitute(impl.where_clauses, theta),
        )
    """

    def __init__(self, db: ProgramDatabase, ctx: SynthesisContext, origin: BuilderCategory):
        self.db = db
        self.ctx = ctx
        self.origin = origin
        self.clauses: list[ProgramClause] = []

    @property
    def allocator(self) -> VariableAllocator:
        return self.ctx.allocator

    @property
    def settings(self):
        return self.ctx.settings

    def fresh_substitution(self, params: Sequence[Param]) -> Substitution:
        """Map each declaration param to a fresh bound variable of the same kind."""
        return {param: self.allocator.fresh(param.kind) for param in params}

    def push_fact(self, consequence: DomainGoal) -> ProgramClause:
        return self.push_clause(consequence, ())

    def push_clause(self, consequence: DomainGoal, conditions: Iterable[DomainGoal] = ()) -> ProgramClause:
        """Emit `forall<..> { consequence :- conditions }`.

        Raises:
            ValueError: the clause mentions a declaration param, or a goal
                inference variable outside an environment clause
        """
        clause = canonicalize_clause(
            ProgramClause((), consequence, tuple(conditions), origin=self.origin)
        )
        self._check_closed(clause)
        self.clauses.append(clause)
        logger.debug(f"[{self.origin.value}] {clause!r}")
        return clause

    def _check_closed(self, clause: ProgramClause) -> None:
        for var in clause.variables():
            if isinstance(var, Param):
                raise ValueError(f"Param {var!r} escaped into clause {clause!r}")
            # Environment clauses restate the caller's own assumptions and
            # may mention its inference variables.
            if isinstance(var, InferenceVar) and self.origin is not BuilderCategory.ENV:
                raise ValueError(f"Inference variable {var!r} leaked into clause {clause!r}")

    def __len__(self) -> int:
        return len(self.clauses)
