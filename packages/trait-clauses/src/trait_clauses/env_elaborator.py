"""
trait_clauses/env_elaborator.py - Environment Elaboration

Closes the caller's assumptions under supertrait implication:

    assumed T: Eq    and    trait Eq: PartialEq    =>    assumed T: PartialEq

The closure is computed with a worklist and a seen-set, so it reaches a
fixed point after finitely many steps (the supertrait graph of a
well-formed program is finite and acyclic) and elaborating an already
elaborated environment changes nothing.
"""
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from typing import Any

from .builder import ClauseBuilder
from .context import SynthesisContext, create_synthesis_context
from .database import ProgramDatabase
from .fold import substitute
from .ir import BuilderCategory, Environment, FromEnv, Implemented, ProgramClause, TraitRef

logger = logging.getLogger(__name__)


def _implied_trait_refs(db: ProgramDatabase, trait_ref: TraitRef) -> Iterator[TraitRef]:
    """Direct supertraits of ``trait_ref`` with Self and params substituted."""
    if not db.has_trait(trait_ref.trait_id):
        return
    trait = db.trait_datum(trait_ref.trait_id)
    if len(trait.params) != len(trait_ref.args):
        logger.debug(f"Arity mismatch for {trait_ref!r}; not elaborated")
        return
    theta = trait.substitution_for(trait_ref)
    for super_ref in trait.supertrait_refs():
        yield substitute(super_ref, theta)


def _implied_assumptions(db: ProgramDatabase, assumption: Any) -> Iterator[Any]:
    if isinstance(assumption, Implemented):
        for super_ref in _implied_trait_refs(db, assumption.trait_ref):
            yield Implemented(super_ref)
    elif isinstance(assumption, FromEnv) and isinstance(assumption.target, TraitRef):
        for super_ref in _implied_trait_refs(db, assumption.target):
            yield FromEnv(super_ref)


def supertrait_closure(db: ProgramDatabase, trait_ref: TraitRef) -> list[TraitRef]:
    """``trait_ref`` followed by all of its transitive supertraits, without duplicates."""
    seen: dict[TraitRef, None] = {}
    worklist = deque([trait_ref])
    while worklist:
        current = worklist.popleft()
        if current in seen:
            continue
        seen[current] = None
        worklist.extend(_implied_trait_refs(db, current))
    return list(seen)


def elaborate_environment(env: Environment) -> Environment:
    """Return ``env`` with its assumptions closed under supertrait implication.

    The given assumptions keep their order and come first; implied
    assumptions follow in breadth-first order.

    Example:
        env = Environment((implemented(T, "Eq"),), db)
        elaborate_environment(env).assumptions
        # (Implemented(!T: Eq), Implemented(!T: PartialEq))
    """
    if env.db is None:
        return env

    seen: dict[Any, None] = {}
    worklist = deque(env.assumptions)
    while worklist:
        assumption = worklist.popleft()
        if assumption in seen:
            continue
        seen[assumption] = None
        worklist.extend(_implied_assumptions(env.db, assumption))

    added = len(seen) - len(set(env.assumptions))
    if added:
        logger.debug(f"Elaborated environment: {added} implied assumptions")
    return env.with_assumptions(tuple(seen))


def program_clauses_for_env(env: Environment, ctx: SynthesisContext | None = None) -> list[ProgramClause]:
    """Clauses for the elaborated environment.

    Every assumption becomes a fact. An assumed trait bound additionally
    yields `FromEnv(T: Tr)`, which is what the trait's own clauses and
    implied-bound rules are stated over.
    """
    ctx = ctx or create_synthesis_context()
    elaborated = elaborate_environment(env)
    builder = ClauseBuilder(env.db, ctx, BuilderCategory.ENV)

    for assumption in elaborated.assumptions:
        if isinstance(assumption, Implemented):
            builder.push_fact(FromEnv(assumption.trait_ref))
        builder.push_fact(assumption)

    ctx.record_builder_run(BuilderCategory.ENV.value, len(builder))
    return builder.clauses
