"""
trait_clauses/dyn_ty.py - Trait-Object Clauses

A trait object `dyn I1 + .. + Ik + 'a` implements each bundled trait and
every supertrait of those traits, satisfies its projection bindings and
outlives its region. The object type usually comes straight from the
goal, so it is generalized first: every clause below is stated over
fresh bound variables and the same object shape always yields the same
clauses up to renaming.
"""
from __future__ import annotations

import logging

from .builder import ClauseBuilder
from .env_elaborator import supertrait_closure
from .generalize import generalize
from .ir import (
    DynTy,
    Implemented,
    Normalize,
    ObjectSafe,
    TypeOutlives,
    WellFormed,
)

logger = logging.getLogger(__name__)


def build_dyn_self_ty_clauses(builder: ClauseBuilder, dyn_ty: DynTy) -> None:
    """Emit the clauses describing ``dyn_ty`` as a self type."""
    generalized = generalize(dyn_ty, builder.allocator)
    self_ty: DynTy = generalized.value
    db = builder.db

    implemented: dict = {}
    for bound in self_ty.traits:
        trait_ref = bound.with_self(self_ty)
        if not db.has_trait(bound.trait_id):
            logger.debug(f"Unknown trait {bound.trait_id} in {self_ty!r}")
            implemented.setdefault(trait_ref, None)
            continue
        for implied in supertrait_closure(db, trait_ref):
            implemented.setdefault(implied, None)

    for trait_ref in implemented:
        builder.push_fact(Implemented(trait_ref))

    for proj in self_ty.projections:
        builder.push_fact(Normalize(proj.alias_for(self_ty), proj.ty))

    builder.push_fact(TypeOutlives(self_ty, self_ty.lifetime))

    conditions: list = [WellFormed(bound.with_self(self_ty)) for bound in self_ty.traits]
    if self_ty.principal is not None:
        conditions.append(ObjectSafe(self_ty.principal.trait_id))
    builder.push_clause(WellFormed(self_ty), conditions)
