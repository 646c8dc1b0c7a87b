"""
trait_clauses/assoc_values.py - Associated-Type Clauses

Two sources of clauses about projections `<T as Tr<A..>>::Name`:

1. Values bound in impls. For `impl<P..> Tr<A..> for T where C.. { type Name = V; }`:

       forall<P..> { Normalize(<T as Tr<A..>>::Name -> V) :- C.. }

   One clause per (impl, binding). An impl that omits the binding
   contributes nothing, and the projection fails to normalize through it.

2. The declaration `type Name: B..;` inside `trait Tr<P..>`:

       forall<Self, P.., U> { AliasEq(<Self as Tr>::Name = U) :- Normalize(<Self as Tr>::Name -> U) }
       forall<Self, P..> { WellFormed(<Self as Tr>::Name) :- Implemented(Self: Tr) }
       forall<Self, P..> { FromEnv(<Self as Tr>::Name: B) :- FromEnv(Self: Tr) }
       forall<Self, P..> { Implemented(<Self as Tr>::Name: B) :- Implemented(Self: Tr) }
"""
from __future__ import annotations

import logging

from .builder import ClauseBuilder
from .database import AssociatedTyDatum
from .fold import substitute
from .ir import (
    AliasEq,
    FromEnv,
    Implemented,
    Normalize,
    ProjectionTy,
    WellFormed,
)

logger = logging.getLogger(__name__)


def push_program_clauses_for_associated_type_values_in_impls_of(
    builder: ClauseBuilder, trait_id: str, assoc_name: str
) -> None:
    """Emit a Normalize clause for every impl of ``trait_id`` that binds ``assoc_name``."""
    for impl in builder.db.impls_for_trait(trait_id):
        if impl.is_negative:
            continue
        value = impl.associated_ty_value(assoc_name)
        if value is None:
            logger.debug(f"Impl {impl.impl_id} does not bind {trait_id}::{assoc_name}")
            continue

        theta = builder.fresh_substitution(impl.params)
        trait_ref = substitute(impl.trait_ref, theta)
        alias = ProjectionTy(trait_id, assoc_name, trait_ref.self_ty, trait_ref.args)
        builder.push_clause(
            Normalize(alias, substitute(value.ty, theta)),
            substitute(impl.where_clauses, theta),
        )


def push_associated_ty_datum_clauses(builder: ClauseBuilder, datum: AssociatedTyDatum) -> None:
    """Emit the clauses that follow from declaring an associated type."""
    trait = builder.db.trait_datum(datum.trait_id)
    theta = builder.fresh_substitution(trait.all_params)
    trait_ref = substitute(trait.trait_ref(trait.all_params), theta)
    alias = ProjectionTy(datum.trait_id, datum.name, trait_ref.self_ty, trait_ref.args)

    normalized = builder.allocator.fresh()
    builder.push_clause(AliasEq(alias, normalized), [Normalize(alias, normalized)])

    builder.push_clause(WellFormed(alias), [Implemented(trait_ref)])

    # Bounds may mention Self and the trait's parameters.
    for bound in substitute(datum.bounds, theta):
        bound_ref = bound.with_self(alias)
        builder.push_clause(FromEnv(bound_ref), [FromEnv(trait_ref)])
        builder.push_clause(Implemented(bound_ref), [Implemented(trait_ref)])
