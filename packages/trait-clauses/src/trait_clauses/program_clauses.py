"""
trait_clauses/program_clauses.py - Declaration Lowering

Lowers individual database declarations into program clauses:

- Traits:
    forall<Self, P..> { Implemented(Self: Tr<P..>) :- FromEnv(Self: Tr<P..>) }
    forall<Self, P..> { WellFormed(Self: Tr<P..>) :- Implemented(Self: Tr<P..>), WellFormed(WC).. }
    forall<Self, P..> { FromEnv(WC) :- FromEnv(Self: Tr<P..>) }     (one per where-clause)
- Impls:
    forall<P..> { Implemented(T: Tr<A..>) :- WC.. }
- ADTs:
    forall<P..> { WellFormed(Adt<P..>) :- WC.. }
    forall<P..> { FromEnv(WC) :- FromEnv(Adt<P..>) }                (one per where-clause)
- Fn defs:
    forall<P..> { WellFormed(fn f<P..>) :- WC.. }
- Built-in types: structural well-formedness rules
"""
from __future__ import annotations

import logging
from typing import Any

from .builder import ClauseBuilder
from .database import AdtDatum, FnDefDatum, ImplDatum, TraitDatum
from .fold import substitute
from .generalize import generalize_shape
from .ir import (
    ArrayTy,
    FnDefTy,
    FromEnv,
    Implemented,
    RawPtrTy,
    RefTy,
    SliceTy,
    TraitRef,
    TupleTy,
    TypeOutlives,
    WellFormed,
    WellKnownTrait,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TRAITS AND IMPLS
# =============================================================================


def push_trait_clauses(builder: ClauseBuilder, trait: TraitDatum) -> None:
    theta = builder.fresh_substitution(trait.all_params)
    trait_ref = substitute(trait.trait_ref(trait.all_params), theta)
    where_clauses = substitute(trait.all_where_clauses(), theta)

    builder.push_clause(Implemented(trait_ref), [FromEnv(trait_ref)])

    if builder.settings.emit_well_formed_clauses:
        conditions = [Implemented(trait_ref)]
        conditions.extend(wc.into_well_formed_goal() for wc in where_clauses)
        builder.push_clause(WellFormed(trait_ref), conditions)

    # Reverse implied bounds: assuming the trait gives its where-clauses.
    for wc in where_clauses:
        builder.push_clause(wc.into_from_env_goal(), [FromEnv(trait_ref)])


def push_impl_clauses(builder: ClauseBuilder, impl: ImplDatum) -> None:
    if impl.is_negative:
        # Negative impls only block the auto-trait default.
        logger.debug(f"Skipping negative impl {impl.impl_id}")
        return
    theta = builder.fresh_substitution(impl.params)
    builder.push_clause(
        Implemented(substitute(impl.trait_ref, theta)),
        substitute(impl.where_clauses, theta),
    )


# =============================================================================
# TYPE DECLARATIONS
# =============================================================================


def push_adt_clauses(builder: ClauseBuilder, adt: AdtDatum) -> None:
    theta = builder.fresh_substitution(adt.params)
    self_ty = substitute(adt.self_ty, theta)
    where_clauses = substitute(adt.where_clauses, theta)

    builder.push_clause(WellFormed(self_ty), where_clauses)
    for wc in where_clauses:
        builder.push_clause(wc.into_from_env_goal(), [FromEnv(self_ty)])


def push_fn_def_clauses(builder: ClauseBuilder, fn_def: FnDefDatum) -> None:
    theta = builder.fresh_substitution(fn_def.params)
    self_ty = substitute(FnDefTy(fn_def.fn_id, fn_def.params), theta)
    builder.push_clause(WellFormed(self_ty), substitute(fn_def.where_clauses, theta))


def push_type_wf_clauses(builder: ClauseBuilder, ty: Any) -> None:
    """Structural well-formedness of a built-in type shape.

    Nullary types, fn pointers and closures are always well formed.
    Composite types are well formed when their components are; array and
    slice elements must also be Sized, and a reference's referent must
    outlive the reference.
    """
    shape = generalize_shape(ty, builder.allocator)
    if shape is None:
        return
    value = shape.value

    if isinstance(value, TupleTy):
        builder.push_clause(WellFormed(value), [WellFormed(e) for e in value.elems])
    elif isinstance(value, (ArrayTy, SliceTy)):
        conditions: list[Any] = [WellFormed(value.elem)]
        sized = builder.db.well_known_trait_id(WellKnownTrait.SIZED)
        if sized is not None:
            conditions.append(Implemented(TraitRef(sized, value.elem)))
        builder.push_clause(WellFormed(value), conditions)
    elif isinstance(value, RefTy):
        builder.push_clause(
            WellFormed(value),
            [WellFormed(value.referent), TypeOutlives(value.referent, value.lifetime)],
        )
    elif isinstance(value, RawPtrTy):
        builder.push_clause(WellFormed(value), [WellFormed(value.pointee)])
    else:
        builder.push_fact(WellFormed(value))
