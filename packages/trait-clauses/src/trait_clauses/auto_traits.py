"""
trait_clauses/auto_traits.py - Auto-Trait Default Rules

An auto trait (Send, Sync) holds for a composite type exactly when it
holds for every component:

    forall<P..> { Implemented(Adt<P..>: A) :- Implemented(F1: A), .., Implemented(Fn: A) }

The body is an explicit fold over the declared field list (every variant
of an enum, in declaration order, duplicates kept), so the clause shape
depends only on the declaration. A type without fields gets a fact.

Any explicit impl of the auto trait for the type, positive or negative,
replaces the default entirely.
"""
from __future__ import annotations

import logging
from typing import Any

from .builder import ClauseBuilder
from .fold import substitute
from .generalize import generalize_shape
from .ir import (
    ArrayTy,
    ClosureTy,
    FnDefTy,
    FnPtrTy,
    Implemented,
    NeverTy,
    RawPtrTy,
    RefTy,
    ScalarTy,
    SliceTy,
    StrTy,
    TraitRef,
    TupleTy,
)
from .matchers import match_type_name, type_name_of

logger = logging.getLogger(__name__)


def push_auto_trait_impls(builder: ClauseBuilder, auto_trait_id: str, adt_id: str) -> None:
    """Emit the default rule for one auto trait and one ADT.

    Args:
        builder: Clause sink
        auto_trait_id: An auto trait declared in the database
        adt_id: A declared struct, enum or union
    """
    db = builder.db
    if db.has_explicit_impl_for_adt(auto_trait_id, adt_id):
        logger.debug(f"Explicit {auto_trait_id} impl for {adt_id}; no default rule")
        return

    adt = db.adt_datum(adt_id)
    theta = builder.fresh_substitution(adt.params)
    self_ty = substitute(adt.self_ty, theta)

    conditions: list[Implemented] = []
    for field_ty in adt.field_types():
        conditions.append(Implemented(TraitRef(auto_trait_id, substitute(field_ty, theta))))

    builder.push_clause(Implemented(TraitRef(auto_trait_id, self_ty)), conditions)


def _components(builder: ClauseBuilder, shape: Any) -> tuple[Any, ...] | None:
    """Component types an auto trait must hold for, or None if it never holds by default."""
    if isinstance(shape, (ScalarTy, StrTy, NeverTy, FnPtrTy, FnDefTy)):
        return ()
    if isinstance(shape, TupleTy):
        return shape.elems
    if isinstance(shape, (ArrayTy, SliceTy)):
        return (shape.elem,)
    if isinstance(shape, RefTy):
        return (shape.referent,)
    if isinstance(shape, RawPtrTy):
        return (shape.pointee,)
    if isinstance(shape, ClosureTy):
        if not builder.db.has_closure(shape.closure_id):
            return None
        if len(builder.db.closure_datum(shape.closure_id).params) != len(shape.args):
            return None
        return builder.db.instantiate_closure(shape.closure_id, shape.args).upvars
    # Foreign types, trait objects and projections only get what is
    # declared or bundled explicitly.
    return None


def push_auto_trait_impls_for_shape(builder: ClauseBuilder, auto_trait_id: str, ty: Any) -> None:
    """Default rule for a built-in type shape (tuples, references, closures..)."""
    name = type_name_of(ty)
    if name is None:
        return
    for impl in builder.db.impls_for_trait(auto_trait_id):
        if match_type_name(impl.trait_ref.self_ty, name):
            logger.debug(f"Explicit {auto_trait_id} impl for {name!r}; no default rule")
            return

    shape = generalize_shape(ty, builder.allocator)
    if shape is None:
        return
    components = _components(builder, shape.value)
    if components is None:
        return
    builder.push_clause(
        Implemented(TraitRef(auto_trait_id, shape.value)),
        [Implemented(TraitRef(auto_trait_id, c)) for c in components],
    )
