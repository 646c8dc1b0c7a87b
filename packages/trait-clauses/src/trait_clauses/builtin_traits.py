"""
trait_clauses/builtin_traits.py - Built-in Trait Clauses

Clauses for traits whose meaning is fixed by the type system instead of
by user impls. ``BUILTIN_RULES`` maps every (well-known trait, type
constructor) pair to a rule or to ``NO_CLAUSE``; the table is checked for
completeness when the module is imported.

Rules receive the goal's self type reduced to its shape (components
replaced with fresh bound variables), so a rule's clause never mentions
the goal's inference variables.

Summary:
    Sized       scalars, never, arrays, refs, raw ptrs, fn types, closures;
                tuples and structs by their last element
    Copy/Clone  scalars, never, shared refs, raw ptrs, fn ptrs, fn defs;
                tuples and arrays by their elements; closures by upvars
    Fn*         fn ptrs, fn defs, closures of a compatible kind
    Unsize      [T; N] -> [T]; sized types -> dyn; dyn -> dyn with fewer bounds
    Tuple       tuples
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .builder import ClauseBuilder
from .database import AdtKind
from .generalize import generalize_shape
from .ir import (
    AdtTy,
    AliasEq,
    ClosureKind,
    ClosureTy,
    DynTy,
    FnDefTy,
    FnPtrTy,
    Implemented,
    LifetimeOutlives,
    Mutability,
    Normalize,
    ObjectSafe,
    ProjectionTy,
    SliceTy,
    TraitRef,
    TupleTy,
    Ty,
    TyKind,
    TypeOutlives,
    VariableKind,
    WellKnownTrait,
)

logger = logging.getLogger(__name__)

FN_ONCE_OUTPUT = "Output"

# Rule signature: (builder, trait_id, shape, goal trait ref)
Rule = Callable[[ClauseBuilder, str, Any, TraitRef], None]


class _NoClause:
    """Marker for pairs that have no built-in clause."""

    def __repr__(self) -> str:
        return "NO_CLAUSE"


NO_CLAUSE = _NoClause()


# =============================================================================
# SHARED HELPERS
# =============================================================================


def _fact(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
    builder.push_fact(Implemented(TraitRef(trait_id, shape)))


def _all_components(components: tuple[Any, ...]) -> Rule:
    """Rule: implemented when every component implements the trait."""

    def rule(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
        builder.push_clause(
            Implemented(TraitRef(trait_id, shape)),
            [Implemented(TraitRef(trait_id, c)) for c in components],
        )

    return rule


def _closure_signature(builder: ClauseBuilder, shape: ClosureTy):
    if not builder.db.has_closure(shape.closure_id):
        return None
    if len(builder.db.closure_datum(shape.closure_id).params) != len(shape.args):
        return None
    return builder.db.instantiate_closure(shape.closure_id, shape.args)


def _fn_def_signature(builder: ClauseBuilder, shape: FnDefTy):
    if not builder.db.has_fn_def(shape.fn_id):
        return None
    if len(builder.db.fn_def_datum(shape.fn_id).params) != len(shape.args):
        return None
    return builder.db.instantiate_fn_def(shape.fn_id, shape.args)


# =============================================================================
# SIZED
# =============================================================================


def _sized_tuple(builder: ClauseBuilder, trait_id: str, shape: TupleTy, goal: TraitRef) -> None:
    if not shape.elems:
        builder.push_fact(Implemented(TraitRef(trait_id, shape)))
        return
    builder.push_clause(
        Implemented(TraitRef(trait_id, shape)),
        [Implemented(TraitRef(trait_id, shape.elems[-1]))],
    )


def _sized_adt(builder: ClauseBuilder, trait_id: str, shape: AdtTy, goal: TraitRef) -> None:
    if not builder.db.has_adt(shape.adt_id):
        return
    datum = builder.db.adt_datum(shape.adt_id)
    if len(datum.params) != len(shape.args):
        return
    if datum.kind is AdtKind.ENUM:
        builder.push_fact(Implemented(TraitRef(trait_id, shape)))
        return
    # Only the last field of a struct or union may be dynamically sized.
    adt = builder.db.instantiate_adt(shape.adt_id, shape.args)
    builder.push_clause(
        Implemented(TraitRef(trait_id, shape)),
        [Implemented(TraitRef(trait_id, ty)) for ty in adt.last_field_types()],
    )


# =============================================================================
# COPY / CLONE
# =============================================================================


def _copy_ref(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
    if shape.mutability is Mutability.NOT:
        builder.push_fact(Implemented(TraitRef(trait_id, shape)))


def _copy_tuple(builder: ClauseBuilder, trait_id: str, shape: TupleTy, goal: TraitRef) -> None:
    _all_components(shape.elems)(builder, trait_id, shape, goal)


def _copy_array(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
    _all_components((shape.elem,))(builder, trait_id, shape, goal)


def _copy_closure(builder: ClauseBuilder, trait_id: str, shape: ClosureTy, goal: TraitRef) -> None:
    closure = _closure_signature(builder, shape)
    if closure is not None:
        _all_components(closure.upvars)(builder, trait_id, shape, goal)


# =============================================================================
# FN TRAITS
# =============================================================================

# Closure kinds that may be called through each call trait.
_CALLABLE_AS: dict[WellKnownTrait, frozenset[ClosureKind]] = {
    WellKnownTrait.FN: frozenset({ClosureKind.FN}),
    WellKnownTrait.FN_MUT: frozenset({ClosureKind.FN, ClosureKind.FN_MUT}),
    WellKnownTrait.FN_ONCE: frozenset({ClosureKind.FN, ClosureKind.FN_MUT, ClosureKind.FN_ONCE}),
}


def _signature_of(builder: ClauseBuilder, shape: Any):
    """(inputs, output, where-clauses) of a callable shape, or None."""
    if isinstance(shape, FnPtrTy):
        return shape.inputs, shape.output, ()
    if isinstance(shape, FnDefTy):
        fn_def = _fn_def_signature(builder, shape)
        if fn_def is None:
            return None
        return fn_def.inputs, fn_def.output, fn_def.where_clauses
    if isinstance(shape, ClosureTy):
        closure = _closure_signature(builder, shape)
        if closure is None:
            return None
        return closure.inputs, closure.output, ()
    return None


def _fn_family(well_known: WellKnownTrait) -> Rule:
    def rule(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
        if isinstance(shape, ClosureTy):
            closure = _closure_signature(builder, shape)
            if closure is None or closure.kind not in _CALLABLE_AS[well_known]:
                return
        signature = _signature_of(builder, shape)
        if signature is None:
            return
        inputs, _, where_clauses = signature
        builder.push_clause(
            Implemented(TraitRef(trait_id, shape, (TupleTy(tuple(inputs)),))),
            where_clauses,
        )

    return rule


def push_fn_once_output_clauses(builder: ClauseBuilder, trait_id: str, alias: ProjectionTy) -> None:
    """`Normalize(<F as FnOnce<(I..)>>::Output -> O)` for callable self types."""
    if alias.assoc_name != FN_ONCE_OUTPUT:
        return
    shape = generalize_shape(alias.self_ty, builder.allocator)
    if shape is None:
        return
    signature = _signature_of(builder, shape.value)
    if signature is None:
        return
    inputs, output, where_clauses = signature
    projection = ProjectionTy(trait_id, FN_ONCE_OUTPUT, shape.value, (TupleTy(tuple(inputs)),))
    builder.push_clause(Normalize(projection, output), where_clauses)


# =============================================================================
# UNSIZE
# =============================================================================


def _unsize_to_dyn(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
    """`S: Unsize<dyn Bounds + 'a>` for a sized S meeting every bound."""
    if not goal.args or not isinstance(goal.args[0], DynTy):
        return
    target = generalize_shape(goal.args[0], builder.allocator).value

    conditions: list[Any] = []
    sized = builder.db.well_known_trait_id(WellKnownTrait.SIZED)
    if sized is not None:
        conditions.append(Implemented(TraitRef(sized, shape)))
    if target.principal is not None:
        conditions.append(ObjectSafe(target.principal.trait_id))
    conditions.extend(Implemented(bound.with_self(shape)) for bound in target.traits)
    conditions.extend(
        AliasEq(proj.alias_for(shape), proj.ty) for proj in target.projections
    )
    conditions.append(TypeOutlives(shape, target.lifetime))

    builder.push_clause(Implemented(TraitRef(trait_id, shape, (target,))), conditions)


def _unsize_array(builder: ClauseBuilder, trait_id: str, shape: Any, goal: TraitRef) -> None:
    builder.push_fact(Implemented(TraitRef(trait_id, shape, (SliceTy(shape.elem),))))
    _unsize_to_dyn(builder, trait_id, shape, goal)


def _unsize_dyn(builder: ClauseBuilder, trait_id: str, shape: DynTy, goal: TraitRef) -> None:
    """`dyn P + A.. + 'a: Unsize<dyn P + B.. + 'b>` where B.. is a subset of A.. and 'a: 'b."""
    if not goal.args or not isinstance(goal.args[0], DynTy):
        return
    target = goal.args[0]
    if shape.principal is None or target.principal is None:
        return
    if shape.principal.trait_id != target.principal.trait_id:
        return

    by_id = {bound.trait_id: bound for bound in shape.traits}
    if any(bound.trait_id not in by_id for bound in target.traits):
        return

    # The target reuses the source's bounds so the principal's arguments
    # are forced equal; only the region may differ.
    kept_ids = {bound.trait_id for bound in target.traits}
    region = builder.allocator.fresh(VariableKind.LIFETIME)
    narrowed = DynTy(
        tuple(by_id[bound.trait_id] for bound in target.traits),
        region,
        tuple(p for p in shape.projections if p.trait_id in kept_ids),
    )
    builder.push_clause(
        Implemented(TraitRef(trait_id, shape, (narrowed,))),
        [LifetimeOutlives(shape.lifetime, region)],
    )


# =============================================================================
# RULE TABLE
# =============================================================================


def _row(trait: WellKnownTrait, rules: dict[TyKind, Any]) -> dict[tuple[WellKnownTrait, TyKind], Any]:
    missing = [kind.value for kind in TyKind if kind not in rules]
    if missing:
        raise ValueError(f"Built-in rules for {trait.value} miss type kinds: {missing}")
    return {(trait, kind): rule for kind, rule in rules.items()}


def _copy_row(trait: WellKnownTrait) -> dict[tuple[WellKnownTrait, TyKind], Any]:
    return _row(
        trait,
        {
            TyKind.ADT: NO_CLAUSE,
            TyKind.SCALAR: _fact,
            TyKind.STR: NO_CLAUSE,
            TyKind.NEVER: _fact,
            TyKind.TUPLE: _copy_tuple,
            TyKind.ARRAY: _copy_array,
            TyKind.SLICE: NO_CLAUSE,
            TyKind.REF: _copy_ref,
            TyKind.RAW_PTR: _fact,
            TyKind.FN_PTR: _fact,
            TyKind.FN_DEF: _fact,
            TyKind.CLOSURE: _copy_closure,
            TyKind.FOREIGN: NO_CLAUSE,
            TyKind.DYN: NO_CLAUSE,
            TyKind.ALIAS: NO_CLAUSE,
        },
    )


def _fn_row(trait: WellKnownTrait) -> dict[tuple[WellKnownTrait, TyKind], Any]:
    rules: dict[TyKind, Any] = {kind: NO_CLAUSE for kind in TyKind}
    rule = _fn_family(trait)
    rules[TyKind.FN_PTR] = rule
    rules[TyKind.FN_DEF] = rule
    rules[TyKind.CLOSURE] = rule
    return _row(trait, rules)


BUILTIN_RULES: dict[tuple[WellKnownTrait, TyKind], Any] = {
    **_row(
        WellKnownTrait.SIZED,
        {
            TyKind.ADT: _sized_adt,
            TyKind.SCALAR: _fact,
            TyKind.STR: NO_CLAUSE,
            TyKind.NEVER: _fact,
            TyKind.TUPLE: _sized_tuple,
            TyKind.ARRAY: _fact,
            TyKind.SLICE: NO_CLAUSE,
            TyKind.REF: _fact,
            TyKind.RAW_PTR: _fact,
            TyKind.FN_PTR: _fact,
            TyKind.FN_DEF: _fact,
            TyKind.CLOSURE: _fact,
            TyKind.FOREIGN: NO_CLAUSE,
            TyKind.DYN: NO_CLAUSE,
            TyKind.ALIAS: NO_CLAUSE,
        },
    ),
    **_copy_row(WellKnownTrait.COPY),
    **_copy_row(WellKnownTrait.CLONE),
    **_fn_row(WellKnownTrait.FN_ONCE),
    **_fn_row(WellKnownTrait.FN_MUT),
    **_fn_row(WellKnownTrait.FN),
    **_row(
        WellKnownTrait.UNSIZE,
        {
            TyKind.ADT: _unsize_to_dyn,
            TyKind.SCALAR: _unsize_to_dyn,
            TyKind.STR: NO_CLAUSE,
            TyKind.NEVER: _unsize_to_dyn,
            TyKind.TUPLE: _unsize_to_dyn,
            TyKind.ARRAY: _unsize_array,
            TyKind.SLICE: NO_CLAUSE,
            TyKind.REF: _unsize_to_dyn,
            TyKind.RAW_PTR: _unsize_to_dyn,
            TyKind.FN_PTR: _unsize_to_dyn,
            TyKind.FN_DEF: _unsize_to_dyn,
            TyKind.CLOSURE: _unsize_to_dyn,
            TyKind.FOREIGN: NO_CLAUSE,
            TyKind.DYN: _unsize_dyn,
            TyKind.ALIAS: NO_CLAUSE,
        },
    ),
    **_row(
        WellKnownTrait.TUPLE,
        {kind: (_fact if kind is TyKind.TUPLE else NO_CLAUSE) for kind in TyKind},
    ),
}

if len(BUILTIN_RULES) != len(WellKnownTrait) * len(TyKind):
    raise ValueError("Built-in rule table does not cover every trait")


# =============================================================================
# ENTRY POINT
# =============================================================================


def push_builtin_trait_clauses(
    builder: ClauseBuilder, well_known: WellKnownTrait, trait_ref: TraitRef
) -> None:
    """Emit the built-in clauses for `trait_ref` when its trait is well-known.

    Goals whose self type is a placeholder get no clauses: without a head
    constructor there is no rule to apply. Inference-variable self types
    flounder before reaching the builders.
    """
    self_ty = trait_ref.self_ty
    if not isinstance(self_ty, Ty):
        return
    rule = BUILTIN_RULES[(well_known, self_ty.kind)]
    if rule is NO_CLAUSE:
        logger.debug(f"No built-in {well_known.value} clause for {self_ty.kind.value}")
        return
    shape = generalize_shape(self_ty, builder.allocator)
    if shape is None:
        return
    rule(builder, trait_ref.trait_id, shape.value, trait_ref)
