"""
trait_clauses/clauses.py - Clause Synthesis

Top-level entry points:

- program_clauses_for_goal(goal, env): everything the solver needs for
  one goal, i.e. the environment clauses plus the program clauses that
  could match the goal
- program_clauses_for_env(env): the elaborated environment as clauses
- program_clauses_that_could_match(goal, db): run each builder category
  whose filter accepts the goal and keep the clauses whose head has a
  compatible shape

Builder categories form a closed enumeration (``BuilderCategory``). Both
``could_match`` and the builder table below are checked to cover every
category at import time.

The filter must never reject a category that would have produced a
matching clause. ``Settings.filter_enabled = False`` runs every builder
on every goal, which gives the same clause set more slowly.

A goal whose self type is still an inference variable may flounder
(``FlounderedError``) instead of getting a clause set that misses
shape-indexed rules.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .assoc_values import (
    push_associated_ty_datum_clauses,
    push_program_clauses_for_associated_type_values_in_impls_of,
)
from .auto_traits import push_auto_trait_impls, push_auto_trait_impls_for_shape
from .builder import ClauseBuilder
from .builtin_traits import FN_ONCE_OUTPUT, push_builtin_trait_clauses, push_fn_once_output_clauses
from .context import SynthesisContext, create_synthesis_context
from .database import AssociatedTyDatum, ProgramDatabase
from .dyn_ty import build_dyn_self_ty_clauses
from .env_elaborator import program_clauses_for_env
from .errors import FlounderedError
from .ir import (
    AdtTy,
    AliasEq,
    BuilderCategory,
    DomainGoal,
    DynTy,
    Environment,
    FnDefTy,
    FromEnv,
    Implemented,
    InferenceVar,
    LifetimeOutlives,
    Normalize,
    ObjectSafe,
    ProgramClause,
    ProjectionTy,
    TraitRef,
    Ty,
    TypeOutlives,
    WellFormed,
    WellKnownTrait,
)
from .matchers import could_unify_shapes, match_alias_ty
from .program_clauses import (
    push_adt_clauses,
    push_fn_def_clauses,
    push_impl_clauses,
    push_trait_clauses,
    push_type_wf_clauses,
)

logger = logging.getLogger(__name__)

# Goals that a declaration's where-clauses can conclude through implied
# bounds: `FromEnv(WC) :- FromEnv(Decl)`.
_IMPLIED_BOUND_GOALS = (FromEnv, AliasEq, TypeOutlives, LifetimeOutlives)


# =============================================================================
# GOAL INSPECTION
# =============================================================================


def _goal_trait_ref(goal: DomainGoal) -> TraitRef | None:
    """The trait ref an Implemented / WellFormed / FromEnv goal is about."""
    if isinstance(goal, Implemented):
        return goal.trait_ref
    if isinstance(goal, (WellFormed, FromEnv)) and isinstance(goal.target, TraitRef):
        return goal.target
    return None


def _implied_bound_head(wc: Any) -> type:
    return type(wc.into_from_env_goal())


def _implies(where_clauses: tuple[Any, ...], goal: DomainGoal) -> bool:
    """Can one of ``where_clauses`` conclude ``goal`` as an implied bound?"""
    return any(_implied_bound_head(wc) is type(goal) for wc in where_clauses)


def _well_known(db: ProgramDatabase, trait_id: str) -> WellKnownTrait | None:
    if not db.has_trait(trait_id):
        return None
    return db.trait_datum(trait_id).well_known


def _assoc_types_bounded_by(db: ProgramDatabase, trait_id: str) -> list[AssociatedTyDatum]:
    """Associated-type declarations with a `: trait_id` bound."""
    return [
        datum
        for trait in db.traits()
        for datum in trait.associated_types
        if any(bound.trait_id == trait_id for bound in datum.bounds)
    ]


def _dyn_self(goal: DomainGoal) -> DynTy | None:
    """The trait object a goal is stated over, if any."""
    if isinstance(goal, Implemented):
        candidate = goal.trait_ref.self_ty
    elif isinstance(goal, Normalize):
        candidate = goal.alias.self_ty
    elif isinstance(goal, WellFormed):
        candidate = goal.target
    elif isinstance(goal, TypeOutlives):
        candidate = goal.ty
    else:
        return None
    return candidate if isinstance(candidate, DynTy) else None


def _declared_alias(db: ProgramDatabase, alias: ProjectionTy) -> list[AssociatedTyDatum]:
    """The associated-type declaration ``alias`` projects, as a 0/1 list."""
    if not db.has_trait(alias.trait_id):
        return []
    return [datum for datum in db.associated_ty_data(alias.trait_id) if match_alias_ty(alias, datum)]


# =============================================================================
# FLOUNDERING
# =============================================================================
#
# Some builders emit clauses for every type shape (built-in rules, auto-trait
# defaults, trait-object rules, type well-formedness). Their heads carry a
# concrete constructor, so a goal whose self type is still an inference
# variable unifies with all of them and they cannot be listed. Such goals
# flounder instead of getting a partial clause set.


def _object_types_implement(db: ProgramDatabase, trait_id: str) -> bool:
    """Could some `dyn Trait` implement ``trait_id`` through its own rules?"""
    for trait in db.traits():
        if not trait.object_safe:
            continue
        seen: set[str] = set()
        stack = [trait.trait_id]
        while stack:
            current = stack.pop()
            if current == trait_id:
                return True
            if current in seen or not db.has_trait(current):
                continue
            seen.add(current)
            stack.extend(bound.trait_id for bound in db.supertraits(current))
    return False


def _flounders_on_trait(db: ProgramDatabase, trait_ref: TraitRef) -> bool:
    if not db.has_trait(trait_ref.trait_id):
        return False
    well_known = _well_known(db, trait_ref.trait_id)
    if well_known is WellKnownTrait.UNSIZE and trait_ref.args and isinstance(trait_ref.args[0], InferenceVar):
        return True
    if not isinstance(trait_ref.self_ty, InferenceVar):
        return False
    return (
        well_known is not None
        or db.is_auto_trait(trait_ref.trait_id)
        or _object_types_implement(db, trait_ref.trait_id)
    )


def flounders(goal: DomainGoal, db: ProgramDatabase) -> bool:
    """Is ``goal`` too unconstrained for its clauses to be enumerated?

    True when the self type is an inference variable and the goal could be
    met by a shape-indexed rule: a built-in or auto trait, a trait some
    trait object implements, a projection a trait object normalizes, type
    well-formedness or a trait-object outlives fact. Also true for
    `S: Unsize<?T>`, whose target picks the rule.
    """
    if isinstance(goal, Implemented):
        return _flounders_on_trait(db, goal.trait_ref)
    if isinstance(goal, Normalize):
        alias = goal.alias
        if not isinstance(alias.self_ty, InferenceVar) or not db.has_trait(alias.trait_id):
            return False
        return (
            _well_known(db, alias.trait_id) is WellKnownTrait.FN_ONCE
            or _object_types_implement(db, alias.trait_id)
        )
    if isinstance(goal, WellFormed):
        return isinstance(goal.target, InferenceVar)
    if isinstance(goal, TypeOutlives):
        return isinstance(goal.ty, InferenceVar) and any(t.object_safe for t in db.traits())
    return False


# =============================================================================
# MATCH FILTER
# =============================================================================


def _could_match_trait(goal: DomainGoal, db: ProgramDatabase) -> bool:
    if isinstance(goal, (Implemented, WellFormed)):
        trait_ref = _goal_trait_ref(goal)
        return trait_ref is not None and db.has_trait(trait_ref.trait_id)
    if isinstance(goal, _IMPLIED_BOUND_GOALS):
        return any(_implies(t.all_where_clauses(), goal) for t in db.traits())
    return False


def _could_match_impl(goal: DomainGoal, db: ProgramDatabase) -> bool:
    return isinstance(goal, Implemented) and bool(db.impls_for_trait(goal.trait_ref.trait_id))


def _could_match_auto_trait(goal: DomainGoal, db: ProgramDatabase) -> bool:
    return isinstance(goal, Implemented) and db.is_auto_trait(goal.trait_ref.trait_id)


def _could_match_builtin(goal: DomainGoal, db: ProgramDatabase) -> bool:
    if isinstance(goal, Implemented):
        return _well_known(db, goal.trait_ref.trait_id) is not None
    if isinstance(goal, Normalize):
        return (
            goal.alias.assoc_name == FN_ONCE_OUTPUT
            and _well_known(db, goal.alias.trait_id) is WellKnownTrait.FN_ONCE
        )
    return False


def _could_match_dyn(goal: DomainGoal, db: ProgramDatabase) -> bool:
    return _dyn_self(goal) is not None


def _could_match_assoc_value(goal: DomainGoal, db: ProgramDatabase) -> bool:
    return isinstance(goal, Normalize) and bool(db.impls_for_trait(goal.alias.trait_id))


def _could_match_assoc_ty(goal: DomainGoal, db: ProgramDatabase) -> bool:
    if isinstance(goal, AliasEq):
        return db.has_trait(goal.alias.trait_id)
    if isinstance(goal, WellFormed) and isinstance(goal.target, ProjectionTy):
        return db.has_trait(goal.target.trait_id)
    if isinstance(goal, (Implemented, FromEnv)):
        trait_ref = _goal_trait_ref(goal)
        return trait_ref is not None and bool(_assoc_types_bounded_by(db, trait_ref.trait_id))
    return False


def _could_match_type(goal: DomainGoal, db: ProgramDatabase) -> bool:
    if isinstance(goal, WellFormed) and not isinstance(goal.target, TraitRef):
        return True
    if isinstance(goal, _IMPLIED_BOUND_GOALS):
        return any(_implies(adt.where_clauses, goal) for adt in db.adts())
    return False


def _could_match_object_safe(goal: DomainGoal, db: ProgramDatabase) -> bool:
    return isinstance(goal, ObjectSafe) and db.has_trait(goal.trait_id)


def _could_match_env(goal: DomainGoal, db: ProgramDatabase) -> bool:
    # Assumptions are arbitrary; environment clauses are always included.
    return True


_FILTERS: dict[BuilderCategory, Callable[[DomainGoal, ProgramDatabase], bool]] = {
    BuilderCategory.TRAIT: _could_match_trait,
    BuilderCategory.IMPL: _could_match_impl,
    BuilderCategory.AUTO_TRAIT: _could_match_auto_trait,
    BuilderCategory.BUILTIN: _could_match_builtin,
    BuilderCategory.DYN: _could_match_dyn,
    BuilderCategory.ASSOC_VALUE: _could_match_assoc_value,
    BuilderCategory.ASSOC_TY: _could_match_assoc_ty,
    BuilderCategory.TYPE: _could_match_type,
    BuilderCategory.OBJECT_SAFE: _could_match_object_safe,
    BuilderCategory.ENV: _could_match_env,
}


def could_match(category: BuilderCategory, goal: DomainGoal, db: ProgramDatabase) -> bool:
    """Could builders of ``category`` emit a clause whose head unifies with ``goal``?

    Structural and over-approximating: a True answer may still produce no
    clauses, a False answer guarantees none would match.
    """
    return _FILTERS[category](goal, db)


# =============================================================================
# BUILDERS
# =============================================================================


def _build_trait(builder: ClauseBuilder, goal: DomainGoal) -> None:
    db = builder.db
    if isinstance(goal, (Implemented, WellFormed)):
        trait_ref = _goal_trait_ref(goal)
        if trait_ref is not None and db.has_trait(trait_ref.trait_id):
            push_trait_clauses(builder, db.trait_datum(trait_ref.trait_id))
    elif isinstance(goal, _IMPLIED_BOUND_GOALS):
        for trait in db.traits():
            if _implies(trait.all_where_clauses(), goal):
                push_trait_clauses(builder, trait)


def _build_impl(builder: ClauseBuilder, goal: DomainGoal) -> None:
    if not isinstance(goal, Implemented):
        return
    for impl in builder.db.impls_for_trait(goal.trait_ref.trait_id):
        push_impl_clauses(builder, impl)


def _build_auto_trait(builder: ClauseBuilder, goal: DomainGoal) -> None:
    db = builder.db
    if not isinstance(goal, Implemented) or not db.is_auto_trait(goal.trait_ref.trait_id):
        return
    trait_id = goal.trait_ref.trait_id
    self_ty = goal.trait_ref.self_ty

    if isinstance(self_ty, AdtTy):
        if db.has_adt(self_ty.adt_id):
            push_auto_trait_impls(builder, trait_id, self_ty.adt_id)
    else:
        push_auto_trait_impls_for_shape(builder, trait_id, self_ty)


def _build_builtin(builder: ClauseBuilder, goal: DomainGoal) -> None:
    db = builder.db
    if isinstance(goal, Implemented):
        well_known = _well_known(db, goal.trait_ref.trait_id)
        if well_known is not None:
            push_builtin_trait_clauses(builder, well_known, goal.trait_ref)
    elif isinstance(goal, Normalize):
        if _well_known(db, goal.alias.trait_id) is WellKnownTrait.FN_ONCE:
            push_fn_once_output_clauses(builder, goal.alias.trait_id, goal.alias)


def _build_dyn(builder: ClauseBuilder, goal: DomainGoal) -> None:
    dyn_ty = _dyn_self(goal)
    if dyn_ty is not None:
        build_dyn_self_ty_clauses(builder, dyn_ty)


def _build_assoc_value(builder: ClauseBuilder, goal: DomainGoal) -> None:
    if not isinstance(goal, Normalize):
        return
    for datum in _declared_alias(builder.db, goal.alias):
        push_program_clauses_for_associated_type_values_in_impls_of(builder, datum.trait_id, datum.name)


def _build_assoc_ty(builder: ClauseBuilder, goal: DomainGoal) -> None:
    db = builder.db
    alias = None
    if isinstance(goal, AliasEq):
        alias = goal.alias
    elif isinstance(goal, WellFormed) and isinstance(goal.target, ProjectionTy):
        alias = goal.target

    if alias is not None:
        for datum in _declared_alias(db, alias):
            push_associated_ty_datum_clauses(builder, datum)
        return

    if isinstance(goal, (Implemented, FromEnv)):
        trait_ref = _goal_trait_ref(goal)
        if trait_ref is None:
            return
        for datum in _assoc_types_bounded_by(db, trait_ref.trait_id):
            push_associated_ty_datum_clauses(builder, datum)


def _build_type(builder: ClauseBuilder, goal: DomainGoal) -> None:
    db = builder.db
    if isinstance(goal, WellFormed) and not isinstance(goal.target, TraitRef):
        ty = goal.target
        if isinstance(ty, AdtTy):
            if db.has_adt(ty.adt_id):
                push_adt_clauses(builder, db.adt_datum(ty.adt_id))
        elif isinstance(ty, FnDefTy):
            if db.has_fn_def(ty.fn_id):
                push_fn_def_clauses(builder, db.fn_def_datum(ty.fn_id))
        elif isinstance(ty, Ty) and not isinstance(ty, (DynTy, ProjectionTy)):
            # Trait objects and projections are covered by their own categories.
            push_type_wf_clauses(builder, ty)
    elif isinstance(goal, _IMPLIED_BOUND_GOALS):
        for adt in db.adts():
            if _implies(adt.where_clauses, goal):
                push_adt_clauses(builder, adt)


def _build_object_safe(builder: ClauseBuilder, goal: DomainGoal) -> None:
    if isinstance(goal, ObjectSafe) and builder.db.has_trait(goal.trait_id):
        if builder.db.trait_datum(goal.trait_id).object_safe:
            builder.push_fact(ObjectSafe(goal.trait_id))


_BUILDERS: dict[BuilderCategory, Callable[[ClauseBuilder, DomainGoal], None]] = {
    BuilderCategory.TRAIT: _build_trait,
    BuilderCategory.IMPL: _build_impl,
    BuilderCategory.AUTO_TRAIT: _build_auto_trait,
    BuilderCategory.BUILTIN: _build_builtin,
    BuilderCategory.DYN: _build_dyn,
    BuilderCategory.ASSOC_VALUE: _build_assoc_value,
    BuilderCategory.ASSOC_TY: _build_assoc_ty,
    BuilderCategory.TYPE: _build_type,
    BuilderCategory.OBJECT_SAFE: _build_object_safe,
}

# Environment clauses come from program_clauses_for_env, not from a goal.
GOAL_CATEGORIES = tuple(c for c in BuilderCategory if c is not BuilderCategory.ENV)

if set(_FILTERS) != set(BuilderCategory) or set(_BUILDERS) != set(GOAL_CATEGORIES):
    raise ValueError("Builder tables do not cover every BuilderCategory")


# =============================================================================
# SYNTHESIS
# =============================================================================


def program_clauses_that_could_match(
    goal: DomainGoal, db: ProgramDatabase, ctx: SynthesisContext | None = None
) -> list[ProgramClause]:
    """Program clauses whose head could unify with ``goal``.

    Args:
        goal: Domain goal to prove
        db: Program database
        ctx: Synthesis context (a fresh one is created if None)

    Returns:
        Clauses in builder-category order, without duplicates

    Raises:
        FlounderedError: the goal's self type is unresolved and the
            clauses that could match it cannot be enumerated
    """
    ctx = ctx or create_synthesis_context()
    if not isinstance(goal, DomainGoal):
        logger.debug(f"Unrecognized goal {goal!r}; no program clauses")
        return []
    if flounders(goal, db):
        logger.debug(f"{goal!r} flounders")
        raise FlounderedError(goal)

    results: dict[ProgramClause, None] = {}
    for category in GOAL_CATEGORIES:
        if ctx.settings.filter_enabled and not could_match(category, goal, db):
            continue
        builder = ClauseBuilder(db, ctx, category)
        _BUILDERS[category](builder, goal)
        kept = [c for c in builder.clauses if could_unify_shapes(c.consequence, goal)]
        ctx.record_builder_run(category.value, len(kept))
        for clause in kept:
            results.setdefault(clause, None)

    logger.debug(f"{goal!r}: {len(results)} program clauses")
    return list(results)


def program_clauses_for_goal(
    goal: DomainGoal, environment: Environment, ctx: SynthesisContext | None = None
) -> frozenset[ProgramClause]:
    """All clauses the solver needs to decide ``goal`` in ``environment``.

    Never raises for an unprovable or unrecognized goal; those simply get
    fewer clauses (only the environment's, for an unrecognized goal).
    Raises ``FlounderedError`` when the goal's self type is unresolved and
    its clauses cannot be enumerated; the solver should treat the goal as
    ambiguous.

    Example:
        env = Environment((implemented(Placeholder("T"), "Eq"),), db)
        clauses = program_clauses_for_goal(implemented(Placeholder("T"), "PartialEq"), env)
    """
    ctx = ctx or create_synthesis_context()
    clauses: set[ProgramClause] = set(program_clauses_for_env(environment, ctx))
    if environment.db is not None:
        clauses.update(program_clauses_that_could_match(goal, environment.db, ctx))
    return frozenset(clauses)


synthesize = program_clauses_for_goal
