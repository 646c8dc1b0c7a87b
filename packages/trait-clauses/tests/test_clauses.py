"""
Tests for top-level clause synthesis.

Covers the match filter (it may over-approximate but must never drop a
clause), determinism, and the end-to-end environment scenario.
"""

import pytest

from trait_clauses.clauses import (
    GOAL_CATEGORIES,
    could_match,
    flounders,
    program_clauses_for_goal,
    program_clauses_that_could_match,
    synthesize,
)
from trait_clauses.context import create_synthesis_context
from trait_clauses.dsl import U
from trait_clauses.errors import FlounderedError, TraitClausesError
from trait_clauses.ir import (
    I32,
    STATIC,
    U32,
    AliasEq,
    BoundVar,
    BuilderCategory,
    ClosureTy,
    Environment,
    FromEnv,
    Implemented,
    InferenceVar,
    Normalize,
    ObjectSafe,
    Placeholder,
    TraitRef,
    TypeOutlives,
    WellFormed,
    adt,
    dyn,
    implemented,
    projection,
    ref,
    tuple_of,
)

X = InferenceVar("X")
Y = InferenceVar("Y")
T = Placeholder("T")

GOALS = [
    implemented(I32, "PartialEq"),
    implemented(T, "PartialEq"),
    implemented(adt("Pair"), "Send"),
    implemented(adt("Rc", I32), "Send"),
    implemented(tuple_of(I32, U32), "Clone"),
    implemented(adt("Wrapper", X), "Clone"),
    implemented(ref(I32), "Copy"),
    implemented(ClosureTy("add_one"), "Fn", tuple_of(I32)),
    implemented(dyn("Eq", "Send"), "PartialEq"),
    implemented(I32, "Unsize", dyn("Debug")),
    implemented(I32, "Unknown"),
    Normalize(projection(adt("Counter"), "Iterator", "Item"), Y),
    Normalize(projection(ClosureTy("add_one"), "FnOnce", "Output", tuple_of(I32)), Y),
    AliasEq(projection(X, "IntoIterator", "IntoIter"), Y),
    WellFormed(adt("Wrapper", I32)),
    WellFormed(ref(I32)),
    WellFormed(tuple_of(I32, X)),
    WellFormed(TraitRef("Eq", I32)),
    WellFormed(projection(X, "Iterator", "Item")),
    WellFormed(dyn("Debug")),
    FromEnv(TraitRef("PartialEq", T)),
    FromEnv(TraitRef("Iterator", X)),
    TypeOutlives(dyn("Debug"), STATIC),
    ObjectSafe("Debug"),
    ObjectSafe("Unknown"),
]

# Goals whose self type is unresolved and could be met by a shape-indexed rule.
FLOUNDERING = [
    implemented(X, "Clone"),
    implemented(X, "Sized"),
    implemented(X, "Send"),
    implemented(X, "Iterator"),
    implemented(X, "PartialEq"),
    implemented(I32, "Unsize", Y),
    Normalize(projection(X, "FnOnce", "Output", tuple_of(I32)), Y),
    Normalize(projection(X, "Iterator", "Item"), Y),
    WellFormed(X),
    TypeOutlives(X, STATIC),
]


class TestMatchFilter:
    """The filter is conservative: turning it off changes nothing."""

    @pytest.mark.parametrize("goal", GOALS, ids=repr)
    def test_filtered_equals_unfiltered(self, program, goal):
        filtered = program_clauses_that_could_match(goal, program, create_synthesis_context())
        unfiltered = program_clauses_that_could_match(
            goal, program, create_synthesis_context(filter_enabled=False)
        )
        assert set(filtered) == set(unfiltered)

    @pytest.mark.parametrize("goal", GOALS, ids=repr)
    def test_every_clause_passes_its_category_filter(self, program, unfiltered_ctx, goal):
        for clause in program_clauses_that_could_match(goal, program, unfiltered_ctx):
            assert could_match(clause.origin, goal, program), f"{clause.origin}: {clause!r}"

    def test_unfiltered_runs_every_category(self, program, unfiltered_ctx):
        program_clauses_that_could_match(ObjectSafe("Debug"), program, unfiltered_ctx)
        assert set(unfiltered_ctx.builder_runs) == {c.value for c in GOAL_CATEGORIES}

    def test_filter_skips_categories(self, program, ctx):
        program_clauses_that_could_match(ObjectSafe("Debug"), program, ctx)
        assert set(ctx.builder_runs) == {BuilderCategory.OBJECT_SAFE.value}

    def test_env_category_always_matches(self, program):
        assert could_match(BuilderCategory.ENV, ObjectSafe("Debug"), program)


class TestProgramClausesThatCouldMatch:
    @pytest.mark.parametrize("goal", GOALS, ids=repr)
    def test_no_goal_variables_leak(self, program, ctx, goal):
        for clause in program_clauses_that_could_match(goal, program, ctx):
            assert clause.free_variables() == [], repr(clause)

    def test_impl_clause_for_concrete_type(self, program, ctx):
        clauses = program_clauses_that_could_match(implemented(I32, "PartialEq"), program, ctx)
        impl_clauses = [c for c in clauses if c.origin is BuilderCategory.IMPL]
        assert [c.consequence for c in impl_clauses] == [implemented(I32, "PartialEq")]

    def test_heads_with_wrong_shape_are_dropped(self, program, ctx):
        clauses = program_clauses_that_could_match(implemented(adt("Pair"), "Clone"), program, ctx)
        assert all(c.origin is not BuilderCategory.IMPL for c in clauses)

    def test_auto_trait_on_concrete_adt(self, program, ctx):
        clauses = program_clauses_that_could_match(implemented(adt("Pair"), "Send"), program, ctx)
        (clause,) = [c for c in clauses if c.origin is BuilderCategory.AUTO_TRAIT]
        assert clause.conditions == (implemented(I32, "Send"), implemented(I32, "Send"))

    def test_projection_must_name_a_declared_associated_type(self, builder):
        builder.trait("Iterator").assoc_type("Item").done()
        builder.struct("Counter")
        builder.impl("Iterator", adt("Counter")).assoc("Item", U32).assoc("Size", U32).done()
        db = builder.build()

        item = program_clauses_that_could_match(Normalize(projection(adt("Counter"), "Iterator", "Item"), Y), db)
        assert [c.consequence.ty for c in item if c.origin is BuilderCategory.ASSOC_VALUE] == [U32]
        size = program_clauses_that_could_match(Normalize(projection(adt("Counter"), "Iterator", "Size"), Y), db)
        assert [c for c in size if c.origin is BuilderCategory.ASSOC_VALUE] == []

    def test_object_safe(self, program, ctx):
        (clause,) = program_clauses_that_could_match(ObjectSafe("Debug"), program, ctx)
        assert clause.is_fact
        assert program_clauses_that_could_match(ObjectSafe("Unknown"), program, ctx) == []

    def test_object_safety_declared_false(self, builder):
        builder.trait("Cloneable", object_safe=False).done()
        db = builder.build()
        assert program_clauses_that_could_match(ObjectSafe("Cloneable"), db) == []

    def test_well_formed_reference(self, program, ctx):
        (clause,) = program_clauses_that_could_match(WellFormed(ref(I32)), program, ctx)
        assert len(clause.conditions) == 2
        assert isinstance(clause.conditions[1], TypeOutlives)

    def test_implied_bounds_from_adt_where_clauses(self, builder):
        p = builder
        p.trait("Hash").done()
        p.struct("Set", U, where_clauses=(implemented(U, "Hash"),), items=U)
        db = p.build()

        clauses = program_clauses_that_could_match(FromEnv(TraitRef("Hash", X)), db)
        (clause,) = [c for c in clauses if c.origin is BuilderCategory.TYPE]
        assert clause.consequence == FromEnv(TraitRef("Hash", BoundVar(0)))
        assert clause.conditions == (FromEnv(adt("Set", BoundVar(0))),)

    def test_deterministic_order(self, program):
        goal = implemented(tuple_of(I32, X), "Clone")
        first = program_clauses_that_could_match(goal, program, create_synthesis_context())
        second = program_clauses_that_could_match(goal, program, create_synthesis_context())
        assert first == second

    def test_alpha_equivalent_for_renamed_goal_variables(self, program):
        first = program_clauses_that_could_match(implemented(tuple_of(X, X), "Clone"), program)
        second = program_clauses_that_could_match(implemented(tuple_of(Y, InferenceVar("Z")), "Clone"), program)
        assert first == second

    def test_no_duplicates(self, program, ctx):
        clauses = program_clauses_that_could_match(implemented(tuple_of(X, Y), "Send"), program, ctx)
        assert len(clauses) == len(set(clauses))


class TestFloundering:
    """Unresolved self types that shape-indexed rules could meet are ambiguous."""

    @pytest.mark.parametrize("goal", FLOUNDERING, ids=repr)
    def test_raises_instead_of_dropping_clauses(self, program, ctx, goal):
        assert flounders(goal, program)
        with pytest.raises(FlounderedError) as excinfo:
            program_clauses_that_could_match(goal, program, ctx)
        assert excinfo.value.goal == goal
        assert isinstance(excinfo.value, TraitClausesError)

    @pytest.mark.parametrize("goal", FLOUNDERING, ids=repr)
    def test_independent_of_the_filter(self, program, unfiltered_ctx, goal):
        with pytest.raises(FlounderedError):
            program_clauses_that_could_match(goal, program, unfiltered_ctx)

    @pytest.mark.parametrize("goal", GOALS, ids=repr)
    def test_listed_goals_do_not_flounder(self, program, goal):
        assert not flounders(goal, program)

    def test_builtin_fact_is_not_silently_dropped(self, program, ctx):
        # `i32: Clone` is a built-in fact, so `?X: Clone` cannot be answered
        # from user impls alone.
        concrete = program_clauses_that_could_match(implemented(I32, "Clone"), program, ctx)
        assert implemented(I32, "Clone") in {c.consequence for c in concrete if c.is_fact}
        with pytest.raises(FlounderedError):
            program_clauses_that_could_match(implemented(X, "Clone"), program, ctx)

    def test_through_program_clauses_for_goal(self, program):
        with pytest.raises(FlounderedError):
            program_clauses_for_goal(implemented(X, "Send"), Environment((), program))

    def test_trait_no_object_type_can_implement(self, builder):
        builder.trait("Hash", object_safe=False).done()
        builder.impl("Hash", I32).done()
        db = builder.build()
        assert not flounders(implemented(X, "Hash"), db)
        (clause,) = [
            c for c in program_clauses_that_could_match(implemented(X, "Hash"), db)
            if c.origin is BuilderCategory.IMPL
        ]
        assert clause.consequence == implemented(I32, "Hash")

    def test_supertrait_of_an_object_safe_trait(self, builder):
        builder.trait("Base", object_safe=False).done()
        builder.trait("Derived").supertrait("Base").done()
        assert flounders(implemented(X, "Base"), builder.build())

    def test_unknown_trait_and_placeholder_self(self, program):
        assert not flounders(implemented(X, "Unknown"), program)
        assert not flounders(implemented(T, "Clone"), program)
        assert not flounders(WellFormed(tuple_of(X, X)), program)


class TestProgramClausesForGoal:
    """End-to-end: environment plus program clauses."""

    def test_eq_assumption_proves_partial_eq(self, program, ctx):
        env = Environment((implemented(T, "Eq"),), program)
        clauses = program_clauses_for_goal(implemented(T, "PartialEq"), env, ctx)
        facts = {c.consequence for c in clauses if c.is_fact}
        assert implemented(T, "PartialEq") in facts
        assert FromEnv(TraitRef("PartialEq", T)) in facts
        rules = [c for c in clauses if c.is_rule and isinstance(c.consequence, Implemented)]
        assert any(c.conditions and isinstance(c.conditions[0], FromEnv) for c in rules)

    def test_unrecognized_goal_gives_environment_only(self, program, ctx):
        assert program_clauses_for_goal("not a goal", Environment((), program), ctx) == frozenset()
        env = Environment((implemented(T, "Debug"),), program)
        clauses = program_clauses_for_goal("not a goal", env, ctx)
        assert clauses and all(c.origin is BuilderCategory.ENV for c in clauses)

    def test_without_database_only_environment(self):
        env = Environment((implemented(T, "Debug"),))
        clauses = program_clauses_for_goal(implemented(T, "Debug"), env)
        assert {c.consequence for c in clauses} == {implemented(T, "Debug"), FromEnv(TraitRef("Debug", T))}

    def test_unknown_trait_yields_no_program_clauses(self, program):
        assert program_clauses_for_goal(implemented(I32, "Unknown"), Environment((), program)) == frozenset()

    def test_result_is_a_set(self, program):
        clauses = synthesize(implemented(adt("Pair"), "Send"), Environment((), program))
        assert isinstance(clauses, frozenset)
        assert len(clauses) >= 1

    def test_synthesize_alias(self):
        assert synthesize is program_clauses_for_goal
