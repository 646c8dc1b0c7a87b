"""
Tests for trait-object clauses.
"""

from trait_clauses.builder import ClauseBuilder
from trait_clauses.context import create_synthesis_context
from trait_clauses.dyn_ty import build_dyn_self_ty_clauses
from trait_clauses.ir import (
    STATIC,
    U32,
    BoundVar,
    BuilderCategory,
    InferenceVar,
    Normalize,
    ObjectSafe,
    ProjectionBound,
    TraitRef,
    TypeOutlives,
    VariableKind,
    WellFormed,
    dyn,
    implemented,
    projection,
)


def _build(program, dyn_ty):
    builder = ClauseBuilder(program, create_synthesis_context(), BuilderCategory.DYN)
    build_dyn_self_ty_clauses(builder, dyn_ty)
    return builder.clauses


class TestDynClauses:
    """dyn Eq + Send implements its traits and their supertraits."""

    def test_bundled_traits_and_supertraits(self, program):
        obj = dyn("Eq", "Send")
        facts = [c.consequence for c in _build(program, obj) if c.is_fact]
        assert facts[:3] == [
            implemented(obj, "Eq"),
            implemented(obj, "PartialEq"),
            implemented(obj, "Send"),
        ]
        assert TypeOutlives(obj, STATIC) in facts

    def test_well_formed_needs_object_safe_principal(self, program):
        obj = dyn("Eq", "Send")
        (wf,) = [c for c in _build(program, obj) if c.is_rule]
        assert wf.consequence == WellFormed(obj)
        assert wf.conditions == (
            WellFormed(TraitRef("Eq", obj)),
            WellFormed(TraitRef("Send", obj)),
            ObjectSafe("Eq"),
        )

    def test_projection_bindings_normalize(self, program):
        obj = dyn("Iterator", projections=(ProjectionBound("Iterator", "Item", U32),))
        clauses = _build(program, obj)
        assert Normalize(projection(obj, "Iterator", "Item"), U32) in [c.consequence for c in clauses]

    def test_unknown_trait_contributes_itself(self, program):
        obj = dyn("Mystery")
        facts = [c.consequence for c in _build(program, obj) if c.is_fact]
        assert implemented(obj, "Mystery") in facts

    def test_goal_variables_are_generalized(self, program):
        region = InferenceVar("r", VariableKind.LIFETIME)
        clauses = _build(program, dyn("Debug", lifetime=region))
        assert all(c.free_variables() == [] for c in clauses)
        outlives = [c for c in clauses if isinstance(c.consequence, TypeOutlives)]
        assert outlives[0].binders == (VariableKind.LIFETIME,)
        assert outlives[0].consequence.ty.lifetime == BoundVar(0, VariableKind.LIFETIME)

    def test_alpha_equivalent_for_renamed_goal_variables(self, program):
        def obj(name):
            return dyn("Iterator", projections=(ProjectionBound("Iterator", "Item", InferenceVar(name)),))

        assert _build(program, obj("X")) == _build(program, obj("Y"))

    def test_clauses_are_tagged(self, program):
        assert all(c.origin is BuilderCategory.DYN for c in _build(program, dyn("Debug")))
