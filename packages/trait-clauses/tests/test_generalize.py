"""
Tests for the Generalizer and shape generalization.
"""

from concurrent.futures import ThreadPoolExecutor

from trait_clauses.context import VariableAllocator, create_synthesis_context
from trait_clauses.generalize import Generalizer, generalize, generalize_shape
from trait_clauses.ir import (
    I32,
    STR,
    ArrayTy,
    BoundVar,
    InferenceVar,
    Placeholder,
    RefTy,
    TraitBound,
    VariableKind,
    adt,
    dyn,
    ref,
    tuple_of,
)


class TestGeneralizer:
    """Inference variables become fresh bound variables."""

    def test_replaces_inference_variables(self):
        x = InferenceVar("X")
        result = generalize(adt("Vec", x), VariableAllocator())
        assert result.value == adt("Vec", BoundVar(0))
        assert result.mapping == {x: BoundVar(0)}
        assert result.binders == (VariableKind.TY,)
        assert result.value.free_variables() == []

    def test_repeated_variable_maps_to_one_binder(self):
        x = InferenceVar("X")
        result = generalize(tuple_of(x, I32, x), VariableAllocator())
        assert result.value == tuple_of(BoundVar(0), I32, BoundVar(0))
        assert len(result.bound_vars) == 1

    def test_lifetime_kind_is_kept(self):
        region = InferenceVar("r", VariableKind.LIFETIME)
        result = generalize(ref(I32, region), VariableAllocator())
        assert result.binders == (VariableKind.LIFETIME,)

    def test_placeholders_are_not_generalized(self):
        t = Placeholder("T")
        result = generalize(adt("Vec", t), VariableAllocator())
        assert result.value == adt("Vec", t)
        assert result.bound_vars == ()

    def test_separate_invocations_never_share_variables(self):
        allocator = VariableAllocator()
        obj = dyn(TraitBound("Into", (InferenceVar("X"),)))
        first = generalize(obj, allocator)
        second = generalize(obj, allocator)
        assert set(first.bound_vars).isdisjoint(second.bound_vars)
        assert first.value != second.value

    def test_generalizer_instance_reuses_mapping(self):
        x = InferenceVar("X")
        gen = Generalizer(VariableAllocator())
        assert gen.apply(x).value == gen.apply(adt("Box", x)).value.args[0]

    def test_contexts_are_independent_across_threads(self):
        """Each context's allocator starts from zero regardless of other calls."""

        def run(_):
            ctx = create_synthesis_context()
            result = generalize(tuple_of(*(InferenceVar(f"X{i}") for i in range(50))), ctx.allocator)
            return [v.index for v in result.bound_vars]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(run, range(16)))

        assert all(r == list(range(50)) for r in results)


class TestGeneralizeShape:
    """Only the head constructor of a goal type survives."""

    def test_components_become_binders(self):
        result = generalize_shape(adt("Vec", I32), VariableAllocator())
        assert result.value == adt("Vec", BoundVar(0))

    def test_reference_gets_fresh_region(self):
        result = generalize_shape(ref(I32, mutable=True), VariableAllocator())
        assert isinstance(result.value, RefTy)
        assert result.binders == (VariableKind.LIFETIME, VariableKind.TY)
        assert result.value.mutability == ref(I32, mutable=True).mutability

    def test_array_keeps_size(self):
        result = generalize_shape(ArrayTy(I32, 4), VariableAllocator())
        assert result.value == ArrayTy(BoundVar(0), 4)

    def test_nullary_types_unchanged(self):
        result = generalize_shape(STR, VariableAllocator())
        assert result.value == STR
        assert result.bound_vars == ()

    def test_variables_have_no_shape(self):
        assert generalize_shape(InferenceVar("X"), VariableAllocator()) is None
        assert generalize_shape(Placeholder("T"), VariableAllocator()) is None

    def test_trait_object_keeps_structure(self):
        obj = dyn(TraitBound("Into", (InferenceVar("X"),)), "Send")
        result = generalize_shape(obj, VariableAllocator())
        assert result.value == dyn(TraitBound("Into", (BoundVar(0),)), "Send")
