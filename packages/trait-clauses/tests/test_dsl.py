"""
Tests for the fluent program builder.
"""

import pytest

from trait_clauses.database import AdtKind, Polarity
from trait_clauses.dsl import ARGS, CoreProgramBuilder, ProgramBuilder, T, U
from trait_clauses.ir import I32, U32, UNIT, TraitBound, WellKnownTrait, adt, implemented


class TestTraitBuilder:
    def test_supertraits_and_where_clauses(self):
        p = ProgramBuilder()
        p.trait("PartialEq", T).done()
        datum = p.trait("Ord", T).supertrait("PartialEq", T).bound(T, "Sized").done()
        assert datum.supertraits == (TraitBound("PartialEq", (T,)),)
        assert datum.where_clauses == (implemented(T, "Sized"),)
        assert p.build().has_trait("Ord")

    def test_trait_flags(self):
        datum = ProgramBuilder().trait("Send", auto=True, object_safe=False).done()
        assert datum.auto and not datum.object_safe
        assert datum.well_known is None

    def test_assoc_type_bounds(self):
        datum = ProgramBuilder().trait("IntoIterator").assoc_type("IntoIter", "Iterator").done()
        assert datum.associated_ty("IntoIter").bounds == (TraitBound("Iterator"),)

    def test_assoc_type_declared_twice(self):
        with pytest.raises(ValueError, match="declared twice"):
            ProgramBuilder().trait("Iterator").assoc_type("Item").assoc_type("Item")

    def test_params_must_be_params(self):
        with pytest.raises(ValueError, match="must be Param"):
            ProgramBuilder().trait("Into", "T")

    def test_duplicate_params(self):
        with pytest.raises(ValueError, match="duplicate"):
            ProgramBuilder().struct("Pair", T, T, a=T)


class TestImplBuilder:
    def test_generic_impl(self):
        p = ProgramBuilder()
        p.trait("Clone").done()
        impl = p.impl("Clone", adt("Vec", T), params=(T,)).bound(T, "Clone").done()
        assert impl.impl_id == "Clone#1"
        assert impl.params == (T,)
        assert impl.where_clauses == (implemented(T, "Clone"),)
        assert p.build().impls_for_trait("Clone") == [impl]

    def test_arity_mismatch(self):
        p = ProgramBuilder()
        p.trait("Into", T).done()
        with pytest.raises(ValueError, match="expects 1 args"):
            p.impl("Into", I32)

    def test_negative_impl(self):
        p = ProgramBuilder()
        p.trait("Send", auto=True).done()
        impl = p.impl("Send", adt("Rc", T), params=(T,)).negative().done()
        assert impl.polarity is Polarity.NEGATIVE
        assert impl.is_negative

    def test_negative_impl_cannot_bind_values(self):
        p = ProgramBuilder()
        p.trait("Iterator").assoc_type("Item").done()
        with pytest.raises(ValueError, match="negative impls"):
            p.impl("Iterator", I32).negative().assoc("Item", U32).done()

    def test_explicit_impl_id(self):
        p = ProgramBuilder()
        p.trait("Clone").done()
        assert p.impl("Clone", I32, impl_id="clone_i32").done().impl_id == "clone_i32"


class TestTypeDeclarations:
    def test_struct_returns_self_type(self):
        p = ProgramBuilder()
        assert p.struct("Pair", T, U, a=T, b=U) == adt("Pair", T, U)
        datum = p.build().adt_datum("Pair")
        assert datum.kind is AdtKind.STRUCT
        assert datum.field_types() == (T, U)

    def test_enum_variants(self):
        p = ProgramBuilder()
        p.enum("Shape", Circle={"radius": U32}, Square=(U32, U32), None_=None)
        datum = p.build().adt_datum("Shape")
        assert [v.name for v in datum.variants] == ["Circle", "Square", "None"]
        assert datum.field_types() == (U32, U32, U32)

    def test_union(self):
        p = ProgramBuilder()
        p.union("Bits", a=I32, b=U32)
        assert p.build().adt_datum("Bits").kind is AdtKind.UNION

    def test_fn_def_defaults_to_unit_output(self):
        p = ProgramBuilder()
        datum = p.fn_def("noop")
        assert datum.output == UNIT


class TestCoreProgramBuilder:
    """The core language traits are declared up front."""

    def test_well_known_traits(self):
        db = CoreProgramBuilder().build()
        for well_known in WellKnownTrait:
            assert db.well_known_trait_id(well_known) is not None

    def test_call_trait_hierarchy(self):
        db = CoreProgramBuilder().build()
        assert db.supertraits("Fn") == (TraitBound("FnMut", (ARGS,)),)
        assert db.associated_ty_datum("FnOnce", "Output") is not None

    def test_auto_traits(self):
        db = CoreProgramBuilder().build()
        assert {t.trait_id for t in db.auto_traits()} == {"Send", "Sync"}
