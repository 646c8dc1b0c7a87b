"""
Tests for the shape matchers.
"""

from trait_clauses.database import AssociatedTyDatum
from trait_clauses.ir import (
    BOOL,
    I32,
    STATIC,
    STR,
    U32,
    BoundVar,
    InferenceVar,
    Lifetime,
    Mutability,
    Placeholder,
    TyKind,
    TypeName,
    VariableKind,
    adt,
    dyn,
    implemented,
    projection,
    ref,
    tuple_of,
)
from trait_clauses.matchers import (
    could_unify_shapes,
    match_alias_ty,
    match_struct,
    match_type_name,
    type_name_of,
)


class TestTypeNames:
    """Tests for head-constructor extraction."""

    def test_type_name_of(self):
        assert type_name_of(adt("Vec", I32)) == TypeName(TyKind.ADT, "Vec")
        assert type_name_of(I32) == TypeName(TyKind.SCALAR, "i32")
        assert type_name_of(tuple_of(I32, I32)) == TypeName(TyKind.TUPLE, 2)
        assert type_name_of(ref(I32, mutable=True)) == TypeName(TyKind.REF, Mutability.MUT.value)
        assert type_name_of(STR) == TypeName(TyKind.STR)

    def test_variables_have_no_type_name(self):
        assert type_name_of(InferenceVar("X")) is None
        assert type_name_of(Placeholder("T")) is None

    def test_match_type_name(self):
        assert match_type_name(tuple_of(I32), TypeName(TyKind.TUPLE, 1))
        assert not match_type_name(tuple_of(I32), TypeName(TyKind.TUPLE, 2))
        assert not match_type_name(InferenceVar("X"), TypeName(TyKind.TUPLE, 1))


class TestDeclarationMatchers:
    """Tests for match_struct and match_alias_ty."""

    def test_match_struct(self, program):
        wrapper = program.adt_datum("Wrapper")
        assert match_struct(adt("Wrapper", I32), wrapper)
        assert not match_struct(adt("Wrapper"), wrapper)
        assert not match_struct(adt("Pair"), wrapper)
        assert not match_struct(I32, wrapper)

    def test_match_alias_ty(self):
        item = AssociatedTyDatum("Iterator", "Item")
        assert match_alias_ty(projection(adt("Counter"), "Iterator", "Item"), item)
        assert not match_alias_ty(projection(adt("Counter"), "Iterator", "Other"), item)
        assert not match_alias_ty(projection(adt("Counter"), "IntoIterator", "Item"), item)
        assert not match_alias_ty(adt("Counter"), item)


class TestCouldUnifyShapes:
    """Tests for the structural pre-check used by the match filter."""

    def test_variables_match_anything(self):
        assert could_unify_shapes(InferenceVar("X"), adt("Vec", I32))
        assert could_unify_shapes(adt("Vec", I32), BoundVar(0))

    def test_constructors_must_agree(self):
        assert could_unify_shapes(adt("Vec", BoundVar(0)), adt("Vec", I32))
        assert not could_unify_shapes(adt("Vec", I32), adt("Box", I32))
        assert not could_unify_shapes(I32, U32)
        assert not could_unify_shapes(tuple_of(I32), tuple_of(I32, I32))

    def test_placeholders_are_rigid(self):
        t = Placeholder("T")
        assert could_unify_shapes(t, t)
        assert not could_unify_shapes(t, Placeholder("U"))
        assert not could_unify_shapes(t, I32)
        assert could_unify_shapes(t, InferenceVar("X"))

    def test_projections_match_any_type(self):
        alias = projection(BoundVar(0), "Iterator", "Item")
        assert could_unify_shapes(alias, U32)
        assert could_unify_shapes(BOOL, alias)

    def test_lifetimes_always_match(self):
        a = Lifetime("a")
        assert could_unify_shapes(ref(I32, a), ref(I32, STATIC))
        assert could_unify_shapes(ref(I32, Placeholder("b", VariableKind.LIFETIME)), ref(I32, a))

    def test_trait_objects_match_each_other(self):
        assert could_unify_shapes(dyn("Debug"), dyn("Debug", "Send"))

    def test_goals(self):
        head = implemented(adt("Vec", BoundVar(0)), "Clone")
        assert could_unify_shapes(head, implemented(adt("Vec", I32), "Clone"))
        assert not could_unify_shapes(head, implemented(adt("Vec", I32), "Copy"))
        assert not could_unify_shapes(head, implemented(adt("Box", I32), "Clone"))
