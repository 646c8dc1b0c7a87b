"""
trait_clauses/matchers.py - Shape Matchers

Pure predicates that decide whether a clause builder applies to a type or
a goal. They compare head constructors only and never unify: variables
and projections match anything, so every answer is an over-approximation
of "could unify".
"""
from __future__ import annotations

from dataclasses import fields
from typing import TYPE_CHECKING, Any

from .ir import (
    AdtTy,
    ArrayTy,
    BoundVar,
    ClosureTy,
    DynTy,
    FnDefTy,
    FnPtrTy,
    ForeignTy,
    InferenceVar,
    Lifetime,
    Node,
    Param,
    Placeholder,
    ProjectionTy,
    RawPtrTy,
    RefTy,
    ScalarTy,
    Ty,
    TupleTy,
    TypeName,
    VariableKind,
)

if TYPE_CHECKING:
    from .database import AdtDatum, AssociatedTyDatum

_WILDCARDS = (InferenceVar, BoundVar, Param)


def type_name_of(ty: Any) -> TypeName | None:
    """Head constructor of ``ty``; None for variables and placeholders."""
    if not isinstance(ty, Ty):
        return None
    if isinstance(ty, AdtTy):
        return TypeName(ty.kind, ty.adt_id)
    if isinstance(ty, ScalarTy):
        return TypeName(ty.kind, ty.scalar.value)
    if isinstance(ty, TupleTy):
        return TypeName(ty.kind, len(ty.elems))
    if isinstance(ty, ArrayTy):
        return TypeName(ty.kind, ty.size)
    if isinstance(ty, (RefTy, RawPtrTy)):
        return TypeName(ty.kind, ty.mutability.value)
    if isinstance(ty, FnPtrTy):
        return TypeName(ty.kind, len(ty.inputs))
    if isinstance(ty, FnDefTy):
        return TypeName(ty.kind, ty.fn_id)
    if isinstance(ty, ClosureTy):
        return TypeName(ty.kind, ty.closure_id)
    if isinstance(ty, ForeignTy):
        return TypeName(ty.kind, ty.name)
    if isinstance(ty, ProjectionTy):
        return TypeName(ty.kind, (ty.trait_id, ty.assoc_name))
    return TypeName(ty.kind)


def match_type_name(ty: Any, name: TypeName) -> bool:
    """Does ``ty`` have head constructor ``name``?"""
    return type_name_of(ty) == name


def match_struct(ty: Any, adt: AdtDatum) -> bool:
    """Is ``ty`` the declared ADT applied to the right number of arguments?"""
    return isinstance(ty, AdtTy) and ty.adt_id == adt.adt_id and len(ty.args) == len(adt.params)


def match_alias_ty(alias: Any, datum: AssociatedTyDatum) -> bool:
    """Is ``alias`` a projection of the declared associated type?"""
    return (
        isinstance(alias, ProjectionTy)
        and alias.trait_id == datum.trait_id
        and alias.assoc_name == datum.name
    )


def is_variable(value: Any) -> bool:
    return isinstance(value, _WILDCARDS)


def _is_lifetime(value: Any) -> bool:
    if isinstance(value, Lifetime):
        return True
    return isinstance(value, (*_WILDCARDS, Placeholder)) and value.kind is VariableKind.LIFETIME


def could_unify_shapes(a: Any, b: Any) -> bool:
    """Structural pre-check: could ``a`` and ``b`` possibly unify?

    Variables match anything. Projections match any type because they may
    normalize to it. Lifetimes always match; region constraints are the
    solver's business. Trait objects match any trait object. Everything
    else must agree on constructor and non-node attributes, recursively.
    """
    if _is_lifetime(a) or _is_lifetime(b):
        return True
    if is_variable(a) or is_variable(b):
        return True
    if isinstance(a, ProjectionTy) or isinstance(b, ProjectionTy):
        if isinstance(a, ProjectionTy) and isinstance(b, ProjectionTy):
            return True
        # A projection stands in for an arbitrary type, but not for a trait ref.
        return isinstance(a, (Ty, Placeholder)) and isinstance(b, (Ty, Placeholder))
    if isinstance(a, DynTy) and isinstance(b, DynTy):
        return True

    if isinstance(a, tuple) and isinstance(b, tuple):
        return len(a) == len(b) and all(could_unify_shapes(x, y) for x, y in zip(a, b))

    if isinstance(a, Node) and isinstance(b, Node):
        if type(a) is not type(b):
            return False
        for f in fields(a):
            if not f.compare:
                continue
            if not could_unify_shapes(getattr(a, f.name), getattr(b, f.name)):
                return False
        return True

    return a == b
