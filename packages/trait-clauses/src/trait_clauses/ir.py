"""
trait_clauses/ir.py - Type Language and Clause Algebra

Implements the term structures the clause builders work over:
- Variables: InferenceVar (goal-supplied, free), BoundVar (quantified by
  the clause that contains it), Param (generic parameter of a declaration),
  Placeholder (rigid universal supplied by the caller)
- Types: ADTs, scalars, tuples, arrays, references, function types,
  closures, trait objects and associated-type projections
- Where-clauses and domain goals (the provable predicates)
- ProgramClause: Horn clause `forall<binders> { consequence :- conditions }`

Every node is a frozen dataclass, so nodes are hashable and compare
structurally. Traversal is generic over dataclass fields (see `Node.walk`
and `fold.fold`).
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from .database import ProgramDatabase


# =============================================================================
# ENUMERATIONS
# =============================================================================


class VariableKind(Enum):
    """Sort of a variable: a type or a lifetime."""

    TY = "ty"
    LIFETIME = "lifetime"


class Mutability(Enum):
    NOT = "not"
    MUT = "mut"


class Scalar(Enum):
    """Primitive scalar types."""

    BOOL = "bool"
    CHAR = "char"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    I128 = "i128"
    ISIZE = "isize"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    USIZE = "usize"
    F32 = "f32"
    F64 = "f64"


class TyKind(Enum):
    """Head constructor of a type (variables have no kind)."""

    ADT = "adt"
    SCALAR = "scalar"
    STR = "str"
    NEVER = "never"
    TUPLE = "tuple"
    ARRAY = "array"
    SLICE = "slice"
    REF = "ref"
    RAW_PTR = "raw_ptr"
    FN_PTR = "fn_ptr"
    FN_DEF = "fn_def"
    CLOSURE = "closure"
    FOREIGN = "foreign"
    DYN = "dyn"
    ALIAS = "alias"


class ClosureKind(Enum):
    """Which call trait a closure's body permits.

    FN closures implement Fn, FnMut and FnOnce; FN_MUT closures implement
    FnMut and FnOnce; FN_ONCE closures implement only FnOnce.
    """

    FN = "fn"
    FN_MUT = "fn_mut"
    FN_ONCE = "fn_once"


class WellKnownTrait(Enum):
    """Traits whose semantics are defined by the type system itself."""

    SIZED = "sized"
    COPY = "copy"
    CLONE = "clone"
    FN_ONCE = "fn_once"
    FN_MUT = "fn_mut"
    FN = "fn"
    UNSIZE = "unsize"
    TUPLE = "tuple"


class BuilderCategory(Enum):
    """Closed set of clause builders.

    The match filter and the synthesizer switch exhaustively over this
    enumeration; every emitted clause records the category that built it.
    """

    TRAIT = "trait"
    IMPL = "impl"
    AUTO_TRAIT = "auto_trait"
    BUILTIN = "builtin"
    DYN = "dyn"
    ASSOC_VALUE = "assoc_value"
    ASSOC_TY = "assoc_ty"
    TYPE = "type"
    OBJECT_SAFE = "object_safe"
    ENV = "env"


# =============================================================================
# NODE BASE
# =============================================================================


class Node:
    """Base class for every IR value.

    Subclasses are frozen dataclasses. Only fields that take part in
    equality are traversed; metadata fields (``compare=False``) are not.
    """

    __slots__ = ()

    def children(self) -> Iterator[Node]:
        for f in fields(self):
            if not f.compare:
                continue
            yield from _nodes_in(getattr(self, f.name))

    def walk(self) -> Iterator[Node]:
        """Yield this node and every node below it, depth first."""
        yield self
        for child in self.children():
            yield from child.walk()

    def variables(self) -> list[Variable]:
        """All variables in first-occurrence order, without duplicates."""
        seen: dict[Variable, None] = {}
        for node in self.walk():
            if isinstance(node, (InferenceVar, BoundVar, Param)):
                seen.setdefault(node, None)
        return list(seen)

    def free_variables(self) -> list[InferenceVar]:
        """Goal-supplied variables; these must never leak into a clause."""
        return [v for v in self.variables() if isinstance(v, InferenceVar)]

    def is_ground(self) -> bool:
        return not self.variables()


def _nodes_in(value: Any) -> Iterator[Node]:
    if isinstance(value, Node):
        yield value
    elif isinstance(value, tuple):
        for item in value:
            yield from _nodes_in(item)


# =============================================================================
# VARIABLES AND LIFETIMES
# =============================================================================


@dataclass(frozen=True)
class InferenceVar(Node):
    """Free variable owned by the caller's unification state.

    Example:
        X = InferenceVar("X")
    """

    name: str
    kind: VariableKind = VariableKind.TY

    def __repr__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class BoundVar(Node):
    """Variable quantified by the enclosing program clause."""

    index: int
    kind: VariableKind = VariableKind.TY

    def __repr__(self) -> str:
        if self.kind is VariableKind.LIFETIME:
            return f"'^{self.index}"
        return f"^{self.index}"


@dataclass(frozen=True)
class Param(Node):
    """Generic parameter of a declaration (trait, impl, ADT, fn).

    Params only appear inside the program database; builders replace
    them with bound variables before emitting a clause.
    """

    name: str
    kind: VariableKind = VariableKind.TY

    def __repr__(self) -> str:
        if self.kind is VariableKind.LIFETIME:
            return f"'{self.name}"
        return self.name

    @property
    def is_lifetime(self) -> bool:
        return self.kind is VariableKind.LIFETIME


@dataclass(frozen=True)
class Placeholder(Node):
    """Rigid universally quantified name from the caller's scope.

    Placeholders behave like unknown but fixed types: they are never
    generalized and only match themselves.
    """

    name: str
    kind: VariableKind = VariableKind.TY

    def __repr__(self) -> str:
        if self.kind is VariableKind.LIFETIME:
            return f"'!{self.name}"
        return f"!{self.name}"


@dataclass(frozen=True)
class Lifetime(Node):
    """Concrete region, e.g. 'static."""

    name: str

    def __repr__(self) -> str:
        return f"'{self.name}"


Variable = Union[InferenceVar, BoundVar, Param]


# =============================================================================
# TYPES
# =============================================================================


class Ty(Node):
    """Marker base for type constructors."""

    __slots__ = ()
    kind: TyKind


@dataclass(frozen=True)
class AdtTy(Ty):
    """Struct, enum or union applied to arguments: Vec<T>."""

    adt_id: str
    args: tuple[Any, ...] = ()
    kind = TyKind.ADT

    def __repr__(self) -> str:
        return _applied(self.adt_id, self.args)


@dataclass(frozen=True)
class ScalarTy(Ty):
    scalar: Scalar
    kind = TyKind.SCALAR

    def __repr__(self) -> str:
        return self.scalar.value


@dataclass(frozen=True)
class StrTy(Ty):
    kind = TyKind.STR

    def __repr__(self) -> str:
        return "str"


@dataclass(frozen=True)
class NeverTy(Ty):
    kind = TyKind.NEVER

    def __repr__(self) -> str:
        return "!"


@dataclass(frozen=True)
class TupleTy(Ty):
    elems: tuple[Any, ...] = ()
    kind = TyKind.TUPLE

    def __repr__(self) -> str:
        if len(self.elems) == 1:
            return f"({self.elems[0]!r},)"
        return "(" + ", ".join(repr(e) for e in self.elems) + ")"


@dataclass(frozen=True)
class ArrayTy(Ty):
    elem: Any
    size: int
    kind = TyKind.ARRAY

    def __repr__(self) -> str:
        return f"[{self.elem!r}; {self.size}]"


@dataclass(frozen=True)
class SliceTy(Ty):
    elem: Any
    kind = TyKind.SLICE

    def __repr__(self) -> str:
        return f"[{self.elem!r}]"


@dataclass(frozen=True)
class RefTy(Ty):
    """Reference `&'a T` or `&'a mut T`."""

    mutability: Mutability
    lifetime: Any
    referent: Any
    kind = TyKind.REF

    def __repr__(self) -> str:
        mut = "mut " if self.mutability is Mutability.MUT else ""
        return f"&{self.lifetime!r} {mut}{self.referent!r}"


@dataclass(frozen=True)
class RawPtrTy(Ty):
    mutability: Mutability
    pointee: Any
    kind = TyKind.RAW_PTR

    def __repr__(self) -> str:
        qual = "mut" if self.mutability is Mutability.MUT else "const"
        return f"*{qual} {self.pointee!r}"


@dataclass(frozen=True)
class FnPtrTy(Ty):
    inputs: tuple[Any, ...]
    output: Any
    kind = TyKind.FN_PTR

    def __repr__(self) -> str:
        params = ", ".join(repr(i) for i in self.inputs)
        return f"fn({params}) -> {self.output!r}"


@dataclass(frozen=True)
class FnDefTy(Ty):
    """Zero-sized type of a named function item."""

    fn_id: str
    args: tuple[Any, ...] = ()
    kind = TyKind.FN_DEF

    def __repr__(self) -> str:
        return _applied(f"fn {self.fn_id}", self.args)


@dataclass(frozen=True)
class ClosureTy(Ty):
    closure_id: str
    args: tuple[Any, ...] = ()
    kind = TyKind.CLOSURE

    def __repr__(self) -> str:
        return _applied(f"closure {self.closure_id}", self.args)


@dataclass(frozen=True)
class ForeignTy(Ty):
    """Opaque extern type; nothing is known about its layout."""

    name: str
    kind = TyKind.FOREIGN

    def __repr__(self) -> str:
        return f"extern {self.name}"


@dataclass(frozen=True)
class TraitBound(Node):
    """Trait applied to arguments with the self type left open: Iterator, Into<T>."""

    trait_id: str
    args: tuple[Any, ...] = ()

    def with_self(self, self_ty: Any) -> TraitRef:
        return TraitRef(self.trait_id, self_ty, self.args)

    def __repr__(self) -> str:
        return _applied(self.trait_id, self.args)


@dataclass(frozen=True)
class ProjectionBound(Node):
    """Associated-type binding inside a trait object: Iterator<Item = u32>."""

    trait_id: str
    assoc_name: str
    ty: Any
    args: tuple[Any, ...] = ()

    def alias_for(self, self_ty: Any) -> ProjectionTy:
        return ProjectionTy(self.trait_id, self.assoc_name, self_ty, self.args)

    def __repr__(self) -> str:
        return f"{_applied(self.trait_id, self.args)}<{self.assoc_name} = {self.ty!r}>"


@dataclass(frozen=True)
class DynTy(Ty):
    """Existential trait object `dyn Principal + Aux.. + 'a`.

    ``traits[0]`` is the principal trait; the remaining trait bounds are
    auxiliary (typically auto traits).
    """

    traits: tuple[TraitBound, ...]
    lifetime: Any
    projections: tuple[ProjectionBound, ...] = ()
    kind = TyKind.DYN

    @property
    def principal(self) -> TraitBound | None:
        return self.traits[0] if self.traits else None

    def __repr__(self) -> str:
        parts = [repr(t) for t in self.traits]
        parts.extend(repr(p) for p in self.projections)
        parts.append(repr(self.lifetime))
        return "dyn " + " + ".join(parts)


@dataclass(frozen=True)
class ProjectionTy(Ty):
    """Associated-type projection `<T as Trait<A>>::Name`."""

    trait_id: str
    assoc_name: str
    self_ty: Any
    trait_args: tuple[Any, ...] = ()
    kind = TyKind.ALIAS

    @property
    def trait_ref(self) -> TraitRef:
        return TraitRef(self.trait_id, self.self_ty, self.trait_args)

    def __repr__(self) -> str:
        return f"<{self.self_ty!r} as {_applied(self.trait_id, self.trait_args)}>::{self.assoc_name}"


@dataclass(frozen=True)
class TypeName(Node):
    """Head constructor of a type, used for cheap shape comparisons.

    ``ident`` is the ADT/fn/closure id, the scalar name, the tuple arity
    or the mutability, depending on ``kind``.
    """

    kind: TyKind
    ident: Any = None

    def __repr__(self) -> str:
        if self.ident is None:
            return self.kind.value
        return f"{self.kind.value}:{self.ident}"


# =============================================================================
# TRAIT REFERENCES, WHERE-CLAUSES AND DOMAIN GOALS
# =============================================================================


@dataclass(frozen=True)
class TraitRef(Node):
    """`SelfTy: Trait<Args..>`."""

    trait_id: str
    self_ty: Any
    args: tuple[Any, ...] = ()

    @property
    def bound(self) -> TraitBound:
        return TraitBound(self.trait_id, self.args)

    def __repr__(self) -> str:
        return f"{self.self_ty!r}: {_applied(self.trait_id, self.args)}"


class DomainGoal(Node):
    """Base for the provable predicates of the clause vocabulary."""

    __slots__ = ()

    def into_well_formed_goal(self) -> DomainGoal:
        return self

    def into_from_env_goal(self) -> DomainGoal:
        return self


@dataclass(frozen=True)
class Implemented(DomainGoal):
    trait_ref: TraitRef

    def into_well_formed_goal(self) -> DomainGoal:
        return WellFormed(self.trait_ref)

    def into_from_env_goal(self) -> DomainGoal:
        return FromEnv(self.trait_ref)

    def __repr__(self) -> str:
        return f"Implemented({self.trait_ref!r})"


@dataclass(frozen=True)
class AliasEq(DomainGoal):
    """The projection is equal to ``ty`` (after normalization or not at all)."""

    alias: ProjectionTy
    ty: Any

    def __repr__(self) -> str:
        return f"AliasEq({self.alias!r} = {self.ty!r})"


@dataclass(frozen=True)
class TypeOutlives(DomainGoal):
    ty: Any
    lifetime: Any

    def __repr__(self) -> str:
        return f"TypeOutlives({self.ty!r}: {self.lifetime!r})"


@dataclass(frozen=True)
class LifetimeOutlives(DomainGoal):
    longer: Any
    shorter: Any

    def __repr__(self) -> str:
        return f"LifetimeOutlives({self.longer!r}: {self.shorter!r})"


@dataclass(frozen=True)
class Normalize(DomainGoal):
    """The projection normalizes to ``ty`` under some impl."""

    alias: ProjectionTy
    ty: Any

    def __repr__(self) -> str:
        return f"Normalize({self.alias!r} -> {self.ty!r})"


@dataclass(frozen=True)
class WellFormed(DomainGoal):
    """``target`` is a TraitRef or a type."""

    target: Any

    def __repr__(self) -> str:
        return f"WellFormed({self.target!r})"


@dataclass(frozen=True)
class FromEnv(DomainGoal):
    """``target`` is implied by the local environment (a TraitRef or a type)."""

    target: Any

    def __repr__(self) -> str:
        return f"FromEnv({self.target!r})"


@dataclass(frozen=True)
class ObjectSafe(DomainGoal):
    trait_id: str

    def __repr__(self) -> str:
        return f"ObjectSafe({self.trait_id})"


WhereClause = Union[Implemented, AliasEq, TypeOutlives, LifetimeOutlives]
Goal = DomainGoal


# =============================================================================
# PROGRAM CLAUSES
# =============================================================================


@dataclass(frozen=True)
class ProgramClause(Node):
    """Horn clause: forall<binders> { consequence :- conditions }.

    Bound variable ``BoundVar(i)`` refers to ``binders[i]``. Clauses are
    built by ``ClauseBuilder`` which numbers bound variables by first
    occurrence, so alpha-equivalent clauses compare equal.

    Example:
        # forall<T> { Implemented(Vec<T>: Clone) :- Implemented(T: Clone) }
        clause = ProgramClause(
            (VariableKind.TY,),
            Implemented(TraitRef("Clone", AdtTy("Vec", (BoundVar(0),)))),
            (Implemented(TraitRef("Clone", BoundVar(0))),),
        )
    """

    binders: tuple[VariableKind, ...]
    consequence: DomainGoal
    conditions: tuple[DomainGoal, ...] = ()
    origin: BuilderCategory | None = field(default=None, compare=False, repr=False)

    @property
    def is_fact(self) -> bool:
        """True if this clause has no conditions."""
        return len(self.conditions) == 0

    @property
    def is_rule(self) -> bool:
        return len(self.conditions) > 0

    def alpha_equivalent(self, other: ProgramClause) -> bool:
        """Equal up to renaming of bound variables."""
        from .fold import canonicalize_clause

        return canonicalize_clause(self) == canonicalize_clause(other)

    def __repr__(self) -> str:
        if self.is_fact:
            body = f"{self.consequence!r}"
        else:
            conds = ", ".join(repr(c) for c in self.conditions)
            body = f"{self.consequence!r} :- {conds}"
        if not self.binders:
            return f"{body}."
        names = ", ".join(repr(BoundVar(i, k)) for i, k in enumerate(self.binders))
        return f"forall<{names}> {{ {body} }}"


# =============================================================================
# ENVIRONMENT
# =============================================================================


@dataclass(frozen=True)
class Environment:
    """Locally assumed facts at a goal site plus the program they refer to.

    Assumptions are where-clauses or domain goals over placeholders and
    concrete types. The environment is never mutated; elaboration
    returns a new one.
    """

    assumptions: tuple[DomainGoal, ...] = ()
    db: ProgramDatabase | None = field(default=None, compare=False, repr=False)

    def with_assumptions(self, assumptions: tuple[DomainGoal, ...]) -> Environment:
        return Environment(tuple(assumptions), self.db)

    def __len__(self) -> int:
        return len(self.assumptions)


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================


def _applied(name: str, args: tuple[Any, ...]) -> str:
    if not args:
        return name
    return f"{name}<{', '.join(repr(a) for a in args)}>"


def adt(adt_id: str, *args: Any) -> AdtTy:
    return AdtTy(adt_id, tuple(args))


def tuple_of(*elems: Any) -> TupleTy:
    return TupleTy(tuple(elems))


def ref(referent: Any, lifetime: Any = None, mutable: bool = False) -> RefTy:
    """Build `&'a T`; the lifetime defaults to 'static."""
    mutability = Mutability.MUT if mutable else Mutability.NOT
    return RefTy(mutability, lifetime if lifetime is not None else STATIC, referent)


def dyn(*traits: TraitBound | str, lifetime: Any = None, projections: tuple = ()) -> DynTy:
    bounds = tuple(t if isinstance(t, TraitBound) else TraitBound(t) for t in traits)
    return DynTy(bounds, lifetime if lifetime is not None else STATIC, tuple(projections))


def implemented(self_ty: Any, trait_id: str, *args: Any) -> Implemented:
    return Implemented(TraitRef(trait_id, self_ty, tuple(args)))


def projection(self_ty: Any, trait_id: str, assoc_name: str, *trait_args: Any) -> ProjectionTy:
    return ProjectionTy(trait_id, assoc_name, self_ty, tuple(trait_args))


STATIC = Lifetime("static")
SELF = Param("Self")

BOOL = ScalarTy(Scalar.BOOL)
CHAR = ScalarTy(Scalar.CHAR)
I32 = ScalarTy(Scalar.I32)
I64 = ScalarTy(Scalar.I64)
U8 = ScalarTy(Scalar.U8)
U32 = ScalarTy(Scalar.U32)
U64 = ScalarTy(Scalar.U64)
USIZE = ScalarTy(Scalar.USIZE)
F64 = ScalarTy(Scalar.F64)
STR = StrTy()
NEVER = NeverTy()
UNIT = TupleTy(())
