"""
trait_clauses/database.py - Program Database

The program database stores the declarations clause synthesis is driven
by and answers the read-only queries the builders make.

Features:
- Trait, impl, ADT, fn-def and closure declarations
- Impl indexing by trait
- Well-known trait lookup
- Construction checks (duplicate ids, impls of undeclared traits,
  undeclared generic parameters)
- Persistence support (JSON/YAML)

Declarations use ``Param`` for their generic parameters; ``Param("Self")``
is the self type inside a trait.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

import yaml

from . import ir
from .errors import MalformedProgramError, UnknownItemError
from .fold import Substitution, instantiate
from .ir import (
    SELF,
    AdtTy,
    ClosureKind,
    Implemented,
    Node,
    Param,
    TraitBound,
    TraitRef,
    WellKnownTrait,
)
from .matchers import match_struct

logger = logging.getLogger(__name__)


# =============================================================================
# DECLARATIONS
# =============================================================================


@dataclass(frozen=True)
class AssociatedTyDatum(Node):
    """`type Name: Bounds..;` declared inside a trait."""

    trait_id: str
    name: str
    bounds: tuple[TraitBound, ...] = ()


@dataclass(frozen=True)
class TraitDatum(Node):
    """A trait declaration.

    Attributes:
        trait_id: Trait name
        params: Declared generic parameters (not including Self)
        supertraits: Bounds on Self, e.g. `trait Eq: PartialEq`
        where_clauses: Other where-clauses of the declaration
        associated_types: Associated-type declarations
        auto: Auto-derived marker trait (Send, Sync)
        object_safe: Trait may be used as a trait object
        well_known: Built-in semantics, if any
    """

    trait_id: str
    params: tuple[Param, ...] = ()
    supertraits: tuple[TraitBound, ...] = ()
    where_clauses: tuple[Any, ...] = ()
    associated_types: tuple[AssociatedTyDatum, ...] = ()
    auto: bool = False
    object_safe: bool = True
    well_known: WellKnownTrait | None = None

    @property
    def all_params(self) -> tuple[Param, ...]:
        """Self first, then the declared parameters."""
        return (SELF, *self.params)

    def substitution_for(self, trait_ref: TraitRef) -> Substitution:
        """Map Self and the declared parameters to the trait ref's arguments."""
        if len(trait_ref.args) != len(self.params):
            raise ValueError(
                f"Trait {self.trait_id} expects {len(self.params)} args, got {len(trait_ref.args)}"
            )
        theta: Substitution = {SELF: trait_ref.self_ty}
        theta.update(zip(self.params, trait_ref.args))
        return theta

    def trait_ref(self, args: tuple[Any, ...]) -> TraitRef:
        """Trait ref for ``args`` given in ``all_params`` order."""
        return TraitRef(self.trait_id, args[0], tuple(args[1:]))

    def supertrait_refs(self) -> tuple[TraitRef, ...]:
        return tuple(bound.with_self(SELF) for bound in self.supertraits)

    def all_where_clauses(self) -> tuple[Any, ...]:
        """Supertrait bounds as Implemented clauses, then the other where-clauses."""
        return tuple(Implemented(tr) for tr in self.supertrait_refs()) + self.where_clauses

    def associated_ty(self, name: str) -> AssociatedTyDatum | None:
        for datum in self.associated_types:
            if datum.name == name:
                return datum
        return None


@dataclass(frozen=True)
class AssociatedTyValue(Node):
    """`type Name = Ty;` inside an impl."""

    name: str
    ty: Any


class Polarity(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class ImplDatum(Node):
    """`impl<Params> Trait<Args> for SelfTy where ... { type .. = ..; }`."""

    impl_id: str
    trait_ref: TraitRef
    params: tuple[Param, ...] = ()
    where_clauses: tuple[Any, ...] = ()
    associated_ty_values: tuple[AssociatedTyValue, ...] = ()
    polarity: Polarity = Polarity.POSITIVE

    @property
    def is_negative(self) -> bool:
        return self.polarity is Polarity.NEGATIVE

    def associated_ty_value(self, name: str) -> AssociatedTyValue | None:
        for value in self.associated_ty_values:
            if value.name == name:
                return value
        return None


class AdtKind(Enum):
    STRUCT = "struct"
    ENUM = "enum"
    UNION = "union"


@dataclass(frozen=True)
class AdtField(Node):
    name: str
    ty: Any


@dataclass(frozen=True)
class AdtVariant(Node):
    name: str
    fields: tuple[AdtField, ...] = ()


@dataclass(frozen=True)
class AdtDatum(Node):
    """A struct, enum or union declaration.

    Structs and unions have exactly one variant.
    """

    adt_id: str
    params: tuple[Param, ...] = ()
    variants: tuple[AdtVariant, ...] = ()
    kind: AdtKind = AdtKind.STRUCT
    where_clauses: tuple[Any, ...] = ()

    @property
    def self_ty(self) -> AdtTy:
        return AdtTy(self.adt_id, self.params)

    def field_types(self) -> tuple[Any, ...]:
        """Types of every field of every variant, in declaration order."""
        return tuple(f.ty for variant in self.variants for f in variant.fields)

    def last_field_types(self) -> tuple[Any, ...]:
        """Type of the last field of each non-empty variant."""
        return tuple(variant.fields[-1].ty for variant in self.variants if variant.fields)


@dataclass(frozen=True)
class FnDefDatum(Node):
    fn_id: str
    params: tuple[Param, ...] = ()
    inputs: tuple[Any, ...] = ()
    output: Any = ir.UNIT
    where_clauses: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ClosureDatum(Node):
    """A closure: its call kind, signature and captured variable types."""

    closure_id: str
    kind: ClosureKind
    params: tuple[Param, ...] = ()
    inputs: tuple[Any, ...] = ()
    output: Any = ir.UNIT
    upvars: tuple[Any, ...] = ()


def _undeclared_params(declared: tuple[Param, ...], *parts: Any) -> list[Param]:
    """Params mentioned in ``parts`` but missing from ``declared``, in order."""
    allowed = set(declared)
    found: dict[Param, None] = {}
    for part in parts:
        values = part if isinstance(part, tuple) else (part,)
        for value in values:
            if not isinstance(value, Node):
                continue
            for node in value.walk():
                if isinstance(node, Param) and node not in allowed:
                    found.setdefault(node, None)
    return list(found)


def _check_params(kind: str, item_id: str, declared: tuple[Param, ...], *parts: Any) -> None:
    missing = _undeclared_params(declared, *parts)
    if missing:
        names = ", ".join(p.name for p in missing)
        raise MalformedProgramError(f"{kind} {item_id} uses undeclared params: {names}")


# =============================================================================
# PROGRAM DATABASE
# =============================================================================


class ProgramDatabase:
    """Read-only query interface over a program's declarations.

    Builders only call the query methods; the ``add_*`` methods are used
    while the database is being constructed and reject malformed input.

    Example:
        db = ProgramDatabase()
        db.add_trait(TraitDatum("PartialEq"))
        db.add_trait(TraitDatum("Eq", supertraits=(TraitBound("PartialEq"),)))
        db.supertraits("Eq")  # (TraitBound("PartialEq"),)
    """

    def __init__(self):
        self._traits: dict[str, TraitDatum] = {}
        self._impls: dict[str, ImplDatum] = {}
        self._adts: dict[str, AdtDatum] = {}
        self._fn_defs: dict[str, FnDefDatum] = {}
        self._closures: dict[str, ClosureDatum] = {}

        # Index impls by trait id
        self._impls_by_trait: dict[str, list[ImplDatum]] = defaultdict(list)

        self._well_known: dict[WellKnownTrait, str] = {}

        # Statistics
        self._stats = {
            "traits_added": 0,
            "impls_added": 0,
            "adts_added": 0,
        }

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add_trait(self, datum: TraitDatum) -> None:
        """Add a trait declaration.

        Raises:
            MalformedProgramError: duplicate trait id, or a second trait
                claiming the same well-known role
        """
        if datum.trait_id in self._traits:
            raise MalformedProgramError(f"Duplicate trait: {datum.trait_id}")
        _check_params(
            "Trait",
            datum.trait_id,
            datum.all_params,
            datum.supertraits,
            datum.where_clauses,
            datum.associated_types,
        )
        if datum.well_known is not None:
            if datum.well_known in self._well_known:
                raise MalformedProgramError(
                    f"Well-known trait {datum.well_known.value} declared twice: "
                    f"{self._well_known[datum.well_known]} and {datum.trait_id}"
                )
            self._well_known[datum.well_known] = datum.trait_id
        self._traits[datum.trait_id] = datum
        self._stats["traits_added"] += 1

    def add_impl(self, datum: ImplDatum) -> None:
        """Add an impl; its trait must already be declared.

        Raises:
            MalformedProgramError: duplicate impl id, undeclared trait, or a
                Param the impl does not declare
        """
        if datum.impl_id in self._impls:
            raise MalformedProgramError(f"Duplicate impl: {datum.impl_id}")
        if datum.trait_ref.trait_id not in self._traits:
            raise MalformedProgramError(
                f"Impl {datum.impl_id} implements undeclared trait {datum.trait_ref.trait_id}"
            )
        _check_params(
            "Impl",
            datum.impl_id,
            datum.params,
            datum.trait_ref,
            datum.where_clauses,
            datum.associated_ty_values,
        )
        self._impls[datum.impl_id] = datum
        self._impls_by_trait[datum.trait_ref.trait_id].append(datum)
        self._stats["impls_added"] += 1

    def add_adt(self, datum: AdtDatum) -> None:
        if datum.adt_id in self._adts:
            raise MalformedProgramError(f"Duplicate ADT: {datum.adt_id}")
        if datum.kind is not AdtKind.ENUM and len(datum.variants) != 1:
            raise MalformedProgramError(
                f"{datum.kind.value} {datum.adt_id} must have exactly one variant"
            )
        _check_params("ADT", datum.adt_id, datum.params, datum.variants, datum.where_clauses)
        self._adts[datum.adt_id] = datum
        self._stats["adts_added"] += 1

    def add_fn_def(self, datum: FnDefDatum) -> None:
        if datum.fn_id in self._fn_defs:
            raise MalformedProgramError(f"Duplicate fn: {datum.fn_id}")
        _check_params(
            "Fn", datum.fn_id, datum.params, datum.inputs, datum.output, datum.where_clauses
        )
        self._fn_defs[datum.fn_id] = datum

    def add_closure(self, datum: ClosureDatum) -> None:
        if datum.closure_id in self._closures:
            raise MalformedProgramError(f"Duplicate closure: {datum.closure_id}")
        _check_params(
            "Closure", datum.closure_id, datum.params, datum.inputs, datum.output, datum.upvars
        )
        self._closures[datum.closure_id] = datum

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_trait(self, trait_id: str) -> bool:
        return trait_id in self._traits

    def has_adt(self, adt_id: str) -> bool:
        return adt_id in self._adts

    def has_fn_def(self, fn_id: str) -> bool:
        return fn_id in self._fn_defs

    def has_closure(self, closure_id: str) -> bool:
        return closure_id in self._closures

    def trait_datum(self, trait_id: str) -> TraitDatum:
        try:
            return self._traits[trait_id]
        except KeyError:
            raise UnknownItemError("trait", trait_id) from None

    def traits(self) -> Iterator[TraitDatum]:
        return iter(self._traits.values())

    def impls_for_trait(self, trait_id: str) -> list[ImplDatum]:
        """All impls (positive and negative) of a trait, in declaration order."""
        return list(self._impls_by_trait.get(trait_id, []))

    def impl_datum(self, impl_id: str) -> ImplDatum:
        try:
            return self._impls[impl_id]
        except KeyError:
            raise UnknownItemError("impl", impl_id) from None

    def adt_datum(self, adt_id: str) -> AdtDatum:
        try:
            return self._adts[adt_id]
        except KeyError:
            raise UnknownItemError("ADT", adt_id) from None

    def adts(self) -> Iterator[AdtDatum]:
        return iter(self._adts.values())

    def fn_def_datum(self, fn_id: str) -> FnDefDatum:
        try:
            return self._fn_defs[fn_id]
        except KeyError:
            raise UnknownItemError("fn", fn_id) from None

    def closure_datum(self, closure_id: str) -> ClosureDatum:
        try:
            return self._closures[closure_id]
        except KeyError:
            raise UnknownItemError("closure", closure_id) from None

    def supertraits(self, trait_id: str) -> tuple[TraitBound, ...]:
        return self.trait_datum(trait_id).supertraits

    def associated_ty_data(self, trait_id: str) -> tuple[AssociatedTyDatum, ...]:
        return self.trait_datum(trait_id).associated_types

    def associated_ty_datum(self, trait_id: str, name: str) -> AssociatedTyDatum | None:
        return self.trait_datum(trait_id).associated_ty(name)

    def well_known_trait_id(self, well_known: WellKnownTrait) -> str | None:
        return self._well_known.get(well_known)

    def auto_traits(self) -> list[TraitDatum]:
        return [t for t in self._traits.values() if t.auto]

    def is_auto_trait(self, trait_id: str) -> bool:
        datum = self._traits.get(trait_id)
        return datum is not None and datum.auto

    def has_explicit_impl_for_adt(self, trait_id: str, adt_id: str) -> bool:
        """True if any impl (positive or negative) of the trait targets the ADT."""
        adt = self.adt_datum(adt_id)
        return any(match_struct(impl.trait_ref.self_ty, adt) for impl in self.impls_for_trait(trait_id))

    def instantiate_fn_def(self, fn_id: str, args: tuple[Any, ...]) -> FnDefDatum:
        """Fn-def signature with its parameters replaced by ``args``."""
        datum = self.fn_def_datum(fn_id)
        return instantiate(datum, datum.params, args)

    def instantiate_closure(self, closure_id: str, args: tuple[Any, ...]) -> ClosureDatum:
        datum = self.closure_datum(closure_id)
        return instantiate(datum, datum.params, args)

    def instantiate_adt(self, adt_id: str, args: tuple[Any, ...]) -> AdtDatum:
        datum = self.adt_datum(adt_id)
        return instantiate(datum, datum.params, args)

    def __len__(self) -> int:
        """Total number of declarations."""
        return (
            len(self._traits)
            + len(self._impls)
            + len(self._adts)
            + len(self._fn_defs)
            + len(self._closures)
        )

    @property
    def stats(self) -> dict[str, int]:
        """Get statistics."""
        return dict(self._stats)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Export to dictionary."""
        return {
            "traits": [_encode(d) for d in self._traits.values()],
            "adts": [_encode(d) for d in self._adts.values()],
            "fn_defs": [_encode(d) for d in self._fn_defs.values()],
            "closures": [_encode(d) for d in self._closures.values()],
            "impls": [_encode(d) for d in self._impls.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgramDatabase:
        """Import from dictionary."""
        db = cls()
        for item in data.get("traits", []):
            db.add_trait(_decode_as(item, TraitDatum))
        for item in data.get("adts", []):
            db.add_adt(_decode_as(item, AdtDatum))
        for item in data.get("fn_defs", []):
            db.add_fn_def(_decode_as(item, FnDefDatum))
        for item in data.get("closures", []):
            db.add_closure(_decode_as(item, ClosureDatum))
        for item in data.get("impls", []):
            db.add_impl(_decode_as(item, ImplDatum))
        return db

    def to_json(self, path: str) -> None:
        """Save to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved program database: {len(self)} declarations to {path}")

    @classmethod
    def from_json(cls, path: str) -> ProgramDatabase:
        """Load from JSON file."""
        with open(path) as f:
            db = cls.from_dict(json.load(f))
        logger.info(f"Loaded program database: {len(db)} declarations from {path}")
        return db

    def to_yaml(self, path: str) -> None:
        """Save to YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved program database: {len(self)} declarations to {path}")

    @classmethod
    def from_yaml(cls, path: str) -> ProgramDatabase:
        """Load from YAML file."""
        with open(path) as f:
            db = cls.from_dict(yaml.safe_load(f) or {})
        logger.info(f"Loaded program database: {len(db)} declarations from {path}")
        return db


# =============================================================================
# SERIALIZATION
# =============================================================================

_NODE_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        ir.InferenceVar,
        ir.BoundVar,
        ir.Param,
        ir.Placeholder,
        ir.Lifetime,
        ir.AdtTy,
        ir.ScalarTy,
        ir.StrTy,
        ir.NeverTy,
        ir.TupleTy,
        ir.ArrayTy,
        ir.SliceTy,
        ir.RefTy,
        ir.RawPtrTy,
        ir.FnPtrTy,
        ir.FnDefTy,
        ir.ClosureTy,
        ir.ForeignTy,
        ir.DynTy,
        ir.ProjectionTy,
        ir.TraitBound,
        ir.ProjectionBound,
        ir.TraitRef,
        ir.Implemented,
        ir.AliasEq,
        ir.TypeOutlives,
        ir.LifetimeOutlives,
        ir.Normalize,
        ir.WellFormed,
        ir.FromEnv,
        ir.ObjectSafe,
        AssociatedTyDatum,
        TraitDatum,
        AssociatedTyValue,
        ImplDatum,
        AdtField,
        AdtVariant,
        AdtDatum,
        FnDefDatum,
        ClosureDatum,
    )
}

_ENUM_TYPES: dict[str, type[Enum]] = {
    cls.__name__: cls
    for cls in (
        ir.VariableKind,
        ir.Mutability,
        ir.Scalar,
        ir.ClosureKind,
        ir.WellKnownTrait,
        Polarity,
        AdtKind,
    )
}


def _encode(value: Any) -> Any:
    """Convert a node to plain dicts/lists."""
    if isinstance(value, Node):
        data: dict[str, Any] = {"node": type(value).__name__}
        for f in fields(value):
            data[f.name] = _encode(getattr(value, f.name))
        return data
    if isinstance(value, Enum):
        return {"enum": type(value).__name__, "value": value.value}
    if isinstance(value, tuple):
        return [_encode(item) for item in value]
    return value


def _decode(data: Any) -> Any:
    """Convert plain dicts/lists back to nodes."""
    if isinstance(data, list):
        return tuple(_decode(item) for item in data)
    if not isinstance(data, dict):
        return data

    if "node" in data:
        cls = _NODE_TYPES.get(data["node"])
        if cls is None:
            raise MalformedProgramError(f"Unknown node type: {data['node']}")
        kwargs = {k: _decode(v) for k, v in data.items() if k != "node"}
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise MalformedProgramError(f"Invalid {data['node']} fields: {e}") from e

    if "enum" in data:
        enum_cls = _ENUM_TYPES.get(data["enum"])
        if enum_cls is None:
            raise MalformedProgramError(f"Unknown enum type: {data['enum']}")
        try:
            return enum_cls(data.get("value"))
        except ValueError as e:
            raise MalformedProgramError(str(e)) from e

    raise MalformedProgramError(f"Cannot decode mapping without 'node' or 'enum' tag: {data}")


def _decode_as(data: Any, expected: type) -> Any:
    value = _decode(data)
    if not isinstance(value, expected):
        raise MalformedProgramError(f"Expected {expected.__name__}, got {type(value).__name__}")
    return value
