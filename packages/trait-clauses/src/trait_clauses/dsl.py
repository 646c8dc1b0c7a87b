"""
trait_clauses/dsl.py - Fluent Program Construction

Provides a fluent API for declaring traits, impls and types without
spelling out every datum.

Example:
    from trait_clauses.dsl import ProgramBuilder, T
    from trait_clauses.ir import I32, U32, adt

    p = ProgramBuilder()

    p.trait("PartialEq").done()
    p.trait("Eq").supertrait("PartialEq").done()
    p.trait("Iterator").assoc_type("Item").done()
    p.trait("Send", auto=True).done()

    p.struct("Pair", a=I32, b=I32)
    p.struct("Counter")

    p.impl("Iterator", adt("Counter")).assoc("Item", U32).done()
    p.impl("PartialEq", adt("Vec", T), params=(T,)) \\
        .bound(T, "PartialEq") \\
        .done()

    db = p.build()
"""
from __future__ import annotations

import logging
from typing import Any

from .database import (
    AdtDatum,
    AdtField,
    AdtKind,
    AdtVariant,
    AssociatedTyDatum,
    AssociatedTyValue,
    ClosureDatum,
    FnDefDatum,
    ImplDatum,
    Polarity,
    ProgramDatabase,
    TraitDatum,
)
from .ir import (
    UNIT,
    AdtTy,
    ClosureKind,
    Implemented,
    Param,
    TraitBound,
    TraitRef,
    VariableKind,
    WellKnownTrait,
)

logger = logging.getLogger(__name__)


# Create common parameters for declarations
T = Param("T")
U = Param("U")
V = Param("V")
K = Param("K")
ARGS = Param("Args")
A_LT = Param("a", VariableKind.LIFETIME)
B_LT = Param("b", VariableKind.LIFETIME)


def _bound(bound: TraitBound | str, args: tuple[Any, ...] = ()) -> TraitBound:
    if isinstance(bound, TraitBound):
        return bound
    return TraitBound(bound, tuple(args))


def _check_params(params: tuple[Any, ...], owner: str) -> tuple[Param, ...]:
    for param in params:
        if not isinstance(param, Param):
            raise ValueError(f"{owner}: generic parameters must be Param, got {param!r}")
    if len(set(params)) != len(params):
        raise ValueError(f"{owner}: duplicate generic parameter")
    return tuple(params)


class TraitBuilder:
    """Fluent builder for trait declarations."""

    def __init__(self, program: ProgramBuilder, trait_id: str, params: tuple[Param, ...], **flags):
        self.program = program
        self.trait_id = trait_id
        self.params = _check_params(params, f"trait {trait_id}")
        self.flags = flags
        self.supertraits: list[TraitBound] = []
        self.where_clauses: list[Any] = []
        self.associated_types: list[AssociatedTyDatum] = []

    def supertrait(self, trait_id: str, *args) -> TraitBuilder:
        """Add a bound on Self: `trait Eq: PartialEq`."""
        self.supertraits.append(TraitBound(trait_id, tuple(args)))
        return self

    def where(self, clause: Any) -> TraitBuilder:
        """Add a where-clause (Implemented, AliasEq, TypeOutlives, ...)."""
        self.where_clauses.append(clause)
        return self

    def bound(self, ty: Any, trait_id: str, *args) -> TraitBuilder:
        """Add `where ty: trait_id<args>`."""
        return self.where(Implemented(TraitRef(trait_id, ty, tuple(args))))

    def assoc_type(self, name: str, *bounds: TraitBound | str) -> TraitBuilder:
        """Declare `type name: bounds..;`."""
        if any(datum.name == name for datum in self.associated_types):
            raise ValueError(f"trait {self.trait_id}: associated type {name} declared twice")
        self.associated_types.append(
            AssociatedTyDatum(self.trait_id, name, tuple(_bound(b) for b in bounds))
        )
        return self

    def done(self) -> TraitDatum:
        """Finalize and add the trait to the database."""
        datum = TraitDatum(
            self.trait_id,
            params=self.params,
            supertraits=tuple(self.supertraits),
            where_clauses=tuple(self.where_clauses),
            associated_types=tuple(self.associated_types),
            **self.flags,
        )
        self.program.db.add_trait(datum)
        return datum


class ImplBuilder:
    """Fluent builder for impls."""

    def __init__(self, program: ProgramBuilder, impl_id: str, trait_ref: TraitRef, params: tuple[Param, ...]):
        self.program = program
        self.impl_id = impl_id
        self.trait_ref = trait_ref
        self.params = _check_params(params, f"impl {impl_id}")
        self.where_clauses: list[Any] = []
        self.values: list[AssociatedTyValue] = []
        self.polarity = Polarity.POSITIVE

    def where(self, clause: Any) -> ImplBuilder:
        self.where_clauses.append(clause)
        return self

    def bound(self, ty: Any, trait_id: str, *args) -> ImplBuilder:
        """Add `where ty: trait_id<args>`."""
        return self.where(Implemented(TraitRef(trait_id, ty, tuple(args))))

    def assoc(self, name: str, ty: Any) -> ImplBuilder:
        """Bind `type name = ty;`."""
        self.values.append(AssociatedTyValue(name, ty))
        return self

    def negative(self) -> ImplBuilder:
        """Make this `impl !Trait for T`."""
        self.polarity = Polarity.NEGATIVE
        return self

    def done(self) -> ImplDatum:
        """Finalize and add the impl to the database."""
        if self.polarity is Polarity.NEGATIVE and self.values:
            raise ValueError(f"impl {self.impl_id}: negative impls cannot bind associated types")
        datum = ImplDatum(
            self.impl_id,
            self.trait_ref,
            params=self.params,
            where_clauses=tuple(self.where_clauses),
            associated_ty_values=tuple(self.values),
            polarity=self.polarity,
        )
        self.program.db.add_impl(datum)
        return datum


class ProgramBuilder:
    """Fluent API for building a ProgramDatabase."""

    def __init__(self, db: ProgramDatabase | None = None):
        """Initialize builder.

        Args:
            db: Existing database to extend (creates new if None)
        """
        self.db = db or ProgramDatabase()
        self._impl_count = 0

    # -------------------------------------------------------------------------
    # Traits and impls
    # -------------------------------------------------------------------------

    def trait(
        self,
        trait_id: str,
        *params: Param,
        auto: bool = False,
        object_safe: bool = True,
        well_known: WellKnownTrait | None = None,
    ) -> TraitBuilder:
        """Start declaring a trait.

        Example:
            p.trait("Into", T).bound(T, "Sized").done()
        """
        return TraitBuilder(
            self,
            trait_id,
            params,
            auto=auto,
            object_safe=object_safe,
            well_known=well_known,
        )

    def impl(
        self,
        trait_id: str,
        self_ty: Any,
        *args: Any,
        params: tuple[Param, ...] = (),
        impl_id: str | None = None,
    ) -> ImplBuilder:
        """Start declaring `impl<params> trait_id<args> for self_ty`.

        Raises:
            ValueError: the trait is declared with a different number of parameters
        """
        if self.db.has_trait(trait_id):
            expected = len(self.db.trait_datum(trait_id).params)
            if expected != len(args):
                raise ValueError(f"Trait {trait_id} expects {expected} args, got {len(args)}")
        self._impl_count += 1
        impl_id = impl_id or f"{trait_id}#{self._impl_count}"
        return ImplBuilder(self, impl_id, TraitRef(trait_id, self_ty, tuple(args)), tuple(params))

    # -------------------------------------------------------------------------
    # Types and functions
    # -------------------------------------------------------------------------

    def struct(self, adt_id: str, *params: Param, where_clauses: tuple = (), **fields: Any) -> AdtTy:
        """Declare a struct; keyword arguments are its fields in order.

        Returns:
            The struct applied to its own parameters
        """
        variant = AdtVariant(adt_id, tuple(AdtField(name, ty) for name, ty in fields.items()))
        return self._add_adt(adt_id, params, (variant,), AdtKind.STRUCT, where_clauses)

    def union(self, adt_id: str, *params: Param, where_clauses: tuple = (), **fields: Any) -> AdtTy:
        variant = AdtVariant(adt_id, tuple(AdtField(name, ty) for name, ty in fields.items()))
        return self._add_adt(adt_id, params, (variant,), AdtKind.UNION, where_clauses)

    def enum(self, adt_id: str, *params: Param, where_clauses: tuple = (), **variants: Any) -> AdtTy:
        """Declare an enum.

        Each keyword is a variant: a dict of named fields, a tuple of
        field types (positional fields) or None for a unit variant.

        Example:
            p.enum("Option", T, Some=(T,), None_=None)
        """
        built = []
        for name, body in variants.items():
            if body is None:
                field_list: tuple[AdtField, ...] = ()
            elif isinstance(body, dict):
                field_list = tuple(AdtField(k, ty) for k, ty in body.items())
            else:
                field_list = tuple(AdtField(str(i), ty) for i, ty in enumerate(body))
            built.append(AdtVariant(name.rstrip("_"), field_list))
        return self._add_adt(adt_id, params, tuple(built), AdtKind.ENUM, where_clauses)

    def _add_adt(self, adt_id, params, variants, kind, where_clauses) -> AdtTy:
        datum = AdtDatum(
            adt_id,
            params=_check_params(params, f"{kind.value} {adt_id}"),
            variants=variants,
            kind=kind,
            where_clauses=tuple(where_clauses),
        )
        self.db.add_adt(datum)
        return datum.self_ty

    def fn_def(
        self,
        fn_id: str,
        *params: Param,
        inputs: tuple = (),
        output: Any = UNIT,
        where_clauses: tuple = (),
    ) -> FnDefDatum:
        datum = FnDefDatum(
            fn_id,
            params=_check_params(params, f"fn {fn_id}"),
            inputs=tuple(inputs),
            output=output,
            where_clauses=tuple(where_clauses),
        )
        self.db.add_fn_def(datum)
        return datum

    def closure(
        self,
        closure_id: str,
        kind: ClosureKind,
        *params: Param,
        inputs: tuple = (),
        output: Any = UNIT,
        upvars: tuple = (),
    ) -> ClosureDatum:
        datum = ClosureDatum(
            closure_id,
            kind,
            params=_check_params(params, f"closure {closure_id}"),
            inputs=tuple(inputs),
            output=output,
            upvars=tuple(upvars),
        )
        self.db.add_closure(datum)
        return datum

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def build(self) -> ProgramDatabase:
        """Return the database built so far."""
        logger.debug(f"Built program database: {self.db.stats}")
        return self.db

    def save(self, path: str, format: str = "yaml") -> None:
        """Save the database to file.

        Args:
            path: File path
            format: "yaml" or "json"
        """
        if format == "yaml":
            self.db.to_yaml(path)
        elif format == "json":
            self.db.to_json(path)
        else:
            raise ValueError(f"Unknown format: {format!r} (expected 'yaml' or 'json')")

    def load(self, path: str, format: str = "yaml") -> None:
        """Replace the database with one loaded from file."""
        if format == "yaml":
            self.db = ProgramDatabase.from_yaml(path)
        elif format == "json":
            self.db = ProgramDatabase.from_json(path)
        else:
            raise ValueError(f"Unknown format: {format!r} (expected 'yaml' or 'json')")


# =============================================================================
# CORE LANGUAGE ITEMS
# =============================================================================


class CoreProgramBuilder(ProgramBuilder):
    """ProgramBuilder with the language's built-in traits pre-declared.

    Declares Sized, Clone, Copy, the call traits FnOnce/FnMut/Fn (with
    `FnOnce::Output`), Unsize, Tuple and the auto traits Send and Sync.
    """

    def __init__(self, db: ProgramDatabase | None = None):
        super().__init__(db)
        self._setup_lang_items()

    def _setup_lang_items(self) -> None:
        """Declare the well-known traits."""
        self.trait("Sized", well_known=WellKnownTrait.SIZED).done()
        self.trait("Clone", well_known=WellKnownTrait.CLONE).done()
        self.trait("Copy", well_known=WellKnownTrait.COPY).supertrait("Clone").done()

        # Call traits: Fn: FnMut: FnOnce
        self.trait("FnOnce", ARGS, well_known=WellKnownTrait.FN_ONCE).assoc_type("Output").done()
        self.trait("FnMut", ARGS, well_known=WellKnownTrait.FN_MUT).supertrait("FnOnce", ARGS).done()
        self.trait("Fn", ARGS, well_known=WellKnownTrait.FN).supertrait("FnMut", ARGS).done()

        self.trait("Unsize", T, well_known=WellKnownTrait.UNSIZE).done()
        self.trait("Tuple", well_known=WellKnownTrait.TUPLE).done()

        # Auto traits
        self.trait("Send", auto=True).done()
        self.trait("Sync", auto=True).done()
