"""
trait_clauses/generalize.py - Generalization of Goal-Derived Types

When a clause is built from a type that came out of the goal (a trait
object, or the self type of a built-in trait goal), the type may mention
inference variables owned by the caller. Embedding those variables in a
clause would couple the clause to one particular unification state.

The Generalizer replaces every inference variable with a fresh bound
variable taken from the request-scoped allocator, and reports the mapping
so callers can relate the generalized value back to the goal.

Example:
    gen = generalize(dyn("Into", ...), ctx.allocator)
    gen.value      # the type with ^i in place of ?X
    gen.mapping    # {?X: ^i}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .context import VariableAllocator
from .fold import fold
from .ir import (
    AdtTy,
    ArrayTy,
    BoundVar,
    ClosureTy,
    FnDefTy,
    FnPtrTy,
    InferenceVar,
    Lifetime,
    Node,
    Param,
    Placeholder,
    RawPtrTy,
    RefTy,
    SliceTy,
    TupleTy,
    VariableKind,
)


@dataclass(frozen=True)
class Generalized:
    """Result of generalization.

    Attributes:
        value: The rewritten value
        bound_vars: Fresh bound variables, in allocation order
        mapping: Replaced inference variable -> bound variable
    """

    value: Any
    bound_vars: tuple[BoundVar, ...] = ()
    mapping: dict[InferenceVar, BoundVar] = field(default_factory=dict, hash=False)

    @property
    def binders(self) -> tuple[VariableKind, ...]:
        return tuple(var.kind for var in self.bound_vars)


class Generalizer:
    """Replaces inference variables with fresh bound variables.

    One Generalizer instance keeps one mapping, so repeated occurrences of
    the same inference variable map to the same bound variable. Separate
    instances never share a bound variable as long as they draw from the
    same allocator.
    """

    def __init__(self, allocator: VariableAllocator):
        self.allocator = allocator
        self.mapping: dict[InferenceVar, BoundVar] = {}
        self._allocated: list[BoundVar] = []

    def _fold_var(self, node: Node) -> Any:
        if not isinstance(node, InferenceVar):
            return None
        bound = self.mapping.get(node)
        if bound is None:
            bound = self.allocator.fresh(node.kind)
            self.mapping[node] = bound
            self._allocated.append(bound)
        return bound

    def apply(self, value: Any) -> Generalized:
        folded = fold(value, self._fold_var)
        return Generalized(folded, tuple(self._allocated), dict(self.mapping))


def generalize(value: Any, allocator: VariableAllocator) -> Generalized:
    """Generalize ``value`` with a fresh Generalizer."""
    return Generalizer(allocator).apply(value)


def generalize_shape(ty: Any, allocator: VariableAllocator) -> Generalized | None:
    """Keep only the head constructor of ``ty``; components become fresh binders.

    Built-in rules are stated over a type's shape: `(A, B): Copy` only
    depends on the tuple having two elements, not on what the goal says
    they are. Scalars and other nullary types come back unchanged.
    Returns None for variables and placeholders, which have no shape.
    """
    if isinstance(ty, (InferenceVar, BoundVar, Param, Placeholder)):
        return None

    fresh: list[BoundVar] = []

    def var(kind: VariableKind = VariableKind.TY) -> BoundVar:
        bound = allocator.fresh(kind)
        fresh.append(bound)
        return bound

    def like(args: tuple[Any, ...]) -> tuple[BoundVar, ...]:
        return tuple(var(_kind_of(arg)) for arg in args)

    if isinstance(ty, AdtTy):
        shape: Any = AdtTy(ty.adt_id, like(ty.args))
    elif isinstance(ty, TupleTy):
        shape = TupleTy(like(ty.elems))
    elif isinstance(ty, ArrayTy):
        shape = ArrayTy(var(), ty.size)
    elif isinstance(ty, SliceTy):
        shape = SliceTy(var())
    elif isinstance(ty, RefTy):
        shape = RefTy(ty.mutability, var(VariableKind.LIFETIME), var())
    elif isinstance(ty, RawPtrTy):
        shape = RawPtrTy(ty.mutability, var())
    elif isinstance(ty, FnPtrTy):
        shape = FnPtrTy(like(ty.inputs), var())
    elif isinstance(ty, FnDefTy):
        shape = FnDefTy(ty.fn_id, like(ty.args))
    elif isinstance(ty, ClosureTy):
        shape = ClosureTy(ty.closure_id, like(ty.args))
    else:
        # Trait objects and projections keep their structure; only the
        # inference variables inside them are replaced.
        return generalize(ty, allocator)

    return Generalized(shape, tuple(fresh))


def _kind_of(value: Any) -> VariableKind:
    kind = getattr(value, "kind", None)
    if isinstance(kind, VariableKind):
        return kind
    if isinstance(value, Lifetime):
        return VariableKind.LIFETIME
    return VariableKind.TY
