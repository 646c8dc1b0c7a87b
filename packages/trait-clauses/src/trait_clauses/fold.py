"""
trait_clauses/fold.py - Substitution and Folding

Rebuilds IR values bottom-up. Every transformation in the package (param
instantiation, generalization, canonical renaming of bound variables) is a
fold with a different per-node callback.

Key operations:
- fold(value, folder): rebuild value, letting folder replace nodes
- substitute(value, theta): apply a variable -> value mapping
- instantiate(value, params, args): positional param substitution
- canonicalize_clause(clause): renumber bound variables by first occurrence
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import fields, replace
from typing import Any

from .ir import BoundVar, Node, ProgramClause

# Type alias for substitution; keys are variable nodes
Substitution = dict[Node, Any]

Folder = Callable[[Node], Any]


def fold(value: Any, folder: Folder) -> Any:
    """Rebuild ``value`` bottom-up.

    ``folder`` is consulted on every node before its children; returning
    a non-None result replaces the node (children are not visited).
    Tuples are folded element-wise; any other value is returned as is.
    Unchanged subtrees are returned by identity.
    """
    if isinstance(value, tuple):
        folded = tuple(fold(item, folder) for item in value)
        if all(new is old for new, old in zip(folded, value)):
            return value
        return folded

    if not isinstance(value, Node):
        return value

    replaced = folder(value)
    if replaced is not None:
        return replaced

    changes = {}
    for f in fields(value):
        if not f.compare:
            continue
        old = getattr(value, f.name)
        new = fold(old, folder)
        if new is not old:
            changes[f.name] = new
    if not changes:
        return value
    return replace(value, **changes)


def substitute(value: Any, theta: Substitution) -> Any:
    """Apply substitution to value.

    Replaces every variable that is a key of theta. Unlike the solver's
    substitution this is one-shot: replacements are not substituted again.
    """
    if not theta:
        return value
    return fold(value, theta.get)


def instantiate(value: Any, params: Sequence[Node], args: Sequence[Any]) -> Any:
    """Substitute ``params[i]`` with ``args[i]`` throughout value."""
    if len(params) != len(args):
        raise ValueError(f"Expected {len(params)} arguments, got {len(args)}")
    return substitute(value, dict(zip(params, args)))


def canonicalize_clause(clause: ProgramClause) -> ProgramClause:
    """Renumber bound variables 0..n in first-occurrence order.

    The consequence is scanned before the conditions. Binders that do
    not occur in the clause are dropped.
    """
    renaming: dict[BoundVar, BoundVar] = {}
    for node in clause.walk():
        if isinstance(node, BoundVar) and node not in renaming:
            renaming[node] = BoundVar(len(renaming), node.kind)

    renamed = fold((clause.consequence, clause.conditions), renaming.get)
    binders = tuple(var.kind for var in renaming.values())
    return ProgramClause(binders, renamed[0], renamed[1], origin=clause.origin)
