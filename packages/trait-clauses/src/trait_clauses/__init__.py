"""
trait_clauses - Program Clause Synthesis for Trait Solving

Lowers a program's traits, impls and types into Horn clauses for an
external resolution solver.

This package implements:
- Clause synthesis for a goal and its environment
- A structural match filter over builder categories
- Environment elaboration (supertrait closure)
- Built-in, auto-trait, associated-type and trait-object clauses
- Generalization of goal-derived types into clause-local variables

Example:
    from trait_clauses import CoreProgramBuilder, Environment, Placeholder, implemented
    from trait_clauses import program_clauses_for_goal

    p = CoreProgramBuilder()
    p.trait("PartialEq").done()
    p.trait("Eq").supertrait("PartialEq").done()
    db = p.build()

    T = Placeholder("T")
    env = Environment((implemented(T, "Eq"),), db)
    clauses = program_clauses_for_goal(implemented(T, "PartialEq"), env)
"""

from .clauses import (
    could_match,
    flounders,
    program_clauses_for_env,
    program_clauses_for_goal,
    program_clauses_that_could_match,
    synthesize,
)
from .config import Settings, configure_logging, get_settings
from .context import SynthesisContext, VariableAllocator, create_synthesis_context
from .database import (
    AdtDatum,
    AssociatedTyDatum,
    ClosureDatum,
    FnDefDatum,
    ImplDatum,
    ProgramDatabase,
    TraitDatum,
)
from .dsl import CoreProgramBuilder, ProgramBuilder
from .env_elaborator import elaborate_environment, supertrait_closure
from .errors import FlounderedError, MalformedProgramError, TraitClausesError, UnknownItemError
from .generalize import Generalized, Generalizer, generalize
from .ir import (
    AliasEq,
    BoundVar,
    BuilderCategory,
    DomainGoal,
    Environment,
    FromEnv,
    Implemented,
    InferenceVar,
    Normalize,
    ObjectSafe,
    Param,
    Placeholder,
    ProgramClause,
    TraitRef,
    TypeOutlives,
    WellFormed,
    WellKnownTrait,
    implemented,
    projection,
)
from .matchers import could_unify_shapes, match_alias_ty, match_struct, match_type_name

__all__ = [
    # Synthesis
    "program_clauses_for_goal",
    "program_clauses_for_env",
    "program_clauses_that_could_match",
    "could_match",
    "flounders",
    "synthesize",
    # Terms and goals
    "InferenceVar",
    "BoundVar",
    "Param",
    "Placeholder",
    "TraitRef",
    "DomainGoal",
    "Implemented",
    "AliasEq",
    "Normalize",
    "TypeOutlives",
    "WellFormed",
    "FromEnv",
    "ObjectSafe",
    "ProgramClause",
    "Environment",
    "BuilderCategory",
    "WellKnownTrait",
    "implemented",
    "projection",
    # Database
    "ProgramDatabase",
    "TraitDatum",
    "ImplDatum",
    "AdtDatum",
    "AssociatedTyDatum",
    "FnDefDatum",
    "ClosureDatum",
    # DSL
    "ProgramBuilder",
    "CoreProgramBuilder",
    # Elaboration and generalization
    "elaborate_environment",
    "supertrait_closure",
    "Generalizer",
    "Generalized",
    "generalize",
    # Matchers
    "match_alias_ty",
    "match_struct",
    "match_type_name",
    "could_unify_shapes",
    # Context and configuration
    "SynthesisContext",
    "VariableAllocator",
    "create_synthesis_context",
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "TraitClausesError",
    "FlounderedError",
    "MalformedProgramError",
    "UnknownItemError",
]
