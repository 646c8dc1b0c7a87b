"""
Synthesis Context - Request-scoped state container for clause synthesis.

Each synthesis call gets its own SynthesisContext, so concurrent calls on
independent threads never share a variable counter.

CRITICAL SAFETY PROPERTY:
    The fresh-variable counter lives in the context, never at module
    level. Two contexts may hand out the same index, but a bound
    variable is only meaningful inside the clause that quantifies it,
    so clauses from different calls cannot capture each other.

Usage:
    from trait_clauses.context import create_synthesis_context

    ctx = create_synthesis_context()
    clauses = program_clauses_for_goal(goal, env, ctx)
    # ctx is garbage collected after the call
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .config import Settings, get_settings
from .ir import BoundVar, VariableKind

logger = logging.getLogger(__name__)


# =============================================================================
# VARIABLE ALLOCATOR
# =============================================================================


@dataclass
class VariableAllocator:
    """Hands out bound variables that are unique within one context."""

    _next_index: int = 0

    def fresh(self, kind: VariableKind = VariableKind.TY) -> BoundVar:
        var = BoundVar(self._next_index, kind)
        self._next_index += 1
        return var

    def fresh_many(self, kinds: Sequence[VariableKind]) -> tuple[BoundVar, ...]:
        return tuple(self.fresh(kind) for kind in kinds)

    @property
    def allocated(self) -> int:
        """Number of variables handed out so far."""
        return self._next_index


# =============================================================================
# SYNTHESIS CONTEXT
# =============================================================================


@dataclass
class SynthesisContext:
    """
    Encapsulates all mutable state for a single synthesis call.

    Thread-safe by isolation: each call gets its own instance.

    Attributes:
        settings: Settings snapshot taken when the context was created
        allocator: Fresh bound-variable source for this call
        clauses_emitted: Count of clauses produced through this context
        builder_runs: Count of builder invocations per category name
    """

    settings: Settings = field(default_factory=get_settings)
    allocator: VariableAllocator = field(default_factory=VariableAllocator)

    # Statistics (isolated per call)
    clauses_emitted: int = 0
    builder_runs: dict[str, int] = field(default_factory=dict)

    def record_builder_run(self, category: str, emitted: int) -> None:
        self.builder_runs[category] = self.builder_runs.get(category, 0) + 1
        self.clauses_emitted += emitted

    def get_summary(self) -> dict[str, Any]:
        """
        Get summary of context state for logging/debugging.

        Returns:
            Dict with variable and clause counts
        """
        return {
            "variables_allocated": self.allocator.allocated,
            "clauses_emitted": self.clauses_emitted,
            "builder_runs": dict(self.builder_runs),
            "filter_enabled": self.settings.filter_enabled,
        }


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_synthesis_context(settings: Settings | None = None, **overrides: Any) -> SynthesisContext:
    """
    Factory function to create a new synthesis context.

    Call this once per synthesis request and let it be garbage collected
    afterwards.

    Args:
        settings: Explicit settings (defaults to the cached environment settings)
        **overrides: Individual settings fields to override, e.g. filter_enabled=False

    Returns:
        Fresh SynthesisContext instance

    Example:
        ctx = create_synthesis_context(filter_enabled=False)
    """
    settings = settings or get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)

    ctx = SynthesisContext(settings=settings)
    logger.debug(f"Created synthesis context (filter_enabled={settings.filter_enabled})")
    return ctx
