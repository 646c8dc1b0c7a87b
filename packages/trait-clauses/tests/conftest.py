"""
Shared fixtures for the trait_clauses test suite.

The `program` fixture declares a small but complete program: the core
language traits (Sized, Clone, Copy, the Fn traits, Unsize, Tuple, Send,
Sync) plus PartialEq/Eq, Iterator and a handful of types and impls.
"""

import pytest

from trait_clauses.context import create_synthesis_context
from trait_clauses.dsl import CoreProgramBuilder, T
from trait_clauses.ir import I32, U32, ClosureKind, adt, ref


@pytest.fixture
def builder():
    """Program builder with the core traits declared."""
    return CoreProgramBuilder()


@pytest.fixture
def program(builder):
    p = builder

    p.trait("PartialEq").done()
    p.trait("Eq").supertrait("PartialEq").done()
    p.trait("Debug").done()
    p.trait("Iterator").assoc_type("Item").done()
    p.trait("IntoIterator").assoc_type("IntoIter", "Iterator").done()

    p.struct("Pair", a=I32, b=I32)
    p.struct("Counter", count=U32)
    p.struct("Unit")
    p.struct("Wrapper", T, inner=T)
    p.struct("Holder", T, value=ref(T))
    p.struct("Rc", T, ptr=T)
    p.enum("Option", T, Some=(T,), None_=None)

    p.impl("Iterator", adt("Counter")).assoc("Item", U32).done()
    p.impl("PartialEq", I32).done()
    p.impl("Eq", I32).done()
    p.impl("Clone", adt("Wrapper", T), params=(T,)).bound(T, "Clone").done()
    p.impl("Send", adt("Rc", T), params=(T,)).negative().done()

    p.fn_def("len", T, inputs=(ref(T),), output=U32)
    p.closure("add_one", ClosureKind.FN, inputs=(I32,), output=I32, upvars=(I32,))
    p.closure("consume", ClosureKind.FN_ONCE, inputs=(), output=I32, upvars=(adt("Counter"),))

    return p.build()


@pytest.fixture
def ctx():
    """Fresh synthesis context with default settings."""
    return create_synthesis_context()


@pytest.fixture
def unfiltered_ctx():
    """Synthesis context that runs every builder on every goal."""
    return create_synthesis_context(filter_enabled=False)
