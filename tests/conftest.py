"""
Shared pytest fixtures and utilities for the diffex test suite.

This module provides:
- Fixtures for the built-in contexts
- A fresh, extensible copy of the numeric context
- A central difference helper for checking symbolic derivatives
"""

import pytest
from typing import Any, Callable, Sequence

from diffex import Expression
from diffex.parser.context import Context, get_default_context, get_values_context


@pytest.fixture
def numeric() -> Context:
    """The shared Numeric context."""
    return get_default_context()


@pytest.fixture
def values() -> Context:
    """The shared Values context."""
    return get_values_context()


@pytest.fixture
def custom_context() -> Context:
    """A private copy of the Numeric context that tests may extend."""
    return get_default_context().copy(name="Custom")


@pytest.fixture
def central_difference() -> Callable[..., float]:
    """Numerical partial derivative of an expression at a point."""
    def _difference(
        expression: Expression, name: str, point: Sequence[Any], h: float = 1e-6
    ) -> float:
        """
        Approximate d(expression)/d(name) with a central difference.

        Args:
            expression: The expression to differentiate
            name: Variable to differentiate with respect to
            point: Binding vector, in the expression's variable order
            h: Step size
        """
        index = expression.variables.index(name)
        upper = list(point)
        lower = list(point)
        upper[index] += h
        lower[index] -= h
        return (expression.eval(upper) - expression.eval(lower)) / (2 * h)

    return _difference
