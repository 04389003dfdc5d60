"""diffex - parse, evaluate and differentiate mathematical formulas.

Main namespace:
- diffex.parser: Tokenizer, parser, arena AST and the operator registry
- diffex.expression: The immutable Expression container
- diffex.derivative: Symbolic differentiation
- diffex.value: Bool/Int/Float values for the Values context
- diffex.serialization: JSON round trip of expressions
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .errors import (
    ArityError,
    BindingCountMismatch,
    DiffError,
    DiffexError,
    DomainError,
    EvalError,
    InvalidExpressionError,
    LexError,
    NonDifferentiable,
    ParseError,
    RegistryError,
    UnknownVariable,
    UnmatchedParenError,
    ValueTypeError,
)
from .expression import Expression
from .parser import Associativity, Context, Parser

__version__ = "0.1.0"


def parse(
    formula: str,
    context: Context | None = None,
    variables: Iterable[str] | None = None,
) -> Expression:
    """
    Parse a formula.

    Args:
        formula: The formula text, e.g. ``"sin(x) * y^2"``
        context: Context to parse in (defaults to Numeric)
        variables: Variable names to declare up front, in binding order

    Raises:
        LexError: If the text contains a character no token matches
        ParseError: If the formula is malformed
    """
    return Parser(context).parse(formula, variables)


def eval_str(
    formula: str,
    bindings: Mapping[str, Any] | None = None,
    context: Context | None = None,
) -> Any:
    """
    Parse and evaluate a formula in one step, binding variables by name.

    Raises:
        DiffexError: Any lexing, parsing or evaluation error
    """
    return parse(formula, context).eval_mapping(bindings or {})


__all__ = [
    "parse",
    "eval_str",
    "Expression",
    "Parser",
    "Context",
    "Associativity",
    "DiffexError",
    "LexError",
    "ParseError",
    "UnmatchedParenError",
    "ArityError",
    "EvalError",
    "BindingCountMismatch",
    "DomainError",
    "ValueTypeError",
    "DiffError",
    "NonDifferentiable",
    "UnknownVariable",
    "RegistryError",
    "InvalidExpressionError",
]
