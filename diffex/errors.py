"""
Exception hierarchy for diffex.

Every failure raised by tokenizing, parsing, evaluating, differentiating or
deserializing an expression derives from DiffexError, so callers of the
one-shot helpers can catch a single family.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .parser.tokenizer import Token


class DiffexError(Exception):
    """Base class for all diffex errors."""


class LexError(DiffexError):
    """Raised when no token matches the input at some offset."""

    def __init__(self, pos: int, text: str):
        self.pos = pos
        self.text = text
        super().__init__(f"Invalid character at position {pos}: '{text}'")


class ParseError(DiffexError):
    """Exception raised during parsing."""

    def __init__(self, message: str, pos: int, token: "Token | None" = None):
        self.message = message
        self.pos = pos
        self.token = token
        value = f": '{token.value}'" if token is not None and token.value else ""
        super().__init__(f"{message} at position {pos}{value}")


class UnmatchedParenError(ParseError):
    """An opening or closing parenthesis has no partner."""


class ArityError(ParseError):
    """A function was called with the wrong number of arguments."""

    def __init__(self, name: str, expected: int, got: int, pos: int, token: "Token | None" = None):
        self.name = name
        self.expected = expected
        self.got = got
        super().__init__(
            f"Function '{name}' expects {expected} argument(s), got {got}", pos, token
        )


class EvalError(DiffexError):
    """Base class for evaluation failures."""


class BindingCountMismatch(EvalError):
    def __init__(self, expected: int, got: int, missing: tuple[str, ...] = ()):
        self.expected = expected
        self.got = got
        self.missing = missing
        message = f"Expected {expected} binding(s), got {got}"
        if missing:
            message += f" (missing: {', '.join(missing)})"
        super().__init__(message)


class DomainError(EvalError):
    """An operator or function was applied outside of its domain."""

    def __init__(self, symbol: str, message: str):
        self.symbol = symbol
        self.message = message
        super().__init__(f"Domain error in '{symbol}': {message}")


class ValueTypeError(EvalError, TypeError):
    """A Value-layer operator received an incompatible variant."""

    def __init__(self, symbol: str, message: str):
        self.symbol = symbol
        self.message = message
        super().__init__(f"Type error in '{symbol}': {message}")


class DiffError(DiffexError):
    """Base class for differentiation failures."""


class NonDifferentiable(DiffError):
    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"'{symbol}' has no derivative rule")


class UnknownVariable(DiffError):
    def __init__(self, name: str, variables: tuple[str, ...] = ()):
        self.name = name
        self.variables = variables
        super().__init__(
            f"Unknown variable '{name}' (expression variables: {list(variables)})"
        )


class RegistryError(DiffexError, ValueError):
    """An operator, function or constant could not be registered."""


class InvalidExpressionError(DiffexError):
    """An arena violates the expression invariants."""
