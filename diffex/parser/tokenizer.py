"""
Tokenizer for mathematical expressions.

This module provides regex-based tokenization driven by a Context: the
operator alternatives are built from the registered symbols, longest first, so
``>=`` is matched before ``>`` and ``**`` before ``*``.

Tokens are produced lazily in a single forward pass; the first character that
matches nothing raises LexError.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Iterator

from ..errors import LexError
from .context import IDENTIFIER

if TYPE_CHECKING:
    from .context import Context


class TokenType(Enum):
    """Token types for mathematical expressions."""

    # Literals
    NUMBER = auto()
    IDENTIFIER = auto()  # variable or constant name
    VARIABLE = auto()  # {quoted name}, always a variable

    OPERATOR = auto()
    FUNCTION = auto()  # registered function name

    LPAREN = auto()  # (
    RPAREN = auto()  # )
    COMMA = auto()

    EOF = auto()


@dataclass(frozen=True)
class Token:
    """
    Represents a single token in the expression.

    Attributes:
        type: The token type
        value: The string value of the token
        pos: Position in the source string (for error reporting)
    """

    type: TokenType
    value: str
    pos: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, '{self.value}', pos={self.pos})"


class Tokenizer:
    """
    Tokenizes mathematical expressions using context-aware regex patterns.

    The tokenizer handles:
    - Literals in the syntax of the context's scalar type (numbers by default)
    - Identifiers, including Unicode letters such as α or π
    - Variables with arbitrary names written in curly braces: {my var}
    - Operators registered in the context, symbolic or word-like
    - Function names registered in the context
    - Parentheses and argument separators
    """

    # Regex patterns for token matching
    PATTERNS = {
        # Whitespace (to skip)
        "WHITESPACE": r"\s+",
        "VARIABLE": r"\{[^{}]*\}",
        "IDENTIFIER": IDENTIFIER.pattern,
        "LPAREN": r"\(",
        "RPAREN": r"\)",
        "COMMA": r",",
    }

    def __init__(self, context: "Context"):
        """
        Initialize tokenizer with a context.

        Args:
            context: Mathematical context defining operators, functions, constants
        """
        self.context = context
        self._compile_patterns()

    def _compile_patterns(self) -> None:
        """Compile regex patterns for faster matching."""
        symbols = sorted(
            (s for s in self.context.operator_symbols() if not IDENTIFIER.fullmatch(s)),
            key=len,
            reverse=True,
        )
        # literals come from the scalar type, e.g. integer, float, scientific notation
        patterns = {"WHITESPACE": self.PATTERNS["WHITESPACE"]}
        patterns["NUMBER"] = self.context.scalar.literal_pattern
        patterns.update(self.PATTERNS)
        if symbols:
            patterns["OPERATOR"] = "|".join(re.escape(s) for s in symbols)

        # Create combined pattern with named groups
        pattern_parts = [f"(?P<{name}>{pattern})" for name, pattern in patterns.items()]
        self.combined_pattern = re.compile("|".join(pattern_parts))

    def tokenize(self, expression: str) -> Iterator[Token]:
        """
        Tokenize a mathematical expression.

        Args:
            expression: The expression to tokenize

        Yields:
            Tokens, always ending with an EOF token

        Raises:
            LexError: If expression contains invalid characters
        """
        pos = 0

        while pos < len(expression):
            match = self.combined_pattern.match(expression, pos)

            if not match or match.end() == pos:
                raise LexError(pos, expression[pos])

            # Get the matched group name and value
            kind = match.lastgroup
            value = match.group()
            token_pos = pos
            pos = match.end()

            if kind == "WHITESPACE":
                continue

            if kind == "VARIABLE":
                name = value[1:-1].strip()
                if not name:
                    raise LexError(token_pos, value)
                yield Token(TokenType.VARIABLE, name, token_pos)
            elif kind == "IDENTIFIER":
                yield Token(self._classify(value), value, token_pos)
            else:
                yield Token(TokenType[kind], value, token_pos)

        yield Token(TokenType.EOF, "", len(expression))

    def _classify(self, name: str) -> TokenType:
        """Word tokens are operators, functions or plain identifiers."""
        if self.context.is_operator(name):
            return TokenType.OPERATOR
        if self.context.is_function(name):
            return TokenType.FUNCTION
        return TokenType.IDENTIFIER
