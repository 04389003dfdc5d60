"""
Precedence climbing parser for mathematical expressions.

The parser consumes the lazy token stream with one token of lookahead and
appends nodes to an arena as they are completed, so every child is stored
before its parent. It handles:
- Binary operators with precedence and associativity from the context
- Prefix operators, which bind tighter than any binary operator
- Function calls with an exact argument count
- Parenthesized groups
- Constants (folded to literals) and variables (first occurrence order)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Iterator

from ..errors import ArityError, DiffexError, ParseError, UnmatchedParenError
from .ast import ASTNode, BinaryOp, Call, Const, UnaryOp, Var
from .context import Associativity, Context, get_default_context
from .tokenizer import Token, TokenType, Tokenizer

if TYPE_CHECKING:
    from ..expression import Expression

logger = logging.getLogger(__name__)


class Parser:
    """
    Operator precedence parser building an arena-stored AST.

    A Parser may be reused; every call to ``parse`` starts from a clean arena.
    """

    def __init__(self, context: Context | None = None):
        """
        Initialize parser with optional context.

        Args:
            context: Mathematical context (defaults to Numeric)
        """
        self.context = context or get_default_context()
        self.tokenizer = Tokenizer(self.context)
        self._reset()

    def _reset(self, variables: Iterable[str] = ()) -> None:
        self.nodes: list[ASTNode] = []
        self.variables: list[str] = []
        self.variable_index: dict[str, int] = {}
        for name in variables:
            self.variable(name)
        self.tokens: Iterator[Token] = iter(())
        self.token = Token(TokenType.EOF, "", 0)

    def parse(self, expression: str, variables: Iterable[str] | None = None) -> "Expression":
        """
        Parse an expression string to an Expression.

        Args:
            expression: The mathematical expression
            variables: Names to declare up front, in binding order. Further
                names found in the text are appended in order of appearance.

        Returns:
            The parsed Expression

        Raises:
            LexError: If the text contains a character no token matches
            ParseError: If expression is invalid
        """
        from ..expression import Expression

        self._reset(variables or ())
        self.tokens = self.tokenizer.tokenize(expression)
        self.token = next(self.tokens)

        if self.current().type == TokenType.EOF:
            raise ParseError("Empty expression", self.current().pos)

        try:
            root = self.parse_expression(0)
        except RecursionError:
            raise ParseError("Expression is nested too deeply", self.current().pos) from None

        # Ensure we consumed all tokens (except EOF)
        token = self.current()
        if token.type == TokenType.RPAREN:
            raise UnmatchedParenError("Unmatched closing parenthesis", token.pos, token)
        if token.type != TokenType.EOF:
            raise ParseError("Unexpected token", token.pos, token)

        logger.debug(
            f"Parsed '{expression}' into {len(self.nodes)} nodes with "
            f"{len(self.variables)} variable(s)"
        )
        return Expression(tuple(self.nodes), tuple(self.variables), root, self.context)

    # Token stream

    def current(self) -> Token:
        """Get current token without consuming it."""
        return self.token

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.token
        if token.type != TokenType.EOF:
            self.token = next(self.tokens)
        return token

    # Arena

    def emit(self, node: ASTNode) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def variable(self, name: str) -> int:
        """Index of ``name`` in the variable table, adding it on first use."""
        if name not in self.variable_index:
            self.variable_index[name] = len(self.variables)
            self.variables.append(name)
        return self.variable_index[name]

    # Grammar

    def is_binary_operator(self, token: Token) -> bool:
        return token.type == TokenType.OPERATOR and token.value in self.context.operators

    def parse_expression(self, min_precedence: int = 0) -> int:
        """
        Parse an expression using operator precedence climbing.

        Args:
            min_precedence: Minimum precedence to consider

        Returns:
            Arena index of the expression's root node
        """
        # Parse left side (prefix)
        left = self.parse_prefix()
        previous: int | None = None

        # Parse infix operators
        while True:
            token = self.current()

            # Check if this is an infix operator
            if not self.is_binary_operator(token):
                break

            precedence = self.context.get_operator_precedence(token.value)

            # Stop if precedence is too low
            if precedence < min_precedence:
                break

            assoc = self.context.get_operator_associativity(token.value)
            if assoc == Associativity.NONE and previous == precedence:
                raise ParseError(
                    f"Operator '{token.value}' cannot be chained", token.pos, token
                )

            # Consume operator
            op_token = self.advance()

            # Determine next min precedence based on associativity
            next_min_prec = precedence + (0 if assoc == Associativity.RIGHT else 1)

            right = self.parse_expression(next_min_prec)
            left = self.emit(BinaryOp(op_token.value, left, right))
            previous = precedence

        return left

    def parse_prefix(self) -> int:
        """
        Parse a prefix expression: any number of unary operators and an atom.

        Prefix operators are collected first and applied innermost first, so
        long runs such as ``----x`` do not recurse.
        """
        operators: list[str] = []
        while (
            self.current().type == TokenType.OPERATOR
            and self.current().value in self.context.unary_operators
        ):
            operators.append(self.advance().value)

        operand = self.parse_atom()
        for op in reversed(operators):
            operand = self.emit(UnaryOp(op, operand))
        return operand

    def parse_atom(self) -> int:
        """Parse a number, constant, variable, function call or group."""
        token = self.current()

        if token.type == TokenType.NUMBER:
            self.advance()
            try:
                value = self.context.scalar.parse_literal(token.value)
            except (ValueError, OverflowError, DiffexError) as exc:
                raise ParseError(f"Invalid number literal ({exc})", token.pos, token) from exc
            return self.emit(Const(value))

        if token.type == TokenType.IDENTIFIER:
            self.advance()
            if self.context.is_constant(token.value):
                return self.emit(Const(self.context.get_constant_value(token.value)))
            return self.emit(Var(self.variable(token.value)))

        if token.type == TokenType.VARIABLE:
            self.advance()
            return self.emit(Var(self.variable(token.value)))

        if token.type == TokenType.FUNCTION:
            return self.parse_call()

        if token.type == TokenType.LPAREN:
            return self.parse_parenthesized()

        if token.type == TokenType.EOF:
            raise ParseError("Unexpected end of expression", token.pos)

        if token.type == TokenType.OPERATOR:
            raise ParseError("Missing operand before operator", token.pos, token)

        raise ParseError("Unexpected token", token.pos, token)

    def parse_parenthesized(self) -> int:
        open_token = self.advance()

        if self.current().type == TokenType.RPAREN:
            raise ParseError("Empty parentheses", open_token.pos, open_token)

        inner = self.parse_expression(0)
        self.expect_closing(open_token)
        return inner

    def parse_call(self) -> int:
        """
        Parse a function call: name ( arg, ... ).

        Raises:
            ArityError: If the argument count differs from the registered arity
        """
        name_token = self.advance()
        config = self.context.functions[name_token.value]

        if self.current().type != TokenType.LPAREN:
            raise ParseError(
                f"Expected '(' after function '{name_token.value}'",
                self.current().pos,
                self.current(),
            )
        open_token = self.advance()

        args: list[int] = []
        if self.current().type != TokenType.RPAREN:
            args.append(self.parse_expression(0))
            while self.current().type == TokenType.COMMA:
                self.advance()
                args.append(self.parse_expression(0))
        self.expect_closing(open_token)

        if len(args) != config.arity:
            raise ArityError(
                name_token.value, config.arity, len(args), name_token.pos, name_token
            )
        return self.emit(Call(name_token.value, tuple(args)))

    def expect_closing(self, open_token: Token) -> Token:
        """Consume the ')' matching ``open_token``."""
        token = self.current()
        if token.type == TokenType.RPAREN:
            return self.advance()
        if token.type == TokenType.EOF:
            raise UnmatchedParenError("Unmatched opening parenthesis", open_token.pos, open_token)
        raise ParseError("Expected ')'", token.pos, token)
