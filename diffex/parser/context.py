"""
Context system for mathematical expression parsing.

A Context is the operator/function registry. It defines:
- The scalar type literals are parsed into
- Named constants and their values
- Binary operators with precedence and associativity
- Prefix (unary) operators
- Functions with their exact arity

Every operator and function carries an evaluation rule and an optional
derivative rule, so adding an operator is a registry entry rather than a new
case in the evaluator or the differentiator.
"""

from __future__ import annotations

import copy
import importlib
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

import yaml

from ..errors import RegistryError
from . import rules

logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"[^\W\d]\w*")
NUMBER_PATTERN = r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
# characters that would collide with numbers, grouping or variable quoting
_RESERVED_SYMBOL_CHARS = set("(),{}.") | set("0123456789")


class Associativity(Enum):
    """Operator associativity."""

    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


@dataclass
class OperatorConfig:
    """Configuration for a binary operator."""

    symbol: str
    precedence: int
    associativity: Associativity
    evaluator: Callable[[Any, Any], Any]
    derivative: Callable | None = None


@dataclass
class UnaryOperatorConfig:
    """
    Configuration for a prefix operator.

    Prefix operators bind tighter than every binary operator, so they carry no
    precedence of their own.
    """

    symbol: str
    evaluator: Callable[[Any], Any]
    derivative: Callable | None = None


@dataclass
class FunctionConfig:
    """Configuration for a function."""

    name: str
    arity: int
    evaluator: Callable[..., Any]
    derivative: Callable | None = None


def _format_float(value: float) -> str:
    if value != value:
        return "nan"
    if value in (float("inf"), float("-inf")):
        # 1e999 overflows to inf when parsed back
        return "1e999" if value > 0 else "-1e999"
    if value == int(value) and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class ScalarType:
    """
    The scalar capability an expression computes with.

    Attributes:
        name: Identifier used in serialized documents
        zero: Additive identity
        one: Multiplicative identity
        parse_literal: Converts the text of a number token to a scalar
        from_float: Converts a Python float (used by derivative rules)
        format_literal: Renders a scalar as formula text
        coerce: Converts a caller supplied binding to a scalar
        is_differentiable: Whether a literal may appear in a differentiated expression
        literal_pattern: Regex for the text of a literal token; it is tried before
            identifiers, so it should not match a plain name
    """

    name: str
    zero: Any
    one: Any
    parse_literal: Callable[[str], Any]
    from_float: Callable[[float], Any]
    format_literal: Callable[[Any], str]
    coerce: Callable[[Any], Any]
    is_differentiable: Callable[[Any], bool] = lambda value: True
    literal_pattern: str = NUMBER_PATTERN


FLOAT = ScalarType(
    name="float",
    zero=0.0,
    one=1.0,
    parse_literal=float,
    from_float=float,
    format_literal=_format_float,
    coerce=float,
)


def _resolve(path: str) -> Callable:
    """Import a callable from a dotted path such as ``math.hypot``."""
    module_name, _, attribute = path.rpartition(".")
    if not module_name:
        raise RegistryError(f"Evaluator must be a dotted path, got '{path}'")
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        raise RegistryError(f"Cannot resolve evaluator '{path}': {exc}") from exc
    if not callable(target):
        raise RegistryError(f"Evaluator '{path}' is not callable")
    return target


@dataclass
class Context:
    """
    Mathematical context defining the parsing and evaluation environment.

    Attributes:
        name: Context name (e.g., "Numeric", "Values")
        scalar: Scalar type literals and bindings are converted to
        constants: Named constants and their values
        operators: Binary operators by symbol
        unary_operators: Prefix operators by symbol
        functions: Functions by name
    """

    name: str
    scalar: ScalarType = FLOAT
    constants: dict[str, Any] = field(default_factory=dict)
    operators: dict[str, OperatorConfig] = field(default_factory=dict)
    unary_operators: dict[str, UnaryOperatorConfig] = field(default_factory=dict)
    functions: dict[str, FunctionConfig] = field(default_factory=dict)

    @classmethod
    def numeric(cls) -> "Context":
        """
        Create standard Numeric context over Python floats.

        This is the default context for parse() and eval_str().
        """
        context = cls(name="Numeric")

        for name, value in (
            ("pi", 3.141592653589793),
            ("PI", 3.141592653589793),
            ("π", 3.141592653589793),
            ("e", 2.718281828459045),
            ("E", 2.718281828459045),
        ):
            context.add_constant(name, value)

        # Operators (following standard precedence)
        for symbol, precedence, assoc, evaluator, derivative in (
            ("+", 4, Associativity.LEFT, rules.add, rules.d_add),
            ("-", 4, Associativity.LEFT, rules.sub, rules.d_sub),
            ("*", 5, Associativity.LEFT, rules.mul, rules.d_mul),
            ("/", 5, Associativity.LEFT, rules.div, rules.d_div),
            ("%", 5, Associativity.LEFT, rules.mod, None),
            ("^", 6, Associativity.RIGHT, rules.power, rules.d_pow),
            ("**", 6, Associativity.RIGHT, rules.power, rules.d_pow),
        ):
            context.add_operator(symbol, precedence, evaluator, assoc, derivative)

        context.add_unary_operator("-", rules.neg, rules.d_neg)
        context.add_unary_operator("+", rules.pos, rules.d_pos)

        for name, (arity, evaluator, derivative) in rules.FUNCTIONS.items():
            context.add_function(name, arity, evaluator, derivative)

        return context

    @classmethod
    def values(cls) -> "Context":
        """
        Create the Values context over BoolValue / IntValue / FloatValue.

        Adds comparison and logical operators to the numeric set.
        """
        # Import here to avoid circular dependency
        from ..value import build_values_context

        return build_values_context(cls)

    @classmethod
    def from_yaml(cls, path: str | Path, base: "Context | None" = None) -> "Context":
        """
        Load context from YAML file.

        The document extends a base context (``numeric`` unless the file names
        ``base: values``) with constants, functions and binary operators whose
        evaluators are dotted import paths. Entries loaded this way have no
        derivative rule.

        Args:
            path: Path to YAML configuration file
            base: Context to extend instead of the one named in the file

        Returns:
            Context instance
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if base is None:
            base_name = data.get("base", "numeric")
            if base_name not in ("numeric", "values"):
                raise RegistryError(f"Unknown base context '{base_name}'")
            base = cls.numeric() if base_name == "numeric" else cls.values()

        context = base.copy(name=data.get("name", base.name))

        try:
            for name, value in (data.get("constants") or {}).items():
                context.add_constant(name, context.scalar.coerce(value))

            for func_data in data.get("functions") or []:
                context.add_function(
                    func_data["name"],
                    func_data.get("arity", 1),
                    _resolve(func_data["evaluator"]),
                )

            for op_data in data.get("operators") or []:
                context.add_operator(
                    op_data["symbol"],
                    op_data["precedence"],
                    _resolve(op_data["evaluator"]),
                    Associativity(op_data.get("associativity", "left")),
                )
        except (KeyError, TypeError, ValueError) as exc:
            if isinstance(exc, RegistryError):
                raise
            raise RegistryError(f"Invalid context file {path}: {exc!r}") from exc

        logger.info(f"Loaded context '{context.name}' from {path}")
        return context

    def copy(self, name: str | None = None) -> "Context":
        """Independent copy whose registrations do not affect this context."""
        clone = copy.copy(self)
        clone.name = name or self.name
        clone.constants = dict(self.constants)
        clone.operators = dict(self.operators)
        clone.unary_operators = dict(self.unary_operators)
        clone.functions = dict(self.functions)
        return clone

    # Registration

    def _check_symbol(self, symbol: str) -> None:
        if not symbol or any(ch.isspace() for ch in symbol):
            raise RegistryError(f"Invalid operator symbol '{symbol}'")
        if IDENTIFIER.fullmatch(symbol):
            return
        if any(ch.isalnum() or ch == "_" or ch in _RESERVED_SYMBOL_CHARS for ch in symbol):
            raise RegistryError(
                f"Operator symbol '{symbol}' must be a word or consist of punctuation only"
            )

    def _check_name(self, name: str, kind: str) -> None:
        if not isinstance(name, str) or not IDENTIFIER.fullmatch(name):
            raise RegistryError(f"Invalid {kind} name '{name}'")
        if name in self.functions or name in self.constants:
            raise RegistryError(f"Name '{name}' is already registered")
        if name in self.operators or name in self.unary_operators:
            raise RegistryError(f"Name '{name}' is already an operator")

    def add_operator(
        self,
        symbol: str,
        precedence: int,
        evaluator: Callable[[Any, Any], Any],
        associativity: Associativity = Associativity.LEFT,
        derivative: Callable | None = None,
    ) -> None:
        """
        Register a binary operator.

        Raises:
            RegistryError: If the symbol is taken or the precedence would make
                the grammar ambiguous
        """
        self._check_symbol(symbol)
        if symbol in self.operators:
            raise RegistryError(f"Operator '{symbol}' is already registered")
        if symbol in self.functions or symbol in self.constants:
            raise RegistryError(f"Name '{symbol}' is already registered")
        if not isinstance(precedence, int) or isinstance(precedence, bool) or precedence < 1:
            raise RegistryError(f"Precedence of '{symbol}' must be a positive integer")
        if not callable(evaluator):
            raise RegistryError(f"Evaluator of '{symbol}' is not callable")
        for other in self.operators.values():
            if other.precedence == precedence and other.associativity != associativity:
                raise RegistryError(
                    f"Operator '{symbol}' ({associativity.value}) conflicts with "
                    f"'{other.symbol}' ({other.associativity.value}) at precedence {precedence}"
                )
        self.operators[symbol] = OperatorConfig(
            symbol, precedence, associativity, evaluator, derivative
        )
        logger.debug(f"Registered binary operator '{symbol}' in context '{self.name}'")

    def add_unary_operator(
        self,
        symbol: str,
        evaluator: Callable[[Any], Any],
        derivative: Callable | None = None,
    ) -> None:
        """Register a prefix operator. A symbol may also be a binary operator."""
        self._check_symbol(symbol)
        if symbol in self.unary_operators:
            raise RegistryError(f"Unary operator '{symbol}' is already registered")
        if symbol in self.functions or symbol in self.constants:
            raise RegistryError(f"Name '{symbol}' is already registered")
        if not callable(evaluator):
            raise RegistryError(f"Evaluator of '{symbol}' is not callable")
        self.unary_operators[symbol] = UnaryOperatorConfig(symbol, evaluator, derivative)
        logger.debug(f"Registered unary operator '{symbol}' in context '{self.name}'")

    def add_function(
        self,
        name: str,
        arity: int,
        evaluator: Callable[..., Any],
        derivative: Callable | None = None,
    ) -> None:
        """Register a function called as ``name(arg, ...)`` with exactly ``arity`` arguments."""
        self._check_name(name, "function")
        if not isinstance(arity, int) or isinstance(arity, bool) or arity < 0:
            raise RegistryError(f"Arity of '{name}' must be a non-negative integer")
        if not callable(evaluator):
            raise RegistryError(f"Evaluator of '{name}' is not callable")
        self.functions[name] = FunctionConfig(name, arity, evaluator, derivative)
        logger.debug(f"Registered function '{name}' in context '{self.name}'")

    def add_constant(self, name: str, value: Any) -> None:
        """Register a named constant, substituted by its value at parse time."""
        self._check_name(name, "constant")
        self.constants[name] = value
        logger.debug(f"Registered constant '{name}' in context '{self.name}'")

    # Lookups

    def get_operator_precedence(self, op: str) -> int:
        """
        Get the precedence of a binary operator.

        Returns:
            Precedence value (higher = binds tighter), 0 for unknown operators
        """
        if op in self.operators:
            return self.operators[op].precedence
        return 0

    def get_operator_associativity(self, op: str) -> Associativity:
        if op in self.operators:
            return self.operators[op].associativity
        return Associativity.LEFT

    def operator_symbols(self) -> set[str]:
        """All binary and unary operator symbols."""
        return set(self.operators) | set(self.unary_operators)

    def is_constant(self, name: str) -> bool:
        """Check if name is a constant in this context."""
        return name in self.constants

    def is_function(self, name: str) -> bool:
        """Check if name is a function in this context."""
        return name in self.functions

    def is_operator(self, symbol: str) -> bool:
        return symbol in self.operators or symbol in self.unary_operators

    def get_constant_value(self, name: str) -> Any:
        """Get the value of a constant."""
        return self.constants[name]


@lru_cache(maxsize=None)
def get_default_context() -> Context:
    """Shared Numeric context used when no context is passed."""
    return Context.numeric()


@lru_cache(maxsize=None)
def get_values_context() -> Context:
    """Shared Values context."""
    return Context.values()
