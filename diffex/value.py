"""
Tagged scalar values for the Values context.

This module provides a closed family of value objects with:
- Type promotion along Bool → Int → Float
- 64-bit integer arithmetic that reports overflow instead of wrapping
- Logical operators restricted to booleans
- Operator overloading, so values also compose as plain Python objects

Every operation reports failures as diffex errors: DomainError for
out-of-range or out-of-domain arithmetic and ValueTypeError when an operator
is restricted to a variant it did not receive.
"""

from __future__ import annotations

import math
import operator
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt, field_validator

from .errors import DomainError, ValueTypeError
from .parser import rules
from .parser.context import Associativity, ScalarType

if TYPE_CHECKING:
    from .parser.context import Context

INT_MIN = -(2**63)
INT_MAX = 2**63 - 1


class TypePrecedence(IntEnum):
    """
    Type promotion precedence hierarchy.

    Lower values promote to higher values.
    """

    BOOL = 0
    INT = 1
    FLOAT = 2


class Value(ABC):
    """
    Base class for tagged scalar values.

    Concrete subclasses inherit from both BaseModel and Value, e.g.
    ``class IntValue(BaseModel, Value)``. Value itself does not inherit from
    BaseModel to avoid MRO conflicts.

    Equality (``==`` in Python) is structural: ``IntValue(1) != FloatValue(1.0)``.
    The formula operator ``==`` promotes its operands instead, see ``eq``.
    """

    type_precedence: ClassVar[TypePrecedence]

    @abstractmethod
    def as_float(self) -> float:
        """Widen to a Python float."""

    @abstractmethod
    def to_string(self) -> str:
        """Formula text for this value."""

    def as_int(self) -> int:
        raise ValueTypeError("int", f"{type(self).__name__} cannot be narrowed to Int")

    def promote(self, precedence: TypePrecedence) -> "Value":
        """Widen this value to the variant with the given precedence."""
        if precedence == self.type_precedence:
            return self
        if precedence < self.type_precedence:
            raise ValueTypeError(
                "promote", f"cannot narrow {type(self).__name__} to {precedence.name}"
            )
        if precedence == TypePrecedence.INT:
            return IntValue(self.as_int())
        return FloatValue(self.as_float())

    @staticmethod
    def from_python(value: Any) -> "Value":
        """
        Wrap a Python scalar.

        Raises:
            ValueTypeError: For anything other than bool, int, float or Value
            DomainError: For ints outside of the signed 64-bit range
        """
        if isinstance(value, Value):
            return value
        if isinstance(value, bool):
            return BoolValue(value)
        if isinstance(value, int):
            return _checked_int("int", value)
        if isinstance(value, float):
            return FloatValue(value)
        raise ValueTypeError("binding", f"cannot convert {type(value).__name__} to a Value")

    def __float__(self) -> float:
        return self.as_float()

    def __bool__(self) -> bool:
        return bool(self.value)  # type: ignore[attr-defined]

    # Arithmetic operators

    def __add__(self, other: Any) -> "Value":
        return _binary(add, self, other)

    def __radd__(self, other: Any) -> "Value":
        return _binary(add, other, self)

    def __sub__(self, other: Any) -> "Value":
        return _binary(sub, self, other)

    def __rsub__(self, other: Any) -> "Value":
        return _binary(sub, other, self)

    def __mul__(self, other: Any) -> "Value":
        return _binary(mul, self, other)

    def __rmul__(self, other: Any) -> "Value":
        return _binary(mul, other, self)

    def __truediv__(self, other: Any) -> "Value":
        return _binary(div, self, other)

    def __rtruediv__(self, other: Any) -> "Value":
        return _binary(div, other, self)

    def __mod__(self, other: Any) -> "Value":
        return _binary(mod, self, other)

    def __pow__(self, other: Any) -> "Value":
        return _binary(power, self, other)

    def __neg__(self) -> "Value":
        return neg(self)

    def __pos__(self) -> "Value":
        return pos(self)

    # Comparison operators

    def __lt__(self, other: Any) -> "BoolValue":
        return _binary(lt, self, other)

    def __le__(self, other: Any) -> "BoolValue":
        return _binary(le, self, other)

    def __gt__(self, other: Any) -> "BoolValue":
        return _binary(gt, self, other)

    def __ge__(self, other: Any) -> "BoolValue":
        return _binary(ge, self, other)


class BoolValue(BaseModel, Value):
    """Boolean value; promotes to Int as 0 or 1."""

    model_config = ConfigDict(frozen=True)

    type_precedence: ClassVar[TypePrecedence] = TypePrecedence.BOOL
    value: StrictBool

    def __init__(self, value: bool, **kwargs):
        super().__init__(value=value, **kwargs)

    def as_float(self) -> float:
        return 1.0 if self.value else 0.0

    def as_int(self) -> int:
        return int(self.value)

    def to_string(self) -> str:
        return "true" if self.value else "false"

    def __str__(self) -> str:
        return self.to_string()


class IntValue(BaseModel, Value):
    """Signed 64-bit integer value."""

    model_config = ConfigDict(frozen=True)

    type_precedence: ClassVar[TypePrecedence] = TypePrecedence.INT
    value: StrictInt

    def __init__(self, value: int, **kwargs):
        super().__init__(value=value, **kwargs)

    @field_validator("value")
    @classmethod
    def _in_range(cls, value: int) -> int:
        if not INT_MIN <= value <= INT_MAX:
            raise ValueError(f"{value} is outside of the 64-bit integer range")
        return value

    def as_float(self) -> float:
        return float(self.value)

    def as_int(self) -> int:
        return self.value

    def to_string(self) -> str:
        return str(self.value)

    def __str__(self) -> str:
        return self.to_string()


class FloatValue(BaseModel, Value):
    """Double precision value with IEEE semantics for inf and nan."""

    model_config = ConfigDict(frozen=True)

    type_precedence: ClassVar[TypePrecedence] = TypePrecedence.FLOAT
    value: float

    def __init__(self, value: float, **kwargs):
        super().__init__(value=float(value), **kwargs)

    def as_float(self) -> float:
        return self.value

    def to_string(self) -> str:
        if math.isnan(self.value):
            return "nan"
        if math.isinf(self.value):
            return "1e999" if self.value > 0 else "-1e999"
        # repr keeps a '.' or an exponent, so the text parses back to a Float
        return repr(self.value)

    def __str__(self) -> str:
        return self.to_string()


def _checked_int(symbol: str, value: int) -> IntValue:
    if not INT_MIN <= value <= INT_MAX:
        raise DomainError(symbol, "integer overflow")
    return IntValue(value)


def _require(symbol: str, value: Any) -> Value:
    if not isinstance(value, Value):
        raise ValueTypeError(symbol, f"expected a Value, got {type(value).__name__}")
    return value


def _promote(
    symbol: str, a: Any, b: Any, floor: TypePrecedence = TypePrecedence.BOOL
) -> tuple[Value, Value, TypePrecedence]:
    """Widen both operands to the higher of their variants (at least ``floor``)."""
    a = _require(symbol, a)
    b = _require(symbol, b)
    precedence = max(a.type_precedence, b.type_precedence, floor)
    return a.promote(precedence), b.promote(precedence), precedence


def _binary(fn: Callable[[Value, Value], Value], a: Any, b: Any) -> Any:
    """Apply a module level operation to Python operands, wrapping raw scalars."""
    try:
        a, b = Value.from_python(a), Value.from_python(b)
    except ValueTypeError:
        return NotImplemented
    return fn(a, b)


def _float_op(symbol: str, fn: Callable[..., float], *args: float) -> "FloatValue":
    try:
        return FloatValue(fn(*args))
    except (ZeroDivisionError, ValueError, OverflowError) as exc:
        raise DomainError(symbol, str(exc)) from exc


# Integer rules

def _int_div(a: int, b: int) -> int:
    """Division truncating toward zero."""
    if b == 0:
        raise DomainError("/", "division by zero")
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _int_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend."""
    if b == 0:
        raise DomainError("%", "modulo by zero")
    return a - b * _int_div(a, b)


def _int_pow(a: int, b: int) -> int:
    if b < 0:
        raise DomainError("^", "negative integer exponent")
    if abs(a) > 1 and b >= 64:
        raise DomainError("^", "integer overflow")
    return a**b


def _arithmetic(symbol: str, int_op: Callable[[int, int], int], float_op: Callable):
    def rule(a: Any, b: Any) -> Value:
        a, b, precedence = _promote(symbol, a, b, TypePrecedence.INT)
        if precedence == TypePrecedence.INT:
            return _checked_int(symbol, int_op(a.value, b.value))
        return _float_op(symbol, float_op, a.value, b.value)

    rule.__name__ = f"value_{int_op.__name__.strip('_')}"
    return rule


add = _arithmetic("+", operator.add, rules.add)
sub = _arithmetic("-", operator.sub, rules.sub)
mul = _arithmetic("*", operator.mul, rules.mul)
div = _arithmetic("/", _int_div, rules.div)
mod = _arithmetic("%", _int_mod, rules.mod)
power = _arithmetic("^", _int_pow, rules.power)


def neg(a: Any) -> Value:
    a = _require("-", a)
    if a.type_precedence == TypePrecedence.FLOAT:
        return FloatValue(-a.value)
    return _checked_int("-", -a.as_int())


def pos(a: Any) -> Value:
    a = _require("+", a)
    if a.type_precedence == TypePrecedence.FLOAT:
        return a
    return IntValue(a.as_int())


# Comparisons

def _comparison(symbol: str, op: Callable[[Any, Any], bool]):
    def rule(a: Any, b: Any) -> BoolValue:
        a, b, _ = _promote(symbol, a, b)
        return BoolValue(op(a.value, b.value))

    rule.__name__ = f"value_{op.__name__}"
    return rule


eq = _comparison("==", operator.eq)
ne = _comparison("!=", operator.ne)
lt = _comparison("<", operator.lt)
le = _comparison("<=", operator.le)
gt = _comparison(">", operator.gt)
ge = _comparison(">=", operator.ge)


# Logical operators (Bool only)

def _require_bool(symbol: str, value: Any) -> bool:
    if not isinstance(value, BoolValue):
        raise ValueTypeError(
            symbol, f"expected Bool operand, got {type(value).__name__}"
        )
    return value.value


def logical_and(a: Any, b: Any) -> BoolValue:
    left, right = _require_bool("&&", a), _require_bool("&&", b)
    return BoolValue(left and right)


def logical_or(a: Any, b: Any) -> BoolValue:
    left, right = _require_bool("||", a), _require_bool("||", b)
    return BoolValue(left or right)


def logical_not(a: Any) -> BoolValue:
    return BoolValue(not _require_bool("!", a))


def lift(name: str, fn: Callable[..., float]) -> Callable[..., Value]:
    """Wrap a float function so it takes Values and returns a FloatValue."""

    def lifted(*args: Any) -> Value:
        return _float_op(name, fn, *(_require(name, arg).as_float() for arg in args))

    lifted.__name__ = f"value_{name}"
    return lifted


def _parse_literal(text: str) -> Value:
    if any(ch in text for ch in ".eE"):
        return FloatValue(float(text))
    return _checked_int(text, int(text))


VALUE = ScalarType(
    name="value",
    zero=FloatValue(0.0),
    one=FloatValue(1.0),
    parse_literal=_parse_literal,
    from_float=FloatValue,
    format_literal=lambda value: value.to_string(),
    coerce=Value.from_python,
    is_differentiable=lambda value: isinstance(value, FloatValue),
)


def build_values_context(cls: type["Context"]) -> "Context":
    """
    Build the Values context: the numeric operator set over Value objects
    plus comparisons (precedence 3, not chainable), ``&&`` (2), ``||`` (1) and
    prefix ``!``.

    Derivative rules are shared with the numeric context. Only Float literals
    may appear in an expression that is differentiated.
    """
    context = cls(name="Values", scalar=VALUE)

    context.add_constant("true", BoolValue(True))
    context.add_constant("false", BoolValue(False))
    for name in ("pi", "PI", "π"):
        context.add_constant(name, FloatValue(math.pi))
    for name in ("e", "E"):
        context.add_constant(name, FloatValue(math.e))

    for symbol, precedence, assoc, evaluator, derivative in (
        ("||", 1, Associativity.LEFT, logical_or, None),
        ("&&", 2, Associativity.LEFT, logical_and, None),
        ("==", 3, Associativity.NONE, eq, None),
        ("!=", 3, Associativity.NONE, ne, None),
        ("<", 3, Associativity.NONE, lt, None),
        ("<=", 3, Associativity.NONE, le, None),
        (">", 3, Associativity.NONE, gt, None),
        (">=", 3, Associativity.NONE, ge, None),
        ("+", 4, Associativity.LEFT, add, rules.d_add),
        ("-", 4, Associativity.LEFT, sub, rules.d_sub),
        ("*", 5, Associativity.LEFT, mul, rules.d_mul),
        ("/", 5, Associativity.LEFT, div, rules.d_div),
        ("%", 5, Associativity.LEFT, mod, None),
        ("^", 6, Associativity.RIGHT, power, rules.d_pow),
        ("**", 6, Associativity.RIGHT, power, rules.d_pow),
    ):
        context.add_operator(symbol, precedence, evaluator, assoc, derivative)

    context.add_unary_operator("-", neg, rules.d_neg)
    context.add_unary_operator("+", pos, rules.d_pos)
    context.add_unary_operator("!", logical_not)

    for name, (arity, evaluator, derivative) in rules.FUNCTIONS.items():
        context.add_function(name, arity, lift(name, evaluator), derivative)

    return context
