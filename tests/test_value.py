"""Tests for Bool/Int/Float values and the Values context."""

import math

import pytest
from pydantic import ValidationError

from diffex import eval_str, parse
from diffex.errors import DomainError, ParseError, ValueTypeError
from diffex.value import (
    INT_MAX,
    INT_MIN,
    BoolValue,
    FloatValue,
    IntValue,
    TypePrecedence,
    Value,
    logical_and,
    logical_not,
    logical_or,
    neg,
    pos,
)


class TestConstruction:
    """Test creating values."""

    def test_positional(self):
        """Test values take their payload positionally."""
        assert IntValue(3).value == 3
        assert FloatValue(2).value == 2.0
        assert BoolValue(True).value is True

    def test_strict_variants(self):
        """Test Int and Bool reject each other's payloads."""
        with pytest.raises(ValidationError):
            IntValue(True)
        with pytest.raises(ValidationError):
            BoolValue(1)
        with pytest.raises(ValidationError):
            IntValue(2.5)

    def test_int_range(self):
        """Test the signed 64-bit range."""
        assert IntValue(INT_MAX).value == 2**63 - 1
        assert IntValue(INT_MIN).value == -(2**63)
        with pytest.raises(ValidationError):
            IntValue(INT_MAX + 1)

    def test_frozen(self):
        """Test values are immutable."""
        with pytest.raises(ValidationError):
            IntValue(1).value = 2

    def test_from_python(self):
        """Test wrapping Python scalars."""
        assert Value.from_python(True) == BoolValue(True)
        assert Value.from_python(3) == IntValue(3)
        assert Value.from_python(2.5) == FloatValue(2.5)
        assert Value.from_python(IntValue(1)) == IntValue(1)
        with pytest.raises(ValueTypeError):
            Value.from_python("3")
        with pytest.raises(DomainError):
            Value.from_python(2**64)

    def test_structural_equality(self):
        """Test Python equality compares variant and payload."""
        assert IntValue(1) == IntValue(1)
        assert IntValue(1) != FloatValue(1.0)
        assert hash(IntValue(1)) == hash(IntValue(1))

    def test_to_string(self):
        """Test formula text of each variant."""
        assert str(BoolValue(False)) == "false"
        assert str(IntValue(-4)) == "-4"
        assert str(FloatValue(2.0)) == "2.0"
        assert str(FloatValue(math.inf)) == "1e999"
        assert str(FloatValue(math.nan)) == "nan"

    def test_precedence_order(self):
        """Test the widening order."""
        assert TypePrecedence.BOOL < TypePrecedence.INT < TypePrecedence.FLOAT
        assert IntValue(1).type_precedence == TypePrecedence.INT


class TestArithmetic:
    """Test arithmetic and promotion."""

    def test_promotion(self):
        """Test mixed operands widen."""
        assert IntValue(2) + FloatValue(0.5) == FloatValue(2.5)
        assert BoolValue(True) + BoolValue(True) == IntValue(2)
        assert BoolValue(True) * FloatValue(2.5) == FloatValue(2.5)

    def test_python_operands(self):
        """Test raw Python numbers combine with values."""
        assert IntValue(2) + 3 == IntValue(5)
        assert 3 * FloatValue(2.0) == FloatValue(6.0)
        assert 10 - IntValue(4) == IntValue(6)

    def test_integer_division_truncates(self):
        """Test Int/Int rounds toward zero."""
        assert IntValue(7) / IntValue(2) == IntValue(3)
        assert IntValue(-7) / IntValue(2) == IntValue(-3)
        assert IntValue(7) / IntValue(-2) == IntValue(-3)

    def test_integer_modulo(self):
        """Test the remainder takes the dividend's sign."""
        assert IntValue(7) % IntValue(3) == IntValue(1)
        assert IntValue(-7) % IntValue(2) == IntValue(-1)

    def test_integer_power(self):
        """Test Int ** Int stays Int."""
        assert IntValue(2) ** IntValue(10) == IntValue(1024)
        assert IntValue(-1) ** IntValue(10**12) == IntValue(1)
        assert (IntValue(2) ** FloatValue(0.5)).value == pytest.approx(math.sqrt(2))

    def test_unary(self):
        """Test negation and unary plus."""
        assert -IntValue(3) == IntValue(-3)
        assert -FloatValue(1.5) == FloatValue(-1.5)
        assert neg(BoolValue(True)) == IntValue(-1)
        assert pos(BoolValue(True)) == IntValue(1)

    @pytest.mark.parametrize(
        "operation",
        [
            lambda: IntValue(INT_MAX) + IntValue(1),
            lambda: IntValue(INT_MIN) - IntValue(1),
            lambda: IntValue(INT_MAX) * IntValue(2),
            lambda: IntValue(INT_MIN) / IntValue(-1),
            lambda: -IntValue(INT_MIN),
            lambda: IntValue(2) ** IntValue(64),
            lambda: IntValue(3) ** IntValue(40),
        ],
    )
    def test_overflow(self, operation):
        """Test integer overflow is a domain error."""
        with pytest.raises(DomainError):
            operation()

    @pytest.mark.parametrize(
        "operation",
        [
            lambda: IntValue(1) / IntValue(0),
            lambda: IntValue(1) % IntValue(0),
            lambda: FloatValue(1.0) / IntValue(0),
            lambda: IntValue(2) ** IntValue(-1),
            lambda: FloatValue(-8.0) ** FloatValue(1 / 3),
        ],
    )
    def test_domain(self, operation):
        """Test out-of-domain arithmetic."""
        with pytest.raises(DomainError):
            operation()

    def test_float_ieee(self):
        """Test infinite floats follow IEEE rules."""
        assert FloatValue(math.inf) + IntValue(1) == FloatValue(math.inf)
        assert math.isnan((FloatValue(math.nan) * IntValue(0)).value)


class TestComparisonsAndLogic:
    """Test comparison and logical operators."""

    def test_comparisons(self):
        """Test Python comparison operators on values."""
        assert (IntValue(1) < FloatValue(1.5)) == BoolValue(True)
        assert (IntValue(2) >= IntValue(3)) == BoolValue(False)

    def test_logical(self):
        """Test logical operators on booleans."""
        assert logical_and(BoolValue(True), BoolValue(False)) == BoolValue(False)
        assert logical_not(BoolValue(False)) == BoolValue(True)

    def test_logical_type_error(self):
        """Test logical operators reject non-booleans."""
        with pytest.raises(ValueTypeError) as exc_info:
            logical_and(IntValue(1), BoolValue(True))
        assert exc_info.value.symbol == "&&"
        with pytest.raises(TypeError):
            logical_not(FloatValue(0.0))

    def test_right_operand_checked(self):
        """Test the right operand is checked even when the left decides."""
        with pytest.raises(ValueTypeError):
            logical_and(BoolValue(False), IntValue(1))
        with pytest.raises(ValueTypeError) as exc_info:
            logical_or(BoolValue(True), FloatValue(2.5))
        assert exc_info.value.symbol == "||"


class TestValuesContext:
    """Test evaluating formulas in the values context."""

    @pytest.mark.parametrize(
        "formula,expected",
        [
            ("2", IntValue(2)),
            ("2.0", FloatValue(2.0)),
            ("1e3", FloatValue(1000.0)),
            ("1 + 2 * 3", IntValue(7)),
            ("1 + 2.5", FloatValue(3.5)),
            ("2 ^ 10", IntValue(1024)),
            ("-7 / 2", IntValue(-3)),
            ("true + 1", IntValue(2)),
            ("1 < 2.5", BoolValue(True)),
            ("2 == 2.0", BoolValue(True)),
            ("true == 1", BoolValue(True)),
            ("3 != 3", BoolValue(False)),
            ("true && false", BoolValue(False)),
            ("false || 1 <= 1", BoolValue(True)),
            ("!(1 > 2)", BoolValue(True)),
            ("sqrt(4)", FloatValue(2.0)),
            ("abs(-3)", FloatValue(3.0)),
            ("pi", FloatValue(math.pi)),
        ],
    )
    def test_eval(self, values, formula, expected):
        """Test formula results and their variants."""
        assert eval_str(formula, context=values) == expected

    def test_bindings(self, values):
        """Test bindings by name are wrapped."""
        assert eval_str("x > 1 && flag", {"x": 2, "flag": True}, values) == BoolValue(True)

    @pytest.mark.parametrize(
        "formula", ["1 && true", "!1", "2.0 || false", "false && 1", "true || 2.5"]
    )
    def test_type_errors(self, values, formula):
        """Test logical operators on numbers."""
        with pytest.raises(ValueTypeError):
            eval_str(formula, context=values)

    @pytest.mark.parametrize(
        "formula", ["9223372036854775807 + 1", "1 / 0", "2 ^ -1", "sqrt(-1)", "5 % 0"]
    )
    def test_domain_errors(self, values, formula):
        """Test domain errors in the values context."""
        with pytest.raises(DomainError):
            eval_str(formula, context=values)

    def test_int_literal_overflow(self, values):
        """Test Int literals are range checked at parse time."""
        with pytest.raises(ParseError):
            parse("9223372036854775808", values)

    def test_invalid_binding(self, values):
        """Test bindings that are not numbers."""
        with pytest.raises(ValueTypeError):
            parse("x + 1", values).eval(["one"])
