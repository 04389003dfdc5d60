"""Tests for symbolic differentiation."""

import logging
import math

import pytest
import sympy

from diffex import parse
from diffex.derivative import DerivativeBuilder, differentiate
from diffex.errors import DomainError, NonDifferentiable, UnknownVariable
from diffex.parser import BinaryOp, Const, Var
from diffex.value import FloatValue


class TestBasicRules:
    """Test individual derivative rules."""

    def test_variable(self):
        """Test dx/dx = 1."""
        assert parse("x").derivative("x").nodes == (Const(1.0),)

    def test_other_variable(self):
        """Test dy/dx = 0, keeping the variable table."""
        result = parse("y + x").derivative("y")
        assert result.nodes == (Const(1.0),)
        assert result.variables == ("y", "x")

    def test_product_rule_shortcuts(self):
        """Test d(x*y)/dx reduces to y."""
        result = parse("x*y").derivative("x")
        assert result.nodes == (Var(1),)
        assert result.unparse() == "y"
        assert result.eval([2.0, 5.0]) == 5.0

    def test_power_rule(self):
        """Test d(x^3)/dx = 3 * x ^ 2 with the exponent folded."""
        result = parse("x^3").derivative("x")
        assert result.unparse() == "3 * x ^ 2"
        assert result.eval([2.0]) == 12.0

    def test_chain_rule(self):
        """Test d(sin(x))/dx = cos(x)."""
        assert parse("sin(x)").derivative("x") == parse("cos(x)")

    def test_second_derivative(self):
        """Test repeated differentiation."""
        result = parse("x^3").derivative("x").derivative("x")
        assert result.eval([2.0]) == 12.0

    def test_zero_derivative_functions(self):
        """Test step functions have derivative 0."""
        assert parse("floor(x) + x").derivative("x").nodes == (Const(1.0),)
        assert parse("signum(x)").derivative("x").eval([3.0]) == 0.0

    def test_abs(self):
        """Test d|x|/dx = signum(x)."""
        result = parse("abs(x - 2)").derivative("x")
        assert result.eval([0.5]) == -1.0
        assert result.eval([3.0]) == 1.0

    def test_variable_exponent(self):
        """Test the general power rule."""
        result = parse("2^x").derivative("x")
        assert result.eval([3.0]) == pytest.approx(8.0 * math.log(2.0))

    def test_source_unchanged(self):
        """Test differentiation does not touch its input."""
        expr = parse("x^2 * sin(x)")
        before = (expr.nodes, expr.variables, expr.root)
        expr.derivative("x")
        assert (expr.nodes, expr.variables, expr.root) == before

    def test_deterministic(self):
        """Test repeated differentiation gives equal expressions."""
        expr = parse("exp(x*y) / (1 + x^2)")
        assert expr.derivative("x") == expr.derivative("x")


class TestConstantFolding:
    """Test the folding pass."""

    def test_constant_expression(self):
        """Test d(2*3)/dx folds to a single zero."""
        result = parse("2*3", variables=["x"]).derivative("x")
        assert result.nodes == (Const(0.0),)
        assert result.variables == ("x",)

    def test_constant_factor(self):
        """Test d(x*(2+3))/dx folds to 5."""
        assert parse("x * (2 + 3)").derivative("x").nodes == (Const(5.0),)

    def test_folded_tree(self):
        """Test constant subtrees next to variables are folded."""
        result = parse("x * 2^3").derivative("x")
        assert result.nodes == (Const(8.0),)

    def test_unfoldable_constant_kept(self):
        """Test a failing constant subtree surfaces at evaluation."""
        result = parse("x * log(0)").derivative("x")
        with pytest.raises(DomainError):
            result.eval([1.0])

    def test_result_is_a_tree(self):
        """Test every node of the result has one parent."""
        result = parse("sin(x) * cos(x) * x").derivative("x")
        parents = [0] * len(result.nodes)
        for node in result.nodes:
            for child in node.children():
                parents[child] += 1
        assert parents[result.root] == 0
        assert all(count == 1 for i, count in enumerate(parents) if i != result.root)

    def test_no_unreachable_nodes(self):
        """Test the result is compacted."""
        result = parse("x^2 + y").derivative("x")
        reached = {result.root}
        for index in range(result.root, -1, -1):
            if index in reached:
                reached.update(result.nodes[index].children())
        assert reached == set(range(len(result.nodes)))


class TestErrors:
    """Test differentiation failures."""

    def test_unknown_variable(self):
        """Test differentiating by an absent name."""
        with pytest.raises(UnknownVariable) as exc_info:
            parse("x").derivative("y")
        assert exc_info.value.name == "y"

    def test_constant_formula_has_no_variable(self):
        """Test 2*3 has no variable to differentiate by."""
        with pytest.raises(UnknownVariable):
            parse("2*3").derivative("x")

    @pytest.mark.parametrize(
        "formula,symbol",
        [("x % 2", "%"), ("min(x, 1)", "min"), ("max(y, 1) + x", "max")],
    )
    def test_missing_rule(self, formula, symbol):
        """Test operators and functions without a derivative rule."""
        with pytest.raises(NonDifferentiable) as exc_info:
            parse(formula).derivative("x")
        assert exc_info.value.symbol == symbol

    def test_int_literal_in_values_context(self, values):
        """Test Int literals are not differentiable."""
        with pytest.raises(NonDifferentiable):
            parse("x^2", values).derivative("x")

    def test_logical_operator(self, values):
        """Test logical operators are not differentiable."""
        with pytest.raises(NonDifferentiable):
            parse("x > 1.0 && true", values).derivative("x")


class TestValuesDerivative:
    """Test differentiating in the values context."""

    def test_float_formula(self, values):
        """Test a formula with Float literals only."""
        result = parse("x^2.0 * 3.0", values).derivative("x")
        assert result.eval([FloatValue(2.0)]) == FloatValue(12.0)


class TestDerivativeBuilder:
    """Test the builder shortcuts used by derivative rules."""

    def test_shortcuts(self):
        """Test additions of zero and multiplications by one are dropped."""
        builder = DerivativeBuilder(parse("x"))
        x, zero, one = 0, builder.zero(), builder.one()
        assert builder.add(x, zero) == x
        assert builder.add(zero, x) == x
        assert builder.mul(one, x) == x
        assert builder.mul(x, zero) == zero
        assert builder.sub(x, zero) == x
        assert builder.pow(x, one) == x
        assert builder.div(x, one) == x
        assert builder.neg(zero) == zero

    def test_emits_nodes(self):
        """Test non-trivial operands produce new nodes."""
        builder = DerivativeBuilder(parse("x"))
        index = builder.mul(0, builder.const(2.0))
        assert builder.nodes[index] == BinaryOp("*", 0, 1)

    def test_unknown_function(self):
        """Test rules that need an unregistered function."""
        builder = DerivativeBuilder(parse("x"))
        with pytest.raises(NonDifferentiable):
            builder.call("gamma", 0)


class TestNumericalAgreement:
    """Test symbolic derivatives against central differences."""

    @pytest.mark.parametrize(
        "formula,point",
        [
            ("x^2 * sin(x)", 0.7),
            ("exp(-(x^2))", 0.3),
            ("1 / (1 + x^2)", 1.5),
            ("tan(x) + sec(x) + csc(x) + cot(x)", 0.6),
            ("asin(x) + acos(x) + atan(x)", 0.4),
            ("sinh(x) * cosh(x) - tanh(x)", 0.8),
            ("asinh(x) + acosh(x + 1) + atanh(x / 2)", 0.9),
            ("log(x) + ln(2*x) + log2(x) + log10(x)", 1.7),
            ("sqrt(x^2 + 1)", 2.0),
            ("x^x", 1.3),
            ("atan2(x^2, 3 - x)", 0.5),
            ("fract(3*x)", 0.4),
            ("-x / (x - 4)", 1.0),
            ("x ** 0.5", 2.0),
        ],
    )
    def test_single_variable(self, formula, point, central_difference):
        """Test d/dx at a sample point."""
        expr = parse(formula)
        symbolic = expr.derivative("x").eval([point])
        assert symbolic == pytest.approx(central_difference(expr, "x", [point]), rel=1e-5, abs=1e-6)

    @pytest.mark.parametrize("name", ["x", "y"])
    def test_partial_derivatives(self, name, central_difference):
        """Test both partials of a two-variable formula."""
        expr = parse("x^2 * y + sin(x * y) / (1 + y^2)")
        point = [0.8, 1.9]
        symbolic = expr.derivative(name).eval(point)
        assert symbolic == pytest.approx(central_difference(expr, name, point), rel=1e-5)


class TestSympyAgreement:
    """Test symbolic derivatives against sympy."""

    @pytest.mark.parametrize(
        "formula",
        [
            "x^2*y + sin(x*y)",
            "exp(-(x^2)) / (1 + y^2)",
            "log(x^2 + y) * sqrt(x)",
            "tan(x) - atan(y*x)",
            "x^y",
            "cosh(x) / sinh(y + 2)",
        ],
    )
    @pytest.mark.parametrize("name", ["x", "y"])
    def test_matches_sympy(self, formula, name):
        """Test values of both partials match sympy's derivative."""
        x, y = sympy.symbols("x y")
        reference = sympy.diff(sympy.sympify(formula.replace("^", "**")), sympy.Symbol(name))
        expected = float(reference.subs({x: 0.7, y: 1.3}))

        expr = parse(formula, variables=["x", "y"])
        assert expr.derivative(name).eval([0.7, 1.3]) == pytest.approx(expected, rel=1e-9)


class TestLogging:
    """Test differentiation logging."""

    def test_summary(self, caplog):
        """Test a DEBUG record reports node counts."""
        caplog.set_level(logging.DEBUG, logger="diffex.derivative")
        differentiate(parse("x^2"), "x")
        assert any("Differentiated" in record.message for record in caplog.records)
