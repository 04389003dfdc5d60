"""
Evaluation and derivative rules for the default operator and function set.

Evaluation rules are plain functions over Python floats. Out-of-domain input is
reported by the exception the math module raises (ValueError, ZeroDivisionError,
OverflowError); the evaluator turns those into DomainError.

Derivative rules share one signature::

    rule(d, args, dargs) -> int

``d`` is a DerivativeBuilder, ``args`` are the arena indices of the original
operands and ``dargs`` the indices of their derivatives. The rule returns the
index of the node holding the derivative.
"""

from __future__ import annotations

import math
from typing import Any, Callable

# Evaluation rules


def add(a: float, b: float) -> float:
    return a + b


def sub(a: float, b: float) -> float:
    return a - b


def mul(a: float, b: float) -> float:
    return a * b


def div(a: float, b: float) -> float:
    if b == 0:
        raise ZeroDivisionError("division by zero")
    return a / b


def power(a: float, b: float) -> float:
    # math.pow raises ValueError for 0^-n and negative bases with fractional
    # exponents instead of returning a complex number
    return math.pow(a, b)


def mod(a: float, b: float) -> float:
    if b == 0:
        raise ZeroDivisionError("modulo by zero")
    return math.fmod(a, b)


def neg(a: float) -> float:
    return -a


def pos(a: float) -> float:
    return +a


def _reciprocal(fn: Callable[[float], float]) -> Callable[[float], float]:
    def wrapped(x: float) -> float:
        return div(1.0, fn(x))

    return wrapped


def _keep_nonfinite(fn: Callable[[float], Any]) -> Callable[[float], float]:
    """Rounding functions return the input unchanged for inf and nan."""

    def wrapped(x: float) -> float:
        if not math.isfinite(x):
            return x
        return float(fn(x))

    return wrapped


def signum(x: float) -> float:
    if math.isnan(x):
        return x
    if x == 0:
        return 0.0
    return math.copysign(1.0, x)


def fract(x: float) -> float:
    if not math.isfinite(x):
        return math.nan
    return x - math.trunc(x)


def log2(x: float) -> float:
    return math.log2(x)


def log10(x: float) -> float:
    return math.log10(x)


def ln(x: float) -> float:
    return math.log(x)


# Derivative rules


def d_add(d, args, dargs):
    return d.add(dargs[0], dargs[1])


def d_sub(d, args, dargs):
    return d.sub(dargs[0], dargs[1])


def d_mul(d, args, dargs):
    # product rule: a'*b + a*b'
    a, b = args
    da, db = dargs
    return d.add(d.mul(da, b), d.mul(a, db))


def d_div(d, args, dargs):
    # quotient rule: (a'*b - a*b') / b^2
    a, b = args
    da, db = dargs
    if d.is_zero(db):
        return d.div(da, b)
    return d.div(d.sub(d.mul(da, b), d.mul(a, db)), d.pow(b, d.const(2.0)))


def d_pow(d, args, dargs):
    a, b = args
    da, db = dargs
    if d.is_zero(db):
        # power rule: b * a^(b-1) * a'
        return d.mul(d.mul(b, d.pow(a, d.sub(b, d.one()))), da)
    # general rule: a^b * (b'*ln(a) + b*a'/a)
    return d.mul(
        d.pow(a, b),
        d.add(d.mul(db, d.call("log", a)), d.div(d.mul(b, da), a)),
    )


def d_neg(d, args, dargs):
    return d.neg(dargs[0])


def d_pos(d, args, dargs):
    return dargs[0]


def _chain(outer: Callable) -> Callable:
    """Build a chain-rule derivative for a one-argument function."""

    def rule(d, args, dargs):
        if d.is_zero(dargs[0]):
            return d.zero()
        return d.mul(outer(d, args[0]), dargs[0])

    rule.__name__ = f"d_{outer.__name__}"
    return rule


def _zero(d, args, dargs):
    return d.zero()


def _sin(d, u):
    return d.call("cos", u)


def _cos(d, u):
    return d.neg(d.call("sin", u))


def _tan(d, u):
    return d.div(d.one(), d.pow(d.call("cos", u), d.const(2.0)))


def _sec(d, u):
    return d.mul(d.call("sec", u), d.call("tan", u))


def _csc(d, u):
    return d.neg(d.mul(d.call("csc", u), d.call("cot", u)))


def _cot(d, u):
    return d.neg(d.div(d.one(), d.pow(d.call("sin", u), d.const(2.0))))


def _asin(d, u):
    return d.div(d.one(), d.call("sqrt", d.sub(d.one(), d.pow(u, d.const(2.0)))))


def _acos(d, u):
    return d.neg(_asin(d, u))


def _atan(d, u):
    return d.div(d.one(), d.add(d.one(), d.pow(u, d.const(2.0))))


def _sinh(d, u):
    return d.call("cosh", u)


def _cosh(d, u):
    return d.call("sinh", u)


def _tanh(d, u):
    return d.div(d.one(), d.pow(d.call("cosh", u), d.const(2.0)))


def _asinh(d, u):
    return d.div(d.one(), d.call("sqrt", d.add(d.pow(u, d.const(2.0)), d.one())))


def _acosh(d, u):
    return d.div(d.one(), d.call("sqrt", d.sub(d.pow(u, d.const(2.0)), d.one())))


def _atanh(d, u):
    return d.div(d.one(), d.sub(d.one(), d.pow(u, d.const(2.0))))


def _exp(d, u):
    return d.call("exp", u)


def _log(d, u):
    return d.div(d.one(), u)


def _log2(d, u):
    return d.div(d.one(), d.mul(u, d.const(math.log(2.0))))


def _log10(d, u):
    return d.div(d.one(), d.mul(u, d.const(math.log(10.0))))


def _sqrt(d, u):
    return d.div(d.one(), d.mul(d.const(2.0), d.call("sqrt", u)))


def _abs(d, u):
    return d.call("signum", u)


def d_fract(d, args, dargs):
    return dargs[0]


def d_atan2(d, args, dargs):
    # d atan2(y, x) = (x*y' - y*x') / (x^2 + y^2)
    y, x = args
    dy, dx = dargs
    return d.div(
        d.sub(d.mul(x, dy), d.mul(y, dx)),
        d.add(d.pow(x, d.const(2.0)), d.pow(y, d.const(2.0))),
    )


# name -> (arity, evaluator, derivative rule or None)
FUNCTIONS: dict[str, tuple[int, Callable[..., Any], Callable | None]] = {
    "sin": (1, math.sin, _chain(_sin)),
    "cos": (1, math.cos, _chain(_cos)),
    "tan": (1, math.tan, _chain(_tan)),
    "sec": (1, _reciprocal(math.cos), _chain(_sec)),
    "csc": (1, _reciprocal(math.sin), _chain(_csc)),
    "cot": (1, _reciprocal(math.tan), _chain(_cot)),
    "asin": (1, math.asin, _chain(_asin)),
    "acos": (1, math.acos, _chain(_acos)),
    "atan": (1, math.atan, _chain(_atan)),
    "sinh": (1, math.sinh, _chain(_sinh)),
    "cosh": (1, math.cosh, _chain(_cosh)),
    "tanh": (1, math.tanh, _chain(_tanh)),
    "asinh": (1, math.asinh, _chain(_asinh)),
    "acosh": (1, math.acosh, _chain(_acosh)),
    "atanh": (1, math.atanh, _chain(_atanh)),
    "exp": (1, math.exp, _chain(_exp)),
    "log": (1, ln, _chain(_log)),
    "ln": (1, ln, _chain(_log)),
    "log2": (1, log2, _chain(_log2)),
    "log10": (1, log10, _chain(_log10)),
    "sqrt": (1, math.sqrt, _chain(_sqrt)),
    "abs": (1, abs, _chain(_abs)),
    "signum": (1, signum, _zero),
    "floor": (1, _keep_nonfinite(math.floor), _zero),
    "ceil": (1, _keep_nonfinite(math.ceil), _zero),
    "trunc": (1, _keep_nonfinite(math.trunc), _zero),
    "round": (1, _keep_nonfinite(round), _zero),
    "fract": (1, fract, d_fract),
    "atan2": (2, math.atan2, d_atan2),
    "min": (2, min, None),
    "max": (2, max, None),
}
