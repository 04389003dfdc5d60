"""
Symbolic differentiation over the node arena.

``differentiate`` runs in three passes, none of them recursive:

1. Rewrite: the source arena is copied into a DerivativeBuilder and every
   node reachable from the root gets the index of its derivative, computed
   by the node's registered derivative rule from the indices of its children
   and of their derivatives. Rules append new nodes; source nodes are reused
   as operands.
2. Fold: every subtree without a variable is evaluated and replaced by a
   single constant. A subtree whose evaluation fails is left as it is, so
   the failure is reported when the derivative is evaluated.
3. Re-emit: the nodes reachable from the new root are copied, children
   first, into a fresh arena in which every node has exactly one parent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import DiffexError, NonDifferentiable, UnknownVariable
from .parser.ast import ASTNode, BinaryOp, Call, Const, UnaryOp, Var
from .parser.visitors import EvalVisitor, reachable

if TYPE_CHECKING:
    from .expression import Expression

logger = logging.getLogger(__name__)


class DerivativeBuilder:
    """
    Append-only arena that derivative rules write into.

    The shortcut helpers (``add``, ``mul``, ...) drop additions of zero and
    multiplications by zero or one as they build, which keeps rule output
    small. They are the only algebraic simplifications performed.
    """

    def __init__(self, expression: "Expression"):
        self.context = expression.context
        self.scalar = expression.context.scalar
        self.nodes: list[ASTNode] = list(expression.nodes)
        self._zero: int | None = None
        self._one: int | None = None

    def emit(self, node: ASTNode) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    # Leaves

    def const(self, value: float) -> int:
        return self.emit(Const(self.scalar.from_float(value)))

    def zero(self) -> int:
        if self._zero is None:
            self._zero = self.emit(Const(self.scalar.zero))
        return self._zero

    def one(self) -> int:
        if self._one is None:
            self._one = self.emit(Const(self.scalar.one))
        return self._one

    def is_zero(self, index: int) -> bool:
        node = self.nodes[index]
        return isinstance(node, Const) and node.value == self.scalar.zero

    def is_one(self, index: int) -> bool:
        node = self.nodes[index]
        return isinstance(node, Const) and node.value == self.scalar.one

    # Composite nodes

    def unary(self, op: str, operand: int) -> int:
        if op not in self.context.unary_operators:
            raise NonDifferentiable(op)
        return self.emit(UnaryOp(op, operand))

    def binary(self, op: str, left: int, right: int) -> int:
        if op not in self.context.operators:
            raise NonDifferentiable(op)
        return self.emit(BinaryOp(op, left, right))

    def call(self, name: str, *args: int) -> int:
        if name not in self.context.functions:
            raise NonDifferentiable(name)
        return self.emit(Call(name, tuple(args)))

    # Shortcuts

    def add(self, a: int, b: int) -> int:
        if self.is_zero(a):
            return b
        if self.is_zero(b):
            return a
        return self.binary("+", a, b)

    def sub(self, a: int, b: int) -> int:
        if self.is_zero(b):
            return a
        if self.is_zero(a):
            return self.neg(b)
        return self.binary("-", a, b)

    def mul(self, a: int, b: int) -> int:
        if self.is_zero(a) or self.is_zero(b):
            return self.zero()
        if self.is_one(a):
            return b
        if self.is_one(b):
            return a
        return self.binary("*", a, b)

    def div(self, a: int, b: int) -> int:
        if self.is_one(b):
            return a
        return self.binary("/", a, b)

    def neg(self, a: int) -> int:
        if self.is_zero(a):
            return self.zero()
        return self.unary("-", a)

    def pow(self, a: int, b: int) -> int:
        if self.is_one(b):
            return a
        return self.binary("^", a, b)


def _rule_for(expression: "Expression", node: ASTNode) -> tuple[str, Any]:
    context = expression.context
    if isinstance(node, UnaryOp):
        return node.op, context.unary_operators[node.op].derivative
    if isinstance(node, BinaryOp):
        return node.op, context.operators[node.op].derivative
    if isinstance(node, Call):
        return node.name, context.functions[node.name].derivative
    raise NonDifferentiable(type(node).__name__)


def _fold(builder: DerivativeBuilder, root: int) -> list[ASTNode]:
    """Replace every variable free subtree that evaluates cleanly by a Const."""
    nodes = builder.nodes
    live = reachable(nodes, root)
    evaluator = EvalVisitor((), builder.context)
    folded = list(nodes)
    values: list[Any] = [None] * len(nodes)
    constant = [False] * len(nodes)

    for index in range(root + 1):
        if not live[index]:
            continue
        node = nodes[index]
        if isinstance(node, Const):
            values[index], constant[index] = node.value, True
            continue
        children = node.children()
        if isinstance(node, Var) or not all(constant[c] for c in children):
            continue
        try:
            values[index] = node.accept(evaluator, [values[c] for c in children])
        except DiffexError as exc:
            # left unfolded; evaluating the derivative reports the error
            logger.debug(f"Not folding node {index}: {exc}")
            continue
        constant[index] = True
        folded[index] = Const(values[index])

    return folded


def _reemit(nodes: list[ASTNode], root: int) -> list[ASTNode]:
    """Copy the tree under ``root`` into a new arena, children first."""
    out: list[ASTNode] = []
    results: list[int] = []
    stack: list[tuple[int, bool]] = [(root, False)]

    while stack:
        index, expanded = stack.pop()
        node = nodes[index]
        children = node.children()
        if not expanded:
            stack.append((index, True))
            stack.extend((child, False) for child in reversed(children))
            continue
        if children:
            new_children = tuple(results[-len(children):])
            del results[-len(children):]
            node = node.with_children(new_children)
        out.append(node)
        results.append(len(out) - 1)

    return out


def differentiate(expression: "Expression", name: str) -> "Expression":
    """
    Build the partial derivative of ``expression`` with respect to ``name``.

    The result has the same variable table and context as the source.

    Raises:
        UnknownVariable: If ``name`` is not one of the expression's variables
        NonDifferentiable: If a reachable operator or function has no
            derivative rule, or a literal is of a non-differentiable type
    """
    from .expression import Expression

    if name not in expression.variables:
        raise UnknownVariable(name, expression.variables)
    target = expression.variables.index(name)

    nodes = expression.nodes
    scalar = expression.context.scalar
    live = reachable(nodes, expression.root)
    builder = DerivativeBuilder(expression)
    derivative: list[int] = [0] * len(nodes)
    depends = [False] * len(nodes)

    for index in range(expression.root + 1):
        if not live[index]:
            continue
        node = nodes[index]

        if isinstance(node, Const):
            if not scalar.is_differentiable(node.value):
                raise NonDifferentiable(scalar.format_literal(node.value))
            derivative[index] = builder.zero()
            continue

        if isinstance(node, Var):
            depends[index] = node.index == target
            derivative[index] = builder.one() if depends[index] else builder.zero()
            continue

        symbol, rule = _rule_for(expression, node)
        if rule is None:
            raise NonDifferentiable(symbol)

        args = node.children()
        depends[index] = any(depends[c] for c in args)
        if not depends[index]:
            derivative[index] = builder.zero()
            continue
        derivative[index] = rule(builder, args, tuple(derivative[c] for c in args))

    root = derivative[expression.root]
    result_nodes = _reemit(_fold(builder, root), root)
    result = Expression(
        tuple(result_nodes), expression.variables, len(result_nodes) - 1, expression.context
    )

    logger.debug(
        f"Differentiated with respect to '{name}': "
        f"{len(expression)} -> {len(result)} nodes"
    )
    return result
