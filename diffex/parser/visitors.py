"""
AST visitor implementations and the arena walk that drives them.

Visitors implement the Visitor pattern over arena nodes:
- EvalVisitor: Evaluate an expression for a binding vector
- StringVisitor: Convert an expression back to formula text

``walk`` visits the nodes reachable from the root in increasing index order.
Since children always precede their parents, a child's result is ready when
its parent is visited and no recursion is needed, however deep the formula.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Sequence

from ..errors import DiffexError, DomainError, ValueTypeError
from .ast import ASTNode, ASTVisitor, BinaryOp, Call, Const, UnaryOp, Var
from .context import IDENTIFIER, Associativity, Context

if TYPE_CHECKING:
    from ..expression import Expression


def reachable(nodes: Sequence[ASTNode], root: int) -> list[bool]:
    """Mark the nodes reachable from ``root`` in a single reverse pass."""
    live = [False] * len(nodes)
    live[root] = True
    for index in range(root, -1, -1):
        if live[index]:
            for child in nodes[index].children():
                live[child] = True
    return live


def walk_arena(nodes: Sequence[ASTNode], root: int, visitor: ASTVisitor) -> list[Any]:
    """
    Visit every node reachable from ``root`` and return the per-node results.

    Entries for unreachable nodes are left as None.
    """
    live = reachable(nodes, root)
    results: list[Any] = [None] * (root + 1)
    for index in range(root + 1):
        if live[index]:
            node = nodes[index]
            results[index] = node.accept(visitor, [results[c] for c in node.children()])
    return results


def walk(expression: "Expression", visitor: ASTVisitor) -> Any:
    """Run ``visitor`` over an expression and return the root's result."""
    return walk_arena(expression.nodes, expression.root, visitor)[expression.root]


class EvalVisitor:
    """
    Evaluate arena nodes to scalar values.

    Every operator and function is applied through its registered evaluator.
    A rule reporting an out-of-domain input, by raising or by producing a
    complex number, aborts the evaluation with DomainError. A rule raising
    TypeError aborts it with ValueTypeError. NaN and infinite
    operands are passed through to the rule unchanged.
    """

    def __init__(self, bindings: Sequence[Any], context: Context):
        """
        Initialize evaluator.

        Args:
            bindings: Values for the expression's variables, by index
            context: Context providing the evaluation rules
        """
        self.bindings = bindings
        self.context = context

    def visit_const(self, node: Const) -> Any:
        return node.value

    def visit_var(self, node: Var) -> Any:
        return self.bindings[node.index]

    def visit_unary_op(self, node: UnaryOp, operand: Any) -> Any:
        config = self.context.unary_operators[node.op]
        return self._apply(node.op, config.evaluator, operand)

    def visit_binary_op(self, node: BinaryOp, left: Any, right: Any) -> Any:
        config = self.context.operators[node.op]
        return self._apply(node.op, config.evaluator, left, right)

    def visit_call(self, node: Call, args: list[Any]) -> Any:
        config = self.context.functions[node.name]
        return self._apply(node.name, config.evaluator, *args)

    @staticmethod
    def _apply(symbol: str, rule: Callable[..., Any], *args: Any) -> Any:
        try:
            result = rule(*args)
        except DiffexError:
            raise
        except (ZeroDivisionError, ValueError, OverflowError) as exc:
            raise DomainError(symbol, str(exc) or type(exc).__name__) from exc
        except TypeError as exc:
            raise ValueTypeError(symbol, str(exc)) from exc
        if isinstance(result, complex):
            raise DomainError(symbol, f"complex result {result}")
        return result


# Binding strength of atoms (literals, variables, calls, groups) and of prefix
# operators, above every registered binary precedence
ATOM = 1000
UNARY = 999


class StringVisitor:
    """
    Convert arena nodes to formula text with minimal parentheses.

    Each visit returns ``(text, precedence)``; a child is wrapped in
    parentheses only when the parent's precedence and associativity would
    otherwise regroup it, so the output parses back to the same tree.

    Examples:
    - BinaryOp('-', a, BinaryOp('-', b, c)) → "a - (b - c)"
    - UnaryOp('-', BinaryOp('+', x, 1)) → "-(x + 1)"
    """

    def __init__(self, context: Context, variables: Sequence[str]):
        self.context = context
        self.variables = variables

    def visit_const(self, node: Const) -> tuple[str, int]:
        text = self.context.scalar.format_literal(node.value)
        return text, UNARY if text.startswith("-") else ATOM

    def visit_var(self, node: Var) -> tuple[str, int]:
        name = self.variables[node.index]
        plain = (
            IDENTIFIER.fullmatch(name)
            and not self.context.is_constant(name)
            and not self.context.is_function(name)
            and not self.context.is_operator(name)
        )
        return (name if plain else f"{{{name}}}"), ATOM

    def visit_unary_op(self, node: UnaryOp, operand: tuple[str, int]) -> tuple[str, int]:
        text, prec = operand
        if prec < UNARY:
            text = f"({text})"
        # keep "- -x" and word operators such as "not x" apart from their operand
        if IDENTIFIER.fullmatch(node.op) or not (text[0].isalnum() or text[0] in "({_."):
            return f"{node.op} {text}", UNARY
        return f"{node.op}{text}", UNARY

    def visit_binary_op(
        self, node: BinaryOp, left: tuple[str, int], right: tuple[str, int]
    ) -> tuple[str, int]:
        precedence = self.context.get_operator_precedence(node.op)
        assoc = self.context.get_operator_associativity(node.op)

        left_str, left_prec = left
        right_str, right_prec = right

        if left_prec < precedence or (left_prec == precedence and assoc != Associativity.LEFT):
            left_str = f"({left_str})"

        if right_prec < precedence or (
            right_prec == precedence and assoc != Associativity.RIGHT
        ):
            right_str = f"({right_str})"

        return f"{left_str} {node.op} {right_str}", precedence

    def visit_call(self, node: Call, args: list[tuple[str, int]]) -> tuple[str, int]:
        args_str = ", ".join(text for text, _ in args)
        return f"{node.name}({args_str})", ATOM
