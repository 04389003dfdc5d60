"""
Abstract Syntax Tree (AST) node definitions for mathematical expressions.

Nodes are stored by value in a flat tuple (the arena) owned by an Expression.
Children are referenced by their arena index, never by object reference, and
every child index is strictly smaller than the index of its parent. This keeps
the tree acyclic by construction and lets every traversal run as a single
forward pass.

Nodes follow the Visitor pattern: ``accept`` receives the visitor together with
the already computed results of the node's children.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol


class ASTVisitor(Protocol):
    """
    Visitor protocol for traversing arena nodes.

    Implementations provide evaluation, string rendering, etc. Child results
    are passed in already computed, so visitors never recurse.
    """

    def visit_const(self, node: "Const") -> Any:
        ...

    def visit_var(self, node: "Var") -> Any:
        ...

    def visit_unary_op(self, node: "UnaryOp", operand: Any) -> Any:
        ...

    def visit_binary_op(self, node: "BinaryOp", left: Any, right: Any) -> Any:
        ...

    def visit_call(self, node: "Call", args: list[Any]) -> Any:
        ...


class ASTNode(ABC):
    """Base class for all arena nodes."""

    @abstractmethod
    def children(self) -> tuple[int, ...]:
        """Arena indices of the direct children, in operand order."""

    @abstractmethod
    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        """Accept a visitor; ``results`` holds the children's results in order."""

    def with_children(self, children: tuple[int, ...]) -> "ASTNode":
        """Return a copy of this node pointing at other child indices."""
        return self


# Leaf nodes


@dataclass(frozen=True)
class Const(ASTNode):
    """
    A literal scalar.

    Examples: 42, 3.14, 1e-10, pi (constants are resolved at parse time)
    """

    value: Any

    def children(self) -> tuple[int, ...]:
        return ()

    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        return visitor.visit_const(self)


@dataclass(frozen=True)
class Var(ASTNode):
    """A reference into the expression's variable table."""

    index: int

    def children(self) -> tuple[int, ...]:
        return ()

    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        return visitor.visit_var(self)


# Composite nodes


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """
    A prefix operator applied to one operand.

    Examples: -x, !flag
    """

    op: str
    operand: int

    def children(self) -> tuple[int, ...]:
        return (self.operand,)

    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        return visitor.visit_unary_op(self, results[0])

    def with_children(self, children: tuple[int, ...]) -> "UnaryOp":
        return UnaryOp(self.op, children[0])


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """
    A binary operation.

    Examples: 2 + 3, x * y, a ^ b
    """

    op: str
    left: int
    right: int

    def children(self) -> tuple[int, ...]:
        return (self.left, self.right)

    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        return visitor.visit_binary_op(self, results[0], results[1])

    def with_children(self, children: tuple[int, ...]) -> "BinaryOp":
        return BinaryOp(self.op, children[0], children[1])


@dataclass(frozen=True)
class Call(ASTNode):
    """
    A function call.

    Examples: sin(x), sqrt(2), atan2(y, x)
    """

    name: str
    args: tuple[int, ...]

    def children(self) -> tuple[int, ...]:
        return self.args

    def accept(self, visitor: ASTVisitor, results: list[Any]) -> Any:
        return visitor.visit_call(self, results)

    def with_children(self, children: tuple[int, ...]) -> "Call":
        return Call(self.name, tuple(children))
