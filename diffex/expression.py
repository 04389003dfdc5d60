"""
Expression: an immutable parsed formula.

An Expression owns the node arena, the ordered variable table (the position
of a name is the index of its value in a binding vector) and the root index.
It is never modified after construction: evaluation only reads it and
differentiation builds a new Expression.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import (
    BindingCountMismatch,
    DiffexError,
    InvalidExpressionError,
    ValueTypeError,
)
from .parser.ast import ASTNode, BinaryOp, Call, UnaryOp, Var
from .parser.context import Context
from .parser.visitors import EvalVisitor, StringVisitor, reachable, walk


@dataclass(frozen=True, eq=False)
class Expression:
    """
    A parsed formula stored as an arena of nodes.

    Attributes:
        nodes: The arena; every child index is smaller than its parent's index
            and every node reachable from the root has a single parent
        variables: Distinct variable names in binding order
        root: Index of the root node
        context: Context the formula was parsed in; supplies the rules
    """

    nodes: tuple[ASTNode, ...]
    variables: tuple[str, ...]
    root: int
    context: Context

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "variables", tuple(self.variables))
        self._validate()

    def _validate(self) -> None:
        """
        Check the arena invariants.

        Raises:
            InvalidExpressionError: If any invariant is violated
        """
        if not self.nodes:
            raise InvalidExpressionError("Expression has no nodes")
        if not 0 <= self.root < len(self.nodes):
            raise InvalidExpressionError(f"Root index {self.root} is out of range")
        if len(set(self.variables)) != len(self.variables):
            raise InvalidExpressionError(f"Duplicate variable names in {self.variables}")

        context = self.context
        for index, node in enumerate(self.nodes):
            if not isinstance(node, ASTNode):
                raise InvalidExpressionError(f"Node {index} is not an AST node: {node!r}")
            for child in node.children():
                if not 0 <= child < index:
                    raise InvalidExpressionError(
                        f"Node {index} refers to child {child}, which does not precede it"
                    )
            if isinstance(node, Var) and not 0 <= node.index < len(self.variables):
                raise InvalidExpressionError(
                    f"Node {index} refers to variable {node.index} of {len(self.variables)}"
                )
            if isinstance(node, UnaryOp) and node.op not in context.unary_operators:
                raise InvalidExpressionError(f"Unknown unary operator '{node.op}'")
            if isinstance(node, BinaryOp) and node.op not in context.operators:
                raise InvalidExpressionError(f"Unknown operator '{node.op}'")
            if isinstance(node, Call):
                config = context.functions.get(node.name)
                if config is None:
                    raise InvalidExpressionError(f"Unknown function '{node.name}'")
                if len(node.args) != config.arity:
                    raise InvalidExpressionError(
                        f"Function '{node.name}' has {len(node.args)} argument(s), "
                        f"expected {config.arity}"
                    )

        # the reachable part must be a tree: one parent per node
        owner: dict[int, int] = {}
        live = reachable(self.nodes, self.root)
        for index, node in enumerate(self.nodes):
            if not live[index]:
                continue
            for child in node.children():
                if child in owner:
                    raise InvalidExpressionError(
                        f"Node {child} is shared by nodes {owner[child]} and {index}"
                    )
                owner[child] = index

    def __len__(self) -> int:
        return len(self.nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Expression):
            return NotImplemented
        return (
            self.nodes == other.nodes
            and self.variables == other.variables
            and self.root == other.root
            and self.context.name == other.context.name
        )

    def __hash__(self) -> int:
        return hash((self.nodes, self.variables, self.root, self.context.name))

    def eval(self, bindings: Sequence[Any] = ()) -> Any:
        """
        Evaluate the expression.

        Args:
            bindings: One value per variable, in the order of ``variables``.
                Values are converted with the context's scalar type.

        Returns:
            The value of the root node

        Raises:
            BindingCountMismatch: If the number of bindings is wrong
            DomainError: If a rule is applied outside of its domain
            ValueTypeError: If a binding cannot be converted, or an operator
                receives an operand of the wrong type
        """
        if len(bindings) != len(self.variables):
            raise BindingCountMismatch(len(self.variables), len(bindings))
        values = [self._coerce(index, value) for index, value in enumerate(bindings)]
        return walk(self, EvalVisitor(values, self.context))

    def _coerce(self, index: int, value: Any) -> Any:
        try:
            return self.context.scalar.coerce(value)
        except DiffexError:
            raise
        except (TypeError, ValueError) as exc:
            raise ValueTypeError(
                "binding", f"cannot bind {value!r} to '{self.variables[index]}': {exc}"
            ) from exc

    def eval_mapping(self, bindings: Mapping[str, Any]) -> Any:
        """Evaluate with variables bound by name. Unused names are ignored."""
        missing = tuple(name for name in self.variables if name not in bindings)
        if missing:
            raise BindingCountMismatch(
                len(self.variables), len(self.variables) - len(missing), missing
            )
        return self.eval([bindings[name] for name in self.variables])

    def derivative(self, name: str) -> "Expression":
        """
        Partial derivative with respect to the variable ``name``.

        The result keeps this expression's variable table, so the same
        binding vector evaluates both.

        Raises:
            UnknownVariable: If ``name`` is not a variable of this expression
            NonDifferentiable: If a reachable node has no derivative rule
        """
        # Import here to avoid circular dependency
        from .derivative import differentiate

        return differentiate(self, name)

    def unparse(self) -> str:
        """Formula text that parses back to an equivalent expression."""
        text, _ = walk(self, StringVisitor(self.context, self.variables))
        return text

    def __str__(self) -> str:
        return self.unparse()

    def __repr__(self) -> str:
        return (
            f"Expression({self.unparse()!r}, variables={list(self.variables)}, "
            f"context={self.context.name!r})"
        )

    def to_json(self) -> str:
        from .serialization import dumps

        return dumps(self)

    @classmethod
    def from_json(cls, text: str, context: Context | None = None) -> "Expression":
        from .serialization import loads

        return loads(text, context)
