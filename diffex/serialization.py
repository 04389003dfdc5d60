"""
JSON serialization of expressions.

The document mirrors the arena: the context name, the variable table, the
root index and the node list, each node tagged by ``kind``. Scalars are
stored as text tagged with their type, so values such as inf and nan and the
Bool/Int/Float distinction of the Values context survive the round trip.

Example::

    {"context": "Numeric", "variables": ["x"], "root": 2,
     "nodes": [{"kind": "var", "index": 0},
               {"kind": "const", "value": {"type": "float", "value": "2.0"}},
               {"kind": "binary", "op": "*", "left": 0, "right": 1}]}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import DomainError, InvalidExpressionError
from .expression import Expression
from .parser.ast import ASTNode, BinaryOp, Call, Const, UnaryOp, Var
from .parser.context import Context, get_default_context, get_values_context
from .value import BoolValue, FloatValue, IntValue, Value


class ScalarModel(BaseModel):
    """A literal scalar stored as text."""

    type: Literal["float", "int", "bool"] = Field(..., description="Scalar variant")
    value: str = Field(..., description="Literal text, e.g. '2.5', 'inf', 'true'")


class ConstModel(BaseModel):
    kind: Literal["const"] = "const"
    value: ScalarModel


class VarModel(BaseModel):
    kind: Literal["var"] = "var"
    index: int = Field(..., description="Index into the variable table")


class UnaryModel(BaseModel):
    kind: Literal["unary"] = "unary"
    op: str
    operand: int


class BinaryModel(BaseModel):
    kind: Literal["binary"] = "binary"
    op: str
    left: int
    right: int


class CallModel(BaseModel):
    kind: Literal["call"] = "call"
    name: str
    args: list[int] = Field(default_factory=list)


NodeModel = Annotated[
    Union[ConstModel, VarModel, UnaryModel, BinaryModel, CallModel],
    Field(discriminator="kind"),
]


class ExpressionModel(BaseModel):
    """Serialized form of an Expression."""

    context: str = Field(..., description="Name of the context the formula was parsed in")
    variables: list[str] = Field(default_factory=list, description="Variables in binding order")
    root: int = Field(..., description="Index of the root node")
    nodes: list[NodeModel] = Field(..., description="The node arena, children first")


def _scalar_to_model(value: Any) -> ScalarModel:
    if isinstance(value, BoolValue):
        return ScalarModel(type="bool", value=value.to_string())
    if isinstance(value, IntValue):
        return ScalarModel(type="int", value=str(value.value))
    if isinstance(value, FloatValue):
        return ScalarModel(type="float", value=repr(value.value))
    return ScalarModel(type="float", value=repr(float(value)))


def _scalar_from_model(model: ScalarModel, context: Context) -> Any:
    try:
        if model.type == "bool":
            if model.value not in ("true", "false"):
                raise ValueError(f"invalid bool literal '{model.value}'")
            raw: Any = model.value == "true"
        elif model.type == "int":
            raw = int(model.value)
        else:
            raw = float(model.value)
        if isinstance(context.scalar.zero, Value):
            return Value.from_python(raw)
        return context.scalar.coerce(raw)
    except (ValueError, ArithmeticError, DomainError) as exc:
        raise InvalidExpressionError(f"Invalid scalar {model.model_dump()}: {exc}") from exc


def _node_to_model(node: ASTNode) -> BaseModel:
    if isinstance(node, Const):
        return ConstModel(value=_scalar_to_model(node.value))
    if isinstance(node, Var):
        return VarModel(index=node.index)
    if isinstance(node, UnaryOp):
        return UnaryModel(op=node.op, operand=node.operand)
    if isinstance(node, BinaryOp):
        return BinaryModel(op=node.op, left=node.left, right=node.right)
    if isinstance(node, Call):
        return CallModel(name=node.name, args=list(node.args))
    raise InvalidExpressionError(f"Cannot serialize node {node!r}")


def _node_from_model(model: BaseModel, context: Context) -> ASTNode:
    if isinstance(model, ConstModel):
        return Const(_scalar_from_model(model.value, context))
    if isinstance(model, VarModel):
        return Var(model.index)
    if isinstance(model, UnaryModel):
        return UnaryOp(model.op, model.operand)
    if isinstance(model, BinaryModel):
        return BinaryOp(model.op, model.left, model.right)
    return Call(model.name, tuple(model.args))


def context_named(name: str) -> Context:
    """
    Resolve a built-in context by name.

    Raises:
        InvalidExpressionError: For names other than Numeric and Values
    """
    if name == "Numeric":
        return get_default_context()
    if name == "Values":
        return get_values_context()
    raise InvalidExpressionError(
        f"Unknown context '{name}'; pass the context to load the expression"
    )


def to_model(expression: Expression) -> ExpressionModel:
    return ExpressionModel(
        context=expression.context.name,
        variables=list(expression.variables),
        root=expression.root,
        nodes=[_node_to_model(node) for node in expression.nodes],
    )


def from_model(model: ExpressionModel, context: Context | None = None) -> Expression:
    """
    Rebuild an Expression, checking every arena invariant.

    Args:
        model: The serialized expression
        context: Context to bind the expression to (defaults to the
            built-in context named in the document)

    Raises:
        InvalidExpressionError: If the document does not describe a valid expression
    """
    context = context or context_named(model.context)
    nodes = tuple(_node_from_model(node, context) for node in model.nodes)
    return Expression(nodes, tuple(model.variables), model.root, context)


def dumps(expression: Expression, indent: int | None = None) -> str:
    """Serialize an expression to JSON text."""
    return to_model(expression).model_dump_json(indent=indent)


def loads(text: str | bytes, context: Context | None = None) -> Expression:
    """
    Deserialize an expression from JSON text.

    Raises:
        InvalidExpressionError: If the text is not a valid expression document
    """
    try:
        model = ExpressionModel.model_validate_json(text)
    except ValidationError as exc:
        raise InvalidExpressionError(f"Invalid expression document: {exc}") from exc
    return from_model(model, context)
