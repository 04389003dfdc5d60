"""
diffex Parser Package

This package provides formula parsing for diffex.
It includes tokenization, arena AST construction, and the operator/function
registry (Context) that drives parsing, evaluation and differentiation.
"""

from .ast import ASTNode, BinaryOp, Call, Const, UnaryOp, Var
from .context import Associativity, Context, get_default_context, get_values_context
from .parser import Parser
from .tokenizer import Token, TokenType, Tokenizer

__all__ = [
    "ASTNode",
    "Const",
    "Var",
    "UnaryOp",
    "BinaryOp",
    "Call",
    "Token",
    "TokenType",
    "Tokenizer",
    "Parser",
    "Associativity",
    "Context",
    "get_default_context",
    "get_values_context",
]
