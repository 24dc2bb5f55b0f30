"""Typed math nodes for SBML expressions and the libsbml ASTNode converter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import libsbml

from .errors import MalformedInputError, UnsupportedConstructError

BINARY_OPERATORS = ("*", "/", "+", "-", "power")
UNARY_OPERATORS = ("+", "-")
COMPARISONS = ("lt", "gt", "leq", "geq")
ELEMENTARY_FUNCTIONS = ("exp", "log", "log2", "log10", "sin", "cos", "tan")
AVOGADRO = 6.02214076e23


@dataclass(frozen=True)
class BinaryOp:
    op: str
    lhs: "MathNode"
    rhs: "MathNode"


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "MathNode"


@dataclass(frozen=True)
class Comparison:
    op: str
    args: Tuple["MathNode", ...]


@dataclass(frozen=True)
class Piecewise:
    args: Tuple["MathNode", ...]


@dataclass(frozen=True)
class Value:
    value: Union[int, float, bool]


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class TimeRef:
    name: str = "time"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple["MathNode", ...]


MathNode = Union[BinaryOp, UnaryOp, Comparison, Piecewise, Value, Identifier, TimeRef, FunctionCall]


def _fold(op: str, args: Sequence[MathNode]) -> MathNode:
    node = args[0]
    for arg in args[1:]:
        node = BinaryOp(op, node, arg)
    return node


def apply(fn: str, args: Sequence[MathNode]) -> MathNode:
    """Build the node for ``fn`` applied to ``args``, validating fixed arities."""

    args = tuple(args)
    if fn in UNARY_OPERATORS and len(args) == 1:
        return UnaryOp(fn, args[0])
    if fn in BINARY_OPERATORS:
        if len(args) == 2:
            return BinaryOp(fn, args[0], args[1])
        if fn in ("+", "*"):
            if not args:
                return Value(0 if fn == "+" else 1)
            return _fold(fn, args)
        raise MalformedInputError(f"Operator '{fn}' expects 2 operands, got {len(args)}")
    if fn == "piecewise":
        return Piecewise(args)
    if fn in COMPARISONS:
        if len(args) != 2:
            raise MalformedInputError(f"Comparison '{fn}' expects 2 operands, got {len(args)}")
        return Comparison(fn, args)
    if fn in ELEMENTARY_FUNCTIONS and len(args) != 1:
        raise MalformedInputError(f"Function '{fn}' expects 1 operand, got {len(args)}")
    return FunctionCall(fn, args)


# --------------------------------------------------------------------------------------
# libsbml conversion
# --------------------------------------------------------------------------------------

_OPERATOR_TYPES = {
    libsbml.AST_PLUS: "+",
    libsbml.AST_MINUS: "-",
    libsbml.AST_TIMES: "*",
    libsbml.AST_DIVIDE: "/",
    libsbml.AST_POWER: "power",
    libsbml.AST_FUNCTION_POWER: "power",
}

_RELATIONAL_TYPES = {
    libsbml.AST_RELATIONAL_LT: "lt",
    libsbml.AST_RELATIONAL_GT: "gt",
    libsbml.AST_RELATIONAL_LEQ: "leq",
    libsbml.AST_RELATIONAL_GEQ: "geq",
    libsbml.AST_RELATIONAL_EQ: "eq",
    libsbml.AST_RELATIONAL_NEQ: "neq",
}

_LOGICAL_TYPES = {
    libsbml.AST_LOGICAL_AND: "and",
    libsbml.AST_LOGICAL_OR: "or",
    libsbml.AST_LOGICAL_NOT: "not",
    libsbml.AST_LOGICAL_XOR: "xor",
}

_NAMED_FUNCTION_TYPES = {
    libsbml.AST_FUNCTION_EXP: "exp",
    libsbml.AST_FUNCTION_LN: "log",
    libsbml.AST_FUNCTION_SIN: "sin",
    libsbml.AST_FUNCTION_COS: "cos",
    libsbml.AST_FUNCTION_TAN: "tan",
    libsbml.AST_FUNCTION_PIECEWISE: "piecewise",
}


def _children(node: "libsbml.ASTNode") -> Tuple[MathNode, ...]:
    return tuple(from_libsbml(node.getChild(i)) for i in range(node.getNumChildren()))


def _convert_log(node: "libsbml.ASTNode") -> MathNode:
    args = _children(node)
    if len(args) == 1:
        return apply("log10", args)
    base, argument = args
    if isinstance(base, Value) and float(base.value) == 10.0:
        return apply("log10", (argument,))
    if isinstance(base, Value) and float(base.value) == 2.0:
        return apply("log2", (argument,))
    return FunctionCall("log", (base, argument))


def _convert_root(node: "libsbml.ASTNode") -> MathNode:
    args = _children(node)
    if len(args) == 1:
        return FunctionCall("sqrt", args)
    degree, argument = args
    if isinstance(degree, Value) and float(degree.value) == 2.0:
        return FunctionCall("sqrt", (argument,))
    return BinaryOp("power", argument, BinaryOp("/", Value(1), degree))


def from_libsbml(node: "libsbml.ASTNode") -> MathNode:
    """Convert a libsbml ASTNode into a :data:`MathNode` tree."""

    if node is None:
        raise MalformedInputError("Missing math element")
    node_type = node.getType()
    if node_type == libsbml.AST_INTEGER:
        return Value(int(node.getInteger()))
    if node_type in (libsbml.AST_REAL, libsbml.AST_REAL_E, libsbml.AST_RATIONAL):
        return Value(float(node.getReal()))
    if node_type == libsbml.AST_NAME:
        return Identifier(node.getName())
    if node_type == libsbml.AST_NAME_TIME:
        return TimeRef(node.getName() or "time")
    if node_type == libsbml.AST_NAME_AVOGADRO:
        return Value(AVOGADRO)
    if node_type == libsbml.AST_CONSTANT_PI:
        return Identifier("pi")
    if node_type == libsbml.AST_CONSTANT_E:
        return FunctionCall("exp", (Value(1),))
    if node_type == libsbml.AST_CONSTANT_TRUE:
        return Value(True)
    if node_type == libsbml.AST_CONSTANT_FALSE:
        return Value(False)
    if node_type in _OPERATOR_TYPES:
        return apply(_OPERATOR_TYPES[node_type], _children(node))
    if node_type in _RELATIONAL_TYPES:
        return apply(_RELATIONAL_TYPES[node_type], _children(node))
    if node_type in _LOGICAL_TYPES:
        return apply(_LOGICAL_TYPES[node_type], _children(node))
    if node_type in _NAMED_FUNCTION_TYPES:
        return apply(_NAMED_FUNCTION_TYPES[node_type], _children(node))
    if node_type == libsbml.AST_FUNCTION_LOG:
        return _convert_log(node)
    if node_type == libsbml.AST_FUNCTION_ROOT:
        return _convert_root(node)
    if node_type == libsbml.AST_FUNCTION_DELAY:
        raise UnsupportedConstructError("SBML delay() expressions are not supported")
    if node_type == libsbml.AST_LAMBDA:
        raise MalformedInputError("Lambda expressions are only valid as function definition bodies")
    if node.isFunction() and node.getName():
        return apply(node.getName(), _children(node))
    raise MalformedInputError(f"Unsupported math node '{libsbml.formulaToL3String(node)}'")


def lambda_parts(node: "libsbml.ASTNode") -> Tuple[Tuple[str, ...], MathNode]:
    """Split a function definition lambda into argument names and body."""

    if node is None or node.getType() != libsbml.AST_LAMBDA:
        raise MalformedInputError("Function definition math must be a lambda")
    count = node.getNumChildren()
    args = tuple(node.getChild(i).getName() for i in range(count - 1))
    body = from_libsbml(node.getChild(count - 1))
    return args, body


__all__ = [
    "BINARY_OPERATORS",
    "COMPARISONS",
    "ELEMENTARY_FUNCTIONS",
    "BinaryOp",
    "UnaryOp",
    "Comparison",
    "Piecewise",
    "Value",
    "Identifier",
    "TimeRef",
    "FunctionCall",
    "MathNode",
    "apply",
    "from_libsbml",
    "lambda_parts",
]
