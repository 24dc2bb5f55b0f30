"""Translate SBML math into formula text and rewrite formula strings.

Formulas are plain strings in the target symbolic language: binary operators
without surrounding spaces, ``^`` for powers, comparisons kept in prefixed call
form (``lt(a, b)``) and conditionals as ``ifelse(cond, a, b)`` once piecewise
expressions have been rewritten.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

from .entities import FunctionDefinition
from .errors import MalformedInputError
from .math_ast import (
    BinaryOp,
    Comparison,
    FunctionCall,
    Identifier,
    MathNode,
    Piecewise,
    TimeRef,
    UnaryOp,
    Value,
)

if TYPE_CHECKING:  # pragma: no cover
    from .entities import ModelDictionary

logger = logging.getLogger(__name__)

BASE_FUNCTIONS: Tuple[str, ...] = ("exp", "log", "log2", "log10", "sin", "cos", "tan", "pi")
TRIGGER_OPERATORS = (("geq", "≥"), ("gt", "≥"), ("leq", "≤"), ("lt", "≤"))

_TOKEN_RE = re.compile(
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
)
_ATOM_RE = re.compile(r"^\s*(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[A-Za-z_][A-Za-z0-9_]*)\s*$")
_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")
_MAX_REWRITES = 1_000


# --------------------------------------------------------------------------------------
# AST -> text
# --------------------------------------------------------------------------------------


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return repr(float(value))


def _wrap(text: str, needs_parens: bool) -> str:
    return f"({text})" if needs_parens else text


def _join_args(args: Sequence[MathNode]) -> str:
    return ", ".join(translate(arg)[0] for arg in args)


def translate(node: MathNode) -> Tuple[str, bool]:
    """Render ``node`` as formula text; the flag says whether callers must parenthesise it."""

    if isinstance(node, BinaryOp):
        lhs, lhs_parens = translate(node.lhs)
        rhs, rhs_parens = translate(node.rhs)
        op = "^" if node.op == "power" else node.op
        return _wrap(lhs, lhs_parens) + op + _wrap(rhs, rhs_parens), True
    if isinstance(node, UnaryOp):
        operand, operand_parens = translate(node.operand)
        return node.op + _wrap(operand, operand_parens), True
    if isinstance(node, Piecewise):
        return f"piecewise({_join_args(node.args)})", False
    if isinstance(node, Comparison):
        if len(node.args) != 2:
            raise MalformedInputError(f"Comparison '{node.op}' expects 2 operands, got {len(node.args)}")
        return f"{node.op}({_join_args(node.args)})", False
    if isinstance(node, FunctionCall):
        return f"{node.name}({_join_args(node.args)})", False
    if isinstance(node, Value):
        return _format_value(node.value), False
    if isinstance(node, Identifier):
        return node.name, False
    if isinstance(node, TimeRef):
        return node.name, False
    raise TypeError(f"Unsupported math node {node!r}")


def math_to_string(node: MathNode) -> str:
    return translate(node)[0]


# --------------------------------------------------------------------------------------
# String helpers
# --------------------------------------------------------------------------------------


def is_atom(text: str) -> bool:
    return bool(_ATOM_RE.match(text))


def is_number(text: str) -> bool:
    return bool(_NUMBER_RE.match(text))


def parenthesize(text: str) -> str:
    text = text.strip()
    return text if is_atom(text) else f"({text})"


def substitute_identifiers(formula: str, mapping: Mapping[str, str]) -> str:
    """Replace whole identifiers in one pass; numbers and sub-strings are untouched."""

    if not mapping:
        return formula

    def _replace(match: "re.Match[str]") -> str:
        ident = match.group("ident")
        if ident is not None and ident in mapping:
            return mapping[ident]
        return match.group(0)

    return _TOKEN_RE.sub(_replace, formula)


def replace_whole_word(formula: str, word: str, replacement: str) -> str:
    return substitute_identifiers(formula, {word: str(replacement)})


def split_between(text: str, separator: str = ",") -> List[str]:
    """Split ``text`` on ``separator`` occurrences outside any brackets."""

    if not text.strip():
        return []
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return parts


def get_arguments(formula: str, base_functions: Sequence[str] = BASE_FUNCTIONS) -> List[str]:
    """Free identifiers of ``formula``: no call names, base functions or literals."""

    found: List[str] = []
    for match in _TOKEN_RE.finditer(formula):
        ident = match.group("ident")
        if ident is None or ident in base_functions or ident in ("true", "false"):
            continue
        rest = formula[match.end():].lstrip()
        if rest.startswith("("):
            continue
        if ident not in found:
            found.append(ident)
    return found


def find_call(formula: str, name: str, start: int = 0) -> Optional[Tuple[int, int, int]]:
    """Locate ``name(...)``; returns (name start, open paren, close paren) indices."""

    pattern = re.compile(r"(?<![A-Za-z0-9_])" + re.escape(name) + r"\s*\(")
    match = pattern.search(formula, start)
    if match is None:
        return None
    open_idx = match.end() - 1
    depth = 0
    for idx in range(open_idx, len(formula)):
        if formula[idx] == "(":
            depth += 1
        elif formula[idx] == ")":
            depth -= 1
            if depth == 0:
                return match.start(), open_idx, idx
    raise MalformedInputError(f"Unbalanced parentheses after '{name}' in '{formula}'")


def call_arguments(formula: str, name: str) -> Optional[Tuple[int, int, List[str]]]:
    located = find_call(formula, name)
    if located is None:
        return None
    start, open_idx, close_idx = located
    return start, close_idx, split_between(formula[open_idx + 1 : close_idx])


def replace_function_with_formula(formula: str, functions: Mapping[str, FunctionDefinition]) -> str:
    """Inline calls to user functions, binding call arguments to the definition's arguments."""

    rewrites = 0
    pending = True
    while pending:
        pending = False
        for name, definition in functions.items():
            located = call_arguments(formula, name)
            while located is not None:
                pending = True
                start, close_idx, args = located
                if len(args) != len(definition.args):
                    raise MalformedInputError(
                        f"Function '{name}' expects {len(definition.args)} arguments, got {len(args)}"
                    )
                binding = {arg: parenthesize(value) for arg, value in zip(definition.args, args)}
                body = substitute_identifiers(definition.body, binding)
                formula = formula[:start] + "(" + body + ")" + formula[close_idx + 1 :]
                rewrites += 1
                if rewrites > _MAX_REWRITES:
                    raise MalformedInputError(f"Function '{name}' is defined recursively")
                located = call_arguments(formula, name)
    return formula


def inline_rule_functions(formula: str, rule_functions: Mapping[str, FunctionDefinition]) -> str:
    mapping = {name: parenthesize(definition.body) for name, definition in rule_functions.items()}
    return substitute_identifiers(formula, mapping)


def remove_pow_functions(formula: str) -> str:
    while True:
        located = call_arguments(formula, "pow")
        if located is None:
            return formula
        start, close_idx, args = located
        if len(args) != 2:
            raise MalformedInputError(f"pow expects 2 arguments, got {len(args)}")
        base, exponent = args
        formula = formula[:start] + f"({base})^({exponent})" + formula[close_idx + 1 :]


def _nest_ifelse(args: List[str]) -> str:
    if len(args) == 1:
        return args[0]
    if len(args) == 2:
        logger.warning("piecewise without otherwise branch; using 0.0 outside '%s'", args[1])
        return f"ifelse({args[1]}, {args[0]}, 0.0)"
    value, condition = args[0], args[1]
    return f"ifelse({condition}, {value}, {_nest_ifelse(args[2:])})"


def rewrite_piecewise_to_ifelse(formula: str) -> str:
    """Rewrite every ``piecewise(v1, c1, ..., otherwise)`` into nested ``ifelse`` calls."""

    while True:
        located = call_arguments(formula, "piecewise")
        if located is None:
            return formula
        start, close_idx, args = located
        if not args:
            raise MalformedInputError("piecewise requires at least one argument")
        args = [rewrite_piecewise_to_ifelse(arg) for arg in args]
        formula = formula[:start] + _nest_ifelse(args) + formula[close_idx + 1 :]


def rewrite_derivatives(
    formula: str,
    model_dict: "ModelDictionary",
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> str:
    """Inline functions and rules, then rewrite ``pow``, ``piecewise`` and ``time``."""

    rewritten = replace_function_with_formula(formula, model_dict.model_functions)
    if "pow(" in rewritten:
        rewritten = remove_pow_functions(rewritten)
    if "piecewise(" in rewritten:
        rewritten = rewrite_piecewise_to_ifelse(rewritten)
    rewritten = inline_rule_functions(rewritten, model_dict.model_rule_functions)
    return replace_whole_word(rewritten, "time", "t")


def as_trigger(trigger_formula: str) -> str:
    """Rewrite ``geq(a, b)``-style comparisons into ``a ≥ b`` trigger text.

    ``lt`` maps to ``≤`` and ``gt`` to ``≥``: events fire on crossings, so the
    strict and non-strict forms share one operator.
    """

    text = trigger_formula.strip()
    for prefix, operator in TRIGGER_OPERATORS:
        if text.startswith(prefix + "(") and text.endswith(")"):
            stripped = text[len(prefix) + 1 : -1]
            break
    else:
        raise MalformedInputError(f"Unsupported trigger '{trigger_formula}'; expected lt/gt/leq/geq")
    parts = split_between(stripped, ",")
    if len(parts) != 2:
        raise MalformedInputError(f"Trigger '{trigger_formula}' must compare exactly two arguments")
    lhs, rhs = parts
    if "time" in get_arguments(lhs, ()):
        lhs = replace_whole_word(lhs, "time", "t")
    return f"{lhs} {operator} {rhs}"


__all__ = [
    "BASE_FUNCTIONS",
    "translate",
    "math_to_string",
    "is_atom",
    "is_number",
    "parenthesize",
    "substitute_identifiers",
    "replace_whole_word",
    "split_between",
    "get_arguments",
    "find_call",
    "call_arguments",
    "replace_function_with_formula",
    "inline_rule_functions",
    "remove_pow_functions",
    "rewrite_piecewise_to_ifelse",
    "rewrite_derivatives",
    "as_trigger",
]
