"""Render the model dictionary as ModelingToolkit source text and read it back.

The emitted file is the cache artefact of a build, so rendering is
deterministic and :func:`parse_ode_model` recovers enough of the dictionary
to re-render the file byte for byte. Species flags and compartments are not
part of the text and come back empty.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

from .config import ModelPaths
from .entities import ModelDictionary, NonConstantParameter
from .errors import MalformedInputError
from .expressions import call_arguments, is_number
from .ifelse_events import time_dependent_ifelse_to_bool

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

INFIX_OPERATORS = {"lt": "<", "gt": ">", "leq": "<=", "geq": ">=", "eq": "==", "neq": "!="}
PREFIX_NAMES = {"<": "lt", ">": "gt", "<=": "leq", ">=": "geq", "==": "eq", "!=": "neq", "≤": "leq", "≥": "geq"}
UNUSED_HEADER = "# Parameters outside the equations: "
_INFIX_RE = re.compile(r"<=|>=|==|!=|≤|≥|<|>")
_INDENT = "    "


# --------------------------------------------------------------------------------------
# Comparison notation
# --------------------------------------------------------------------------------------


def comparisons_to_infix(formula: str) -> str:
    """``lt(a, b)`` becomes ``(a < b)``, recursively."""

    for name, operator in INFIX_OPERATORS.items():
        located = call_arguments(formula, name)
        while located is not None:
            start, close_idx, args = located
            if len(args) != 2:
                raise MalformedInputError(f"Comparison '{name}' expects 2 operands in '{formula}'")
            lhs, rhs = (comparisons_to_infix(arg) for arg in args)
            formula = formula[:start] + f"({lhs} {operator} {rhs})" + formula[close_idx + 1 :]
            located = call_arguments(formula, name)
    return formula


def _enclosing_open(text: str, position: int) -> int:
    depth = 0
    for idx in range(position - 1, -1, -1):
        if text[idx] == ")":
            depth += 1
        elif text[idx] == "(":
            if depth == 0:
                return idx
            depth -= 1
    return -1


def _matching_close(text: str, open_idx: int) -> int:
    depth = 0
    for idx in range(open_idx, len(text)):
        if text[idx] == "(":
            depth += 1
        elif text[idx] == ")":
            depth -= 1
            if depth == 0:
                return idx
    raise MalformedInputError(f"Unbalanced parentheses in '{text}'")


def _segment(text: str, inner_start: int, inner_end: int, op_start: int, op_end: int) -> Tuple[int, int]:
    seg_start, depth = inner_start, 0
    for idx in range(inner_start, op_start):
        if text[idx] == "(":
            depth += 1
        elif text[idx] == ")":
            depth -= 1
        elif text[idx] == "," and depth == 0:
            seg_start = idx + 1
    seg_end, depth = inner_end, 0
    for idx in range(op_end, inner_end):
        if text[idx] == "(":
            depth += 1
        elif text[idx] == ")":
            depth -= 1
        elif text[idx] == "," and depth == 0:
            seg_end = idx
            break
    return seg_start, seg_end


def comparisons_to_prefixed(formula: str) -> str:
    """Inverse of :func:`comparisons_to_infix`: ``(a < b)`` becomes ``lt(a, b)``."""

    while True:
        match = _INFIX_RE.search(formula)
        if match is None:
            return formula
        op_start, op_end = match.span()
        open_idx = _enclosing_open(formula, op_start)
        close_idx = _matching_close(formula, open_idx) if open_idx >= 0 else len(formula)
        seg_start, seg_end = _segment(formula, open_idx + 1, close_idx, op_start, op_end)
        lhs = formula[seg_start:op_start].strip()
        rhs = formula[op_end:seg_end].strip()
        if not lhs or not rhs:
            raise MalformedInputError(f"Comparison without operand in '{formula}'")
        prefixed = f"{PREFIX_NAMES[match.group(0)]}({lhs}, {rhs})"
        is_call = open_idx > 0 and (formula[open_idx - 1].isalnum() or formula[open_idx - 1] == "_")
        whole_group = seg_start == open_idx + 1 and seg_end == close_idx
        if open_idx >= 0 and whole_group and not is_call:
            formula = formula[:open_idx] + prefixed + formula[close_idx + 1 :]
        else:
            segment = formula[seg_start:op_start]
            lead = segment[: len(segment) - len(segment.lstrip())]
            formula = formula[:seg_start] + lead + prefixed + formula[seg_end:]


# --------------------------------------------------------------------------------------
# Rendering
# --------------------------------------------------------------------------------------


def _render_value(text: str) -> str:
    if is_number(text):
        return repr(float(text))
    return comparisons_to_infix(text)


def _list_body(items: Sequence[str]) -> List[str]:
    last = len(items) - 1
    return [f"{_INDENT}{item}{',' if idx < last else ''}" for idx, item in enumerate(items)]


def _variables_line(names: Sequence[str]) -> str:
    if not names:
        return ""
    return f"{_INDENT}ModelingToolkit.@variables" + "".join(f" {name}(t)" for name in names)


def _event_block(name: str, text: str) -> List[str]:
    if not text:
        return []
    return [f"{_INDENT}{name} = ["] + [f"{_INDENT}{line}" for line in text.splitlines()] + [f"{_INDENT}]"]


def _equations(model_dict: ModelDictionary) -> List[str]:
    equations: List[str] = []
    for name in model_dict.states:
        text = model_dict.derivatives.get(name, f"D({name}) ~ ")
        if text.rstrip().endswith("~"):
            text = text.rstrip() + " 0.0"
        equations.append(comparisons_to_infix(text))
    for name, entry in model_dict.non_constant_parameters.items():
        equations.append(f"D({name}) ~ {comparisons_to_infix(entry.rate)}")
    for text in model_dict.input_functions.values():
        equations.append(comparisons_to_infix(text))
    return equations


def render_ode_model(model_dict: ModelDictionary, model_name: str) -> str:
    states = list(model_dict.states)
    variable_parameters = list(model_dict.non_constant_parameters)
    algebraic = list(model_dict.input_functions)
    parameters = list(model_dict.parameters)

    initial_values = [f"{name} => {_render_value(value)}" for name, value in model_dict.states.items()]
    initial_values += [
        f"{name} => {_render_value(entry.value)}" for name, entry in model_dict.non_constant_parameters.items()
    ]
    parameter_values = [f"{name} => {_render_value(value)}" for name, value in model_dict.parameters.items()]

    events_kwargs = ""
    if model_dict.continuous_event_text:
        events_kwargs += ", continuous_events = continuous_events"
    if model_dict.discrete_event_text:
        events_kwargs += ", discrete_events = discrete_events"

    lines = [
        f"# Model name: {model_name}",
        f"# Number of parameters: {model_dict.num_of_parameters}",
        f"# Number of species: {model_dict.num_of_species}",
    ]
    if model_dict.unused_parameters:
        lines.append(UNUSED_HEADER + " ".join(model_dict.unused_parameters))
    lines += [
        f"function getODEModel_{model_name}(foo)",
        "",
        f"{_INDENT}### Define independent and dependent variables",
        f"{_INDENT}ModelingToolkit.@variables t" + "".join(f" {name}(t)" for name in states),
        "",
        f"{_INDENT}### Store dependent variables in array for ODESystem command",
        f"{_INDENT}stateArray = [" + ", ".join(states + variable_parameters + algebraic) + "]",
        "",
        f"{_INDENT}### Define variable parameters",
        _variables_line(variable_parameters),
        "",
        f"{_INDENT}### Define potential algebraic variables",
        _variables_line(algebraic),
        "",
        f"{_INDENT}### Define parameters",
        f"{_INDENT}ModelingToolkit.@parameters" + "".join(f" {name}" for name in parameters),
        "",
        f"{_INDENT}### Store parameters in array for ODESystem command",
        f"{_INDENT}parameterArray = [" + ", ".join(parameters) + "]",
        "",
        f"{_INDENT}### Define an operator for the differentiation w.r.t. time",
        f"{_INDENT}D = Differential(t)",
        "",
        f"{_INDENT}### Continious events ###",
        *_event_block("continuous_events", model_dict.continuous_event_text),
        "",
        f"{_INDENT}### Discrete events ###",
        *_event_block("discrete_events", model_dict.discrete_event_text),
        "",
        f"{_INDENT}### Derivatives ###",
        f"{_INDENT}eqs = [",
        *_list_body(_equations(model_dict)),
        f"{_INDENT}]",
        "",
        f"{_INDENT}@named sys = ODESystem(eqs, t, stateArray, parameterArray{events_kwargs})",
        "",
        f"{_INDENT}### Initial species concentrations ###",
        f"{_INDENT}initialSpeciesValues = [",
        *_list_body(initial_values),
        f"{_INDENT}]",
        "",
        f"{_INDENT}### SBML file parameter values ###",
        f"{_INDENT}trueParameterValues = [",
        *_list_body(parameter_values),
        f"{_INDENT}]",
        "",
        f"{_INDENT}return sys, initialSpeciesValues, trueParameterValues",
        "",
        "end",
    ]
    return "\n".join(lines) + "\n"


def write_ode_model(model_dict: ModelDictionary, model_name: str, path: PathLike) -> str:
    text = render_ode_model(model_dict, model_name)
    target = Path(path)
    target.write_text(text, encoding="utf-8")
    logger.debug("wrote %s (%d bytes)", target, len(text))
    return text


# --------------------------------------------------------------------------------------
# Parsing
# --------------------------------------------------------------------------------------


def _between(lines: Sequence[str], start: str, stop: str) -> List[str]:
    stripped = [line.strip() for line in lines]
    if start not in stripped:
        raise MalformedInputError(f"Model file lacks the '{start}' section")
    begin = stripped.index(start) + 1
    for idx in range(begin, len(lines)):
        if stripped[idx] == stop:
            return list(lines[begin:idx])
    raise MalformedInputError(f"Section '{start}' is not closed by '{stop}'")


def _list_items(lines: Sequence[str]) -> List[str]:
    items = []
    for line in lines:
        text = line.strip()
        if text.endswith(","):
            text = text[:-1]
        if text:
            items.append(text)
    return items


def _declared(lines: Sequence[str], keyword: str) -> List[str]:
    names: List[str] = []
    for line in lines:
        tokens = line.split()
        if not tokens or tokens[0] != keyword:
            continue
        names.extend(token[:-3] if token.endswith("(t)") else token for token in tokens[1:])
    return names


def _pairs(lines: Sequence[str]) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in _list_items(lines):
        if " => " not in item:
            raise MalformedInputError(f"Expected 'name => value', got '{item}'")
        name, value = item.split(" => ", 1)
        pairs[name.strip()] = comparisons_to_prefixed(value.strip())
    return pairs


def _event_text(lines: Sequence[str]) -> str:
    body = [line for line in lines if line.strip()]
    if len(body) < 2:
        return ""
    return "\n".join(line[len(_INDENT) :] if line.startswith(_INDENT) else line for line in body[1:-1])


def parse_ode_model(text: str) -> Tuple[str, ModelDictionary]:
    """Recover ``(model_name, model_dict)`` from text produced by :func:`render_ode_model`."""

    lines = text.splitlines()
    if not lines or not lines[0].startswith("# Model name: "):
        raise MalformedInputError("Model file does not start with a '# Model name:' header")
    model_name = lines[0][len("# Model name: ") :].strip()
    model_dict = ModelDictionary()
    for line in lines[1:4]:
        if line.startswith(UNUSED_HEADER):
            model_dict.unused_parameters = line[len(UNUSED_HEADER) :].split()

    variables = _declared(
        _between(
            lines,
            "### Define independent and dependent variables",
            "### Store dependent variables in array for ODESystem command",
        ),
        "ModelingToolkit.@variables",
    )
    states = [name for name in variables if name != "t"]
    variable_parameters = _declared(
        _between(lines, "### Define variable parameters", "### Define potential algebraic variables"),
        "ModelingToolkit.@variables",
    )
    parameters = _declared(
        _between(lines, "### Define parameters", "### Store parameters in array for ODESystem command"),
        "ModelingToolkit.@parameters",
    )
    model_dict.continuous_event_text = _event_text(
        _between(lines, "### Continious events ###", "### Discrete events ###")
    )
    model_dict.discrete_event_text = _event_text(_between(lines, "### Discrete events ###", "### Derivatives ###"))
    initial_values = _pairs(_between(lines, "initialSpeciesValues = [", "]"))
    parameter_values = _pairs(_between(lines, "trueParameterValues = [", "]"))

    for name in states:
        model_dict.states[name] = initial_values.get(name, "0.0")
        model_dict.derivatives[name] = f"D({name}) ~ "
    for name in variable_parameters:
        model_dict.non_constant_parameters[name] = NonConstantParameter(value=initial_values.get(name, "0.0"))
    for name in parameters:
        if name not in parameter_values:
            raise MalformedInputError(f"Parameter '{name}' has no value in the model file")
        model_dict.parameters[name] = parameter_values[name]

    for item in _list_items(_between(lines, "eqs = [", "]")):
        if " ~ " not in item:
            raise MalformedInputError(f"Equation without '~': '{item}'")
        lhs, rhs = item.split(" ~ ", 1)
        lhs = lhs.strip()
        rhs = comparisons_to_prefixed(rhs.strip())
        if lhs.startswith("D(") and lhs.endswith(")"):
            name = lhs[2:-1]
            if name in model_dict.states:
                model_dict.derivatives[name] = f"D({name}) ~ {rhs}"
            elif name in model_dict.non_constant_parameters:
                model_dict.non_constant_parameters[name].rate = rhs
            else:
                raise MalformedInputError(f"Derivative of undeclared variable '{name}'")
        else:
            model_dict.input_functions[lhs] = f"{lhs} ~ {rhs}"
    return model_name, model_dict


def rewrite_model_file(
    path_jl: PathLike,
    dir_julia: PathLike,
    model_name: str,
    ifelse_to_event: bool = True,
) -> Tuple[ModelDictionary, Path]:
    """Re-read an emitted model and, if time-dependent ``ifelse`` remain, write ``<stem>_fix.jl``."""

    source = Path(path_jl)
    _, model_dict = parse_ode_model(source.read_text(encoding="utf-8"))
    if not ifelse_to_event or time_dependent_ifelse_to_bool(model_dict) == 0:
        return model_dict, source
    target = ModelPaths(dir_julia=Path(dir_julia), model_name=source.stem).fix_file
    write_ode_model(model_dict, model_name, target)
    logger.info("Rewrote %s with event-driven ifelse parameters into %s", source.name, target)
    return model_dict, target


__all__ = [
    "comparisons_to_infix",
    "comparisons_to_prefixed",
    "render_ode_model",
    "write_ode_model",
    "parse_ode_model",
    "rewrite_model_file",
]
