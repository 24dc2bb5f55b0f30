"""Render SBML events and boolean ifelse helpers as DifferentialEquations callbacks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

from .emitter import comparisons_to_infix
from .entities import EventEntry, ModelDictionary
from .errors import MalformedInputError
from .expressions import (
    BASE_FUNCTIONS,
    get_arguments,
    parenthesize,
    rewrite_derivatives,
    substitute_identifiers,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
TRIGGER_SYMBOLS = ("≥", "≤")
_INDENT = "    "


class _Namespace:
    """Index lookup for states (``u``) and parameters (``p``) in declaration order."""

    def __init__(self, model_dict: ModelDictionary, base_functions: Sequence[str]):
        self.model_dict = model_dict
        self.base_functions = base_functions
        variables = list(model_dict.states) + list(model_dict.non_constant_parameters)
        self.state_index: Dict[str, int] = {name: idx for idx, name in enumerate(variables, start=1)}
        self.parameter_index: Dict[str, int] = {name: idx for idx, name in enumerate(model_dict.parameters, start=1)}
        self.inputs: Dict[str, str] = {
            name: text.split("~", 1)[1].strip() for name, text in model_dict.input_functions.items()
        }

    def expand(self, expr: str) -> str:
        text = rewrite_derivatives(expr, self.model_dict, self.base_functions)
        for _ in range(len(self.inputs) + 1):
            used = [name for name in get_arguments(text, self.base_functions) if name in self.inputs]
            if not used:
                break
            text = substitute_identifiers(text, {name: parenthesize(self.inputs[name]) for name in used})
        else:
            raise MalformedInputError(f"Input functions in '{expr}' reference each other cyclically")
        return comparisons_to_infix(text)

    def is_dynamic(self, expr: str) -> bool:
        return any(name in self.state_index for name in get_arguments(self.expand(expr), self.base_functions))

    def render(self, expr: str, u: str, p: str, t: str) -> str:
        mapping = {name: f"{u}[{idx}]" for name, idx in self.state_index.items()}
        mapping.update({name: f"{p}[{idx}]" for name, idx in self.parameter_index.items()})
        mapping["t"] = t
        return substitute_identifiers(self.expand(expr), mapping)

    def target(self, name: str) -> str:
        if name in self.state_index:
            return f"integrator.u[{self.state_index[name]}]"
        if name in self.parameter_index:
            return f"integrator.p[{self.parameter_index[name]}]"
        raise MalformedInputError(f"Event assigns to unknown variable '{name}'")


def split_trigger(trigger: str) -> Tuple[str, str, str]:
    for symbol in TRIGGER_SYMBOLS:
        marker = f" {symbol} "
        if marker in trigger:
            lhs, rhs = trigger.split(marker, 1)
            return lhs.strip(), symbol, rhs.strip()
    raise MalformedInputError(f"Trigger '{trigger}' has no ≥ or ≤ comparison")


def _affect(name: str, entry: EventEntry, namespace: _Namespace) -> List[str]:
    lines = [f"{_INDENT}function affect_{name}!(integrator)"]
    pairs = entry.assignment_pairs
    # Every right-hand side sees the pre-event values.
    for idx, (_, expr) in enumerate(pairs, start=1):
        value = namespace.render(expr, "integrator.u", "integrator.p", "integrator.t")
        lines.append(f"{_INDENT * 2}__value_{idx} = {value}")
    for idx, (target, _) in enumerate(pairs, start=1):
        lines.append(f"{_INDENT * 2}{namespace.target(target)} = __value_{idx}")
    lines.append(f"{_INDENT}end")
    return lines


def _callback(
    name: str,
    entry: EventEntry,
    namespace: _Namespace,
    is_bool: bool,
    tstops: List[str],
) -> Tuple[List[str], str]:
    lhs, symbol, rhs = split_trigger(entry.trigger)
    discrete = lhs == "t" and not namespace.is_dynamic(rhs)
    lines = [f"{_INDENT}function condition_{name}(u, t, integrator)"]
    if discrete:
        lines.append(f"{_INDENT * 2}t == {namespace.render(rhs, 'u', 'integrator.p', 't')}")
        tstops.append(namespace.render(rhs, "u", "p", "t"))
    else:
        lhs_text = namespace.render(lhs, "u", "integrator.p", "t")
        rhs_text = namespace.render(rhs, "u", "integrator.p", "t")
        lines.append(f"{_INDENT * 2}{lhs_text} - ({rhs_text})")
    lines.append(f"{_INDENT}end")
    lines.append("")
    lines.extend(_affect(name, entry, namespace))

    keywords = ""
    if is_bool:
        lhs_text = namespace.render(lhs, "u", "integrator.p", "t")
        rhs_text = namespace.render(rhs, "u", "integrator.p", "t")
        lines.append("")
        lines.append(f"{_INDENT}function init_{name}(c, u, t, integrator)")
        lines.append(f"{_INDENT * 2}{namespace.target(name)} = {lhs_text} {symbol} {rhs_text} ? 1.0 : 0.0")
        lines.append(f"{_INDENT}end")
        keywords = f", initialize=init_{name}"
    lines.append("")

    if discrete:
        constructor = (
            f"DiscreteCallback(condition_{name}, affect_{name}!, save_positions=(false, false){keywords})"
        )
    elif symbol == "≥":
        constructor = f"ContinuousCallback(condition_{name}, affect_{name}!, nothing{keywords})"
    else:
        constructor = f"ContinuousCallback(condition_{name}, nothing, affect_{name}!{keywords})"
    return lines, f"{_INDENT}cb_{name} = {constructor}"


def render_callbacks(
    model_dict: ModelDictionary,
    model_name: str,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> str:
    """Return the text of ``getCallbacks_<model>`` and ``getTstops_<model>``."""

    namespace = _Namespace(model_dict, base_functions)
    body: List[str] = []
    constructors: List[str] = []
    names: List[str] = []
    tstops: List[str] = []
    entries = [(name, entry, False) for name, entry in model_dict.events.items()]
    entries += [(name, entry, name in model_dict.bool_variables) for name, entry in model_dict.discrete_events.items()]
    for name, entry, is_bool in entries:
        lines, constructor = _callback(name, entry, namespace, is_bool, tstops)
        body.extend(lines)
        constructors.append(constructor)
        names.append(f"cb_{name}")

    text = [f"function getCallbacks_{model_name}(foo)", ""]
    text.extend(body)
    text.extend(constructors)
    text.append(f"{_INDENT}return CallbackSet({', '.join(names)})")
    text.append("end")
    text.append("")
    text.append("")
    text.append(f"function getTstops_{model_name}(u, p)")
    text.append(f"{_INDENT}return Float64[{', '.join(tstops)}]")
    text.append("end")
    logger.debug("rendered %d callbacks (%d with tstops)", len(names), len(tstops))
    return "\n".join(text) + "\n"


def write_callbacks(model_dict: ModelDictionary, model_name: str, path: PathLike) -> str:
    text = render_callbacks(model_dict, model_name)
    Path(path).write_text(text, encoding="utf-8")
    return text


__all__ = ["render_callbacks", "write_callbacks", "split_trigger"]
