"""Replace time-dependent ``ifelse`` conditionals with boolean parameters driven by events.

A conditional such as ``ifelse(lt(t, 5), a, b)`` switches exactly once, when
``t`` crosses the threshold. Solvers handle that better as a discrete event
flipping a 0/1 parameter than as a discontinuous right-hand side, so the
formula becomes ``(p * (b) + (1 - p) * (a))`` with ``p`` raised at ``t ≥ 5``.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Set, Tuple

from .entities import BoolVariable, EventEntry, ModelDictionary
from .errors import MalformedInputError
from .expressions import BASE_FUNCTIONS, as_trigger, find_call, get_arguments, split_between

logger = logging.getLogger(__name__)

BOOL_PREFIX = "__parameter_ifelse"
_MIRRORED = {"lt": "gt", "gt": "lt", "leq": "geq", "geq": "leq"}
_COMPARISONS = tuple(_MIRRORED)


def _dynamic_names(model_dict: ModelDictionary) -> Set[str]:
    names = set(model_dict.states)
    names.update(model_dict.non_constant_parameters)
    names.update(model_dict.input_functions)
    return names


def _comparison_parts(condition: str) -> Optional[Tuple[str, str, str]]:
    text = condition.strip()
    for op in _COMPARISONS:
        located = find_call(text, op)
        if located is None:
            continue
        start, open_idx, close_idx = located
        if start != 0 or close_idx != len(text) - 1:
            continue
        args = split_between(text[open_idx + 1 : close_idx])
        if len(args) == 2:
            return op, args[0], args[1]
    return None


def normalize_condition(
    condition: str,
    model_dict: ModelDictionary,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> Optional[Tuple[str, str, bool]]:
    """Return ``(lhs, rhs, active_when_true)`` for a convertible condition, else ``None``.

    The condition is convertible when it compares an expression in ``t`` against
    one without states. ``t`` is moved to the left-hand side, so the helper is
    always raised by ``lhs ≥ rhs``.
    """

    parts = _comparison_parts(condition)
    if parts is None:
        return None
    op, lhs, rhs = parts
    lhs_args = get_arguments(lhs, base_functions)
    rhs_args = get_arguments(rhs, base_functions)
    if "t" not in lhs_args and "t" not in rhs_args:
        return None
    if _dynamic_names(model_dict).intersection(lhs_args + rhs_args):
        return None
    if "t" not in lhs_args:
        op, lhs, rhs = _MIRRORED[op], rhs, lhs
    return lhs, rhs, op in ("gt", "geq")


def _helper_name(model_dict: ModelDictionary) -> str:
    index = len(model_dict.bool_variables) + 1
    while f"{BOOL_PREFIX}{index}" in model_dict.parameters:
        index += 1
    return f"{BOOL_PREFIX}{index}"


def _register(model_dict: ModelDictionary, lhs: str, rhs: str) -> str:
    condition = f"geq({lhs}, {rhs})"
    for name, variable in model_dict.bool_variables.items():
        if variable.condition == condition:
            return name
    name = _helper_name(model_dict)
    trigger = as_trigger(condition)
    model_dict.bool_variables[name] = BoolVariable(condition=condition, trigger=trigger)
    model_dict.parameters[name] = "0.0"
    model_dict.discrete_events[name] = EventEntry(trigger=trigger, assignments=(f"{name} = 1.0",))
    logger.debug("ifelse helper %s raised at %s", name, trigger)
    return name


def rewrite_ifelse(
    formula: str,
    model_dict: ModelDictionary,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> str:
    pieces = []
    position = 0
    while True:
        located = find_call(formula, "ifelse", position)
        if located is None:
            pieces.append(formula[position:])
            return "".join(pieces)
        start, open_idx, close_idx = located
        pieces.append(formula[position:start])
        args = split_between(formula[open_idx + 1 : close_idx])
        if len(args) != 3:
            raise MalformedInputError(f"ifelse expects 3 arguments, got {len(args)} in '{formula}'")
        condition = args[0]
        if_true = rewrite_ifelse(args[1], model_dict, base_functions)
        if_false = rewrite_ifelse(args[2], model_dict, base_functions)
        normalized = normalize_condition(condition, model_dict, base_functions)
        if normalized is None:
            pieces.append(f"ifelse({condition}, {if_true}, {if_false})")
        else:
            lhs, rhs, active_when_true = normalized
            name = _register(model_dict, lhs, rhs)
            active, inactive = (if_true, if_false) if active_when_true else (if_false, if_true)
            pieces.append(f"({name} * ({active}) + (1 - {name}) * ({inactive}))")
        position = close_idx + 1


def time_dependent_ifelse_to_bool(
    model_dict: ModelDictionary,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> int:
    """Rewrite derivatives, rates and input functions in place; returns the number of new helpers."""

    before = len(model_dict.bool_variables)
    for key, text in list(model_dict.derivatives.items()):
        if "ifelse" in text:
            model_dict.derivatives[key] = rewrite_ifelse(text, model_dict, base_functions)
    for entry in model_dict.non_constant_parameters.values():
        if "ifelse" in entry.rate:
            entry.rate = rewrite_ifelse(entry.rate, model_dict, base_functions)
    for key, text in list(model_dict.input_functions.items()):
        if "ifelse" in text:
            model_dict.input_functions[key] = rewrite_ifelse(text, model_dict, base_functions)
    added = len(model_dict.bool_variables) - before
    if added:
        logger.info("Replaced time-dependent ifelse with %d event-driven parameters", added)
    return added


__all__ = ["BOOL_PREFIX", "normalize_condition", "rewrite_ifelse", "time_dependent_ifelse_to_bool"]
