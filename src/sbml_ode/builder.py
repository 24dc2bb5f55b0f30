"""Build the :class:`ModelDictionary` from an SBML document.

The passes run in a fixed order because later ones read what earlier ones
recorded: species, parameters and compartments, function definitions, events,
rules, initial assignments, reactions, the unused-parameter scan and finally
the optional ``ifelse`` rewrite.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set

from .entities import (
    EventEntry,
    FunctionDefinition,
    ModelDictionary,
    NonConstantParameter,
    SbmlDocument,
    SbmlRule,
)
from .errors import UnsupportedConstructError
from .expressions import (
    BASE_FUNCTIONS,
    as_trigger,
    get_arguments,
    math_to_string,
    rewrite_derivatives,
)
from .graph import resolve_definitions
from .ifelse_events import time_dependent_ifelse_to_bool
from .initial_assignments import resolve_initial_assignments
from .reactions import compile_reactions

logger = logging.getLogger(__name__)

DEFAULT_PARAMETER_VALUE = "0.0"
DEFAULT_COMPARTMENT_SIZE = "1.0"


def _format_number(value) -> str:
    return repr(float(value))


# --------------------------------------------------------------------------------------
# Passes
# --------------------------------------------------------------------------------------


def _process_species(document: SbmlDocument, model_dict: ModelDictionary) -> None:
    for identifier, species in document.species.items():
        if species.initial_concentration is not None:
            value = _format_number(species.initial_concentration)
        elif species.initial_amount:
            value = _format_number(species.initial_amount)
        else:
            value = DEFAULT_PARAMETER_VALUE
        model_dict.states[identifier] = value
        model_dict.has_only_substance_units[identifier] = species.only_substance_units
        model_dict.is_boundary_condition[identifier] = species.boundary_condition
        model_dict.species_compartments[identifier] = species.compartment
        if species.boundary_condition:
            model_dict.derivatives[identifier] = f"D({identifier}) ~ 0.0"
        else:
            model_dict.derivatives[identifier] = f"D({identifier}) ~ "


def _process_parameters(document: SbmlDocument, model_dict: ModelDictionary) -> None:
    for identifier, parameter in document.parameters.items():
        if parameter.value is None:
            logger.debug("parameter %s has no value; defaulting to %s", identifier, DEFAULT_PARAMETER_VALUE)
            model_dict.parameters[identifier] = DEFAULT_PARAMETER_VALUE
        else:
            model_dict.parameters[identifier] = _format_number(parameter.value)
    for identifier, compartment in document.compartments.items():
        if compartment.size is None:
            model_dict.parameters[identifier] = DEFAULT_COMPARTMENT_SIZE
        else:
            model_dict.parameters[identifier] = _format_number(compartment.size)


def _process_functions(document: SbmlDocument, model_dict: ModelDictionary) -> None:
    for identifier, function in document.function_definitions.items():
        model_dict.model_functions[identifier] = FunctionDefinition(
            args=function.args, body=math_to_string(function.body)
        )


def _process_events(document: SbmlDocument, model_dict: ModelDictionary) -> None:
    for index, event in enumerate(document.events, start=1):
        name = event.identifier or f"event{index}"
        trigger = as_trigger(math_to_string(event.trigger))
        assignments = tuple(
            f"{assignment.variable} = {math_to_string(assignment.math)}" for assignment in event.assignments
        )
        model_dict.events[name] = EventEntry(trigger=trigger, assignments=assignments)


def _rule_targets(rules: Sequence[SbmlRule], kind: str) -> List[str]:
    return [rule.variable for rule in rules if rule.kind == kind]


def _classify_assignment_rules(
    rules: Dict[str, str],
    dynamic: Set[str],
    base_functions: Sequence[str],
) -> Set[str]:
    """Names whose formula, directly or through other rules, depends on time or model variables."""

    dependent = {name for name in rules if name in dynamic}
    changed = True
    while changed:
        changed = False
        for name, formula in rules.items():
            if name in dependent:
                continue
            arguments = get_arguments(formula, base_functions)
            if "t" in arguments or dependent.intersection(arguments) or dynamic.intersection(arguments):
                dependent.add(name)
                changed = True
    return dependent


def _process_rules(
    document: SbmlDocument,
    model_dict: ModelDictionary,
    base_functions: Sequence[str],
) -> None:
    for rule in document.rules:
        if rule.kind == "algebraic":
            raise UnsupportedConstructError(f"Algebraic rule for '{rule.variable}' is not supported")

    rate_targets = _rule_targets(document.rules, "rate")
    non_constant = {name for name, parameter in document.parameters.items() if not parameter.constant}
    non_constant.update(name for name, compartment in document.compartments.items() if not compartment.constant)
    for event in document.events:
        non_constant.update(
            assignment.variable for assignment in event.assignments if assignment.variable in model_dict.parameters
        )

    # Formulas are rewritten before classification so function bodies count.
    assignment_formulas: Dict[str, str] = {}
    species_targets: Set[str] = set()
    for rule in document.rules:
        if rule.kind != "assignment":
            continue
        assignment_formulas[rule.variable] = rewrite_derivatives(
            math_to_string(rule.math), model_dict, base_functions
        )
        if rule.variable in model_dict.states:
            species_targets.add(rule.variable)

    dynamic = set(model_dict.states) | set(rate_targets) | (non_constant - set(assignment_formulas))
    dynamic |= species_targets
    dependent = _classify_assignment_rules(assignment_formulas, dynamic, base_functions)

    static = [name for name in assignment_formulas if name not in dependent]
    if static:
        closed = resolve_definitions(assignment_formulas, static, base_functions, label="assignment rule")
        for name in static:
            model_dict.parameters.pop(name, None)
            model_dict.model_rule_functions[name] = FunctionDefinition(args=(), body=closed[name])

    for name in assignment_formulas:
        if name not in dependent:
            continue
        formula = rewrite_derivatives(assignment_formulas[name], model_dict, base_functions)
        if name in model_dict.states:
            model_dict.remove_species(name)
        model_dict.parameters.pop(name, None)
        model_dict.input_functions[name] = f"{name} ~ {formula}"

    for rule in document.rules:
        if rule.kind != "rate":
            continue
        formula = rewrite_derivatives(math_to_string(rule.math), model_dict, base_functions)
        name = rule.variable
        if name in model_dict.states:
            model_dict.derivatives[name] = f"D({name}) ~ {formula}"
        elif name in model_dict.parameters:
            value = model_dict.parameters.pop(name)
            model_dict.non_constant_parameters[name] = NonConstantParameter(value=value, rate=formula)
        else:
            raise UnsupportedConstructError(f"Rate rule for unknown variable '{name}'")

    # Remaining non-constant parameters only change through events.
    for name in [name for name in model_dict.parameters if name in non_constant]:
        value = model_dict.parameters.pop(name)
        model_dict.non_constant_parameters[name] = NonConstantParameter(value=value)


def find_unused_parameters(model_dict: ModelDictionary, base_functions: Sequence[str] = BASE_FUNCTIONS) -> List[str]:
    """Parameters no derivative, rate or input function refers to."""

    used: Set[str] = set()
    for text in model_dict.derivatives.values():
        used.update(get_arguments(text, base_functions))
    for entry in model_dict.non_constant_parameters.values():
        used.update(get_arguments(entry.rate, base_functions))
    for text in model_dict.input_functions.values():
        used.update(get_arguments(text, base_functions))
    unused = [name for name in model_dict.parameters if name not in used]
    if unused:
        logger.warning("Parameters outside the equations: %s", ", ".join(unused))
    return unused


# --------------------------------------------------------------------------------------
# Entry point
# --------------------------------------------------------------------------------------


def build_model_dictionary(
    document: SbmlDocument,
    ifelse_to_event: bool = True,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> ModelDictionary:
    model_dict = ModelDictionary()
    _process_species(document, model_dict)
    _process_parameters(document, model_dict)
    _process_functions(document, model_dict)
    _process_events(document, model_dict)
    _process_rules(document, model_dict, base_functions)
    resolve_initial_assignments(document, model_dict, base_functions)
    compile_reactions(document, model_dict, base_functions)
    model_dict.unused_parameters = find_unused_parameters(model_dict, base_functions)
    if ifelse_to_event:
        time_dependent_ifelse_to_bool(model_dict, base_functions)
    logger.info(
        "Built model dictionary for %s: %d species, %d parameters, %d events",
        document.model_id or "<unnamed>",
        model_dict.num_of_species,
        model_dict.num_of_parameters,
        len(model_dict.events),
    )
    return model_dict


__all__ = ["build_model_dictionary", "find_unused_parameters"]
