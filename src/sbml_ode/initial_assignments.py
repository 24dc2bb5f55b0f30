"""Apply SBML initial assignments to the model dictionary."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .entities import ModelDictionary, SbmlDocument
from .errors import UnsupportedConstructError
from .expressions import BASE_FUNCTIONS, math_to_string, rewrite_derivatives
from .graph import resolve_definitions

logger = logging.getLogger(__name__)


def resolve_initial_assignments(
    document: SbmlDocument,
    model_dict: ModelDictionary,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> Dict[str, str]:
    """Overwrite initial values with assigned formulas and close them over their own namespace.

    States are resolved against states, parameters against parameters. A
    reference cycle raises :class:`CyclicDependencyError`. Returns the mapping
    of assigned symbol to its final formula.
    """

    assigned_states: List[str] = []
    assigned_parameters: List[str] = []
    for symbol, assignment in document.initial_assignments.items():
        formula = rewrite_derivatives(math_to_string(assignment.math), model_dict, base_functions)
        if symbol in model_dict.states:
            model_dict.states[symbol] = formula
            assigned_states.append(symbol)
        elif symbol in model_dict.non_constant_parameters:
            model_dict.non_constant_parameters[symbol].value = formula
        elif symbol in model_dict.parameters:
            model_dict.parameters[symbol] = formula
            assigned_parameters.append(symbol)
        else:
            raise UnsupportedConstructError(f"Initial assignment to unassignable variable '{symbol}'")
        model_dict.initially_assigned[symbol] = formula

    if assigned_states:
        closed = resolve_definitions(model_dict.states, assigned_states, base_functions, label="initial state")
        model_dict.states.update(closed)
        model_dict.initially_assigned.update(closed)
    if assigned_parameters:
        closed = resolve_definitions(
            model_dict.parameters, assigned_parameters, base_functions, label="initial parameter"
        )
        model_dict.parameters.update(closed)
        model_dict.initially_assigned.update(closed)

    logger.debug(
        "initial assignments states=%d parameters=%d",
        len(assigned_states),
        len(assigned_parameters),
    )
    return dict(model_dict.initially_assigned)


__all__ = ["resolve_initial_assignments"]
