"""Accumulate reaction rates into species derivatives."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .entities import ModelDictionary, SbmlDocument, SpeciesReference
from .expressions import (
    BASE_FUNCTIONS,
    inline_rule_functions,
    math_to_string,
    replace_whole_word,
    rewrite_derivatives,
)

logger = logging.getLogger(__name__)


def format_stoichiometry(stoichiometry: Optional[float]) -> str:
    if stoichiometry is None:
        return "1"
    value = float(stoichiometry)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def compartment_scaling(model_dict: ModelDictionary, species: str) -> str:
    """Amount species take the rate as is; concentrations divide by their compartment."""

    if model_dict.has_only_substance_units.get(species, False):
        return " * "
    # Compartments fixed by an assignment rule are no longer parameters.
    compartment = inline_rule_functions(model_dict.species_compartments[species], model_dict.model_rule_functions)
    return f" * ( 1 /{compartment} ) * "


def _accumulate(model_dict: ModelDictionary, reference: SpeciesReference, sign: str, rate: str) -> None:
    species = reference.species
    if species not in model_dict.derivatives:
        logger.debug("skipping reaction participant %s without a derivative", species)
        return
    if model_dict.is_boundary_condition.get(species, False):
        return
    stoichiometry = format_stoichiometry(reference.stoichiometry)
    scaling = compartment_scaling(model_dict, species)
    model_dict.derivatives[species] += f"{sign}{stoichiometry}{scaling}({rate})"


def compile_reactions(
    document: SbmlDocument,
    model_dict: ModelDictionary,
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> None:
    """Record every kinetic law and append its contributions to the participants' derivatives."""

    for reaction_id, reaction in document.reactions.items():
        rate = math_to_string(reaction.kinetic_math)
        for parameter, value in reaction.kinetic_parameters.items():
            rate = replace_whole_word(rate, parameter, repr(float(value)))
        rate = rewrite_derivatives(rate, model_dict, base_functions)
        model_dict.reactions[reaction_id] = rate
        for reference in reaction.reactants:
            _accumulate(model_dict, reference, "-", rate)
        for reference in reaction.products:
            _accumulate(model_dict, reference, "+", rate)
    logger.debug("compiled %d reactions", len(document.reactions))


__all__ = ["compile_reactions", "compartment_scaling", "format_stoichiometry"]
