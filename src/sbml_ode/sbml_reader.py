"""Read SBML files through libsbml into :class:`SbmlDocument` records."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import libsbml

from .entities import (
    SbmlCompartment,
    SbmlDocument,
    SbmlEvent,
    SbmlEventAssignment,
    SbmlFunctionDefinition,
    SbmlInitialAssignment,
    SbmlParameter,
    SbmlReaction,
    SbmlRule,
    SbmlSpecies,
    SpeciesReference,
)
from .errors import ConfigError, MalformedInputError
from .math_ast import from_libsbml, lambda_parts

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _optional(is_set: bool, value: float) -> Optional[float]:
    return float(value) if is_set else None


def _check_errors(document: "libsbml.SBMLDocument", source: str) -> None:
    messages: List[str] = []
    for idx in range(document.getNumErrors()):
        error = document.getError(idx)
        if error.getSeverity() in (libsbml.LIBSBML_SEV_ERROR, libsbml.LIBSBML_SEV_FATAL):
            messages.append(error.getMessage().strip())
    if messages:
        raise MalformedInputError(f"Invalid SBML in {source}: {'; '.join(messages)}")


def _species(model: "libsbml.Model") -> Dict[str, SbmlSpecies]:
    species: Dict[str, SbmlSpecies] = {}
    for entry in model.getListOfSpecies():
        species[entry.getId()] = SbmlSpecies(
            identifier=entry.getId(),
            compartment=entry.getCompartment(),
            initial_amount=_optional(entry.isSetInitialAmount(), entry.getInitialAmount()),
            initial_concentration=_optional(entry.isSetInitialConcentration(), entry.getInitialConcentration()),
            boundary_condition=bool(entry.getBoundaryCondition()),
            only_substance_units=bool(entry.getHasOnlySubstanceUnits()),
            constant=bool(entry.getConstant()),
        )
    return species


def _rules(model: "libsbml.Model") -> List[SbmlRule]:
    rules: List[SbmlRule] = []
    for rule in model.getListOfRules():
        if rule.isAssignment():
            kind = "assignment"
        elif rule.isRate():
            kind = "rate"
        else:
            kind = "algebraic"
        rules.append(SbmlRule(kind=kind, variable=rule.getVariable(), math=from_libsbml(rule.getMath())))
    return rules


def _references(references) -> Tuple[SpeciesReference, ...]:
    converted: List[SpeciesReference] = []
    for reference in references:
        stoichiometry = _optional(reference.isSetStoichiometry(), reference.getStoichiometry())
        converted.append(SpeciesReference(species=reference.getSpecies(), stoichiometry=stoichiometry))
    return tuple(converted)


def _kinetic_parameters(law: "libsbml.KineticLaw") -> Dict[str, float]:
    values: Dict[str, float] = {}
    for parameter in list(law.getListOfParameters()) + list(law.getListOfLocalParameters()):
        if parameter.isSetValue():
            values[parameter.getId()] = float(parameter.getValue())
    return values


def _reactions(model: "libsbml.Model") -> Dict[str, SbmlReaction]:
    reactions: Dict[str, SbmlReaction] = {}
    for reaction in model.getListOfReactions():
        law = reaction.getKineticLaw()
        if law is None or law.getMath() is None:
            raise MalformedInputError(f"Reaction '{reaction.getId()}' has no kinetic law")
        reactions[reaction.getId()] = SbmlReaction(
            identifier=reaction.getId(),
            name=reaction.getName(),
            kinetic_math=from_libsbml(law.getMath()),
            reactants=_references(reaction.getListOfReactants()),
            products=_references(reaction.getListOfProducts()),
            kinetic_parameters=_kinetic_parameters(law),
        )
    return reactions


def _events(model: "libsbml.Model") -> List[SbmlEvent]:
    events: List[SbmlEvent] = []
    for event in model.getListOfEvents():
        trigger = event.getTrigger()
        if trigger is None or trigger.getMath() is None:
            raise MalformedInputError(f"Event '{event.getId()}' has no trigger")
        assignments = tuple(
            SbmlEventAssignment(variable=assignment.getVariable(), math=from_libsbml(assignment.getMath()))
            for assignment in event.getListOfEventAssignments()
        )
        events.append(
            SbmlEvent(identifier=event.getId(), trigger=from_libsbml(trigger.getMath()), assignments=assignments)
        )
    return events


def document_from_model(model: "libsbml.Model") -> SbmlDocument:
    document = SbmlDocument(model_id=model.getId())
    document.species = _species(model)
    for parameter in model.getListOfParameters():
        document.parameters[parameter.getId()] = SbmlParameter(
            identifier=parameter.getId(),
            value=_optional(parameter.isSetValue(), parameter.getValue()),
            constant=bool(parameter.getConstant()),
        )
    for compartment in model.getListOfCompartments():
        document.compartments[compartment.getId()] = SbmlCompartment(
            identifier=compartment.getId(),
            size=_optional(compartment.isSetSize(), compartment.getSize()),
            constant=bool(compartment.getConstant()),
        )
    for function in model.getListOfFunctionDefinitions():
        args, body = lambda_parts(function.getMath())
        document.function_definitions[function.getId()] = SbmlFunctionDefinition(
            identifier=function.getId(), args=args, body=body
        )
    document.rules = _rules(model)
    for assignment in model.getListOfInitialAssignments():
        document.initial_assignments[assignment.getSymbol()] = SbmlInitialAssignment(
            symbol=assignment.getSymbol(), math=from_libsbml(assignment.getMath())
        )
    document.reactions = _reactions(model)
    document.events = _events(model)
    return document


def read_sbml(path: PathLike) -> SbmlDocument:
    """Parse the SBML file at ``path``."""

    source = Path(path)
    if not source.is_file():
        raise ConfigError(f"SBML file {source} does not exist")
    document = libsbml.readSBMLFromFile(str(source))
    _check_errors(document, str(source))
    model = document.getModel()
    if model is None:
        raise MalformedInputError(f"SBML file {source} does not contain a model")
    logger.debug(
        "read_sbml %s species=%d reactions=%d",
        source.name,
        model.getNumSpecies(),
        model.getNumReactions(),
    )
    return document_from_model(model)


def read_sbml_string(text: str) -> SbmlDocument:
    document = libsbml.readSBMLFromString(text)
    _check_errors(document, "<string>")
    model = document.getModel()
    if model is None:
        raise MalformedInputError("SBML string does not contain a model")
    return document_from_model(model)


__all__ = ["read_sbml", "read_sbml_string", "document_from_model"]
