"""Core dataclasses shared across the translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .math_ast import MathNode


# --------------------------------------------------------------------------------------
# SBML document records
# --------------------------------------------------------------------------------------


@dataclass(frozen=True)
class SbmlSpecies:
    identifier: str
    compartment: str
    initial_amount: Optional[float] = None
    initial_concentration: Optional[float] = None
    boundary_condition: bool = False
    only_substance_units: bool = False
    constant: bool = False


@dataclass(frozen=True)
class SbmlParameter:
    identifier: str
    value: Optional[float] = None
    constant: bool = True


@dataclass(frozen=True)
class SbmlCompartment:
    identifier: str
    size: Optional[float] = None
    constant: bool = True


@dataclass(frozen=True)
class SbmlFunctionDefinition:
    identifier: str
    args: Tuple[str, ...]
    body: MathNode


@dataclass(frozen=True)
class SbmlRule:
    kind: str  # {"assignment", "rate", "algebraic"}
    variable: str
    math: MathNode


@dataclass(frozen=True)
class SbmlInitialAssignment:
    symbol: str
    math: MathNode


@dataclass(frozen=True)
class SpeciesReference:
    species: str
    stoichiometry: Optional[float] = None


@dataclass(frozen=True)
class SbmlReaction:
    identifier: str
    kinetic_math: MathNode
    reactants: Tuple[SpeciesReference, ...] = ()
    products: Tuple[SpeciesReference, ...] = ()
    kinetic_parameters: Dict[str, float] = field(default_factory=dict)
    name: str = ""


@dataclass(frozen=True)
class SbmlEventAssignment:
    variable: str
    math: MathNode


@dataclass(frozen=True)
class SbmlEvent:
    identifier: str
    trigger: MathNode
    assignments: Tuple[SbmlEventAssignment, ...] = ()


@dataclass
class SbmlDocument:
    """In-memory view of the parts of an SBML model the translator consumes."""

    model_id: str = ""
    species: Dict[str, SbmlSpecies] = field(default_factory=dict)
    parameters: Dict[str, SbmlParameter] = field(default_factory=dict)
    compartments: Dict[str, SbmlCompartment] = field(default_factory=dict)
    function_definitions: Dict[str, SbmlFunctionDefinition] = field(default_factory=dict)
    rules: List[SbmlRule] = field(default_factory=list)
    initial_assignments: Dict[str, SbmlInitialAssignment] = field(default_factory=dict)
    reactions: Dict[str, SbmlReaction] = field(default_factory=dict)
    events: List[SbmlEvent] = field(default_factory=list)


# --------------------------------------------------------------------------------------
# Model dictionary records
# --------------------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionDefinition:
    args: Tuple[str, ...]
    body: str


@dataclass
class NonConstantParameter:
    value: str
    rate: str = "0"

    @property
    def has_rate_rule(self) -> bool:
        return self.rate != "0"


@dataclass(frozen=True)
class EventEntry:
    trigger: str
    assignments: Tuple[str, ...]

    @property
    def assignment_pairs(self) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for assignment in self.assignments:
            target, expr = assignment.split("=", 1)
            pairs.append((target.strip(), expr.strip()))
        return pairs


@dataclass(frozen=True)
class BoolVariable:
    """Boolean helper standing in for a time-dependent conditional."""

    condition: str
    trigger: str


@dataclass
class ParameterSBML:
    """Parameter synthesised outside the SBML file, e.g. a condition-dependent initial value."""

    name: str
    initial_value: str


@dataclass
class ModelDictionary:
    """Intermediate representation of one SBML model, filled in a fixed pass order."""

    states: Dict[str, str] = field(default_factory=dict)
    has_only_substance_units: Dict[str, bool] = field(default_factory=dict)
    is_boundary_condition: Dict[str, bool] = field(default_factory=dict)
    species_compartments: Dict[str, str] = field(default_factory=dict)
    parameters: Dict[str, str] = field(default_factory=dict)
    non_constant_parameters: Dict[str, NonConstantParameter] = field(default_factory=dict)
    model_functions: Dict[str, FunctionDefinition] = field(default_factory=dict)
    model_rule_functions: Dict[str, FunctionDefinition] = field(default_factory=dict)
    derivatives: Dict[str, str] = field(default_factory=dict)
    events: Dict[str, EventEntry] = field(default_factory=dict)
    discrete_events: Dict[str, EventEntry] = field(default_factory=dict)
    input_functions: Dict[str, str] = field(default_factory=dict)
    reactions: Dict[str, str] = field(default_factory=dict)
    bool_variables: Dict[str, BoolVariable] = field(default_factory=dict)
    initially_assigned: Dict[str, str] = field(default_factory=dict)
    unused_parameters: List[str] = field(default_factory=list)
    continuous_event_text: str = ""
    discrete_event_text: str = ""

    @property
    def num_of_parameters(self) -> int:
        return len(self.parameters)

    @property
    def num_of_species(self) -> int:
        return len(self.states)

    def remove_species(self, identifier: str) -> None:
        for mapping in (
            self.states,
            self.has_only_substance_units,
            self.is_boundary_condition,
            self.species_compartments,
            self.derivatives,
        ):
            mapping.pop(identifier, None)


__all__ = [
    "SbmlSpecies",
    "SbmlParameter",
    "SbmlCompartment",
    "SbmlFunctionDefinition",
    "SbmlRule",
    "SbmlInitialAssignment",
    "SpeciesReference",
    "SbmlReaction",
    "SbmlEventAssignment",
    "SbmlEvent",
    "SbmlDocument",
    "FunctionDefinition",
    "NonConstantParameter",
    "EventEntry",
    "BoolVariable",
    "ParameterSBML",
    "ModelDictionary",
]
