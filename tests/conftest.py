from __future__ import annotations

from pathlib import Path

import pytest

from src.sbml_ode.entities import (
    SbmlCompartment,
    SbmlDocument,
    SbmlEvent,
    SbmlEventAssignment,
    SbmlParameter,
    SbmlReaction,
    SbmlRule,
    SbmlSpecies,
    SpeciesReference,
)
from src.sbml_ode.math_ast import BinaryOp, Comparison, Identifier, Piecewise, TimeRef, Value

EXCHANGE_SBML = """<?xml version="1.0" encoding="UTF-8"?>
<sbml xmlns="http://www.sbml.org/sbml/level3/version2/core" level="3" version="2">
  <model id="exchange">
    <listOfCompartments>
      <compartment id="comp" spatialDimensions="3" size="1" constant="true"/>
    </listOfCompartments>
    <listOfSpecies>
      <species id="A" compartment="comp" initialConcentration="1" hasOnlySubstanceUnits="false"
               boundaryCondition="false" constant="false"/>
      <species id="B" compartment="comp" initialConcentration="0" hasOnlySubstanceUnits="false"
               boundaryCondition="false" constant="false"/>
    </listOfSpecies>
    <listOfParameters>
      <parameter id="k1" value="0.8" constant="true"/>
      <parameter id="k2" value="0.4" constant="true"/>
    </listOfParameters>
    <listOfReactions>
      <reaction id="forward" reversible="false">
        <listOfReactants>
          <speciesReference species="A" stoichiometry="1" constant="true"/>
        </listOfReactants>
        <listOfProducts>
          <speciesReference species="B" stoichiometry="1" constant="true"/>
        </listOfProducts>
        <kineticLaw>
          <math xmlns="http://www.w3.org/1998/Math/MathML">
            <apply><times/><ci>k1</ci><ci>A</ci></apply>
          </math>
        </kineticLaw>
      </reaction>
      <reaction id="backward" reversible="false">
        <listOfReactants>
          <speciesReference species="B" stoichiometry="1" constant="true"/>
        </listOfReactants>
        <listOfProducts>
          <speciesReference species="A" stoichiometry="1" constant="true"/>
        </listOfProducts>
        <kineticLaw>
          <math xmlns="http://www.w3.org/1998/Math/MathML">
            <apply><times/><ci>k2</ci><ci>B</ci></apply>
          </math>
        </kineticLaw>
      </reaction>
    </listOfReactions>
    <listOfEvents>
      <event id="dose" useValuesFromTriggerTime="true">
        <trigger initialValue="false" persistent="true">
          <math xmlns="http://www.w3.org/1998/Math/MathML">
            <apply>
              <geq/>
              <csymbol encoding="text" definitionURL="http://www.sbml.org/sbml/symbols/time">time</csymbol>
              <cn type="integer">5</cn>
            </apply>
          </math>
        </trigger>
        <listOfEventAssignments>
          <eventAssignment variable="A">
            <math xmlns="http://www.w3.org/1998/Math/MathML">
              <apply><plus/><ci>A</ci><cn type="integer">1</cn></apply>
            </math>
          </eventAssignment>
        </listOfEventAssignments>
      </event>
    </listOfEvents>
  </model>
</sbml>
"""


@pytest.fixture
def exchange_sbml(tmp_path: Path) -> Path:
    path = tmp_path / "exchange.xml"
    path.write_text(EXCHANGE_SBML, encoding="utf-8")
    return path


@pytest.fixture
def toy_document() -> SbmlDocument:
    """Species, rules, reactions and one unnamed event covering every builder pass."""

    document = SbmlDocument(model_id="toy")
    document.species = {
        "A": SbmlSpecies("A", "comp", initial_concentration=1.0),
        "B": SbmlSpecies("B", "comp", initial_amount=2.0),
        "X": SbmlSpecies("X", "comp", initial_concentration=5.0, boundary_condition=True),
    }
    document.parameters = {
        "k": SbmlParameter("k", 0.3),
        "u": SbmlParameter("u", 1.0),
        "v": SbmlParameter("v", None, constant=False),
        "w": SbmlParameter("w", 0.0, constant=False),
        "p1": SbmlParameter("p1", 1.0, constant=False),
        "kon": SbmlParameter("kon", 0.0, constant=False),
    }
    document.compartments = {"comp": SbmlCompartment("comp", 1.0)}
    document.rules = [
        SbmlRule("assignment", "v", BinaryOp("*", Identifier("k"), Value(2))),
        SbmlRule("assignment", "w", BinaryOp("*", Identifier("A"), Identifier("k"))),
        SbmlRule("rate", "p1", Identifier("k")),
    ]
    document.reactions = {
        "r1": SbmlReaction(
            "r1",
            BinaryOp("*", Identifier("v"), Identifier("A")),
            reactants=(SpeciesReference("A"),),
            products=(SpeciesReference("B"),),
        ),
        "r2": SbmlReaction(
            "r2",
            Piecewise((Identifier("k"), Comparison("lt", (TimeRef(), Value(2))), Value(0))),
            reactants=(SpeciesReference("B"),),
        ),
    }
    document.events = [
        SbmlEvent("", Comparison("geq", (TimeRef(), Value(5))), (SbmlEventAssignment("kon", Value(1)),)),
    ]
    return document
