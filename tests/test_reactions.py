from __future__ import annotations

from src.sbml_ode.entities import ModelDictionary, SbmlDocument, SbmlReaction, SpeciesReference
from src.sbml_ode.math_ast import BinaryOp, Identifier
from src.sbml_ode.reactions import compile_reactions, format_stoichiometry


def _model_dict() -> ModelDictionary:
    model_dict = ModelDictionary()
    species = (("A", False, False), ("B", False, False), ("C", True, False), ("M", False, True))
    for name, boundary, amount_only in species:
        model_dict.states[name] = "1.0"
        model_dict.is_boundary_condition[name] = boundary
        model_dict.has_only_substance_units[name] = amount_only
        model_dict.species_compartments[name] = "comp"
        model_dict.derivatives[name] = f"D({name}) ~ 0.0" if boundary else f"D({name}) ~ "
    model_dict.parameters["comp"] = "1.0"
    return model_dict


def _reaction(**kwargs) -> SbmlReaction:
    return SbmlReaction(
        identifier="r1",
        kinetic_math=BinaryOp("*", Identifier("k"), Identifier("A")),
        kinetic_parameters={"k": 0.5},
        **kwargs,
    )


def test_format_stoichiometry() -> None:
    assert format_stoichiometry(None) == "1"
    assert format_stoichiometry(2.0) == "2"
    assert format_stoichiometry(1.5) == "1.5"


def test_reactant_and_product_contributions_are_scaled_by_compartment() -> None:
    model_dict = _model_dict()
    document = SbmlDocument()
    document.reactions["r1"] = _reaction(
        reactants=(SpeciesReference("A", 2.0),),
        products=(SpeciesReference("B"),),
    )
    compile_reactions(document, model_dict)
    assert model_dict.reactions["r1"] == "0.5*A"
    assert model_dict.derivatives["A"] == "D(A) ~ -2 * ( 1 /comp ) * (0.5*A)"
    assert model_dict.derivatives["B"] == "D(B) ~ +1 * ( 1 /comp ) * (0.5*A)"


def test_boundary_species_are_untouched_and_amounts_unscaled() -> None:
    model_dict = _model_dict()
    document = SbmlDocument()
    document.reactions["r1"] = _reaction(
        reactants=(SpeciesReference("A"),),
        products=(SpeciesReference("C"), SpeciesReference("M")),
    )
    compile_reactions(document, model_dict)
    assert model_dict.derivatives["C"] == "D(C) ~ 0.0"
    assert model_dict.derivatives["M"] == "D(M) ~ +1 * (0.5*A)"


def test_contributions_accumulate_in_document_order() -> None:
    model_dict = _model_dict()
    document = SbmlDocument()
    document.reactions["r1"] = _reaction(reactants=(SpeciesReference("A"),), products=(SpeciesReference("B"),))
    document.reactions["r2"] = SbmlReaction(
        identifier="r2",
        kinetic_math=BinaryOp("*", Identifier("kb"), Identifier("B")),
        reactants=(SpeciesReference("B"),),
        products=(SpeciesReference("A"),),
    )
    compile_reactions(document, model_dict)
    assert model_dict.derivatives["A"] == "D(A) ~ -1 * ( 1 /comp ) * (0.5*A)+1 * ( 1 /comp ) * (kb*B)"
