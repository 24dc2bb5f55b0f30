from __future__ import annotations

import pytest

from src.sbml_ode.entities import ModelDictionary
from src.sbml_ode.errors import MalformedInputError
from src.sbml_ode.ifelse_events import normalize_condition, rewrite_ifelse, time_dependent_ifelse_to_bool


def _model_dict() -> ModelDictionary:
    model_dict = ModelDictionary()
    model_dict.states["A"] = "1.0"
    model_dict.derivatives["A"] = "D(A) ~ "
    model_dict.parameters.update({"k": "1.0", "tau": "3.0"})
    return model_dict


def test_normalize_condition_moves_time_to_the_left() -> None:
    model_dict = _model_dict()
    assert normalize_condition("lt(t, 5)", model_dict) == ("t", "5", False)
    assert normalize_condition("geq(t, tau)", model_dict) == ("t", "tau", True)
    assert normalize_condition("gt(5, t)", model_dict) == ("t", "5", False)
    assert normalize_condition("leq(tau, t)", model_dict) == ("t", "tau", True)


def test_state_or_time_free_conditions_are_left_alone() -> None:
    model_dict = _model_dict()
    assert normalize_condition("lt(A, 5)", model_dict) is None
    assert normalize_condition("lt(t, A)", model_dict) is None
    assert normalize_condition("lt(k, 5)", model_dict) is None
    assert normalize_condition("and(lt(t, 1), gt(t, 0))", model_dict) is None


def test_rewrite_ifelse_swaps_branches_for_lower_bounds() -> None:
    model_dict = _model_dict()
    text = rewrite_ifelse("k*ifelse(lt(t, 5), 1, 2)", model_dict)
    assert text == "k*(__parameter_ifelse1 * (2) + (1 - __parameter_ifelse1) * (1))"
    entry = model_dict.discrete_events["__parameter_ifelse1"]
    assert entry.trigger == "t ≥ 5"
    assert entry.assignments == ("__parameter_ifelse1 = 1.0",)
    assert model_dict.bool_variables["__parameter_ifelse1"].condition == "geq(t, 5)"


def test_rewrite_ifelse_handles_nested_branches() -> None:
    model_dict = _model_dict()
    text = rewrite_ifelse("ifelse(geq(t, 1), ifelse(lt(A, 2), k, 0), 0)", model_dict)
    assert text == "(__parameter_ifelse1 * (ifelse(lt(A, 2), k, 0)) + (1 - __parameter_ifelse1) * (0))"
    assert list(model_dict.bool_variables) == ["__parameter_ifelse1"]


def test_same_condition_reuses_helper() -> None:
    model_dict = _model_dict()
    model_dict.derivatives["A"] = "D(A) ~ ifelse(geq(t, 1), k, 0)+ifelse(lt(1, t), 2, 0)"
    assert time_dependent_ifelse_to_bool(model_dict) == 1
    assert "ifelse(" not in model_dict.derivatives["A"]


def test_helper_names_skip_existing_parameters() -> None:
    model_dict = _model_dict()
    model_dict.parameters["__parameter_ifelse1"] = "0.0"
    model_dict.derivatives["A"] = "D(A) ~ ifelse(geq(t, 1), k, 0)"
    time_dependent_ifelse_to_bool(model_dict)
    assert "__parameter_ifelse2" in model_dict.bool_variables


def test_second_pass_is_a_no_op() -> None:
    model_dict = _model_dict()
    model_dict.derivatives["A"] = "D(A) ~ ifelse(geq(t, 1), k, 0)"
    time_dependent_ifelse_to_bool(model_dict)
    before = model_dict.derivatives["A"]
    assert time_dependent_ifelse_to_bool(model_dict) == 0
    assert model_dict.derivatives["A"] == before


def test_ifelse_with_wrong_arity_is_malformed() -> None:
    with pytest.raises(MalformedInputError):
        rewrite_ifelse("ifelse(lt(t, 1), 2)", _model_dict())
