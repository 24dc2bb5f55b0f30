from __future__ import annotations

import numpy as np
import pytest
import sympy as sp

from src.sbml_ode.builder import build_model_dictionary
from src.sbml_ode.entities import ModelDictionary, NonConstantParameter
from src.sbml_ode.errors import CyclicDependencyError, MalformedInputError
from src.sbml_ode.ode_system import OdeSystem
from src.sbml_ode.sbml_reader import read_sbml


def test_exchange_model_rhs_and_jacobian(exchange_sbml) -> None:
    system = OdeSystem.from_model_dictionary(build_model_dictionary(read_sbml(exchange_sbml)))
    assert system.state_names == ["A", "B"]
    assert system.parameter_names == ["k1", "k2", "comp"]
    np.testing.assert_allclose(system.parameter_vector(), [0.8, 0.4, 1.0])
    np.testing.assert_allclose(system.initial_state(), [1.0, 0.0])

    rhs = system.rhs_function()
    np.testing.assert_allclose(rhs(0.0, np.array([1.0, 0.0]), system.parameter_vector()), [-0.8, 0.8])

    jacobian = system.jacobian()
    k1, k2, comp = system.parameters
    assert sp.simplify(jacobian[0, 0] + k1 / comp) == 0
    assert sp.simplify(jacobian[0, 1] - k2 / comp) == 0


def _model_dict() -> ModelDictionary:
    model_dict = ModelDictionary()
    model_dict.states.update({"A": "__init__A__", "B": "2*a"})
    model_dict.derivatives["A"] = "D(A) ~ -w"
    model_dict.derivatives["B"] = "D(B) ~ ifelse(lt(t, 2), k, 0)"
    model_dict.non_constant_parameters["p1"] = NonConstantParameter(value="1.0", rate="k")
    model_dict.input_functions["w"] = "w ~ A*k"
    model_dict.parameters.update({"k": "0.5", "a": "b*2", "b": "3.0", "__init__A__": "b"})
    return model_dict


def test_parameters_resolve_through_each_other() -> None:
    system = OdeSystem.from_model_dictionary(_model_dict())
    assert system.parameter_values == {"k": 0.5, "a": 6.0, "b": 3.0, "__init__A__": 3.0}
    np.testing.assert_allclose(system.initial_state(), [3.0, 12.0, 1.0])


def test_input_functions_and_conditionals_in_rhs() -> None:
    system = OdeSystem.from_model_dictionary(_model_dict())
    rhs = system.rhs_function()
    p = system.parameter_vector()
    np.testing.assert_allclose(rhs(1.0, np.array([2.0, 0.0, 1.0]), p), [-1.0, 0.5, 0.5])
    np.testing.assert_allclose(rhs(3.0, np.array([2.0, 0.0, 1.0]), p), [-1.0, 0.0, 0.5])


def test_bare_derivative_is_zero() -> None:
    model_dict = ModelDictionary()
    model_dict.states["A"] = "1.0"
    model_dict.derivatives["A"] = "D(A) ~ "
    system = OdeSystem.from_model_dictionary(model_dict)
    assert system.rhs == (sp.Float(0.0),)


def test_unknown_symbol_in_rhs_is_rejected() -> None:
    model_dict = ModelDictionary()
    model_dict.states["A"] = "1.0"
    model_dict.derivatives["A"] = "D(A) ~ ghost*A"
    with pytest.raises(MalformedInputError):
        OdeSystem.from_model_dictionary(model_dict)


def test_parameter_cycle_is_rejected() -> None:
    model_dict = ModelDictionary()
    model_dict.parameters.update({"a": "b", "b": "a"})
    with pytest.raises(CyclicDependencyError):
        OdeSystem.from_model_dictionary(model_dict)


def test_builder_output_with_event_parameters(toy_document) -> None:
    system = OdeSystem.from_model_dictionary(build_model_dictionary(toy_document))
    assert system.state_names == ["A", "B", "X", "p1", "kon"]
    assert "__parameter_ifelse1" in system.parameter_names
    derivative = system.rhs_function()(0.0, system.initial_state(), system.parameter_vector())
    assert derivative.shape == (5,)
    assert derivative[2] == 0.0


def test_parameter_values_may_reference_initial_states() -> None:
    model_dict = ModelDictionary()
    model_dict.states.update({"A": "2.0", "B": "k*3"})
    model_dict.derivatives.update({"A": "D(A) ~ -k2*A", "B": "D(B) ~ k2*A"})
    model_dict.parameters.update({"k": "0.5", "k2": "A*0.4", "k3": "B+w"})
    model_dict.input_functions["w"] = "w ~ A*k"
    system = OdeSystem.from_model_dictionary(model_dict)
    assert system.parameter_values["k2"] == pytest.approx(0.8)
    assert system.parameter_values["k3"] == pytest.approx(2.5)
