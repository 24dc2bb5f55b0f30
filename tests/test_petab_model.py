from __future__ import annotations

import logging

import pandas as pd
import pytest

from src.sbml_ode import petab_model
from src.sbml_ode.config import BuildOptions, ModelPaths
from src.sbml_ode.errors import ConfigError, MalformedInputError
from src.sbml_ode.petab_model import build_petab_model, xml_to_model_dictionary


def test_model_paths_layout(tmp_path) -> None:
    paths = ModelPaths.create(tmp_path, "exchange")
    assert paths.model_file == tmp_path / "exchange.jl"
    assert paths.callbacks_file == tmp_path / "exchange_callbacks.jl"
    assert paths.fix_file == tmp_path / "exchange_fix.jl"
    assert paths.h_sd_u0_file == tmp_path / "exchange_h_sd_u0.jl"
    assert paths.d_h_sd_file == tmp_path / "exchange_D_h_sd.jl"


@pytest.mark.parametrize("name", ["", "bad name", "bad-name"])
def test_model_paths_reject_bad_names(tmp_path, name: str) -> None:
    with pytest.raises(ConfigError):
        ModelPaths.create(tmp_path, name)


def test_xml_to_model_dictionary_writes_file(tmp_path, exchange_sbml) -> None:
    target = tmp_path / "exchange.jl"
    model_dict, text = xml_to_model_dictionary(exchange_sbml, target, "exchange")
    assert target.read_text(encoding="utf-8") == text
    assert list(model_dict.states) == ["A", "B"]


def test_xml_to_model_dictionary_without_path(exchange_sbml) -> None:
    _, text = xml_to_model_dictionary(exchange_sbml, None, "exchange", write_to_file=False)
    assert text.startswith("# Model name: exchange\n")
    with pytest.raises(ConfigError):
        xml_to_model_dictionary(exchange_sbml, None, "exchange")


def test_build_writes_model_and_callbacks(tmp_path, exchange_sbml) -> None:
    out_dir = tmp_path / "julia"
    build = build_petab_model(exchange_sbml, dir_julia=out_dir, model_name="exchange")
    assert build.paths.model_file.read_text(encoding="utf-8") == build.model_text
    assert build.paths.callbacks_file.read_text(encoding="utf-8") == build.callbacks_text
    assert "function getCallbacks_exchange(foo)" in build.callbacks_text
    assert build.ode_system.state_names == ["A", "B"]


def test_cached_files_are_reused(tmp_path, exchange_sbml, caplog) -> None:
    first = build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    exchange_sbml.unlink()
    with caplog.at_level(logging.INFO):
        second = build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    assert second.model_text == first.model_text
    assert second.callbacks_text == first.callbacks_text
    assert second.model_dict.states == first.model_dict.states
    assert "Using cached exchange.jl" in caplog.text


def test_force_rebuild_needs_the_sbml_file(tmp_path, exchange_sbml) -> None:
    build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    exchange_sbml.unlink()
    with pytest.raises(ConfigError):
        build_petab_model(
            exchange_sbml, dir_julia=tmp_path, model_name="exchange", options=BuildOptions(force_rebuild=True)
        )


def test_missing_callbacks_are_regenerated(tmp_path, exchange_sbml) -> None:
    first = build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    first.paths.callbacks_file.unlink()
    second = build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    assert second.paths.callbacks_file.is_file()
    assert second.callbacks_text == first.callbacks_text


def test_dry_run_writes_nothing(tmp_path, exchange_sbml) -> None:
    out_dir = tmp_path / "julia"
    build = build_petab_model(
        exchange_sbml, dir_julia=out_dir, model_name="exchange", options=BuildOptions(write_to_file=False)
    )
    assert "getODEModel_exchange" in build.model_text
    assert not out_dir.exists()


def test_condition_tables_promote_initial_values(tmp_path, exchange_sbml) -> None:
    conditions = pd.DataFrame({"conditionId": ["c0", "c1"], "A": [1.0, 2.0]})
    parameters = pd.DataFrame({"parameterId": ["k1", "k2"]})
    build = build_petab_model(
        exchange_sbml, conditions=conditions, parameters=parameters, dir_julia=tmp_path, model_name="exchange"
    )
    assert build.model_dict.states["A"] == "__init__A__"
    assert "# Parameters outside the equations: __init__A__" in build.model_text
    assert build.ode_system.parameter_values["__init__A__"] == 1.0


_SPECIES_DEPENDENT_K2 = """</listOfParameters>
    <listOfInitialAssignments>
      <initialAssignment symbol="k2">
        <math xmlns="http://www.w3.org/1998/Math/MathML">
          <apply><times/><ci>A</ci><cn>0.4</cn></apply>
        </math>
      </initialAssignment>
    </listOfInitialAssignments>"""


def test_parameter_initial_assignment_referencing_a_species(tmp_path, exchange_sbml) -> None:
    text = exchange_sbml.read_text(encoding="utf-8").replace("</listOfParameters>", _SPECIES_DEPENDENT_K2)
    exchange_sbml.write_text(text, encoding="utf-8")
    build = build_petab_model(exchange_sbml, dir_julia=tmp_path, model_name="exchange")
    assert build.model_dict.parameters["k2"] == "A*0.4"
    assert build.ode_system.parameter_values["k2"] == pytest.approx(0.4)
    assert build.paths.model_file.is_file()


def _fail(*args, **kwargs):
    raise MalformedInputError("cannot build")


@pytest.mark.parametrize("target", ["render_callbacks", "OdeSystem"])
def test_failed_build_writes_no_files(tmp_path, exchange_sbml, monkeypatch, target: str) -> None:
    if target == "OdeSystem":
        monkeypatch.setattr(petab_model.OdeSystem, "from_model_dictionary", _fail)
    else:
        monkeypatch.setattr(petab_model, "render_callbacks", _fail)
    out_dir = tmp_path / "julia"
    with pytest.raises(MalformedInputError):
        build_petab_model(exchange_sbml, dir_julia=out_dir, model_name="exchange")
    assert not out_dir.exists()
