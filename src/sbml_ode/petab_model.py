"""Turn an SBML file into cached model and callback files for a PEtab problem."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from .builder import build_model_dictionary
from .callbacks import render_callbacks
from .config import BuildOptions, ModelPaths
from .emitter import parse_ode_model, render_ode_model
from .entities import ModelDictionary
from .errors import ConfigError
from .ode_system import OdeSystem
from .petab_conditions import TableLike, add_parameters_condition_dependent_u0
from .sbml_reader import read_sbml

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class PEtabModelBuild:
    model_name: str
    model_dict: ModelDictionary
    model_text: str
    callbacks_text: str
    ode_system: OdeSystem
    paths: ModelPaths


def xml_to_model_dictionary(
    sbml_path: PathLike,
    path_jl: Optional[PathLike],
    model_name: str,
    write_to_file: bool = True,
    ifelse_to_event: bool = True,
) -> Tuple[ModelDictionary, str]:
    """Translate one SBML file; returns the dictionary and the rendered model text."""

    if write_to_file and path_jl is None:
        raise ConfigError("write_to_file requires a target path")
    model_dict = build_model_dictionary(read_sbml(sbml_path), ifelse_to_event=ifelse_to_event)
    text = render_ode_model(model_dict, model_name)
    if write_to_file:
        Path(path_jl).write_text(text, encoding="utf-8")
        logger.info("Wrote model file %s", path_jl)
    return model_dict, text


def _translate(
    sbml_path: PathLike,
    conditions: Optional[TableLike],
    parameters: Optional[TableLike],
    options: BuildOptions,
) -> ModelDictionary:
    model_dict = build_model_dictionary(read_sbml(sbml_path), ifelse_to_event=options.ifelse_to_event)
    if conditions is not None and parameters is not None:
        add_parameters_condition_dependent_u0(model_dict, conditions, parameters)
    return model_dict


def _use_cache(path: Path, options: BuildOptions) -> bool:
    if not path.is_file():
        logger.info("Building %s as it does not exist", path.name)
        return False
    if options.force_rebuild:
        logger.info("Rebuilding %s as force_rebuild is set", path.name)
        return False
    logger.info("Using cached %s", path.name)
    return True


def build_petab_model(
    sbml_path: PathLike,
    conditions: Optional[TableLike] = None,
    parameters: Optional[TableLike] = None,
    dir_julia: PathLike = ".",
    model_name: str = "model",
    options: BuildOptions = BuildOptions(),
) -> PEtabModelBuild:
    """Build or reuse ``<model>.jl`` and ``<model>_callbacks.jl`` in ``dir_julia``.

    Cached files are read verbatim; whether they are stale with respect to the
    SBML file is for the caller to decide via ``options.force_rebuild``.
    """

    paths = ModelPaths.create(dir_julia, model_name)

    translated: Optional[ModelDictionary] = None
    model_cached = _use_cache(paths.model_file, options)
    if model_cached:
        model_text = paths.model_file.read_text(encoding="utf-8")
        _, model_dict = parse_ode_model(model_text)
    else:
        translated = _translate(sbml_path, conditions, parameters, options)
        model_dict = translated
        model_text = render_ode_model(model_dict, model_name)

    callbacks_cached = _use_cache(paths.callbacks_file, options)
    if callbacks_cached:
        callbacks_text = paths.callbacks_file.read_text(encoding="utf-8")
    else:
        # Events only live in the SBML-derived dictionary, not in the model file.
        if translated is None:
            translated = _translate(sbml_path, conditions, parameters, options)
        callbacks_text = render_callbacks(translated, model_name)

    ode_system = OdeSystem.from_model_dictionary(model_dict)

    # Nothing is written unless every artefact above was built.
    if options.write_to_file:
        paths.dir_julia.mkdir(parents=True, exist_ok=True)
        if not model_cached:
            paths.model_file.write_text(model_text, encoding="utf-8")
            logger.info("Wrote model file %s", paths.model_file)
        if not callbacks_cached:
            paths.callbacks_file.write_text(callbacks_text, encoding="utf-8")
            logger.info("Wrote callbacks file %s", paths.callbacks_file)

    return PEtabModelBuild(
        model_name=model_name,
        model_dict=model_dict,
        model_text=model_text,
        callbacks_text=callbacks_text,
        ode_system=ode_system,
        paths=paths,
    )


__all__ = ["PEtabModelBuild", "build_petab_model", "xml_to_model_dictionary"]
