"""Public exports for the SBML to ODE translator."""

from .builder import build_model_dictionary
from .callbacks import render_callbacks
from .config import BuildOptions, ModelPaths
from .emitter import parse_ode_model, render_ode_model, rewrite_model_file, write_ode_model
from .entities import ModelDictionary, SbmlDocument
from .errors import (
    ConfigError,
    CyclicDependencyError,
    MalformedInputError,
    TranslationError,
    UnsupportedConstructError,
)
from .ode_system import OdeSystem
from .petab_conditions import add_parameters_condition_dependent_u0
from .petab_model import PEtabModelBuild, build_petab_model, xml_to_model_dictionary
from .sbml_reader import read_sbml, read_sbml_string

__all__ = [
    "BuildOptions",
    "ModelPaths",
    "ModelDictionary",
    "SbmlDocument",
    "OdeSystem",
    "PEtabModelBuild",
    "TranslationError",
    "ConfigError",
    "CyclicDependencyError",
    "MalformedInputError",
    "UnsupportedConstructError",
    "build_model_dictionary",
    "render_ode_model",
    "write_ode_model",
    "parse_ode_model",
    "rewrite_model_file",
    "render_callbacks",
    "add_parameters_condition_dependent_u0",
    "build_petab_model",
    "xml_to_model_dictionary",
    "read_sbml",
    "read_sbml_string",
]
