"""Condition-dependent initial values from PEtab condition tables."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import numpy as np
import pandas as pd

from .entities import ModelDictionary, ParameterSBML
from .errors import MalformedInputError
from .expressions import is_number

logger = logging.getLogger(__name__)

TableLike = Union[pd.DataFrame, str, Path]


def load_table(table: TableLike) -> pd.DataFrame:
    """Accept a DataFrame or a path to a PEtab TSV file."""

    if isinstance(table, pd.DataFrame):
        return table
    path = Path(table)
    if not path.is_file():
        raise MalformedInputError(f"PEtab table {path} does not exist")
    return pd.read_csv(path, sep="\t")


def init_parameter_name(entity: str) -> str:
    return f"__init__{entity}__"


def _register(model_dict: ModelDictionary, parameter: ParameterSBML) -> None:
    model_dict.parameters[parameter.name] = parameter.initial_value
    if parameter.name not in model_dict.unused_parameters:
        model_dict.unused_parameters.append(parameter.name)


def _cell_is_value(cell, model_dict: ModelDictionary) -> bool:
    if cell is None:
        return True
    if isinstance(cell, (bool, int, float, np.integer, np.floating)):
        return True
    if pd.isna(cell):
        return True
    text = str(cell).strip()
    return not text or is_number(text) or text in model_dict.parameters


def add_parameters_condition_dependent_u0(
    model_dict: ModelDictionary,
    conditions: TableLike,
    parameters: TableLike,
) -> bool:
    """Promote initial values set by condition columns to ``__init__<entity>__`` parameters.

    Returns True when the model structure changed. Entities already promoted
    are left alone, so repeated calls are harmless.
    """

    condition_table = load_table(conditions)
    columns = [str(column) for column in condition_table.columns]
    if len(columns) <= 1:
        return False
    start = 2 if columns[1] == "conditionName" else 1
    candidates = columns[start:]
    species = [name for name in candidates if name in model_dict.states]
    rate_rule = [
        name
        for name in candidates
        if name in model_dict.non_constant_parameters and model_dict.non_constant_parameters[name].has_rate_rule
    ]
    if not species and not rate_rule:
        return False

    changed = False
    for name in species:
        init_name = init_parameter_name(name)
        if model_dict.states[name] == init_name:
            continue
        _register(
            model_dict,
            ParameterSBML(name=init_name, initial_value=model_dict.states[name]),
        )
        model_dict.states[name] = init_name
        changed = True
    for name in rate_rule:
        init_name = init_parameter_name(name)
        entry = model_dict.non_constant_parameters[name]
        if entry.value == init_name:
            continue
        _register(model_dict, ParameterSBML(name=init_name, initial_value=entry.value))
        entry.value = init_name
        changed = True

    parameter_table = load_table(parameters)
    if "parameterId" in parameter_table.columns:
        parameter_ids = {str(value) for value in parameter_table["parameterId"]}
    else:
        parameter_ids = set()
    for column in species + rate_rule:
        for cell in condition_table[column]:
            if _cell_is_value(cell, model_dict):
                continue
            text = str(cell).strip()
            if text not in parameter_ids:
                raise MalformedInputError(
                    f"Condition value '{text}' for '{column}' is neither a number nor a known parameter"
                )
            _register(model_dict, ParameterSBML(name=text, initial_value="0.0"))
            changed = True

    if changed:
        promoted: List[str] = [init_parameter_name(name) for name in species + rate_rule]
        logger.info("Condition-dependent initial values via %s", ", ".join(promoted))
    return changed


__all__ = ["add_parameters_condition_dependent_u0", "load_table", "init_parameter_name"]
