"""Symbolic ODE system built from the model dictionary with sympy.

This is the in-process counterpart of the emitted model file: the same
states, parameters and right-hand sides, ready for a numerical solver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import sympy as sp

from .entities import ModelDictionary
from .errors import MalformedInputError
from .expressions import BASE_FUNCTIONS, get_arguments, substitute_identifiers
from .graph import resolve_definitions, topological_order

logger = logging.getLogger(__name__)

TIME = "t"
# Python keywords cannot be sympified as call names.
_KEYWORD_CALLS = {"and": "LOGICAL_AND", "or": "LOGICAL_OR", "not": "LOGICAL_NOT"}


def _ifelse(condition, if_true, if_false):
    return sp.Piecewise((if_true, condition), (if_false, True))


def _log(*args):
    if len(args) == 1:
        return sp.log(args[0])
    base, argument = args
    return sp.log(argument, base)


_FUNCTIONS: Dict[str, object] = {
    "ifelse": _ifelse,
    "lt": sp.Lt,
    "gt": sp.Gt,
    "leq": sp.Le,
    "geq": sp.Ge,
    "eq": sp.Eq,
    "neq": sp.Ne,
    "LOGICAL_AND": sp.And,
    "LOGICAL_OR": sp.Or,
    "LOGICAL_NOT": sp.Not,
    "xor": sp.Xor,
    "log": _log,
    "log2": lambda x: sp.log(x, 2),
    "log10": lambda x: sp.log(x, 10),
    "true": sp.true,
    "false": sp.false,
    "pi": sp.pi,
}


class _SympyParser:
    def __init__(self, names: Sequence[str]):
        self.symbols: Dict[str, sp.Symbol] = {name: sp.Symbol(name) for name in names}
        self.safe_names: Dict[str, str] = {name: f"SYM_{idx}" for idx, name in enumerate(names)}
        self.safe_names.update(_KEYWORD_CALLS)
        self.namespace: Dict[str, object] = dict(_FUNCTIONS)
        for name, safe in self.safe_names.items():
            if name in self.symbols:
                self.namespace[safe] = self.symbols[name]

    def parse(self, formula: str) -> sp.Expr:
        text = substitute_identifiers(formula, self.safe_names).replace("^", "**")
        try:
            return sp.sympify(text, locals=self.namespace)
        except (sp.SympifyError, SyntaxError, TypeError) as exc:
            raise MalformedInputError(f"Cannot interpret formula '{formula}': {exc}") from exc


def _equation_rhs(text: str) -> str:
    rhs = text.split("~", 1)[1].strip() if "~" in text else text.strip()
    return rhs or "0.0"


@dataclass
class OdeSystem:
    time: sp.Symbol
    states: Tuple[sp.Symbol, ...]
    parameters: Tuple[sp.Symbol, ...]
    rhs: Tuple[sp.Expr, ...]
    initial_values: Tuple[sp.Expr, ...]
    parameter_values: Dict[str, float]

    @property
    def state_names(self) -> List[str]:
        return [symbol.name for symbol in self.states]

    @property
    def parameter_names(self) -> List[str]:
        return [symbol.name for symbol in self.parameters]

    @classmethod
    def from_model_dictionary(
        cls,
        model_dict: ModelDictionary,
        base_functions: Sequence[str] = BASE_FUNCTIONS,
    ) -> "OdeSystem":
        state_names = list(model_dict.states) + list(model_dict.non_constant_parameters)
        parameter_names = list(model_dict.parameters)
        input_names = list(model_dict.input_functions)
        parser = _SympyParser([TIME] + state_names + parameter_names + input_names)
        symbols = parser.symbols

        input_formulas = {name: _equation_rhs(text) for name, text in model_dict.input_functions.items()}
        dependencies = {
            name: [arg for arg in get_arguments(formula, base_functions) if arg in input_formulas]
            for name, formula in input_formulas.items()
        }
        inputs: Dict[sp.Symbol, sp.Expr] = {}
        for name in topological_order(dependencies, label="input function"):
            inputs[symbols[name]] = parser.parse(input_formulas[name]).xreplace(inputs)

        rhs: List[sp.Expr] = []
        for name in model_dict.states:
            rhs.append(parser.parse(_equation_rhs(model_dict.derivatives.get(name, ""))))
        for entry in model_dict.non_constant_parameters.values():
            rhs.append(parser.parse(entry.rate))
        rhs = [expr.xreplace(inputs) for expr in rhs]

        allowed = {symbols[TIME]} | {symbols[name] for name in state_names + parameter_names}
        for name, expr in zip(state_names, rhs):
            unknown = expr.free_symbols - allowed
            if unknown:
                raise MalformedInputError(
                    f"Derivative of '{name}' references unknown symbols {sorted(map(str, unknown))}"
                )

        initial_formulas = list(model_dict.states.values())
        initial_formulas += [entry.value for entry in model_dict.non_constant_parameters.values()]
        initial_values = tuple(parser.parse(formula).xreplace(inputs) for formula in initial_formulas)

        system = cls(
            time=symbols[TIME],
            states=tuple(symbols[name] for name in state_names),
            parameters=tuple(symbols[name] for name in parameter_names),
            rhs=tuple(rhs),
            initial_values=initial_values,
            parameter_values=_numeric_parameters(model_dict, parser, base_functions),
        )
        logger.debug("ode system states=%d parameters=%d", len(system.states), len(system.parameters))
        return system

    def parameter_vector(self) -> np.ndarray:
        return np.array([self.parameter_values[name] for name in self.parameter_names], dtype=float)

    def initial_state(self, p: Optional[Sequence[float]] = None) -> np.ndarray:
        values = self.parameter_vector() if p is None else np.asarray(p, dtype=float)
        func = sp.lambdify([self.parameters], list(self.initial_values), modules=["math"])
        try:
            return np.asarray(func(values), dtype=float)
        except TypeError as exc:
            raise MalformedInputError(f"Initial values do not evaluate to numbers: {exc}") from exc

    def rhs_function(self) -> Callable[[float, np.ndarray, np.ndarray], np.ndarray]:
        func = sp.lambdify((self.time, self.states, self.parameters), list(self.rhs), modules=["math"])

        def rhs(t: float, y: np.ndarray, p: np.ndarray) -> np.ndarray:
            return np.asarray(func(t, y, p), dtype=float)

        return rhs

    def jacobian(self) -> sp.Matrix:
        return sp.Matrix(self.rhs).jacobian(sp.Matrix(self.states))


def _numeric_parameters(
    model_dict: ModelDictionary,
    parser: _SympyParser,
    base_functions: Sequence[str],
) -> Dict[str, float]:
    """Evaluate parameter values; references to states use their initial values."""

    values: Dict[str, str] = dict(model_dict.parameters)
    values.update(model_dict.states)
    values.update({name: entry.value for name, entry in model_dict.non_constant_parameters.items()})
    values.update({name: _equation_rhs(text) for name, text in model_dict.input_functions.items()})
    closed = resolve_definitions(values, list(values), base_functions, label="parameter value")
    numeric: Dict[str, float] = {}
    for name in model_dict.parameters:
        expr = parser.parse(closed[name])
        if expr.free_symbols:
            raise MalformedInputError(
                f"Parameter '{name}' does not evaluate to a number; free symbols {sorted(map(str, expr.free_symbols))}"
            )
        numeric[name] = float(expr)
    return numeric


__all__ = ["OdeSystem"]
