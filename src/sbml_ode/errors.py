"""Domain-specific exceptions for the SBML translation pipeline."""

from __future__ import annotations


class TranslationError(RuntimeError):
    """Base class for SBML translation errors."""


class ConfigError(TranslationError):
    """Raised when build options or input paths are invalid."""


class UnsupportedConstructError(TranslationError):
    """Raised when the SBML model uses a construct the ODE layer cannot express."""


class MalformedInputError(TranslationError):
    """Raised when math, triggers, tables or model files are malformed."""


class CyclicDependencyError(TranslationError):
    """Raised when definitions depend on each other in a cycle."""


__all__ = [
    "TranslationError",
    "ConfigError",
    "UnsupportedConstructError",
    "MalformedInputError",
    "CyclicDependencyError",
]
