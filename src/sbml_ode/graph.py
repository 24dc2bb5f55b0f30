"""Dependency graph helpers for definitions that reference each other."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

from .errors import CyclicDependencyError
from .expressions import BASE_FUNCTIONS, get_arguments, parenthesize, substitute_identifiers


def topological_order(dependencies: Mapping[str, Sequence[str]], *, label: str = "definition") -> List[str]:
    """Order the keys of ``dependencies`` so every key follows the keys it depends on.

    Dependencies that are not keys themselves are treated as leaves. Insertion
    order breaks ties, so the result is deterministic.
    """

    ordered: List[str] = []
    temporary: Dict[str, bool] = {}
    permanent: Dict[str, bool] = {}
    path: List[str] = []

    def visit(node: str) -> None:
        if permanent.get(node):
            return
        if temporary.get(node):
            cycle = path[path.index(node):] + [node]
            raise CyclicDependencyError(f"Unresolvable {label} cycle: {' -> '.join(cycle)}")
        temporary[node] = True
        path.append(node)
        for dependency in dependencies.get(node, ()):
            if dependency in dependencies:
                visit(dependency)
        path.pop()
        temporary.pop(node, None)
        permanent[node] = True
        ordered.append(node)

    for node in dependencies:
        visit(node)
    return ordered


def definition_dependencies(
    values: Mapping[str, str],
    targets: Iterable[str],
    base_functions: Sequence[str] = BASE_FUNCTIONS,
) -> Dict[str, List[str]]:
    wanted = set(targets)
    dependencies: Dict[str, List[str]] = {}
    for name, formula in values.items():
        if name not in wanted:
            continue
        dependencies[name] = [arg for arg in get_arguments(formula, base_functions) if arg in values]
    return dependencies


def resolve_definitions(
    values: Mapping[str, str],
    targets: Iterable[str],
    base_functions: Sequence[str] = BASE_FUNCTIONS,
    *,
    label: str = "definition",
) -> Dict[str, str]:
    """Substitute same-namespace references in ``targets`` until none remain.

    Returns the closed-form formula of every target. Values of non-target keys
    are substituted verbatim.
    """

    dependencies = definition_dependencies(values, targets, base_functions)
    resolved: Dict[str, str] = dict(values)
    for name in topological_order(dependencies, label=label):
        mapping = {dep: parenthesize(resolved[dep]) for dep in dependencies[name]}
        resolved[name] = substitute_identifiers(values[name], mapping)
    return {name: resolved[name] for name in dependencies}


__all__ = ["topological_order", "definition_dependencies", "resolve_definitions"]
