"""Dependency ordering of platform modules.

Modules are put in an order where every dependency comes before its dependents,
so artifacts can be built and distributed without any module picking up an
out-of-date library.
"""

from __future__ import annotations

from ..utils import print_info, print_verbose
from .models import DependencyGraph, Module


class DependencyOrderError(Exception):
    """Base class for graphs that cannot be ordered."""


class SelfReferenceError(DependencyOrderError):
    """A module lists itself as a dependency."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} is self referencing")


class CircularDependencyError(DependencyOrderError):
    """No remaining module can be placed because of a dependency cycle.

    Attributes:
        unresolved: Paths that could not be ordered.
        ordered: The partial order found before progress stopped.
    """

    def __init__(self, unresolved: list[str], ordered: list[str]):
        self.unresolved = unresolved
        self.ordered = ordered
        super().__init__(
            "Circular dependency. In: "
            + ", ".join(unresolved)
            + "\nOut: "
            + ", ".join(ordered)
        )


def _is_self_referencing(graph: DependencyGraph, idx: int) -> bool:
    dep_names = graph.dependency_paths(idx)
    print_verbose(f"{graph[idx].path} <-- {', '.join(dep_names)}")
    return idx in graph[idx].dependencies


def build_order(graph: DependencyGraph) -> list[int]:
    """Compute the dependency order of *graph* as a list of its indices.

    Repeated left-to-right passes over the pending modules move each module
    whose dependencies are all placed; a module placed early in a pass can
    unblock one later in the same pass. Ties keep registry order.

    Raises:
        SelfReferenceError: If a module depends on itself.
        CircularDependencyError: If a pass places nothing.
    """
    pending = list(range(len(graph)))
    ordered: list[int] = []
    placed: set[int] = set()

    while pending:
        progressed = False
        remaining: list[int] = []
        for idx in pending:
            if _is_self_referencing(graph, idx):
                raise SelfReferenceError(graph[idx].path)
            if all(dep in placed for dep in graph[idx].dependencies):
                ordered.append(idx)
                placed.add(idx)
                progressed = True
            else:
                remaining.append(idx)
        pending = remaining
        if not progressed:
            raise CircularDependencyError(
                unresolved=[graph[i].path for i in pending],
                ordered=[graph[i].path for i in ordered],
            )

    return ordered


def sort_in_dependency_order(graph: DependencyGraph) -> DependencyGraph:
    """Return a new graph whose modules are in dependency order.

    Dependency indices are remapped to the new positions, and
    ``original_indices`` records where each module came from.
    """
    order = build_order(graph)
    position = {old: new for new, old in enumerate(order)}

    modules = [
        Module(
            path=graph[old].path,
            repo_url=graph[old].repo_url,
            dependencies=[position[d] for d in graph[old].dependencies],
        )
        for old in order
    ]
    if graph.original_indices is not None:
        original = [graph.original_indices[old] for old in order]
    else:
        original = order

    sorted_graph = DependencyGraph(modules=modules, original_indices=original)
    print_info("Build order: " + ", ".join(sorted_graph.paths))
    return sorted_graph
