"""Dependency graph construction from per-module ``Depends.rule`` files.

Each module may carry a newline-separated list of the module paths it needs at
build time, stored under its library folder. References are matched exactly
against the registry paths.
"""

from __future__ import annotations

from ..config import Config, ConfigurationError
from ..tools.filesystem import FileSystem
from ..utils import print_verbose
from .models import DependencyGraph, Module


class UnknownModuleError(Exception):
    """A dependency declaration names a module that is not in the registry.

    This error is recoverable: the orchestrator catches it, brings every
    checkout up to date (which may fix stale declarations or the list itself)
    and prepares again.

    Attributes:
        requiring: Path of the module whose declaration failed to resolve
            (the last one found).
        missing: The unresolved name.
        unresolved: Every ``(requiring, missing)`` pair found in the scan.
        graph: The graph with all the edges that did resolve.
    """

    def __init__(
        self,
        requiring: str,
        missing: str,
        unresolved: list[tuple[str, str]] | None = None,
        graph: DependencyGraph | None = None,
    ):
        self.requiring = requiring
        self.missing = missing
        self.unresolved = unresolved or [(requiring, missing)]
        self.graph = graph
        super().__init__(f"{requiring} requires unknown module {missing}")


def read_dependency_names(config: Config, module_path: str, fs: FileSystem) -> list[str]:
    """Names listed in a module's dependency declaration, or ``[]`` if it has none.

    Raises:
        ConfigurationError: If the declaration is not valid UTF-8.
    """
    rule_file = config.dependency_rule_path(module_path)
    if not fs.exists(rule_file):
        return []
    try:
        lines = fs.read_lines(rule_file)
    except UnicodeDecodeError as exc:
        raise ConfigurationError(
            f"dependency declaration is not valid UTF-8: {exc.reason}", source=str(rule_file)
        ) from exc
    return [line.strip() for line in lines if line.strip()]


def resolve_dependencies(
    graph: DependencyGraph,
    config: Config,
    fs: FileSystem | None = None,
) -> DependencyGraph:
    """Return a copy of *graph* with dependency indices filled in.

    Every module is scanned even after a failure so the returned (or attached)
    graph is as complete as possible.

    Raises:
        UnknownModuleError: If any declared dependency is not registered.
    """
    fs = fs or FileSystem()
    index = {path: i for i, path in enumerate(graph.paths)}
    modules: list[Module] = []
    unresolved: list[tuple[str, str]] = []

    for module in graph.modules:
        deps: list[int] = []
        for name in read_dependency_names(config, module.path, fs):
            ref = index.get(name)
            if ref is None:
                unresolved.append((module.path, name))
                continue
            deps.append(ref)
        modules.append(module.model_copy(update={"dependencies": deps}))

    resolved = DependencyGraph(modules=modules)
    if unresolved:
        requiring, missing = unresolved[-1]
        raise UnknownModuleError(requiring, missing, unresolved=unresolved, graph=resolved)

    for i in range(len(resolved)):
        if resolved[i].dependencies:
            print_verbose(f"{resolved[i].path} depends on {', '.join(resolved.dependency_paths(i))}")
    return resolved
