"""Module registry: the ``path = repoUrl`` list that defines a platform.

Each non-blank line of the module list names one module. The text before the
first ``=`` is the checkout path relative to the platform root, the rest is the
repository URL. Line order defines the module's original index.
"""

from __future__ import annotations

from pathlib import Path

from ..config import ConfigurationError
from ..tools.filesystem import FileSystem
from ..utils import print_verbose
from .models import DependencyGraph, Module


def parse_module_line(line: str, line_number: int = 0, source: str = "") -> Module:
    """Parse one ``path = repoUrl`` line.

    Raises:
        ConfigurationError: If the line has no ``=`` or an empty side.
    """
    path, sep, repo = line.partition("=")
    path, repo = path.strip(), repo.strip()
    where = f"{source}:{line_number}" if source else f"line {line_number}"
    if not sep:
        raise ConfigurationError(f"expected 'path = repoUrl', got {line.strip()!r}", source=where)
    if not path or not repo:
        raise ConfigurationError(f"empty module path or repository in {line.strip()!r}", source=where)
    return Module(path=path, repo_url=repo)


def parse_module_lines(lines: list[str], source: str = "") -> DependencyGraph:
    """Build an edge-less graph from module list lines.

    Raises:
        ConfigurationError: On a malformed line or a duplicated module path.
    """
    modules: list[Module] = []
    seen: dict[str, int] = {}
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        print_verbose(line)
        module = parse_module_line(line, number, source)
        if module.path in seen:
            raise ConfigurationError(
                f"module path {module.path!r} is listed twice (lines {seen[module.path]} and {number})",
                source=source,
            )
        seen[module.path] = number
        modules.append(module)
    return DependencyGraph(modules=modules)


class ModuleRegistry:
    """Loads the module list for a platform root."""

    def __init__(self, list_path: Path, fs: FileSystem | None = None):
        self.list_path = Path(list_path)
        self.fs = fs or FileSystem()

    def load(self) -> DependencyGraph:
        """Read and parse the module list.

        Raises:
            ConfigurationError: If the list is missing, not UTF-8 or malformed.
        """
        print_verbose(f"Reading {self.list_path}")
        if not self.fs.exists(self.list_path):
            raise ConfigurationError("module list not found", source=str(self.list_path))
        try:
            lines = self.fs.read_lines(self.list_path)
        except UnicodeDecodeError as exc:
            raise ConfigurationError(
                f"module list is not valid UTF-8: {exc.reason}", source=str(self.list_path)
            ) from exc
        return parse_module_lines(lines, source=str(self.list_path))
