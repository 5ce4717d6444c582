"""Platform module registry, dependency graph and build ordering.

Key pieces:
    ModuleRegistry            - Reads the ``path = repoUrl`` module list
    resolve_dependencies      - Maps ``Depends.rule`` entries onto registry indices
    sort_in_dependency_order  - Orders modules so dependencies come first
"""

from .graph import UnknownModuleError, read_dependency_names, resolve_dependencies
from .models import DependencyGraph, Module
from .registry import ModuleRegistry, parse_module_line, parse_module_lines
from .sorter import (
    CircularDependencyError,
    DependencyOrderError,
    SelfReferenceError,
    build_order,
    sort_in_dependency_order,
)

__all__ = [
    # Data model
    "Module",
    "DependencyGraph",
    # Registry
    "ModuleRegistry",
    "parse_module_line",
    "parse_module_lines",
    # Dependency graph
    "resolve_dependencies",
    "read_dependency_names",
    "UnknownModuleError",
    # Ordering
    "build_order",
    "sort_in_dependency_order",
    "DependencyOrderError",
    "SelfReferenceError",
    "CircularDependencyError",
]
