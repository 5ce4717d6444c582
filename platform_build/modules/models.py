"""Pydantic v2 models for the platform module registry and dependency graph.

A module's identity is its position in the registry. Dependencies are stored
as indices into the same registry, so a graph is only meaningful together with
the module ordering it was built against.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Module(BaseModel):
    """One independently versioned source module."""

    path: str = Field(..., description="Checkout location relative to the platform root")
    repo_url: str = Field(..., description="Repository the module is cloned from")
    dependencies: list[int] = Field(
        default_factory=list, description="Registry indices of modules required at build time"
    )


class DependencyGraph(BaseModel):
    """Ordered modules plus the dependant -> dependency edges between them.

    ``original_indices`` records, for each position, the index the module had
    in the registry before sorting. It is ``None`` for an unsorted graph.
    """

    modules: list[Module] = Field(default_factory=list)
    original_indices: Optional[list[int]] = Field(default=None)

    @model_validator(mode="after")
    def _check_indices(self) -> "DependencyGraph":
        count = len(self.modules)
        for module in self.modules:
            for dep in module.dependencies:
                if dep < 0 or dep >= count:
                    raise ValueError(
                        f"{module.path} has dependency index {dep} outside 0..{count - 1}"
                    )
        if self.original_indices is not None and sorted(self.original_indices) != list(range(count)):
            raise ValueError("original_indices must be a permutation of the module indices")
        return self

    def __len__(self) -> int:
        return len(self.modules)

    def __getitem__(self, index: int) -> Module:
        return self.modules[index]

    @property
    def paths(self) -> list[str]:
        return [m.path for m in self.modules]

    @property
    def repos(self) -> list[str]:
        return [m.repo_url for m in self.modules]

    def index_of(self, path: str) -> int:
        """Return the index of the module at *path*, or ``-1``."""
        for i, module in enumerate(self.modules):
            if module.path == path:
                return i
        return -1

    def dependency_paths(self, index: int) -> list[str]:
        """Paths of the modules that the module at *index* depends on."""
        return [self.modules[d].path for d in self.modules[index].dependencies]
