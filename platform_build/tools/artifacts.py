"""Store of build outputs available to dependent modules.

The store only tracks the latest copy of each artifact, keyed by file name.
Modules are built in dependency order, so by the time a module's library
folder is filled, every dependency's newest output has been registered.
"""

from __future__ import annotations

from pathlib import Path

from ..utils import print_verbose, print_warning
from .filesystem import FileSystem


class ArtifactStore:
    """Latest-available build artifacts, copied into dependants' library folders."""

    def __init__(self, patterns: list[str], fs: FileSystem | None = None):
        self.patterns = list(patterns)
        self.fs = fs or FileSystem()
        self.available: dict[str, Path] = {}

    def __len__(self) -> int:
        return len(self.available)

    def _register(self, path: Path, keep_newer: bool = False) -> None:
        current = self.available.get(path.name)
        if keep_newer and current is not None:
            if current.stat().st_mtime >= path.stat().st_mtime:
                return
        self.available[path.name] = path

    def read_masters(self, root: Path, masters: list[str]) -> int:
        """Seed the store with pre-built artifacts found under *root*.

        When several files share a name the most recently modified wins.

        Returns:
            Number of artifacts available afterwards.
        """
        for pattern in masters:
            for path in self.fs.glob(root, pattern):
                self._register(path, keep_newer=True)
        print_verbose(f"{len(self.available)} master artifact(s) available")
        return len(self.available)

    def update_available_dependencies(self, source: Path) -> list[Path]:
        """Register the outputs found under *source*, replacing older entries.

        Returns:
            The artifacts registered by this call.
        """
        found: list[Path] = []
        for pattern in self.patterns:
            for path in self.fs.glob(source, pattern):
                self._register(path)
                found.append(path)
        if found:
            print_verbose(f"Registered {len(found)} artifact(s) from {source}")
        return found

    def copy_build_results_to(self, dest: Path) -> list[Path]:
        """Copy every available artifact into *dest*.

        A file that cannot be copied is reported and skipped so the remaining
        artifacts still reach the module.

        Returns:
            The paths written under *dest*.
        """
        copied: list[Path] = []
        for name in sorted(self.available):
            source = self.available[name]
            try:
                copied.append(self.fs.copy_into(source, dest))
            except OSError as exc:
                print_warning(f"Could not copy {source} to {dest}: {exc}")
        return copied
