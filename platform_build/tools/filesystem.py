"""Local filesystem access used by the build.

All path handling for module checkouts goes through ``FileSystem`` so the
pipelines can be exercised against a temporary directory or a fake.
"""

from __future__ import annotations

import shutil
from pathlib import Path


class DeleteError(Exception):
    """Raised when a path exists but could not be removed."""

    def __init__(self, path: Path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to delete {path}, because of a {type(cause).__name__}: {cause}")


class FileSystem:
    """Thin wrapper over ``pathlib``/``shutil`` for the operations the build needs."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def delete(self, path: Path) -> None:
        """Remove a file or a whole directory tree.

        Raises:
            DeleteError: If the removal fails.
        """
        target = Path(path)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as exc:
            raise DeleteError(target, exc) from exc

    def read_lines(self, path: Path) -> list[str]:
        """Return the lines of a text file without line terminators."""
        return Path(path).read_text(encoding="utf-8-sig").splitlines()

    def list_descendants(self, path: Path, pattern: str) -> list[Path]:
        """Files under *path* (recursively) whose name matches *pattern*.

        The result is sorted ascending by path so callers get a stable order.
        """
        root = Path(path)
        if not root.is_dir():
            return []
        return sorted((p for p in root.rglob(pattern) if p.is_file()), key=lambda p: p.as_posix())

    def glob(self, path: Path, pattern: str) -> list[Path]:
        """Files matching a relative glob *pattern* (``**`` allowed) under *path*."""
        root = Path(path)
        if not root.is_dir():
            return []
        return sorted((p for p in root.glob(pattern) if p.is_file()), key=lambda p: p.as_posix())

    def copy_into(self, source: Path, dest_dir: Path) -> Path:
        """Copy *source* into *dest_dir*, creating the directory if needed."""
        dest = Path(dest_dir)
        dest.mkdir(parents=True, exist_ok=True)
        target = dest / Path(source).name
        shutil.copy2(source, target)
        return target
