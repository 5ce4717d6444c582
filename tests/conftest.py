"""Shared pytest fixtures for the platform build test suite.

Provides reusable fixtures for:
- A temporary platform root with a module list and dependency declarations
- A fast-timeout ``Config`` pointing at that root
- Mock subprocess helpers
- Fake git and build tool collaborators
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from platform_build.config import BuildConfig, Config, ProcessConfig, SyncConfig
from platform_build.tools.build_cmd import BuildCommand
from platform_build.tools.git import Git


# ---------------------------------------------------------------------------
# Platform layout
# ---------------------------------------------------------------------------

def write_platform(
    root: Path,
    modules: dict[str, str],
    depends: dict[str, list[str]] | None = None,
    create_dirs: bool = True,
) -> Path:
    """Write a ``Modules.rule`` file and per-module ``lib/Depends.rule`` files.

    Args:
        root: Platform root directory.
        modules: ``{path: repo_url}`` in list order.
        depends: ``{path: [dependency paths]}``.
        create_dirs: Whether to create the module checkouts on disk.
    """
    root.mkdir(parents=True, exist_ok=True)
    lines = [f"{path} = {url}" for path, url in modules.items()]
    (root / "Modules.rule").write_text("\n".join(lines) + "\n", encoding="utf-8")
    if create_dirs:
        for path in modules:
            (root / path).mkdir(parents=True, exist_ok=True)
    for path, deps in (depends or {}).items():
        lib = root / path / "lib"
        lib.mkdir(parents=True, exist_ok=True)
        (lib / "Depends.rule").write_text("\n".join(deps) + "\n", encoding="utf-8")
    return root


@pytest.fixture
def platform_root(tmp_path: Path) -> Path:
    """Empty platform root directory."""
    root = tmp_path / "platform"
    root.mkdir()
    return root


@pytest.fixture
def make_platform(platform_root: Path) -> Callable[..., Path]:
    """Factory writing a module list (and dependency files) into ``platform_root``."""
    def factory(
        modules: dict[str, str],
        depends: dict[str, list[str]] | None = None,
        create_dirs: bool = True,
    ) -> Path:
        return write_platform(platform_root, modules, depends, create_dirs)

    return factory


@pytest.fixture
def config(platform_root: Path) -> Config:
    """Config rooted at ``platform_root`` with tiny timeouts and no backoff."""
    return Config(
        root=platform_root,
        process=ProcessConfig(first_timeout=5.0, second_timeout=5.0, kill_grace=1.0),
        sync=SyncConfig(retry_backoff_seconds=0.0, retry_backoff_max_seconds=0.0),
        build=BuildConfig(
            command=["make"],
            ready_check_seconds=0.01,
            ready_patience_seconds=0.05,
        ),
    )


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        mock_proc._transport = MagicMock()
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_git() -> MagicMock:
    """A ``Git`` whose every operation succeeds without running anything."""
    git = MagicMock(spec=Git)
    git.check_available = AsyncMock(return_value=True)
    git.pull_latest = AsyncMock(return_value=None)
    git.clone = AsyncMock(return_value=None)
    git.discard_local_changes = AsyncMock(return_value=True)
    git.pull_current_branch = AsyncMock(return_value=None)
    return git


@pytest.fixture
def fake_builder() -> MagicMock:
    """A ``BuildCommand`` whose build and SQL runs all exit 0."""
    builder = MagicMock(spec=BuildCommand)
    builder.build = AsyncMock(return_value=0)
    builder.run_sql_script = AsyncMock(return_value=0)
    builder.run_migrations = AsyncMock(return_value=0)
    return builder
