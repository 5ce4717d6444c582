"""Unit tests for the artifact store (platform_build.tools.artifacts)."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from platform_build.tools.artifacts import ArtifactStore
from platform_build.tools.filesystem import FileSystem

PATTERNS = ["**/bin/**/*.dll"]


def _artifact(root: Path, relative: str, content: bytes = b"", mtime: float | None = None) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class TestUpdateAvailable:
    @pytest.mark.unit
    def test_registers_matching_outputs(self, tmp_path: Path):
        dll = _artifact(tmp_path, "src/Core/bin/Debug/Core.dll")
        _artifact(tmp_path, "src/Core/obj/Core.dll")

        store = ArtifactStore(PATTERNS)
        assert store.update_available_dependencies(tmp_path / "src") == [dll]
        assert store.available == {"Core.dll": dll}

    @pytest.mark.unit
    def test_later_module_replaces_entry(self, tmp_path: Path):
        first = _artifact(tmp_path, "a/src/bin/Shared.dll", b"old")
        second = _artifact(tmp_path, "b/src/bin/Shared.dll", b"new")

        store = ArtifactStore(PATTERNS)
        store.update_available_dependencies(tmp_path / "a" / "src")
        store.update_available_dependencies(tmp_path / "b" / "src")
        assert store.available["Shared.dll"] == second
        assert first.exists()
        assert len(store) == 1

    @pytest.mark.unit
    def test_missing_output_dir(self, tmp_path: Path):
        store = ArtifactStore(PATTERNS)
        assert store.update_available_dependencies(tmp_path / "nothing") == []


class TestReadMasters:
    @pytest.mark.unit
    def test_newest_master_wins(self, tmp_path: Path):
        _artifact(tmp_path, "masters/v1/Core.dll", b"v1", mtime=1_000_000)
        newest = _artifact(tmp_path, "masters/v2/Core.dll", b"v2", mtime=2_000_000)
        _artifact(tmp_path, "masters/v3/Core.dll", b"v3", mtime=1_500_000)

        store = ArtifactStore(PATTERNS)
        assert store.read_masters(tmp_path, ["masters/**/*.dll"]) == 1
        assert store.available["Core.dll"] == newest

    @pytest.mark.unit
    def test_no_masters(self, tmp_path: Path):
        assert ArtifactStore(PATTERNS).read_masters(tmp_path, []) == 0


class TestCopyBuildResults:
    @pytest.mark.unit
    def test_copies_everything_available(self, tmp_path: Path):
        _artifact(tmp_path, "core/src/bin/Core.dll", b"core")
        _artifact(tmp_path, "util/src/bin/Util.dll", b"util")
        store = ArtifactStore(PATTERNS)
        store.update_available_dependencies(tmp_path / "core" / "src")
        store.update_available_dependencies(tmp_path / "util" / "src")

        dest = tmp_path / "app" / "lib"
        copied = store.copy_build_results_to(dest)

        assert [p.name for p in copied] == ["Core.dll", "Util.dll"]
        assert (dest / "Core.dll").read_bytes() == b"core"

    @pytest.mark.unit
    def test_copy_failure_skips_file(self, tmp_path: Path):
        fs = MagicMock(spec=FileSystem)
        fs.copy_into.side_effect = [OSError("locked"), tmp_path / "lib" / "B.dll"]
        store = ArtifactStore(PATTERNS, fs)
        store.available = {"A.dll": tmp_path / "A.dll", "B.dll": tmp_path / "B.dll"}

        assert store.copy_build_results_to(tmp_path / "lib") == [tmp_path / "lib" / "B.dll"]
        assert fs.copy_into.call_count == 2
