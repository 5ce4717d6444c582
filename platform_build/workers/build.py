"""Module build worker.

Walks the modules in dependency order. For each one it waits for the sync
worker, copies every artifact built so far into the module's library folder,
runs the build tool and registers the module's own outputs for the modules
that follow. A failing module is recorded and the worker moves on.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from ..config import Config
from ..modules.models import DependencyGraph, Module
from ..tools.artifacts import ArtifactStore
from ..tools.build_cmd import BuildCommand
from ..tools.filesystem import FileSystem
from ..utils import print_error, print_info, print_success
from .signals import ReadinessSignals

BUILT = "built"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class ModuleBuildResult:
    """What happened to one module in the build worker."""

    path: str
    status: str
    exit_code: Optional[int] = None
    error: str = ""
    duration_seconds: float = 0.0
    artifacts: int = 0

    @property
    def failed(self) -> bool:
        return self.status == FAILED

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class BuildPipeline:
    """Builds modules in order, propagating artifacts to dependants."""

    def __init__(
        self,
        config: Config,
        builder: BuildCommand,
        store: ArtifactStore,
        fs: FileSystem | None = None,
    ):
        self.config = config
        self.builder = builder
        self.store = store
        self.fs = fs or FileSystem()

    def build_path(self, module_path: str) -> Path:
        module_dir = self.config.module_path(module_path)
        if self.config.build.build_dir:
            return module_dir / self.config.build.build_dir
        return module_dir

    async def wait_until_ready(self, signals: ReadinessSignals, index: int, module_path: str) -> None:
        """Wait for the sync worker, getting louder the longer it takes."""
        settings = self.config.build
        if await signals.wait(index, settings.ready_check_seconds):
            return
        print_info(f"Waiting for git update of {module_path}")
        if await signals.wait(index, settings.ready_patience_seconds):
            return
        print_error(f"Waiting a long time for {module_path} to update!")
        await signals.wait(index)

    async def build_module(self, module: Module) -> ModuleBuildResult:
        """Copy dependencies into *module*, build it and register its outputs."""
        loop = asyncio.get_running_loop()
        module_dir = self.config.module_path(module.path)
        build_path = self.build_path(module.path)
        has_build_folder = self.fs.exists(build_path)

        await loop.run_in_executor(
            None, self.store.copy_build_results_to, module_dir / self.config.library_dir
        )

        if not has_build_folder:
            print_info(f"Ignoring {module.path} because it has no build folder")
            return ModuleBuildResult(path=module.path, status=SKIPPED)

        print_info(f"Starting build of {module.path}")
        start = time.monotonic()
        try:
            code = await self.builder.build(self.config.root, build_path)
        except Exception as exc:
            print_error(f"Build error: {type(exc).__name__}: {exc}")
            result = ModuleBuildResult(path=module.path, status=FAILED, error=str(exc))
        else:
            if code != 0:
                print_error(f"Build failed: {module.path}")
                result = ModuleBuildResult(
                    path=module.path, status=FAILED, exit_code=code, error=f"exit code {code}"
                )
            else:
                print_success(f"Build complete: {module.path}")
                result = ModuleBuildResult(path=module.path, status=BUILT, exit_code=0)
        result.duration_seconds = time.monotonic() - start

        registered = await loop.run_in_executor(
            None,
            self.store.update_available_dependencies,
            module_dir / self.config.build.output_dir,
        )
        result.artifacts = len(registered)
        return result

    async def run(self, graph: DependencyGraph, signals: ReadinessSignals) -> list[ModuleBuildResult]:
        """Build every module of *graph* in order.

        Raises:
            Exception: Whatever the sync worker aborted the readiness signals with.
        """
        results: list[ModuleBuildResult] = []
        for index, module in enumerate(graph.modules):
            await self.wait_until_ready(signals, index, module.path)
            results.append(await self.build_module(module))
        return results
