"""Repository sync worker.

Brings every module checkout up to date in build order and tells the build
worker, module by module, when it may start.
"""

from __future__ import annotations

import asyncio

from ..config import Config
from ..modules.models import DependencyGraph
from ..tools.filesystem import FileSystem
from ..tools.git import FatalSyncError, Git, GitError, TransientSyncError
from ..utils import print_info, print_status, print_warning
from .signals import ReadinessSignals


class SyncPipeline:
    """Pulls module repositories and clones the ones missing from disk.

    Sync is all-or-nothing: a failure other than a remote hang-up aborts the
    run, and every pending readiness signal is failed with the same error.
    """

    def __init__(self, config: Config, git: Git, fs: FileSystem | None = None):
        self.config = config
        self.git = git
        self.fs = fs or FileSystem()

    def _retry_delay(self, attempt: int) -> float:
        settings = self.config.sync
        return min(settings.retry_backoff_seconds * attempt, settings.retry_backoff_max_seconds)

    async def sync_module(self, module_path: str) -> int:
        """Update one module checkout, retrying while the remote hangs up.

        Generated files in the library folder are discarded first so they
        cannot block a fast-forward pull.

        Returns:
            The number of attempts it took.

        Raises:
            FatalSyncError: On any non-transient failure, or when the
                configured attempt cap is reached.
        """
        settings = self.config.sync
        module_dir = self.config.module_path(module_path)
        lib_dir = module_dir / self.config.library_dir
        attempt = 0

        while True:
            attempt += 1
            if attempt == settings.warn_after_attempts:
                print_warning(f"Git server keeps hanging up on {module_path}. Still retrying")
            try:
                if self.fs.exists(lib_dir):
                    await self.git.discard_local_changes(lib_dir)
                await self.git.pull_current_branch(module_dir)
                return attempt
            except TransientSyncError as exc:
                if settings.max_attempts is not None and attempt >= settings.max_attempts:
                    raise FatalSyncError(
                        f"Remote kept hanging up while updating {module_path} "
                        f"({attempt} attempts)",
                        module=module_path,
                        command=exc.command,
                        stderr=exc.stderr,
                    ) from exc
                delay = self._retry_delay(attempt)
                print_warning(
                    f"Remote hung up while updating {module_path}; retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
            except GitError as exc:
                raise FatalSyncError(
                    f"Updating {module_path} failed: {exc}",
                    module=module_path,
                    command=exc.command,
                    stderr=exc.stderr,
                ) from exc

    async def run(self, graph: DependencyGraph, signals: ReadinessSignals) -> None:
        """Sync every module in *graph* order, signalling each one when done."""
        for index, module in enumerate(graph.modules):
            try:
                await self.sync_module(module.path)
            except Exception as exc:
                signals.abort(exc)
                raise
            print_status(f"Updated {module.path}")
            signals.set(index)

    async def clone_missing(self, graph: DependencyGraph) -> list[str]:
        """Clone every module whose checkout does not exist yet.

        Returns:
            Paths of the modules that were cloned.
        """
        cloned: list[str] = []
        for module in graph.modules:
            expected = self.config.module_path(module.path)
            if self.fs.exists(expected):
                continue
            print_info(f"{module.path} is missing. Cloning...")
            await self.git.clone(self.config.root, expected, module.repo_url)
            cloned.append(module.path)
        return cloned
