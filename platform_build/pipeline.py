"""Platform build orchestrator.

A run has two stages:

PREPARE -- Update the platform root, read the module list and every
           dependency declaration, sort modules into dependency order, seed the
           artifact store, delete obsolete paths, clone missing modules.
BUILD   -- Sync and build workers run concurrently with a per-module readiness
           hand-off; the database worker optionally runs alongside.

An unknown module in a dependency declaration is recoverable: every checkout
is cloned or pulled and PREPARE runs once more.

Usage::

    python -m platform_build /path/to/platform
    python -m platform_build /path/to/platform --databases --verbose
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from rich.panel import Panel

from .config import Config, ConfigurationError
from .modules import (
    DependencyGraph,
    DependencyOrderError,
    ModuleRegistry,
    UnknownModuleError,
    resolve_dependencies,
    sort_in_dependency_order,
)
from .tools import ArtifactStore, BuildCommand, DeleteError, FileSystem, Git, GitError
from .utils import (
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_status,
    print_summary_table,
    print_verbose,
    print_warning,
    save_json,
    set_verbose,
)
from .workers import (
    BuildPipeline,
    DatabasePipeline,
    DatabaseRebuildResult,
    ModuleBuildResult,
    ReadinessSignals,
    SyncPipeline,
)


class PipelineError(Exception):
    """Raised when a run stage fails irrecoverably."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"{stage}: {message}")


# Errors that end a run with a readable message rather than a traceback.
FATAL_ERRORS = (
    PipelineError,
    ConfigurationError,
    UnknownModuleError,
    DependencyOrderError,
    GitError,
)


class Pipeline:
    """Drives one platform build run.

    Collaborators can be injected; by default they are built from ``config``.

    Attributes:
        config: Run configuration.
        graph: The sorted dependency graph once ``prepare`` has succeeded.
        state: Summary of the run, written to ``config.last_run_path``.
    """

    def __init__(
        self,
        config: Config,
        fs: FileSystem | None = None,
        git: Git | None = None,
        builder: BuildCommand | None = None,
        store: ArtifactStore | None = None,
    ) -> None:
        self.config = config
        self.fs = fs or FileSystem()
        self.git = git or Git(config.sync.git_binary, config.process)
        self.builder = builder or BuildCommand(config.build, config.databases, config.process)
        self.store = store or ArtifactStore(config.build.artifact_patterns, self.fs)
        self.sync = SyncPipeline(config, self.git, self.fs)
        self.build = BuildPipeline(config, self.builder, self.store, self.fs)
        self.databases = DatabasePipeline(config, self.builder, self.fs)
        self.graph: Optional[DependencyGraph] = None
        self.state: dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "stages_completed": [],
            "success": False,
        }

    # ------------------------------------------------------------------
    # PREPARE
    # ------------------------------------------------------------------

    async def update_self(self) -> None:
        """Fast-forward the platform root repository, if enabled."""
        print_status(f"Started in {self.config.root}; Updating self")
        if not self.config.sync.update_self:
            return
        try:
            await self.git.pull_latest(self.config.root)
        except GitError as exc:
            print_warning(f"Could not update {self.config.root}: {exc}. Continuing with local copy")

    def read_graph(self) -> DependencyGraph:
        """Load the module list and resolve every dependency declaration.

        Raises:
            ConfigurationError: If the module list is missing or malformed.
            UnknownModuleError: If a declaration names an unregistered module.
        """
        registry = ModuleRegistry(self.config.module_list_path, self.fs)
        return resolve_dependencies(registry.load(), self.config, self.fs)

    def delete_old_paths(self) -> list[str]:
        """Remove configured obsolete paths; failures are reported and skipped."""
        print_verbose("Deleting old paths")
        deleted: list[str] = []
        for relative in self.config.paths_to_delete:
            path = self.config.root / relative
            if not self.fs.exists(path):
                continue
            try:
                self.fs.delete(path)
            except DeleteError as exc:
                print_error(str(exc))
                continue
            deleted.append(relative)
        return deleted

    async def prepare(self) -> DependencyGraph:
        """Run the PREPARE stage and return the sorted graph.

        Raises:
            UnknownModuleError: For the caller to decide on remediation.
            DependencyOrderError: If the graph cannot be ordered.
        """
        await self.update_self()
        graph = sort_in_dependency_order(self.read_graph())

        self.store.read_masters(self.config.root, self.config.build.masters)
        self.delete_old_paths()

        print_verbose("Processing " + ", ".join(graph.paths))
        await self.sync.clone_missing(graph)

        self.graph = graph
        return graph

    async def remediate(self, exc: UnknownModuleError) -> None:
        """Bring every checkout up to date after an unknown-module failure.

        Pulling may fix a stale dependency declaration; cloning may provide a
        module that was added to the list since the last run.
        """
        graph = exc.graph
        if graph is None:
            graph = ModuleRegistry(self.config.module_list_path, self.fs).load()
        await self.sync.clone_missing(graph)
        signals = ReadinessSignals(len(graph))
        await self.sync.run(graph, signals)

    async def prepare_with_remediation(self) -> DependencyGraph:
        """``prepare``, retried once after remediation if a module is unknown."""
        try:
            return await self.prepare()
        except UnknownModuleError as exc:
            print_error(f"{exc}, will pull all repositories and prepare again.")
            self.state["remediated"] = True
            await self.remediate(exc)
        return await self.prepare()

    # ------------------------------------------------------------------
    # BUILD
    # ------------------------------------------------------------------

    async def run_build(
        self, graph: DependencyGraph, run_databases: bool = False
    ) -> tuple[list[ModuleBuildResult], list[DatabaseRebuildResult]]:
        """Run the sync and build workers (and the database worker if asked).

        Blocks until the build worker is done, then surfaces any sync failure,
        then waits for the database worker.

        Raises:
            FatalSyncError: If a module could not be synced.
        """
        signals = ReadinessSignals(len(graph))
        databases = asyncio.create_task(self.databases.run(graph)) if run_databases else None
        syncing = asyncio.create_task(self.sync.run(graph, signals))
        building = asyncio.create_task(self.build.run(graph, signals))

        try:
            try:
                build_results = await building
            except Exception:
                # The build worker re-raises the sync error; mark it retrieved on the sync task.
                if syncing.done() and not syncing.cancelled():
                    syncing.exception()
                raise
            print_status("All builds finished")
            await syncing

            database_results: list[DatabaseRebuildResult] = []
            if databases is not None:
                database_results = await databases
                print_status("All databases updated")
        finally:
            for task in (databases, syncing, building):
                if task is not None and not task.done():
                    task.cancel()

        return build_results, database_results

    # ------------------------------------------------------------------
    # Whole run
    # ------------------------------------------------------------------

    async def run(self, run_databases: Optional[bool] = None) -> dict[str, Any]:
        """Execute a full run.

        Returns:
            The run state dictionary, including a top-level ``success`` flag.
        """
        if run_databases is None:
            run_databases = self.config.databases.enabled
        run_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]Platform Build[/bold bright_cyan]\n"
                f"Root      : {self.config.root.resolve()}\n"
                f"Modules   : {self.config.module_list_path}\n"
                f"Databases : {'yes' if run_databases else 'no'}",
                title="[bold]Run Start[/bold]",
                border_style="bright_cyan",
            )
        )

        try:
            if not await self.git.check_available():
                raise PipelineError(
                    "prepare", f"git executable '{self.config.sync.git_binary}' is not usable"
                )

            print_stage_header("prepare")
            graph = await self.prepare_with_remediation()
            self.state["build_order"] = graph.paths
            self.state["stages_completed"].append("prepare")

            print_stage_header("build", color="bright_yellow")
            build_results, database_results = await self.run_build(graph, run_databases)
            self.state["stages_completed"].append("build")
            self.state["builds"] = [r.to_dict() for r in build_results]
            self.state["databases"] = [r.to_dict() for r in database_results]
            self.state["success"] = True

        except FATAL_ERRORS as exc:
            self.state["error"] = str(exc)
            print_error(f"Run FAILED: {exc}")

        except Exception as exc:
            self.state["error"] = traceback.format_exc()
            print_error(f"Run FAILED: {type(exc).__name__}: {exc}")
            console.print(f"[dim]{self.state['error']}[/dim]")

        total_elapsed = time.monotonic() - run_start
        self.state["total_duration"] = format_duration(total_elapsed)
        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
        await save_json(self.state, self.config.last_run_path)

        self._print_final_summary(total_elapsed)
        return self.state

    def _print_final_summary(self, total_elapsed: float) -> None:
        builds = self.state.get("builds", [])
        summary = {
            "Modules": str(len(self.state.get("build_order", []))),
            "Built": str(sum(1 for b in builds if b["status"] == "built")),
            "Failed": str(sum(1 for b in builds if b["status"] == "failed")),
            "Skipped": str(sum(1 for b in builds if b["status"] == "skipped")),
            "Duration": format_duration(total_elapsed),
        }
        if self.state.get("databases"):
            summary["Databases"] = str(len(self.state["databases"]))
        print_summary_table(summary, title="Run Summary")

        failed = [b["path"] for b in builds if b["status"] == "failed"]
        if failed:
            print_warning(f"Build failures: {', '.join(failed)}")

        if self.state.get("success"):
            console.print(Panel("[bold green]RUN SUCCEEDED[/bold green]", border_style="bold green"))
        else:
            console.print(Panel("[bold red]RUN FAILED[/bold red]", border_style="bold red"))


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_config(args: Any) -> Config:
    """Merge command line arguments over a loaded or environment config."""
    config = Config.load(Path(args.config)) if args.config else Config.from_env()
    updates: dict[str, Any] = {}
    if args.root is not None:
        updates["root"] = Path(args.root)
    if args.module_list:
        updates["module_list"] = args.module_list
    if args.verbose:
        updates["verbose"] = True
    # Deep copy: the nested settings below are mutated in place.
    config = config.model_copy(update=updates, deep=True)
    if args.databases:
        config.databases.enabled = True
    if args.no_self_update:
        config.sync.update_self = False
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``python -m platform_build``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Platform Build -- sync and build every module in dependency order",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m platform_build .\n"
            "  python -m platform_build ~/platform --databases\n"
            "  python -m platform_build --config build.json --verbose\n"
        ),
    )
    parser.add_argument("root", nargs="?", default=None, help="Platform root (default: .)")
    parser.add_argument("--config", "-c", default=None, help="JSON configuration file")
    parser.add_argument("--module-list", default=None, help="Module list relative to the root")
    parser.add_argument("--databases", action="store_true", help="Also rebuild databases")
    parser.add_argument(
        "--no-self-update", action="store_true", help="Do not pull the platform root first"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show every command run")

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    set_verbose(config.verbose)
    if not config.root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Platform root not found: {config.root}")
        sys.exit(1)

    result = asyncio.run(Pipeline(config).run())
    if not result.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
