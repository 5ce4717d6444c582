"""Database rebuild worker.

Rebuilds the database of every module that carries database scripts, either
through the module's migration runner or by executing its raw SQL scripts.
Several modules can live in one repository, so modules are deduplicated by
repository first.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ..config import Config
from ..modules.models import DependencyGraph
from ..tools.build_cmd import BuildCommand
from ..tools.filesystem import FileSystem
from ..utils import print_error, print_status, print_verbose

MIGRATIONS = "migrations"
SCRIPTS = "scripts"
NO_SCRIPTS = "none"


@dataclass
class DatabaseRebuildResult:
    """Scripts executed for one module and the ones that failed."""

    path: str
    method: str
    scripts: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def deduplicate(graph: DependencyGraph, scripts_dir: str = "DatabaseScripts") -> list[str]:
    """Module paths whose databases should be rebuilt, in graph order.

    Keeps the first module per repository URL, then drops any kept module that
    is just the scripts folder of another kept module (case-insensitive), so
    no script set runs twice.
    """
    seen: set[str] = set()
    kept: list[str] = []
    for module in graph.modules:
        if module.repo_url in seen:
            continue
        seen.add(module.repo_url)
        kept.append(module.path)

    suffix = "/" + scripts_dir.lower()
    kept_lower = {p.lower() for p in kept}
    return [
        p
        for p in kept
        if not (p.lower().endswith(suffix) and p.lower()[: -len(suffix)] in kept_lower)
    ]


class DatabasePipeline:
    """Runs database rebuilds for the deduplicated module list."""

    def __init__(self, config: Config, builder: BuildCommand, fs: FileSystem | None = None):
        self.config = config
        self.settings = config.databases
        self.builder = builder
        self.fs = fs or FileSystem()

    def ordered_scripts(self, scripts_root: Path) -> list[Path]:
        """Every script under *scripts_root* in execution order.

        Scripts run in descending path order unless configured otherwise.
        """
        found = self.fs.list_descendants(scripts_root, self.settings.script_pattern)
        return sorted(
            found,
            key=lambda p: p.relative_to(scripts_root).as_posix(),
            reverse=self.settings.script_order == "descending",
        )

    async def _run_script(self, project: Path, script: Path, result: DatabaseRebuildResult) -> None:
        result.scripts.append(str(script))
        if await self.builder.run_sql_script(project, script) != 0:
            result.failed.append(str(script))

    async def rebuild_by_migrations(self, module_path: str, runner: Path) -> DatabaseRebuildResult:
        project = self.config.module_path(module_path)
        result = DatabaseRebuildResult(path=module_path, method=MIGRATIONS)

        create_database = project / self.settings.scripts_dir / self.settings.create_script
        print_status(f"Creating database from {create_database}")
        await self._run_script(project, create_database, result)

        print_status(f"Running {runner.name}")
        if await self.builder.run_migrations(project, runner) != 0:
            result.failed.append(str(runner))
        return result

    async def rebuild_by_scripts(self, module_path: str) -> DatabaseRebuildResult:
        project = self.config.module_path(module_path)
        result = DatabaseRebuildResult(path=module_path, method=SCRIPTS)

        db_path = project / self.settings.scripts_dir
        if not self.fs.exists(db_path):
            # The module may itself be the scripts folder of its parent.
            sibling = project.parent / self.settings.scripts_dir
            if not self.fs.exists(sibling):
                result.method = NO_SCRIPTS
                return result
            db_path = sibling

        print_status(f"Scripts from {db_path}")
        dialect_path = db_path / self.settings.dialect_dir
        scripts_root = dialect_path if self.fs.exists(dialect_path) else db_path

        for script in self.ordered_scripts(scripts_root):
            print_verbose(script.name)
            await self._run_script(project, script, result)
        return result

    async def rebuild_module(self, module_path: str) -> DatabaseRebuildResult:
        runner = self.config.module_path(module_path) / self.settings.migration_script
        if self.fs.exists(runner):
            return await self.rebuild_by_migrations(module_path, runner)
        return await self.rebuild_by_scripts(module_path)

    async def run(self, graph: DependencyGraph) -> list[DatabaseRebuildResult]:
        """Rebuild every deduplicated module's database.

        A module whose scripts cannot be run is reported and the rest continue.
        """
        results: list[DatabaseRebuildResult] = []
        for module_path in deduplicate(graph, self.settings.scripts_dir):
            try:
                results.append(await self.rebuild_module(module_path))
            except Exception as exc:
                print_error(f"Database rebuild of {module_path} failed: {type(exc).__name__}: {exc}")
                results.append(
                    DatabaseRebuildResult(path=module_path, method=NO_SCRIPTS, error=str(exc))
                )
        return results
