"""Build tool and SQL script invocation."""

from __future__ import annotations

from pathlib import Path

from ..config import BuildConfig, DatabaseConfig, ProcessConfig
from ..executor import ProcessResult, run_with_settings


class BuildCommand:
    """Runs the configured build tool and SQL client through the executor.

    Both methods return the process exit code. A process that cannot be
    started raises ``ProcessLaunchError``; callers decide whether that is
    fatal.
    """

    def __init__(
        self,
        build: BuildConfig | None = None,
        databases: DatabaseConfig | None = None,
        process: ProcessConfig | None = None,
    ):
        self.build_settings = build or BuildConfig()
        self.database_settings = databases or DatabaseConfig()
        self.process = process or ProcessConfig()
        self.last_result: ProcessResult | None = None

    async def build(self, root: Path, build_path: Path) -> int:
        """Run the build tool inside *build_path*."""
        executable, *args = self.build_settings.command
        self.last_result = await run_with_settings(self.process, build_path, executable, args)
        return self.last_result.exit_code

    async def run_sql_script(self, project_path: Path, script_file: Path) -> int:
        """Execute one SQL script with the configured SQL client."""
        executable, *args = self.database_settings.sql_command
        self.last_result = await run_with_settings(
            self.process, project_path, executable, [*args, str(script_file)]
        )
        return self.last_result.exit_code

    async def run_migrations(self, project_path: Path, runner_script: Path) -> int:
        """Invoke a module's migration runner script."""
        executable, *args = self.database_settings.migration_runner
        self.last_result = await run_with_settings(
            self.process, project_path, executable, [*args, str(runner_script)]
        )
        return self.last_result.exit_code
