"""Platform build configuration.

Centralised, typed configuration for a platform build run. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError


class ConfigurationError(Exception):
    """Raised when the platform configuration or module list is unusable.

    Configuration errors are always fatal and are raised before any sync or
    build work starts.
    """

    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ProcessConfig(BaseModel):
    """Time limits applied to every external process invocation."""

    first_timeout: float = Field(
        default=30.0, gt=0, description="Seconds before a 'taking a long time' warning"
    )
    second_timeout: float = Field(
        default=120.0, gt=0, description="Further seconds before the process is killed"
    )
    kill_grace: float = Field(
        default=10.0, gt=0, description="Seconds allowed to drain output after a kill"
    )


class SyncConfig(BaseModel):
    """Repository synchronisation settings."""

    git_binary: str = Field(default="git")
    update_self: bool = Field(
        default=True, description="Pull the platform root repository before reading the module list"
    )
    max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on pull attempts per module when the remote hangs up (None = keep retrying)",
    )
    retry_backoff_seconds: float = Field(default=2.0, ge=0)
    retry_backoff_max_seconds: float = Field(default=30.0, ge=0)
    warn_after_attempts: int = Field(
        default=4, ge=1, description="Attempt number at which a persistent hang-up is reported"
    )


class BuildConfig(BaseModel):
    """Tuning knobs for the build pipeline."""

    command: list[str] = Field(
        default_factory=lambda: ["dotnet", "build"],
        description="Build tool invocation, run inside the module's build folder",
    )
    build_dir: str = Field(default="", description="Build folder relative to the module")
    output_dir: str = Field(
        default="src", description="Folder scanned for new artifacts after a build"
    )
    artifact_patterns: list[str] = Field(
        default_factory=lambda: ["**/bin/**/*.dll"],
        description="Glob patterns identifying build outputs",
    )
    masters: list[str] = Field(
        default_factory=list,
        description="Glob patterns (relative to the root) of pre-built artifacts to seed the store",
    )
    ready_check_seconds: float = Field(default=1.0, ge=0)
    ready_patience_seconds: float = Field(default=30.0, ge=0)


class DatabaseConfig(BaseModel):
    """Settings for the optional database rebuild pipeline."""

    enabled: bool = Field(default=False)
    scripts_dir: str = Field(default="DatabaseScripts")
    dialect_dir: str = Field(default="SqlServer")
    create_script: str = Field(default="CreateDatabase.sql")
    migration_script: str = Field(default="RunMigrationsLocally.ps1")
    migration_runner: list[str] = Field(default_factory=lambda: ["powershell", "-File"])
    sql_command: list[str] = Field(default_factory=lambda: ["sqlcmd", "-E", "-b", "-i"])
    script_pattern: str = Field(default="*.sql")
    script_order: Literal["descending", "ascending"] = Field(default="descending")


class Config(BaseModel):
    """Global platform build configuration.

    Holds every tuneable parameter and derived path used by the pipeline.
    Instances are typically created once by the CLI entry point and then
    passed through the rest of the system.
    """

    root: Path = Field(default=Path("."))
    module_list: str = Field(default="Modules.rule")
    library_dir: str = Field(default="lib")
    dependency_file: str = Field(default="Depends.rule")
    state_dir: str = Field(default=".platform-build")
    paths_to_delete: list[str] = Field(default_factory=list)
    verbose: bool = Field(default=False)
    process: ProcessConfig = Field(default_factory=ProcessConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    databases: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def module_list_path(self) -> Path:
        """Path to the ``path = repoUrl`` module list."""
        return self.root / self.module_list

    @property
    def state_path(self) -> Path:
        """Directory holding run summaries."""
        return self.root / self.state_dir

    @property
    def last_run_path(self) -> Path:
        """Path to the JSON summary of the most recent run."""
        return self.state_path / "last-run.json"

    def module_path(self, module_path: str) -> Path:
        """Absolute location of a module checkout."""
        return self.root / module_path

    def dependency_rule_path(self, module_path: str) -> Path:
        """Location of a module's dependency declaration file."""
        return self.root / module_path / self.library_dir / self.dependency_file

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<state_path>/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.state_path / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON.

        Raises:
            ConfigurationError: If the file is missing or does not validate.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError("configuration file not found", source=str(path))
        raw = path.read_text(encoding="utf-8")
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigurationError(str(exc), source=str(path)) from exc

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            PB_ROOT, PB_MODULE_LIST, PB_LIBRARY_DIR, PB_VERBOSE,
            PB_GIT, PB_NO_SELF_UPDATE, PB_SYNC_MAX_ATTEMPTS,
            PB_FIRST_TIMEOUT, PB_SECOND_TIMEOUT, PB_DATABASES.
        """
        process_kwargs: dict[str, Any] = {}
        if os.environ.get("PB_FIRST_TIMEOUT"):
            process_kwargs["first_timeout"] = float(os.environ["PB_FIRST_TIMEOUT"])
        if os.environ.get("PB_SECOND_TIMEOUT"):
            process_kwargs["second_timeout"] = float(os.environ["PB_SECOND_TIMEOUT"])

        sync_kwargs: dict[str, Any] = {}
        if os.environ.get("PB_GIT"):
            sync_kwargs["git_binary"] = os.environ["PB_GIT"]
        if os.environ.get("PB_NO_SELF_UPDATE"):
            sync_kwargs["update_self"] = not _env_flag("PB_NO_SELF_UPDATE")
        if os.environ.get("PB_SYNC_MAX_ATTEMPTS"):
            sync_kwargs["max_attempts"] = int(os.environ["PB_SYNC_MAX_ATTEMPTS"])

        return cls(
            root=Path(os.environ.get("PB_ROOT", ".")),
            module_list=os.environ.get("PB_MODULE_LIST", "Modules.rule"),
            library_dir=os.environ.get("PB_LIBRARY_DIR", "lib"),
            verbose=_env_flag("PB_VERBOSE"),
            process=ProcessConfig(**process_kwargs),
            sync=SyncConfig(**sync_kwargs),
            databases=DatabaseConfig(enabled=_env_flag("PB_DATABASES")),
        )


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")
