"""Unit tests for Config and related Pydantic models (platform_build.config).

Tests cover:
- ProcessConfig, SyncConfig, BuildConfig, DatabaseConfig defaults and validation
- Config defaults and derived paths (properties)
- save/load, including failure modes
- from_env
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from platform_build.config import (
    BuildConfig,
    Config,
    ConfigurationError,
    DatabaseConfig,
    ProcessConfig,
    SyncConfig,
)


# ---------------------------------------------------------------------------
# Nested settings
# ---------------------------------------------------------------------------


class TestProcessConfig:
    @pytest.mark.unit
    def test_defaults(self):
        settings = ProcessConfig()
        assert settings.first_timeout == 30.0
        assert settings.second_timeout == 120.0
        assert settings.kill_grace == 10.0

    @pytest.mark.unit
    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError):
            ProcessConfig(first_timeout=0)


class TestSyncConfig:
    @pytest.mark.unit
    def test_retries_unbounded_by_default(self):
        settings = SyncConfig()
        assert settings.max_attempts is None
        assert settings.warn_after_attempts == 4
        assert settings.update_self is True

    @pytest.mark.unit
    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            SyncConfig(max_attempts=0)


class TestBuildConfig:
    @pytest.mark.unit
    def test_defaults(self):
        settings = BuildConfig()
        assert settings.command == ["dotnet", "build"]
        assert settings.build_dir == ""
        assert settings.output_dir == "src"
        assert settings.masters == []


class TestDatabaseConfig:
    @pytest.mark.unit
    def test_defaults(self):
        settings = DatabaseConfig()
        assert settings.enabled is False
        assert settings.scripts_dir == "DatabaseScripts"
        assert settings.dialect_dir == "SqlServer"
        assert settings.script_order == "descending"

    @pytest.mark.unit
    def test_unknown_script_order_rejected(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(script_order="random")


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfigPaths:
    @pytest.mark.unit
    def test_derived_paths(self, tmp_path: Path):
        config = Config(root=tmp_path)
        assert config.module_list_path == tmp_path / "Modules.rule"
        assert config.state_path == tmp_path / ".platform-build"
        assert config.last_run_path == tmp_path / ".platform-build" / "last-run.json"

    @pytest.mark.unit
    def test_module_and_rule_paths(self, tmp_path: Path):
        config = Config(root=tmp_path, library_dir="libs")
        assert config.module_path("core/api") == tmp_path / "core" / "api"
        assert config.dependency_rule_path("core/api") == (
            tmp_path / "core" / "api" / "libs" / "Depends.rule"
        )


class TestConfigSaveLoad:
    @pytest.mark.unit
    def test_save_defaults_to_state_dir(self, tmp_path: Path):
        config = Config(root=tmp_path)
        written = config.save()
        assert written == tmp_path / ".platform-build" / "config.json"
        data = json.loads(written.read_text(encoding="utf-8"))
        assert data["module_list"] == "Modules.rule"

    @pytest.mark.unit
    def test_load_restores_nested_settings(self, tmp_path: Path):
        config = Config(
            root=tmp_path,
            paths_to_delete=["old/module"],
            sync=SyncConfig(max_attempts=3),
            databases=DatabaseConfig(enabled=True, script_order="ascending"),
        )
        target = config.save(tmp_path / "build.json")

        loaded = Config.load(target)
        assert loaded.paths_to_delete == ["old/module"]
        assert loaded.sync.max_attempts == 3
        assert loaded.databases.enabled is True
        assert loaded.databases.script_order == "ascending"

    @pytest.mark.unit
    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config.load(tmp_path / "nope.json")

    @pytest.mark.unit
    def test_load_invalid_values(self, tmp_path: Path):
        target = tmp_path / "bad.json"
        target.write_text(json.dumps({"process": {"first_timeout": -1}}), encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            Config.load(target)
        assert exc_info.value.source == str(target)


class TestConfigFromEnv:
    @pytest.mark.unit
    def test_defaults_without_env(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()
        assert config.root == Path(".")
        assert config.verbose is False
        assert config.databases.enabled is False

    @pytest.mark.unit
    def test_reads_variables(self, tmp_path: Path):
        env = {
            "PB_ROOT": str(tmp_path),
            "PB_MODULE_LIST": "Platform.rule",
            "PB_VERBOSE": "yes",
            "PB_GIT": "/usr/local/bin/git",
            "PB_NO_SELF_UPDATE": "1",
            "PB_SYNC_MAX_ATTEMPTS": "5",
            "PB_FIRST_TIMEOUT": "2.5",
            "PB_DATABASES": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()
        assert config.root == tmp_path
        assert config.module_list == "Platform.rule"
        assert config.verbose is True
        assert config.sync.git_binary == "/usr/local/bin/git"
        assert config.sync.update_self is False
        assert config.sync.max_attempts == 5
        assert config.process.first_timeout == 2.5
        assert config.databases.enabled is True


class TestConfigurationError:
    @pytest.mark.unit
    def test_message_includes_source(self):
        exc = ConfigurationError("bad line", source="Modules.rule:3")
        assert str(exc) == "Modules.rule:3: bad line"

    @pytest.mark.unit
    def test_message_without_source(self):
        assert str(ConfigurationError("bad line")) == "bad line"
