"""Cooperating workers of a platform build run.

Key classes:
    ReadinessSignals  - Per-module hand-off from sync to build
    SyncPipeline      - Pulls and clones module repositories
    BuildPipeline     - Builds modules and propagates artifacts
    DatabasePipeline  - Optional database rebuilds
"""

from .build import BUILT, FAILED, SKIPPED, BuildPipeline, ModuleBuildResult
from .databases import DatabasePipeline, DatabaseRebuildResult, deduplicate
from .signals import ReadinessSignals
from .sync import SyncPipeline

__all__ = [
    "ReadinessSignals",
    "SyncPipeline",
    "BuildPipeline",
    "ModuleBuildResult",
    "BUILT",
    "FAILED",
    "SKIPPED",
    "DatabasePipeline",
    "DatabaseRebuildResult",
    "deduplicate",
]
