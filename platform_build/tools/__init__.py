"""Collaborators the build drives: filesystem, git, build tool and artifact store.

Key classes:
    FileSystem     - Existence checks, deletion, line reading, descendant listing
    Git            - Pull, clone and discard-changes through the process executor
    BuildCommand   - Build tool, SQL client and migration runner invocation
    ArtifactStore  - Latest build outputs, copied into dependants
"""

from .artifacts import ArtifactStore
from .build_cmd import BuildCommand
from .filesystem import DeleteError, FileSystem
from .git import HANGUP_SIGNATURE, FatalSyncError, Git, GitError, TransientSyncError

__all__ = [
    "FileSystem",
    "DeleteError",
    "Git",
    "GitError",
    "TransientSyncError",
    "FatalSyncError",
    "HANGUP_SIGNATURE",
    "BuildCommand",
    "ArtifactStore",
]
