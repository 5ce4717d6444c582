"""Git operations for module checkouts.

Wraps the git command line through the bounded process executor. Pull failures
are classified: a remote hang-up is transient and worth retrying, anything else
needs a human.
"""

from __future__ import annotations

from pathlib import Path

from ..config import ProcessConfig
from ..executor import ProcessLaunchError, ProcessResult, run_with_settings
from ..utils import console, print_warning

HANGUP_SIGNATURE = "fatal: The remote end hung up unexpectedly"


class GitError(Exception):
    """Raised when a git operation fails."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


class TransientSyncError(GitError):
    """The remote hung up during a pull; the pull can be retried."""


class FatalSyncError(GitError):
    """A sync failure that cannot be retried; the whole run must stop."""

    def __init__(self, message: str, module: str = "", command: str = "", stderr: str = ""):
        self.module = module
        super().__init__(message, command=command, stderr=stderr)


class Git:
    """Git command line client bound to one binary and one set of time limits."""

    def __init__(self, binary: str = "git", process: ProcessConfig | None = None):
        self.binary = binary
        self.process = process or ProcessConfig()

    async def _run(self, cwd: Path, *args: str) -> ProcessResult:
        try:
            return await run_with_settings(self.process, cwd, self.binary, list(args))
        except ProcessLaunchError as exc:
            raise GitError(str(exc), command=exc.command) from exc

    async def check_available(self) -> bool:
        """Return ``True`` if the git binary can be executed."""
        try:
            result = await self._run(Path("."), "--version")
        except GitError:
            console.print(f"[red]Git not available:[/red] '{self.binary}' not found in PATH.")
            return False
        return result.ok

    async def pull_latest(self, repo_dir: Path) -> None:
        """Fast-forward ``master`` from ``origin``.

        Raises:
            GitError: If the pull fails.
        """
        result = await self._run(repo_dir, "pull", "--ff-only", "--verbose", "origin", "master")
        if not result.ok:
            raise GitError(
                f"Git pull of master failed on {repo_dir}",
                command="git pull --ff-only --verbose origin master",
                stderr=result.stderr,
            )

    async def clone(self, root: Path, dest: Path, repo_url: str) -> None:
        """Clone *repo_url* into *dest*, running from *root*.

        Raises:
            FatalSyncError: If the clone fails.
        """
        try:
            relative = Path(dest).relative_to(root).as_posix()
        except ValueError:
            relative = Path(dest).as_posix()
        result = await self._run(root, "clone", repo_url, relative)
        if not result.ok:
            raise FatalSyncError(
                f"Git clone of {repo_url} into {relative} failed",
                module=relative,
                command=f"git clone {repo_url} {relative}",
                stderr=result.stderr,
            )

    async def discard_local_changes(self, path: Path) -> bool:
        """Throw away local modifications under *path*.

        Returns:
            ``True`` if git reported success. A failure is only warned about;
            the following pull decides whether the module can be synced.
        """
        result = await self._run(path, "checkout", ".", "--theirs")
        if not result.ok:
            print_warning(f"Could not discard local changes in {path}")
        return result.ok

    async def pull_current_branch(self, module_path: Path) -> None:
        """Fast-forward the checked out branch from ``origin``.

        Raises:
            TransientSyncError: If the remote hung up.
            FatalSyncError: On any other failure.
        """
        command = "git pull --ff-only --verbose origin"
        result = await self._run(module_path, "pull", "--ff-only", "--verbose", "origin")
        if result.ok:
            return
        if result.contains(HANGUP_SIGNATURE):
            raise TransientSyncError(
                f"Remote hung up while pulling {module_path}",
                command=command,
                stderr=result.stderr,
            )
        raise FatalSyncError(
            f"Git pull failed on {module_path}; Please resolve and try again",
            module=str(module_path),
            command=command,
            stderr=result.stderr,
        )
