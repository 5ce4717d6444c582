"""Bounded execution of external processes.

Every git, build, SQL and migration invocation goes through ``run_process``.
A process gets a first window to finish, a warning, a second window, and is
then killed. The caller always receives a ``ProcessResult``; a timeout is
reported through ``ProcessResult.timed_out``, never raised.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .config import ProcessConfig
from .utils import (
    format_command,
    format_duration,
    print_error,
    print_output,
    print_verbose,
    print_warning,
)

DEFAULT_FIRST_TIMEOUT = 30.0
DEFAULT_SECOND_TIMEOUT = 120.0
DEFAULT_KILL_GRACE = 10.0


@dataclass
class ProcessResult:
    """Outcome of one external process invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def contains(self, text: str) -> bool:
        """Return ``True`` if *text* appears in either captured stream."""
        return text in self.stdout or text in self.stderr


class ProcessLaunchError(Exception):
    """Raised when an external process cannot be started at all."""

    def __init__(self, message: str, command: str = ""):
        self.command = command
        super().__init__(message)


def _attempt_kill(process: asyncio.subprocess.Process) -> None:
    """Try to kill *process*, ignoring the outcome.

    The process may already have exited, or the OS may refuse. Either way the
    caller proceeds to drain whatever output is available.
    """
    try:
        process.kill()
    except OSError:
        pass


async def _release(process: asyncio.subprocess.Process, grace: float) -> None:
    """Reap a killed process whose pipes are still held open, then close them.

    A grandchild that inherited the pipes keeps them open after the kill.
    """
    try:
        await asyncio.wait_for(process.wait(), timeout=grace)
    except asyncio.TimeoutError:
        pass
    # asyncio.subprocess.Process exposes no public close for its transport.
    transport = getattr(process, "_transport", None)
    if transport is not None:
        transport.close()


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def run_process(
    working_dir: str | Path,
    executable: str,
    args: Sequence[str] = (),
    first_timeout: float = DEFAULT_FIRST_TIMEOUT,
    second_timeout: float = DEFAULT_SECOND_TIMEOUT,
    kill_grace: float = DEFAULT_KILL_GRACE,
) -> ProcessResult:
    """Run *executable* with *args* in *working_dir* and capture its output.

    Args:
        working_dir: Working directory for the child process.
        executable: Program to run (looked up on ``PATH``).
        args: Arguments passed to the program.
        first_timeout: Seconds to wait before warning that the call is slow.
        second_timeout: Further seconds to wait before killing the process.
        kill_grace: Seconds allowed to drain output once the process was killed.

    Returns:
        A ``ProcessResult``. After a kill, ``stdout``/``stderr`` may be partial.

    Raises:
        ProcessLaunchError: If the process could not be started.
    """
    arg_list = [str(a) for a in args]
    description = format_command(working_dir, executable, arg_list)
    print_verbose(description)

    start_time = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *arg_list,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(working_dir),
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
        raise ProcessLaunchError(
            f"Could not start {description}: {exc}", command=description
        ) from exc

    # Pipes are drained while we wait so a chatty process cannot block on a full buffer.
    output = asyncio.ensure_future(process.communicate())
    timed_out = False

    try:
        await asyncio.wait_for(asyncio.shield(output), timeout=first_timeout)
    except asyncio.TimeoutError:
        print_warning(
            f"Call taking a long time, will abort in {format_duration(second_timeout)}: "
            f"{description}"
        )
        try:
            await asyncio.wait_for(asyncio.shield(output), timeout=second_timeout)
        except asyncio.TimeoutError:
            timed_out = True
            print_error(f"ABORTING LONG CALL: {description}")
            _attempt_kill(process)

    stdout_bytes: bytes | None = b""
    stderr_bytes: bytes | None = b""
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            output, timeout=kill_grace if timed_out else None
        )
    except asyncio.TimeoutError:
        print_error(f"Output of killed call could not be collected: {description}")
        await _release(process, kill_grace)

    elapsed = time.monotonic() - start_time
    exit_code = process.returncode if process.returncode is not None else -1
    stdout = _decode(stdout_bytes)
    stderr = _decode(stderr_bytes)

    failed = exit_code != 0 or timed_out
    for stream in (stdout, stderr):
        if stream.strip():
            print_output(stream.rstrip(), error=failed)

    return ProcessResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        timed_out=timed_out,
        duration_seconds=elapsed,
    )


async def run_with_settings(
    settings: ProcessConfig,
    working_dir: str | Path,
    executable: str,
    args: Sequence[str] = (),
) -> ProcessResult:
    """``run_process`` with the time limits taken from a ``ProcessConfig``."""
    return await run_process(
        working_dir,
        executable,
        args,
        first_timeout=settings.first_timeout,
        second_timeout=settings.second_timeout,
        kill_grace=settings.kill_grace,
    )
