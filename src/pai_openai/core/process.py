"""Shell command execution shared by hooks and the tool executor.

Provides:
- CommandResult dataclass for exit status and captured output
- run_shell for scoped subprocess execution through the system shell

Every code path waits for the child: on cancellation or an unexpected error
the process is killed and reaped before the exception propagates.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Mapping
from dataclasses import dataclass

from pai_openai.core.console import get_logger
from pai_openai.core.result import Err, Ok, ProcessError, Result

logger = get_logger(__name__)


@dataclass(slots=True)
class CommandResult:
    """Result of a shell command execution."""

    returncode: int
    stdout: str


def merge_env(overlay: Mapping[str, str | None] | None) -> dict[str, str]:
    """Merge ``overlay`` over the current process environment, dropping None values."""
    merged = dict(os.environ)
    for key, value in (overlay or {}).items():
        if value is not None:
            merged[key] = value
    return merged


async def _reap(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


async def run_shell(
    command: str,
    *,
    env: Mapping[str, str | None] | None = None,
    input_data: str | None = None,
    capture_stdout: bool = False,
) -> Result[CommandResult, ProcessError]:
    """Run ``command`` through the shell and wait for it to exit.

    Args:
        command: Shell command string to execute
        env: Variables merged over the parent environment
        input_data: Text written to the child's stdin, which is then closed.
            When None the child inherits stdin.
        capture_stdout: Collect stdout instead of inheriting it

    Returns:
        Ok(CommandResult) once the child exits (any exit code),
        Err(ProcessError) when it could not be spawned
    """
    logger.debug("Spawning shell command: %s", command)
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.PIPE if input_data is not None else None,
            stdout=asyncio.subprocess.PIPE if capture_stdout else None,
            stderr=None,
            env=merge_env(env),
        )
    except OSError as exc:
        return Err(
            ProcessError("Failed to start command", context={"command": command, "error": str(exc)})
        )

    stdin_bytes = input_data.encode("utf-8") if input_data is not None else None
    try:
        # communicate() tolerates a child that exits without reading stdin.
        stdout_bytes, _ = await proc.communicate(stdin_bytes)
    finally:
        await _reap(proc)

    return Ok(
        CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=(stdout_bytes or b"").decode("utf-8", errors="replace"),
        )
    )


__all__ = [
    "CommandResult",
    "merge_env",
    "run_shell",
]
