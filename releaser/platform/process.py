"""Subprocess execution with Result-based error handling.

This is the only module that talks to ``subprocess`` directly. Every git,
gh, pip, build and twine invocation in the project goes through ``run``
(output captured) or ``run_silent`` (output streamed to the terminal).

Usage:
    result = run(["gh", "api", "repos/owner/name/releases", "--input", "-"],
                 cwd=root, input=json.dumps(payload))
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from releaser.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: The exit code of the process (-1 if it never ran).
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def _failed(cmd: list[str], returncode: int, stdout: str = "", stderr: str = "") -> Err[ProcessError]:
    return Err(ProcessError(command=tuple(cmd), returncode=returncode, stdout=stdout, stderr=stderr))


def run(
    cmd: list[str],
    cwd: Path,
    *,
    timeout: float | None = None,
    input: str | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        timeout: Maximum seconds to wait (None for no limit).
        input: Text fed to the process stdin (a JSON request body, a path list).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            input=input,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return _failed(cmd, -1, stdout, f"Command timed out after {timeout}s")
    except OSError as e:
        return _failed(cmd, -1, stderr=str(e))

    if proc.returncode != 0:
        return _failed(cmd, proc.returncode, proc.stdout, proc.stderr)
    return Ok(proc.stdout)


def run_silent(cmd: list[str], cwd: Path) -> Result[None, ProcessError]:
    """Execute a command, letting its output stream to the terminal.

    Used for long-running build and publish tools whose logs the operator
    needs to see. Nothing is captured, so errors carry only the exit code.
    """
    try:
        proc = subprocess.run(cmd, cwd=str(cwd), check=False)
    except OSError as e:
        return _failed(cmd, -1, stderr=str(e))

    if proc.returncode != 0:
        return _failed(cmd, proc.returncode)
    return Ok(None)
