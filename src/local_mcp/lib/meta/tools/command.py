"""Command execution tools for repo-rooted runtime actions.

These helpers provide the shared execution surface behind the
``run_script``, ``run_tests`` and ``lint`` tools. Standard output and
standard error are merged into one pipe so the captured text keeps the
order in which the child wrote it.

No timeout is applied. A child process that never exits blocks the calling
tool forever; bounding run time is left to the operator (for example by
stopping the whole server with ``local-mcp-stop``).
"""

from __future__ import annotations

__all__ = [
    "CommandResult",
    "ExecutionError",
    "run_command",
]

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class ExecutionError(RuntimeError):
    """Raised when a command cannot be spawned at all."""


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a command execution."""

    command: list[str]
    cwd: str
    exit_code: int
    output: str

    @property
    def success(self) -> bool:
        """Return whether the command exited with status 0."""
        return self.exit_code == 0

    def render(self) -> str:
        """Render as the exit code on the first line, then combined output."""
        return f"{self.exit_code}\n\n{self.output}"


def _normalize_args(args: list[str] | tuple[str, ...] | None) -> list[str]:
    """Coerce *args* to a validated ``list[str]``, rejecting non-string items."""
    if not args:
        return []
    normalized: list[str] = []
    for value in args:
        if not isinstance(value, str):
            msg = "args must contain only strings"
            raise TypeError(msg)
        normalized.append(value)
    return normalized


def run_command(
    command: str,
    args: list[str] | tuple[str, ...] | None = None,
    *,
    cwd: Path,
) -> CommandResult:
    """Run *command* with *args* in *cwd* and wait for it to exit.

    A non-zero exit status is returned, not raised. Only spawn failures
    (missing executable, permission denied, bad working directory) raise
    ``ExecutionError``.
    """
    argv = [command, *_normalize_args(args)]
    logger.debug("Running %s in %s", argv, cwd)
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            check=False,
        )
    except FileNotFoundError as exc:
        msg = f"command not found: {command}"
        raise ExecutionError(msg) from exc
    except PermissionError as exc:
        msg = f"permission denied: {command}"
        raise ExecutionError(msg) from exc
    except OSError as exc:
        msg = f"failed to start {command}: {exc}"
        raise ExecutionError(msg) from exc

    logger.debug("%s exited with %d", argv, completed.returncode)
    return CommandResult(
        command=argv,
        cwd=str(cwd),
        exit_code=completed.returncode,
        output=completed.stdout or "",
    )
