"""Tool registry: the dispatch surface behind the MCP tools.

Each handler validates policy first (write gate, read ceiling), then calls
into the path-confined lib helpers, and always returns a ``ToolOutcome``.
Exceptions from the lib layer are caught here and folded into
``ToolError`` values so a tool call never fails at the transport level.
"""

from __future__ import annotations

__all__ = [
    "LINT_COMMAND",
    "TEST_COMMAND",
    "TOOL_NAMES",
    "ToolRegistry",
]

import inspect
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from local_mcp.lib.config import Config
from local_mcp.lib.meta.tools import command as command_tools
from local_mcp.lib.meta.tools import filesystem as fs_tools
from local_mcp.lib.meta.tools.scripts import (
    SCRIPT_SHELL,
    ScriptManifestError,
    ScriptNotFoundError,
    ScriptWhitelist,
)
from local_mcp.lib.vcs import DEFAULT_LOG_COUNT, VcsClient, VcsError
from local_mcp.server.tool_result import (
    ErrorKind,
    ToolError,
    ToolOk,
    ToolOutcome,
    render_result,
)

logger = logging.getLogger(__name__)

TEST_COMMAND: tuple[str, ...] = (sys.executable, "-m", "pytest")
LINT_COMMAND: tuple[str, ...] = (sys.executable, "-m", "ruff", "check", ".")

TOOL_NAMES = (
    "file_read",
    "file_write",
    "run_script",
    "run_tests",
    "lint",
    "git_status",
    "git_log",
)

Runner = Callable[..., command_tools.CommandResult]


class ToolRegistry:
    """Map tool names to handlers bound to one repository root."""

    def __init__(
        self,
        root: Path,
        *,
        enable_file_write: bool = False,
        max_read_bytes: int = fs_tools.DEFAULT_MAX_READ_BYTES,
        scripts: ScriptWhitelist | None = None,
        vcs: VcsClient | None = None,
        runner: Runner = command_tools.run_command,
    ) -> None:
        self.root = root.resolve()
        self.enable_file_write = enable_file_write
        self.max_read_bytes = max_read_bytes
        self.scripts = scripts or ScriptWhitelist(self.root)
        self.vcs = vcs or VcsClient(self.root)
        self._runner = runner

    @classmethod
    def from_config(cls, config: Config) -> ToolRegistry:
        """Build a registry from a startup ``Config``."""
        return cls(config.root, enable_file_write=config.enable_file_write)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_read(self, path: str) -> ToolOutcome:
        """Read a UTF-8 file under the root, refusing files over the ceiling."""
        try:
            text, _ = fs_tools.read_text_file(
                self.root, path, max_bytes=self.max_read_bytes
            )
        except fs_tools.PathEscapeError as exc:
            return ToolError(ErrorKind.PATH_ESCAPE, "Error reading file", str(exc))
        except fs_tools.FileTooLargeError:
            limit_kb = self.max_read_bytes // 1024
            return ToolError(
                ErrorKind.TOO_LARGE, f"File too large to return (>{limit_kb}KB)"
            )
        except (OSError, UnicodeError) as exc:
            return ToolError(ErrorKind.READ_FAILED, "Error reading file", str(exc))
        return ToolOk(text)

    def file_write(self, path: str, content: str) -> ToolOutcome:
        """Create or overwrite a file under the root when writes are enabled."""
        if not self.enable_file_write:
            return ToolError(
                ErrorKind.WRITE_DISABLED, "file_write is disabled on this server"
            )
        try:
            written = fs_tools.write_text_file(self.root, path, content)
        except fs_tools.PathEscapeError as exc:
            return ToolError(ErrorKind.PATH_ESCAPE, "Error writing file", str(exc))
        except OSError as exc:
            return ToolError(ErrorKind.WRITE_FAILED, "Error writing file", str(exc))
        logger.info("Wrote %d chars to %s", len(content), written)
        return ToolOk("Write successful")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _run(self, argv: tuple[str, ...] | list[str], label: str) -> ToolOutcome:
        try:
            result = self._runner(argv[0], list(argv[1:]), cwd=self.root)
        except command_tools.ExecutionError as exc:
            return ToolError(
                ErrorKind.EXECUTION_FAILED, f"Error running {label}", str(exc)
            )
        return ToolOk(result.render())

    def run_script(self, script: str) -> ToolOutcome:
        """Run a script declared in the project manifest by name."""
        try:
            command_line = self.scripts.lookup(script)
        except ScriptNotFoundError as exc:
            declared = ", ".join(self.scripts.available()) or "none"
            return ToolError(
                ErrorKind.SCRIPT_NOT_FOUND, str(exc), f"declared scripts: {declared}"
            )
        except ScriptManifestError as exc:
            return ToolError(
                ErrorKind.MANIFEST_INVALID, "Error running script", str(exc)
            )
        logger.info("Running script %r: %s", script, command_line)
        return self._run((SCRIPT_SHELL, "-c", command_line), "script")

    def run_tests(self) -> ToolOutcome:
        """Run the project's test suite with a fixed command."""
        return self._run(TEST_COMMAND, "tests")

    def lint(self) -> ToolOutcome:
        """Run the project's linter with a fixed command."""
        return self._run(LINT_COMMAND, "lint")

    # ------------------------------------------------------------------
    # Git
    # ------------------------------------------------------------------

    def git_status(self) -> ToolOutcome:
        try:
            status = self.vcs.status()
        except VcsError as exc:
            return ToolError(ErrorKind.VCS_FAILED, "Error getting git status", str(exc))
        return ToolOk(json.dumps(status, indent=2))

    def git_log(self, max_count: int | None = DEFAULT_LOG_COUNT) -> ToolOutcome:
        try:
            commits = self.vcs.log(max_count or DEFAULT_LOG_COUNT)
        except VcsError as exc:
            return ToolError(ErrorKind.VCS_FAILED, "Error getting git log", str(exc))
        return ToolOk(json.dumps(commits, indent=2))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> ToolOutcome:
        """Route a tool call by name; unknown names become an error outcome."""
        if name not in TOOL_NAMES:
            return ToolError(ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")
        handler = getattr(self, name)
        arguments = arguments or {}
        try:
            inspect.signature(handler).bind(**arguments)
        except TypeError as exc:
            return ToolError(
                ErrorKind.INVALID_ARGUMENTS, f"Invalid arguments for {name}", str(exc)
            )
        return handler(**arguments)

    def call(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Dispatch and render to the text envelope returned to the caller."""
        outcome = self.dispatch(name, arguments)
        if isinstance(outcome, ToolError):
            logger.warning("%s failed (%s): %s", name, outcome.kind.value, outcome.text)
        return render_result(outcome)
