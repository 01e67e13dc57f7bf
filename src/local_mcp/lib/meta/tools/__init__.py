"""System tools package shared by the MCP tool registry.

This package contains reusable system-facing helpers:
- ``filesystem`` for path-confined repo file operations.
- ``command`` for repo-rooted command execution.
- ``scripts`` for the ``pyproject.toml`` script whitelist.
"""

from local_mcp.lib.meta.tools.command import (
    CommandResult,
    ExecutionError,
    run_command,
)
from local_mcp.lib.meta.tools.filesystem import (
    DEFAULT_MAX_READ_BYTES,
    FileTooLargeError,
    PathEscapeError,
    normalize_relative_path,
    read_text_file,
    resolve_repo_target,
    write_text_file,
)
from local_mcp.lib.meta.tools.scripts import (
    ScriptManifestError,
    ScriptNotFoundError,
    ScriptWhitelist,
)

__all__ = [
    "DEFAULT_MAX_READ_BYTES",
    "CommandResult",
    "ExecutionError",
    "FileTooLargeError",
    "PathEscapeError",
    "ScriptManifestError",
    "ScriptNotFoundError",
    "ScriptWhitelist",
    "normalize_relative_path",
    "read_text_file",
    "resolve_repo_target",
    "run_command",
    "write_text_file",
]
