"""MCP server for local_mcp.

Exposes repository operations over the Model Context Protocol so AI
clients (Claude Desktop, Cursor, etc.) can work inside one repository: the
working directory the server was launched from.

Tools:
  - file_read: Read a UTF-8 file (refused above 200KB).
  - file_write: Write a file (disabled unless ENABLE_MCP_FILE_WRITE is set).
  - run_script: Run a script declared in [tool.local-mcp.scripts].
  - run_tests: Run ``python -m pytest``.
  - lint: Run ``python -m ruff check .``.
  - git_status: Show git status as JSON.
  - git_log: Show recent commits as JSON.

Prompts:
  - describe-repo: Ask the client to summarize the repo and its git status.

Every tool returns text. Failures come back as descriptive text in a normal
result rather than as protocol errors.

Run with:
  local-mcp          (stdio, for Claude Desktop / Cursor)
  local-mcp --http   (streamable-http, used by local-mcp-start)
"""

from __future__ import annotations

import logging
import sys

from mcp.server.fastmcp import FastMCP

from local_mcp.lib.config import Config
from local_mcp.lib.vcs import DEFAULT_LOG_COUNT
from local_mcp.server.registry import ToolRegistry

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "local-mcp",
    instructions=(
        "local-mcp server for a single repository. Paths are relative to the "
        "repository root. Command tools return the exit code on the first "
        "line followed by combined output."
    ),
)

_registry: ToolRegistry | None = None


def configure(registry: ToolRegistry | None) -> None:
    """Install the registry used by the tool functions (``None`` resets)."""
    global _registry
    _registry = registry


def _get_registry() -> ToolRegistry:
    """Return the active registry, building one from the environment once."""
    global _registry
    if _registry is None:
        _registry = ToolRegistry.from_config(Config.from_env())
    return _registry


@mcp.tool()
def file_read(path: str) -> str:
    """Read a file from the repository (safe, read-only).

    Args:
        path: Path relative to the repository root.

    Returns:
        The file contents, or an explanatory message.
    """
    return _get_registry().call("file_read", {"path": path})


@mcp.tool()
def file_write(path: str, content: str) -> str:
    """Write to a file inside the repository.

    Disabled by default; enable with ENABLE_MCP_FILE_WRITE=1.

    Args:
        path: Path relative to the repository root.
        content: Full file contents to write.
    """
    return _get_registry().call("file_write", {"path": path, "content": content})


@mcp.tool()
def run_script(script: str) -> str:
    """Run a script declared under [tool.local-mcp.scripts] in pyproject.toml.

    Args:
        script: Script name as declared in the manifest.
    """
    return _get_registry().call("run_script", {"script": script})


@mcp.tool()
def run_tests() -> str:
    """Run project tests (python -m pytest)."""
    return _get_registry().call("run_tests")


@mcp.tool()
def lint() -> str:
    """Run the project linter (python -m ruff check .)."""
    return _get_registry().call("lint")


@mcp.tool()
def git_status() -> str:
    """Show git status for the repository as JSON."""
    return _get_registry().call("git_status")


@mcp.tool()
def git_log(max_count: int = DEFAULT_LOG_COUNT) -> str:
    """Get recent git commits as JSON.

    Args:
        max_count: Maximum number of commits to return.
    """
    return _get_registry().call("git_log", {"max_count": max_count})


@mcp.prompt("describe-repo")
def describe_repo() -> str:
    """Describe repository files and status."""
    return "Summarize the repository and git status"


def main() -> None:
    """Entry point for the MCP server."""
    config = Config.from_env()
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    configure(ToolRegistry.from_config(config))
    transport = "streamable-http" if "--http" in sys.argv else "stdio"
    logger.info(
        "Serving %s over %s (file_write %s)",
        config.root,
        transport,
        "enabled" if config.enable_file_write else "disabled",
    )
    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
