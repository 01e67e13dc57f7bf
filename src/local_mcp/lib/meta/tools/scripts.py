"""Script whitelist backed by the project's ``pyproject.toml``.

Callers name a script symbolically; the command line it maps to comes only
from the ``[tool.local-mcp.scripts]`` table at the repository root, e.g.::

    [tool.local-mcp.scripts]
    build = "python -m build"
    docs = "mkdocs build --strict"

The manifest is re-read on every lookup so edits take effect on the next
call without restarting the server.
"""

from __future__ import annotations

__all__ = [
    "MANIFEST_FILENAME",
    "SCRIPT_SHELL",
    "ScriptManifestError",
    "ScriptNotFoundError",
    "ScriptWhitelist",
]

import logging
import tomllib
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "pyproject.toml"
MANIFEST_TABLE = ("tool", "local-mcp", "scripts")
SCRIPT_SHELL = "sh"


class ScriptNotFoundError(LookupError):
    """Raised when a script name has no entry in the manifest."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Script '{name}' not found in {MANIFEST_FILENAME}")
        self.name = name


class ScriptManifestError(ValueError):
    """Raised when the manifest exists but cannot be interpreted."""


class ScriptWhitelist:
    """Look up runnable scripts declared by the repository configuration."""

    def __init__(self, repo_root: Path) -> None:
        self.manifest_path = repo_root.resolve() / MANIFEST_FILENAME

    def _load(self) -> dict[str, str]:
        if not self.manifest_path.is_file():
            return {}
        try:
            with self.manifest_path.open("rb") as fh:
                data: Any = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            msg = f"{MANIFEST_FILENAME} is not valid TOML: {exc}"
            raise ScriptManifestError(msg) from exc

        for key in MANIFEST_TABLE:
            if not isinstance(data, dict):
                break
            data = data.get(key, {})
        if not isinstance(data, dict):
            msg = f"[{'.'.join(MANIFEST_TABLE)}] must be a table"
            raise ScriptManifestError(msg)

        scripts: dict[str, str] = {}
        for name, command_line in data.items():
            if not isinstance(command_line, str):
                msg = f"script {name!r} must map to a command string"
                raise ScriptManifestError(msg)
            scripts[name] = command_line
        return scripts

    def available(self) -> list[str]:
        """Return the sorted names of currently declared scripts."""
        return sorted(self._load())

    def lookup(self, name: str) -> str:
        """Return the command line declared for *name*."""
        scripts = self._load()
        command_line = scripts.get(name)
        if command_line is None or not command_line.strip():
            logger.debug("Script %r not declared (have: %s)", name, sorted(scripts))
            raise ScriptNotFoundError(name)
        return command_line
