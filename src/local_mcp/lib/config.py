"""Configuration loading: overrides → env vars → defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ConfigValue = str | bool | Path | None

FILE_WRITE_ENV_VAR = "ENABLE_MCP_FILE_WRITE"
VERBOSE_ENV_VAR = "LOCAL_MCP_VERBOSE"

_FALSY_VALUES = frozenset({"", "0", "false", "no", "off"})


def _env_flag(name: str) -> bool:
    """Return whether env var *name* holds a truthy value.

    Any value other than empty, ``0``, ``false``, ``no`` or ``off``
    (case-insensitive) counts as enabled.
    """
    return os.environ.get(name, "").strip().lower() not in _FALSY_VALUES


def _load_env_files(root: Path) -> None:
    """Load a dotenv file from the server root, never overriding real env."""
    load_dotenv(root / ".env", override=False)


@dataclass(frozen=True)
class Config:
    """Immutable server configuration, captured once at startup."""

    root: Path = field(default_factory=Path.cwd)
    enable_file_write: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        """Pin ``root`` to an absolute, resolved directory."""
        root = Path(self.root).expanduser().resolve()
        if not root.is_dir():
            msg = f"Root directory not found: {self.root}"
            raise FileNotFoundError(msg)
        object.__setattr__(self, "root", root)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides > env vars > defaults. The root defaults to the
        current working directory at the time of the call.
        """
        root_override = overrides.get("root") if overrides else None
        root = Path(root_override) if root_override else Path.cwd()
        _load_env_files(root)

        merged: dict[str, ConfigValue] = {
            "root": root,
            "enable_file_write": _env_flag(FILE_WRITE_ENV_VAR),
            "verbose": _env_flag(VERBOSE_ENV_VAR),
        }
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(
            root=Path(str(merged["root"])),
            enable_file_write=bool(merged["enable_file_write"]),
            verbose=bool(merged["verbose"]),
        )
        logger.debug(
            "Loaded config: root=%s enable_file_write=%s",
            config.root,
            config.enable_file_write,
        )
        return config
