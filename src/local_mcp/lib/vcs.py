"""Read-only git queries for the repository root.

Wraps ``git status`` and ``git log`` via subprocess and parses their
machine-readable output into plain dicts that serialize cleanly to JSON.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_LOG_COUNT",
    "VcsClient",
    "VcsError",
    "parse_log",
    "parse_status",
]

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_LOG_COUNT = 10

_CONFLICT_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
_LOG_FIELDS = ("hash", "date", "author_name", "author_email", "refs", "message", "body")
_LOG_FORMAT = "%x1f".join(("%H", "%aI", "%an", "%ae", "%D", "%s", "%b"))


class VcsError(RuntimeError):
    """Raised when git is unavailable or a git query fails."""


def _git_env() -> dict[str, str]:
    """Return a copy of the environment with interactive git prompts disabled."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


def _parse_branch_header(header: str) -> dict[str, Any]:
    """Parse the ``## ...`` line emitted by ``git status --branch``."""
    info: dict[str, Any] = {
        "current": None,
        "tracking": None,
        "ahead": 0,
        "behind": 0,
        "detached": False,
    }
    counts = re.search(r"\s*\[([^\]]*)\]$", header)
    if counts:
        ahead = re.search(r"ahead (\d+)", counts.group(1))
        behind = re.search(r"behind (\d+)", counts.group(1))
        info["ahead"] = int(ahead.group(1)) if ahead else 0
        info["behind"] = int(behind.group(1)) if behind else 0
        header = header[: counts.start()]

    for prefix in ("No commits yet on ", "Initial commit on "):
        if header.startswith(prefix):
            info["current"] = header[len(prefix) :]
            return info
    if header.startswith("HEAD (no branch)"):
        info["current"] = "HEAD"
        info["detached"] = True
        return info

    current, sep, tracking = header.partition("...")
    info["current"] = current
    info["tracking"] = tracking if sep else None
    return info


def parse_status(raw: str) -> dict[str, Any]:
    """Parse ``git status --porcelain=v1 --branch -z`` output."""
    status: dict[str, Any] = {
        "current": None,
        "tracking": None,
        "ahead": 0,
        "behind": 0,
        "detached": False,
        "files": [],
        "not_added": [],
        "conflicted": [],
        "created": [],
        "deleted": [],
        "modified": [],
        "renamed": [],
        "staged": [],
    }
    entries = iter(raw.split("\0"))
    for entry in entries:
        if not entry:
            continue
        if entry.startswith("## "):
            status.update(_parse_branch_header(entry[3:]))
            continue

        code, path = entry[:2], entry[3:]
        index, working_dir = code[0], code[1]
        record: dict[str, Any] = {
            "path": path,
            "index": index,
            "working_dir": working_dir,
        }
        if index in "RC":
            record["from"] = next(entries, "")
        status["files"].append(record)

        if code == "??":
            status["not_added"].append(path)
            continue
        if code in _CONFLICT_CODES:
            status["conflicted"].append(path)
            continue
        if index == "R":
            status["renamed"].append({"from": record["from"], "to": path})
        if index == "A":
            status["created"].append(path)
        if "D" in code:
            status["deleted"].append(path)
        if "M" in code:
            status["modified"].append(path)
        if index not in " ?":
            status["staged"].append(path)

    status["is_clean"] = not status["files"]
    return status


def parse_log(raw: str) -> list[dict[str, str]]:
    """Parse ``git log -z`` output produced with the unit-separated format."""
    commits: list[dict[str, str]] = []
    for chunk in raw.split("\0"):
        chunk = chunk.strip("\n")
        if not chunk:
            continue
        values = chunk.split("\x1f")
        values += [""] * (len(_LOG_FIELDS) - len(values))
        commit = dict(zip(_LOG_FIELDS, values, strict=False))
        commit["body"] = commit["body"].strip()
        commits.append(commit)
    return commits


class VcsClient:
    """Run read-only git queries rooted at a repository directory."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root.resolve()

    def _run_git(self, *args: str) -> str:
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_root,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                env=_git_env(),
                check=False,
            )
        except OSError as exc:
            msg = f"git is not available: {exc}"
            raise VcsError(msg) from exc
        if result.returncode != 0:
            msg = f"git failed ({' '.join(cmd)}): {result.stderr.strip()}"
            logger.debug(msg)
            raise VcsError(msg)
        return result.stdout

    def status(self) -> dict[str, Any]:
        """Return branch tracking info and per-file working tree state."""
        return parse_status(self._run_git("status", "--porcelain=v1", "--branch", "-z"))

    def log(self, max_count: int = DEFAULT_LOG_COUNT) -> list[dict[str, str]]:
        """Return up to *max_count* most recent commits, newest first."""
        if max_count < 1:
            msg = f"max_count must be >= 1, got {max_count}"
            raise VcsError(msg)
        raw = self._run_git(
            "log",
            f"--max-count={max_count}",
            "-z",
            f"--format={_LOG_FORMAT}",
        )
        return parse_log(raw)
