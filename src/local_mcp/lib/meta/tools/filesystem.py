"""Filesystem tools for repo-confined file access.

These helpers provide a narrow interface for safe path handling and file
operations inside a repository root. The MCP tool registry consumes them so
read/write behavior is centralized and path-confined.

Containment is checked on the *resolved* path: ``..`` segments, symlinks and
absolute-path overrides are canonicalized first, so a string-prefix check on
the raw input is never relied upon.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_READ_BYTES",
    "FileTooLargeError",
    "PathEscapeError",
    "normalize_relative_path",
    "path_exists",
    "read_text_file",
    "resolve_repo_target",
    "write_text_file",
]

from pathlib import Path

DEFAULT_MAX_READ_BYTES = 200 * 1024


class PathEscapeError(ValueError):
    """Raised when a path resolves outside the repository root."""

    def __init__(self, rel_path: str) -> None:
        super().__init__(f"Path outside repo not allowed: {rel_path}")
        self.rel_path = rel_path


class FileTooLargeError(ValueError):
    """Raised when a file exceeds the read size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"file is {size} bytes; limit is {limit} bytes")
        self.size = size
        self.limit = limit


def normalize_relative_path(rel_path: str) -> str:
    """Normalize a repo-relative path to a forward-slash form."""
    normalized = rel_path.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def resolve_repo_target(repo_root: Path, rel_path: str) -> Path:
    """Resolve *rel_path* inside ``repo_root`` or raise ``PathEscapeError``.

    The root itself is an allowed target. Absolute inputs are accepted only
    when they resolve inside the root. Paths the OS cannot represent (such
    as ones with an embedded NUL byte) are rejected the same way.
    """
    root = repo_root.resolve()
    try:
        target = (root / normalize_relative_path(rel_path)).resolve()
    except ValueError as exc:
        raise PathEscapeError(rel_path) from exc
    if target != root and root not in target.parents:
        raise PathEscapeError(rel_path)
    return target


def read_text_file(
    repo_root: Path,
    rel_path: str,
    *,
    max_bytes: int | None = DEFAULT_MAX_READ_BYTES,
) -> tuple[str, str]:
    """Read a UTF-8 file and return ``(content, display_path)``.

    The size ceiling is checked with ``stat`` before any bytes are read.
    """
    root = repo_root.resolve()
    target = resolve_repo_target(root, rel_path)

    if not target.exists():
        raise FileNotFoundError(f"file not found: {rel_path}")
    if target.is_dir():
        raise IsADirectoryError(f"path is a directory: {rel_path}")

    size = target.stat().st_size
    if max_bytes is not None and size > max_bytes:
        raise FileTooLargeError(size, max_bytes)

    try:
        text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnicodeError(f"file is not UTF-8 text: {rel_path}") from exc

    return text, target.relative_to(root).as_posix()


def write_text_file(repo_root: Path, rel_path: str, content: str) -> str:
    """Write UTF-8 text to a repo-relative file and return normalized path."""
    root = repo_root.resolve()
    target = resolve_repo_target(root, rel_path)
    if target == root:
        raise IsADirectoryError(f"path is a directory: {rel_path}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target.relative_to(root).as_posix()



def path_exists(repo_root: Path, rel_path: str) -> bool:
    """Return whether a repo-relative path exists."""
    try:
        target = resolve_repo_target(repo_root, rel_path)
    except PathEscapeError:
        return False
    return target.exists()
