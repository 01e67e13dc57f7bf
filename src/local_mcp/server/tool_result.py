"""Typed tool outcomes and their flattening to MCP text results.

Handlers return either ``ToolOk`` or ``ToolError``. The calling agent only
ever sees text, so ``render_result`` collapses both into a single string at
the transport boundary while tests can still assert on the error kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "ErrorKind",
    "ToolError",
    "ToolOk",
    "ToolOutcome",
    "render_result",
]


class ErrorKind(str, Enum):
    """Categories of tool-call failure."""

    PATH_ESCAPE = "path_escape"
    READ_FAILED = "read_failed"
    TOO_LARGE = "too_large"
    WRITE_DISABLED = "write_disabled"
    WRITE_FAILED = "write_failed"
    SCRIPT_NOT_FOUND = "script_not_found"
    MANIFEST_INVALID = "manifest_invalid"
    EXECUTION_FAILED = "execution_failed"
    VCS_FAILED = "vcs_failed"
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"


@dataclass(frozen=True)
class ToolOk:
    """Successful tool call carrying its text payload."""

    text: str


@dataclass(frozen=True)
class ToolError:
    """Failed tool call.

    ``message`` is the agent-facing sentence; ``detail`` is the underlying
    error text, appended after a colon when present.
    """

    kind: ErrorKind
    message: str
    detail: str = ""

    @property
    def text(self) -> str:
        if not self.detail:
            return self.message
        return f"{self.message}: {self.detail}"


ToolOutcome = ToolOk | ToolError


def render_result(outcome: ToolOutcome) -> str:
    """Flatten an outcome into the uniform text envelope."""
    return outcome.text
