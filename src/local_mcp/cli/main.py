"""CLI entry points: start, stop, and probe the background MCP server.

All three commands work relative to the current directory, where the pid
record (``.mcp-server.pid``) and server log (``.mcp-server.log``) live.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from local_mcp.lib.lifecycle import (
    DEFAULT_LOG_FILENAME,
    DEFAULT_PID_FILENAME,
    ProcessLifecycleController,
    ServerAlreadyRunningError,
    server_command,
)


def _configure_logging(tag: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format=f"[{tag}] %(message)s",
        stream=sys.stderr,
    )


def _controller() -> ProcessLifecycleController:
    return ProcessLifecycleController(Path.cwd() / DEFAULT_PID_FILENAME)


def build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    """Build a flagless parser so ``--help`` works and stray args are rejected."""
    return argparse.ArgumentParser(prog=prog, description=description)


def stop_main(argv: list[str] | None = None) -> None:
    """Stop the recorded server. Exit 0 on a confirmed stop, 1 otherwise."""
    build_parser(
        "local-mcp-stop",
        f"Stop the server recorded in {DEFAULT_PID_FILENAME}.",
    ).parse_args(argv)
    _configure_logging("stop-server")
    outcome = _controller().stop()
    sys.exit(outcome.exit_code)


def start_main(argv: list[str] | None = None) -> None:
    """Launch the server in the background and record its PID."""
    build_parser(
        "local-mcp-start",
        "Start the MCP server (streamable-http) as a background process.",
    ).parse_args(argv)
    _configure_logging("start-server")
    cwd = Path.cwd()
    try:
        pid = _controller().start(
            server_command(),
            cwd=cwd,
            log_path=cwd / DEFAULT_LOG_FILENAME,
        )
    except ServerAlreadyRunningError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except OSError as exc:
        print(f"Error: failed to start server: {exc}", file=sys.stderr)
        sys.exit(1)
    print(pid)


def status_main(argv: list[str] | None = None) -> None:
    """Exit 0 and print the PID when the recorded server is alive."""
    build_parser(
        "local-mcp-status",
        f"Report whether the server recorded in {DEFAULT_PID_FILENAME} is running.",
    ).parse_args(argv)
    pid = _controller().running_pid()
    if pid is None:
        print("not running")
        sys.exit(1)
    print(f"running (PID {pid})")
