"""Background server lifecycle driven by a pid record file.

The record is a single file holding the decimal PID of the managed server.
``stop()`` walks this state machine:

1. No record: fall back to a command-line pattern search.
2. Record is not a positive integer: delete it and fail.
3. Record names a process that does not exist: delete it and fail. The
   pattern fallback is skipped here so an unrelated process is never hit.
4. Process exists: SIGTERM, wait up to ``grace_seconds`` for it to exit,
   then SIGKILL. Either way the record is deleted and the stop succeeds.

The pattern fallback matches a literal substring of the launch command line
(``local_mcp.server.mcp_server``). A server started some other way, such as
through the ``local-mcp`` console script, is not found by it.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_GRACE_SECONDS",
    "DEFAULT_LOG_FILENAME",
    "DEFAULT_PID_FILENAME",
    "SERVER_MODULE",
    "ProcessLifecycleController",
    "ServerAlreadyRunningError",
    "StopOutcome",
    "StopState",
    "server_command",
]

import logging
import os
import signal
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)

DEFAULT_PID_FILENAME = ".mcp-server.pid"
DEFAULT_LOG_FILENAME = ".mcp-server.log"
DEFAULT_GRACE_SECONDS = 3.0
SERVER_MODULE = "local_mcp.server.mcp_server"
# pid_t is a signed 32-bit integer.
_MAX_PID = 2**31 - 1


def server_command() -> list[str]:
    """Return the argv used to launch the server in the background."""
    return [sys.executable, "-m", SERVER_MODULE, "--http"]


class StopState(str, Enum):
    """Terminal states of a stop attempt."""

    TERMINATED = "terminated"
    KILLED = "killed"
    PATTERN_KILLED = "pattern_killed"
    INVALID_RECORD = "invalid_record"
    STALE_RECORD = "stale_record"
    KILL_FAILED = "kill_failed"
    NOTHING_TO_STOP = "nothing_to_stop"


_SUCCESS_STATES = frozenset(
    {StopState.TERMINATED, StopState.KILLED, StopState.PATTERN_KILLED}
)


@dataclass(frozen=True)
class StopOutcome:
    """Result of ``ProcessLifecycleController.stop``."""

    state: StopState
    pid: int | None = None
    matched: tuple[int, ...] = ()

    @property
    def success(self) -> bool:
        return self.state in _SUCCESS_STATES

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class ServerAlreadyRunningError(RuntimeError):
    """Raised by ``start`` when the recorded server is still alive."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Server already running with PID {pid}")
        self.pid = pid


def _parse_pid(raw: str) -> int | None:
    try:
        pid = int(raw.strip())
    except ValueError:
        return None
    # 0 and negatives address process groups in kill(2).
    return pid if 0 < pid <= _MAX_PID else None


class ProcessLifecycleController:
    """Start and stop one background server tracked by a pid record."""

    def __init__(
        self,
        pid_path: Path,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        server_pattern: str = SERVER_MODULE,
    ) -> None:
        if grace_seconds < 0:
            msg = "grace_seconds must be >= 0"
            raise ValueError(msg)
        self.pid_path = pid_path
        self.grace_seconds = grace_seconds
        self.server_pattern = server_pattern

    # ------------------------------------------------------------------
    # Record
    # ------------------------------------------------------------------

    def read_record(self) -> str | None:
        """Return the raw record text, or ``None`` when there is no record."""
        try:
            return self.pid_path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None

    def _remove_record(self) -> None:
        self.pid_path.unlink(missing_ok=True)

    def _write_record(self, pid: int) -> None:
        self.pid_path.write_text(str(pid), encoding="utf-8")

    # ------------------------------------------------------------------
    # Process probing and signalling
    # ------------------------------------------------------------------

    @staticmethod
    def process_exists(pid: int) -> bool:
        """Probe for *pid* with signal 0, which delivers nothing."""
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def _wait_for_exit(self, pid: int) -> bool:
        """Block until *pid* exits or the grace deadline passes."""
        try:
            psutil.Process(pid).wait(timeout=self.grace_seconds)
        except psutil.NoSuchProcess:
            return True
        except psutil.TimeoutExpired:
            return False
        return True

    def _terminate(self, pid: int) -> StopState:
        """SIGTERM, wait out the grace window, then SIGKILL if needed."""
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            return StopState.TERMINATED
        except PermissionError as exc:
            logger.error("Failed to kill pid %d: %s", pid, exc)
            return StopState.KILL_FAILED
        logger.info("Sent SIGTERM to pid %d", pid)

        if self._wait_for_exit(pid):
            return StopState.TERMINATED

        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            return StopState.TERMINATED
        except PermissionError as exc:
            logger.error("Failed to kill pid %d: %s", pid, exc)
            return StopState.KILL_FAILED
        logger.info("Sent SIGKILL to pid %d", pid)
        return StopState.KILLED

    def _pattern_kill(self) -> list[int]:
        """SIGTERM every process whose command line contains the pattern."""
        logger.info(
            'Attempting to stop processes matching "%s"', self.server_pattern
        )
        own_pid = os.getpid()
        matched: list[int] = []
        for proc in psutil.process_iter(attrs=["pid", "cmdline"]):
            try:
                if proc.info["pid"] == own_pid:
                    continue
                cmdline = " ".join(proc.info.get("cmdline") or [])
                if self.server_pattern not in cmdline:
                    continue
                proc.terminate()
                matched.append(proc.info["pid"])
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return matched

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def stop(self) -> StopOutcome:
        """Stop the recorded server; see the module docstring for the rules."""
        raw = self.read_record()
        if raw is None:
            matched = self._pattern_kill()
            if matched:
                logger.info("Stopped matching processes: %s", matched)
                return StopOutcome(StopState.PATTERN_KILLED, matched=tuple(matched))
            logger.info("No running server processes found")
            return StopOutcome(StopState.NOTHING_TO_STOP)

        pid = _parse_pid(raw)
        if pid is None:
            logger.warning(
                "PID file exists but contents are invalid; removing pid file"
            )
            self._remove_record()
            return StopOutcome(StopState.INVALID_RECORD)

        if not self.process_exists(pid):
            logger.warning(
                "No process found for PID %d in pidfile; removing stale pidfile", pid
            )
            self._remove_record()
            return StopOutcome(StopState.STALE_RECORD, pid=pid)

        logger.info("Found process with PID %d, attempting to stop", pid)
        state = self._terminate(pid)
        if state is StopState.KILL_FAILED:
            logger.error("Unable to stop process by PID %d", pid)
            return StopOutcome(state, pid=pid)

        self._remove_record()
        logger.info("Server stopped and PID file removed")
        return StopOutcome(state, pid=pid)

    def running_pid(self) -> int | None:
        """Return the recorded PID when that process is alive."""
        raw = self.read_record()
        if raw is None:
            return None
        pid = _parse_pid(raw)
        if pid is None or not self.process_exists(pid):
            return None
        return pid

    def start(
        self,
        command: list[str],
        *,
        cwd: Path,
        log_path: Path,
    ) -> int:
        """Launch *command* detached from this session and record its PID.

        A record left behind by a dead or unparsable server is replaced.
        """
        existing = self.running_pid()
        if existing is not None:
            raise ServerAlreadyRunningError(existing)
        self._remove_record()

        with log_path.open("ab") as log_file:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        self._write_record(process.pid)
        logger.info("Started server with PID %d (log: %s)", process.pid, log_path)
        return process.pid
