"""Tests for local_mcp.lib.lifecycle."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import uuid
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import psutil
import pytest

from local_mcp.lib.lifecycle import (
    ProcessLifecycleController,
    ServerAlreadyRunningError,
    StopOutcome,
    StopState,
    server_command,
)

_SLEEPER = "import time; print('ready', flush=True); time.sleep(60)"
_STUBBORN = (
    "import signal, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "print('ready', flush=True)\n"
    "time.sleep(60)\n"
)


@pytest.fixture()
def spawned() -> Iterator[list[subprocess.Popen[str]]]:
    procs: list[subprocess.Popen[str]] = []
    yield procs
    for proc in procs:
        if proc.poll() is None:
            proc.kill()
        proc.wait(timeout=5)
        if proc.stdout is not None:
            proc.stdout.close()


def _spawn(
    procs: list[subprocess.Popen[str]], code: str, *extra: str
) -> subprocess.Popen[str]:
    proc = subprocess.Popen(
        [sys.executable, "-c", code, *extra],
        stdout=subprocess.PIPE,
        text=True,
    )
    procs.append(proc)
    assert proc.stdout is not None
    assert proc.stdout.readline().strip() == "ready"
    return proc


def _dead_pid() -> int:
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


def _controller(tmp_path: Path, **kwargs: object) -> ProcessLifecycleController:
    return ProcessLifecycleController(
        tmp_path / ".mcp-server.pid", **kwargs  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Invalid and stale records
# ---------------------------------------------------------------------------


class TestInvalidRecord:
    @pytest.mark.parametrize(
        "content", ["abc", "", "12abc", "0", "-5", "1.5", "99999999999999"]
    )
    def test_deletes_record_without_signalling(
        self, tmp_path: Path, content: str
    ) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_text(content)

        with (
            patch("local_mcp.lib.lifecycle.os.kill") as mock_kill,
            patch.object(controller, "_pattern_kill") as mock_fallback,
        ):
            outcome = controller.stop()

        assert outcome.state is StopState.INVALID_RECORD
        assert outcome.exit_code == 1
        assert not controller.pid_path.exists()
        mock_kill.assert_not_called()
        mock_fallback.assert_not_called()

    def test_non_utf8_record_is_invalid(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_bytes(b"\xff\xfe\x00")

        with patch.object(controller, "_pattern_kill") as mock_fallback:
            outcome = controller.stop()

        assert outcome.state is StopState.INVALID_RECORD
        assert outcome.exit_code == 1
        assert not controller.pid_path.exists()
        mock_fallback.assert_not_called()

    def test_surrounding_whitespace_is_accepted(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_text(f"  {_dead_pid()}\n")
        outcome = controller.stop()
        assert outcome.state is StopState.STALE_RECORD


class TestStaleRecord:
    def test_deletes_record_and_skips_fallback(self, tmp_path: Path) -> None:
        pid = _dead_pid()
        controller = _controller(tmp_path)
        controller.pid_path.write_text(str(pid))

        with patch.object(controller, "_pattern_kill") as mock_fallback:
            outcome = controller.stop()

        assert outcome == StopOutcome(StopState.STALE_RECORD, pid=pid)
        assert outcome.exit_code == 1
        assert not controller.pid_path.exists()
        mock_fallback.assert_not_called()


# ---------------------------------------------------------------------------
# Live process termination
# ---------------------------------------------------------------------------


class TestTerminateLiveProcess:
    def test_graceful_exit_within_window(
        self, tmp_path: Path, spawned: list[subprocess.Popen[str]]
    ) -> None:
        proc = _spawn(spawned, _SLEEPER)
        controller = _controller(tmp_path, grace_seconds=5.0)
        controller.pid_path.write_text(str(proc.pid))

        with patch("local_mcp.lib.lifecycle.os.kill", wraps=os.kill) as k:
            outcome = controller.stop()

        assert outcome.state is StopState.TERMINATED
        assert outcome.exit_code == 0
        assert not controller.pid_path.exists()
        sent = [c.args[1] for c in k.call_args_list if c.args[0] == proc.pid]
        assert sent[:2] == [0, signal.SIGTERM]
        assert signal.SIGKILL not in sent
        assert not psutil.pid_exists(proc.pid)

    def test_escalates_to_sigkill_when_term_ignored(
        self, tmp_path: Path, spawned: list[subprocess.Popen[str]]
    ) -> None:
        proc = _spawn(spawned, _STUBBORN)
        controller = _controller(tmp_path, grace_seconds=0.3)
        controller.pid_path.write_text(str(proc.pid))

        outcome = controller.stop()

        assert outcome.state is StopState.KILLED
        assert outcome.exit_code == 0
        assert not controller.pid_path.exists()
        assert proc.wait(timeout=5) == -signal.SIGKILL

    def test_permission_denied_keeps_record(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_text("4242")

        def fake_kill(pid: int, sig: int) -> None:
            if sig == signal.SIGTERM:
                raise PermissionError("operation not permitted")

        with patch("local_mcp.lib.lifecycle.os.kill", side_effect=fake_kill):
            outcome = controller.stop()

        assert outcome.state is StopState.KILL_FAILED
        assert outcome.exit_code == 1
        assert controller.pid_path.read_text() == "4242"

    def test_process_gone_before_sigterm_counts_as_stopped(
        self, tmp_path: Path
    ) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_text("4242")

        def fake_kill(pid: int, sig: int) -> None:
            if sig == signal.SIGTERM:
                raise ProcessLookupError

        with patch("local_mcp.lib.lifecycle.os.kill", side_effect=fake_kill):
            outcome = controller.stop()

        assert outcome.state is StopState.TERMINATED
        assert not controller.pid_path.exists()

    def test_wait_treats_vanished_process_as_exited(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        with patch(
            "local_mcp.lib.lifecycle.psutil.Process",
            side_effect=psutil.NoSuchProcess(4242),
        ):
            assert controller._wait_for_exit(4242) is True

    def test_wait_uses_grace_deadline(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path, grace_seconds=1.5)
        fake_proc = MagicMock()
        fake_proc.wait.side_effect = psutil.TimeoutExpired(1.5, pid=4242)
        with patch("local_mcp.lib.lifecycle.psutil.Process", return_value=fake_proc):
            assert controller._wait_for_exit(4242) is False
        fake_proc.wait.assert_called_once_with(timeout=1.5)


class TestProcessExists:
    def test_live_process(self) -> None:
        assert ProcessLifecycleController.process_exists(os.getpid()) is True

    def test_dead_process(self) -> None:
        assert ProcessLifecycleController.process_exists(_dead_pid()) is False

    def test_permission_denied_means_exists(self) -> None:
        with patch("local_mcp.lib.lifecycle.os.kill", side_effect=PermissionError):
            assert ProcessLifecycleController.process_exists(1) is True


# ---------------------------------------------------------------------------
# Pattern fallback
# ---------------------------------------------------------------------------


class TestPatternFallback:
    def test_nothing_to_stop_is_idempotent(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        with patch("local_mcp.lib.lifecycle.psutil.process_iter", return_value=[]):
            first = controller.stop()
            second = controller.stop()

        assert first == second == StopOutcome(StopState.NOTHING_TO_STOP)
        assert first.exit_code == 1
        assert list(tmp_path.iterdir()) == []

    def test_terminates_matching_process(
        self, tmp_path: Path, spawned: list[subprocess.Popen[str]]
    ) -> None:
        marker = f"local-mcp-test-{uuid.uuid4().hex}"
        proc = _spawn(spawned, _SLEEPER, marker)
        controller = _controller(tmp_path, server_pattern=marker)

        outcome = controller.stop()

        assert outcome.state is StopState.PATTERN_KILLED
        assert outcome.matched == (proc.pid,)
        assert outcome.exit_code == 0
        assert proc.wait(timeout=5) == -signal.SIGTERM

    def test_unique_pattern_matches_nothing(self, tmp_path: Path) -> None:
        controller = _controller(
            tmp_path, server_pattern=f"no-such-process-{uuid.uuid4().hex}"
        )
        assert controller.stop().state is StopState.NOTHING_TO_STOP

    def test_skips_own_process_and_vanished_ones(self, tmp_path: Path) -> None:
        marker = "srv-marker"
        me = MagicMock(info={"pid": os.getpid(), "cmdline": ["python", marker]})
        gone = MagicMock(info={"pid": 11, "cmdline": ["python", marker]})
        gone.terminate.side_effect = psutil.NoSuchProcess(11)
        hidden = MagicMock(info={"pid": 12, "cmdline": None})
        other = MagicMock(info={"pid": 13, "cmdline": ["vim"]})
        target = MagicMock(info={"pid": 14, "cmdline": ["python", "-m", marker]})
        controller = _controller(tmp_path, server_pattern=marker)

        with patch(
            "local_mcp.lib.lifecycle.psutil.process_iter",
            return_value=[me, gone, hidden, other, target],
        ):
            outcome = controller.stop()

        assert outcome.matched == (14,)
        me.terminate.assert_not_called()
        other.terminate.assert_not_called()
        target.terminate.assert_called_once_with()


# ---------------------------------------------------------------------------
# Start / running_pid
# ---------------------------------------------------------------------------


class TestStart:
    def test_records_pid_and_refuses_second_start(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path, grace_seconds=5.0)
        log_path = tmp_path / "server.log"
        command = [sys.executable, "-c", "import time; time.sleep(60)"]

        pid = controller.start(command, cwd=tmp_path, log_path=log_path)
        try:
            assert controller.pid_path.read_text() == str(pid)
            assert controller.running_pid() == pid
            assert log_path.exists()
            with pytest.raises(ServerAlreadyRunningError) as exc_info:
                controller.start(command, cwd=tmp_path, log_path=log_path)
            assert exc_info.value.pid == pid
        finally:
            outcome = controller.stop()

        assert outcome.state is StopState.TERMINATED
        assert controller.running_pid() is None

    def test_replaces_stale_record(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path, grace_seconds=5.0)
        controller.pid_path.write_text(str(_dead_pid()))
        command = [sys.executable, "-c", "import time; time.sleep(60)"]

        pid = controller.start(command, cwd=tmp_path, log_path=tmp_path / "log")
        try:
            assert controller.pid_path.read_text() == str(pid)
        finally:
            controller.stop()

    def test_running_pid_without_record(self, tmp_path: Path) -> None:
        assert _controller(tmp_path).running_pid() is None

    def test_running_pid_invalid_record(self, tmp_path: Path) -> None:
        controller = _controller(tmp_path)
        controller.pid_path.write_text("garbage")
        assert controller.running_pid() is None


class TestConstruction:
    def test_negative_grace_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="grace_seconds"):
            _controller(tmp_path, grace_seconds=-1)

    def test_server_command_targets_module_over_http(self) -> None:
        cmd = server_command()
        assert cmd[0] == sys.executable
        assert cmd[1:] == ["-m", "local_mcp.server.mcp_server", "--http"]

    @pytest.mark.parametrize(
        ("state", "code"),
        [
            (StopState.TERMINATED, 0),
            (StopState.KILLED, 0),
            (StopState.PATTERN_KILLED, 0),
            (StopState.INVALID_RECORD, 1),
            (StopState.STALE_RECORD, 1),
            (StopState.KILL_FAILED, 1),
            (StopState.NOTHING_TO_STOP, 1),
        ],
    )
    def test_exit_codes(self, state: StopState, code: int) -> None:
        assert StopOutcome(state).exit_code == code
