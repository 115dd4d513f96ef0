"""Tests for dep_guard.shell."""

from __future__ import annotations

import os
import signal
import sys
import threading
from pathlib import Path

import pytest

from dep_guard.errors import handle_shutdown
from dep_guard.shell import capture, run, try_run


class TestRun:
    def test_exit_status(self) -> None:
        assert run(sys.executable, "-c", "raise SystemExit(3)").returncode == 3
        assert try_run(sys.executable, "-c", "pass") is True

    def test_missing_executable(self) -> None:
        assert run("dep-guard-no-such-tool").returncode == 127

    def test_capture(self) -> None:
        result = capture(sys.executable, "-c", "print('{}')")
        assert result.returncode == 0
        assert result.stdout.strip() == "{}"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
class TestInterruptedRun:
    """A signal that arrives mid-install must not kill the installer."""

    def test_child_runs_to_completion(self, tmp_path: Path) -> None:
        marker = tmp_path / "done"
        child = (
            "import signal, time, pathlib\n"
            "signal.signal(signal.SIGINT, signal.SIG_IGN)\n"
            "time.sleep(1.5)\n"
            f"pathlib.Path({str(marker)!r}).write_text('ok')\n"
        )
        previous = signal.signal(signal.SIGINT, handle_shutdown)
        timer = threading.Timer(0.5, os.kill, args=(os.getpid(), signal.SIGINT))
        try:
            timer.start()
            with pytest.raises(SystemExit) as exc_info:
                run(sys.executable, "-c", child)
        finally:
            timer.cancel()
            signal.signal(signal.SIGINT, previous)

        assert exc_info.value.code == 130
        assert marker.read_text() == "ok"
