"""Tests for ctgen.executor module."""

from __future__ import annotations

import shutil
import sys
import textwrap
import threading
from unittest.mock import patch

import pytest

from ctgen.exceptions import CommandError
from ctgen.executor import CommandExecutor, run_streaming, shell_command


def _python(code: str):
    return [sys.executable, "-c", textwrap.dedent(code)]


class _Collector:
    def __init__(self):
        self.lines = []
        self._lock = threading.Lock()

    def __call__(self, line):
        with self._lock:
            self.lines.append(line)


class TestRunStreaming:
    def test_all_lines_from_both_streams_in_per_stream_order(self):
        collector = _Collector()
        run_streaming(
            _python(
                """
                import sys
                for i in range(200):
                    print(f"out {i}", flush=True)
                    print(f"err {i}", file=sys.stderr, flush=True)
                for i in range(200, 250):
                    print(f"out {i}")
                """
            ),
            collector,
        )
        assert len(collector.lines) == 450
        out = [line for line in collector.lines if line.startswith("out ")]
        err = [line for line in collector.lines if line.startswith("err ")]
        assert out == [f"out {i}" for i in range(250)]
        assert err == [f"err {i}" for i in range(200)]

    def test_large_stderr_does_not_deadlock(self):
        # Far more than an OS pipe buffer on stderr while stdout stays quiet
        collector = _Collector()
        run_streaming(
            _python(
                """
                import sys
                for _ in range(5001):
                    sys.stderr.write("y" * 100 + "\\n")
                print("done")
                """
            ),
            collector,
        )
        assert "done" in collector.lines
        assert len(collector.lines) == 5002

    def test_nonzero_exit_raises_after_draining(self):
        collector = _Collector()
        with pytest.raises(CommandError, match="exit status 3") as exc:
            run_streaming(_python('print("partial"); raise SystemExit(3)'), collector)
        assert exc.value.returncode == 3
        assert collector.lines == ["partial"]

    def test_spawn_failure(self):
        with pytest.raises(CommandError, match="Failed to start command"):
            run_streaming(["/nonexistent/binary-for-ctgen-tests"], lambda line: None)

    def test_output_without_trailing_newline(self):
        collector = _Collector()
        run_streaming(_python('import sys; sys.stdout.write("no newline")'), collector)
        assert collector.lines == ["no newline"]


class TestCommandExecutor:
    def test_shell_command_wraps_in_shell(self):
        with patch("ctgen.executor.SHELL", "bash"):
            assert shell_command("echo hi") == ["bash", "-c", "echo hi"]

    def test_run_delegates_to_run_streaming(self):
        with patch("ctgen.executor.run_streaming") as mock_run:
            CommandExecutor().run("qm template 9001", print)
        cmd, callback = mock_run.call_args.args
        assert cmd[-2:] == ["-c", "qm template 9001"]
        assert callback is print

    @pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
    def test_runs_real_shell(self):
        collector = _Collector()
        with patch("ctgen.executor.SHELL", "bash"):
            CommandExecutor().run("echo one; echo two >&2; exit 0", collector)
        assert sorted(collector.lines) == ["one", "two"]


class TestDrainHandlerFailure:
    def test_failing_handler_does_not_stop_draining(self):
        seen = []

        def on_line(line):
            seen.append(line)
            if line == "first":
                raise RuntimeError("renderer broke")

        run_streaming(_python('print("first"); print("second"); print("third")'), on_line)
        assert seen == ["first", "second", "third"]
