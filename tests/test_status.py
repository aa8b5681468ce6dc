"""Tests for ctgen.status module."""

from __future__ import annotations

import re
import threading
from unittest.mock import patch

from ctgen.models import ImageSpec, PipelineResult, StepStatus
from ctgen.status import ConsoleSink, ErrorLog, StatusSink, failed_names


class TestStatusSink:
    def test_base_hooks_are_noops(self):
        sink = StatusSink()
        sink.output("line")
        sink.step_status("a.img", 0, "Download/Verify", StepStatus.RUNNING)
        sink.report([])

    def test_writes_are_serialized(self):
        class SlowSink(StatusSink):
            def __init__(self):
                super().__init__()
                self.active = 0
                self.max_active = 0
                self.count = 0

            def _on_output(self, text):
                self.active += 1
                self.max_active = max(self.max_active, self.active)
                for _ in range(1000):
                    pass
                self.count += 1
                self.active -= 1

        sink = SlowSink()
        threads = [threading.Thread(target=lambda: [sink.output("x") for _ in range(200)]) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sink.count == 800
        assert sink.max_active == 1


def _plain(text: str) -> str:
    return re.sub(r"\033\[[0-9;]*m", "", text)


class TestConsoleSink:
    def test_step_status_line(self, capsys):
        sink = ConsoleSink(colour=False)
        sink.step_status("a.img", 2, "Create VM", StepStatus.FAILED)
        assert capsys.readouterr().out == "  ❌ [3] Create VM\n"

    def test_colour_applied(self, capsys):
        ConsoleSink().step_status("a.img", 0, "Copy Image", StepStatus.SUCCESS)
        out = capsys.readouterr().out
        assert "\033[0;32m" in out
        assert _plain(out) == "  ✅ [1] Copy Image\n"

    def test_progress_then_output_breaks_line(self, capsys):
        sink = ConsoleSink(colour=False)
        sink.progress(512, 1024)
        sink.output("Download complete.")
        out = capsys.readouterr().out
        assert "50.0%" in out
        assert out.endswith("\n    Download complete.\n")

    def test_progress_without_total(self, capsys):
        ConsoleSink(colour=False).progress(3 * 1024 * 1024, None)
        assert "3.0 MiB downloaded" in capsys.readouterr().out

    def test_image_started_and_finished(self, capsys):
        sink = ConsoleSink(colour=False)
        sink.image_started(ImageSpec(id=1, name="a.img", url="https://example.com/a.img"), ["x", "y"])
        sink.image_finished(PipelineResult("a.img", True))
        out = capsys.readouterr().out
        assert "a.img (2 steps)" in out
        assert "✅ a.img" in out

    def test_report_all_success(self, capsys):
        ConsoleSink(colour=False).report([PipelineResult("a.img", True)])
        assert "All steps completed successfully!" in capsys.readouterr().out

    def test_report_lists_failures(self, capsys):
        ConsoleSink(colour=False).report(
            [PipelineResult("a.img", True), PipelineResult("b.img", False), PipelineResult("c.img", False)]
        )
        out = capsys.readouterr().out
        assert "The following images failed:" in out
        assert "- b.img\n- c.img\n" in out
        assert "- a.img" not in out


class TestFailedNames:
    def test_preserves_order(self):
        results = [PipelineResult("b", False), PipelineResult("a", True), PipelineResult("c", False)]
        assert failed_names(results) == ["b", "c"]


class TestErrorLog:
    def test_appends_timestamped_lines(self, tmp_path):
        error_log = ErrorLog(tmp_path / "logs")
        error_log.record("a.img", "first")
        error_log.record("a.img", "second")
        lines = (tmp_path / "logs" / "a.img.error.log").read_text().splitlines()
        assert len(lines) == 2
        assert re.match(r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}\] first$", lines[0])
        assert lines[1].endswith("] second")

    def test_one_file_per_image(self, tmp_path):
        error_log = ErrorLog(tmp_path)
        error_log.record("a.img", "x")
        error_log.record("b.img", "y")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.img.error.log", "b.img.error.log"]

    def test_write_failure_is_dropped(self, tmp_path):
        error_log = ErrorLog(tmp_path)
        with patch("builtins.open", side_effect=PermissionError("denied")):
            error_log.record("a.img", "lost")  # should not raise
