"""Status events for pve-ctgen: sink interface, console rendering and error logs."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from ctgen.models import ImageSpec, PipelineResult, StepStatus
from ctgen.utils import ensure_directory

_RESET = "\033[0m"

STATUS_STYLE = {
    StepStatus.PENDING: ("❔", "\033[0;37m"),
    StepStatus.RUNNING: ("⚙️", "\033[1;33m"),
    StepStatus.SUCCESS: ("✅", "\033[0;32m"),
    StepStatus.FAILED: ("❌", "\033[0;31m"),
    StepStatus.SKIPPED: ("➖", "\033[0;90m"),
}


class StatusSink:
    """Consumer of pipeline events.

    The pipeline thread and the output drain threads of a running command
    all publish here, so every public method takes the same lock before
    handing the event to the matching ``_on_*`` hook. Subclasses override
    the hooks they care about.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def image_started(self, image: ImageSpec, step_names: Sequence[str]) -> None:
        with self._lock:
            self._on_image_started(image, list(step_names))

    def step_status(self, image_name: str, index: int, step_name: str, status: StepStatus) -> None:
        with self._lock:
            self._on_step_status(image_name, index, step_name, status)

    def command(self, image_name: str, step_name: str, text: str) -> None:
        with self._lock:
            self._on_command(image_name, step_name, text)

    def output(self, text: str) -> None:
        with self._lock:
            self._on_output(text)

    def progress(self, done: int, total: Optional[int]) -> None:
        with self._lock:
            self._on_progress(done, total)

    def image_finished(self, result: PipelineResult) -> None:
        with self._lock:
            self._on_image_finished(result)

    def report(self, results: Sequence[PipelineResult]) -> None:
        with self._lock:
            self._on_report(list(results))

    def _on_image_started(self, image: ImageSpec, step_names: List[str]) -> None:
        pass

    def _on_step_status(self, image_name: str, index: int, step_name: str, status: StepStatus) -> None:
        pass

    def _on_command(self, image_name: str, step_name: str, text: str) -> None:
        pass

    def _on_output(self, text: str) -> None:
        pass

    def _on_progress(self, done: int, total: Optional[int]) -> None:
        pass

    def _on_image_finished(self, result: PipelineResult) -> None:
        pass

    def _on_report(self, results: List[PipelineResult]) -> None:
        pass


def failed_names(results: Sequence[PipelineResult]) -> List[str]:
    return [result.name for result in results if not result.success]


class ConsoleSink(StatusSink):
    """Render pipeline events as coloured lines on stdout."""

    def __init__(self, colour: bool = True) -> None:
        super().__init__()
        self.colour = colour
        self._progress_active = False

    def _paint(self, colour: str, text: str) -> str:
        if not self.colour:
            return text
        return f"{colour}{text}{_RESET}"

    def _print(self, text: str) -> None:
        if self._progress_active:
            # Terminate the carriage-return progress line first
            print(flush=True)
            self._progress_active = False
        print(text, flush=True)

    def _on_image_started(self, image: ImageSpec, step_names: List[str]) -> None:
        self._print(self._paint("\033[0;36m", f"🖼️  {image.name} ({len(step_names)} steps)"))

    def _on_step_status(self, image_name: str, index: int, step_name: str, status: StepStatus) -> None:
        icon, colour = STATUS_STYLE[status]
        self._print(self._paint(colour, f"  {icon} [{index + 1}] {step_name}"))

    def _on_command(self, image_name: str, step_name: str, text: str) -> None:
        self._print(self._paint("\033[1;33m", f"    $ {text}"))

    def _on_output(self, text: str) -> None:
        for line in text.splitlines() or [""]:
            self._print(f"    {line}")

    def _on_progress(self, done: int, total: Optional[int]) -> None:
        done_mb = done / (1024 * 1024)
        if total:
            pct = done * 100 / total
            bar_len = 30
            filled = int(bar_len * done / total)
            bar = "#" * filled + "-" * (bar_len - filled)
            line = f"\r    [{bar}] {pct:5.1f}% {done_mb:.1f}/{total / (1024 * 1024):.1f} MiB"
        else:
            line = f"\r    {done_mb:.1f} MiB downloaded"
        print(line, end="", flush=True)
        self._progress_active = True

    def _on_image_finished(self, result: PipelineResult) -> None:
        if result.success:
            self._print(self._paint("\033[0;32m", f"✅ {result.name}"))
        else:
            self._print(self._paint("\033[0;31m", f"❌ {result.name}"))

    def _on_report(self, results: List[PipelineResult]) -> None:
        failed = failed_names(results)
        if not failed:
            self._print(self._paint("\033[0;32m", "\nAll steps completed successfully!"))
            return
        self._print(self._paint("\033[0;31m", "\nThe following images failed:"))
        for name in failed:
            self._print(f"- {name}")


class ErrorLog:
    """Append timestamped error lines to ``<log_dir>/<image>.error.log``.

    Logging must never take the pipeline down, so write failures are dropped.
    """

    def __init__(self, log_dir: Path) -> None:
        self.log_dir = log_dir

    def path_for(self, image_name: str) -> Path:
        return self.log_dir / f"{image_name}.error.log"

    def record(self, image_name: str, message: str) -> None:
        stamp = datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")
        try:
            ensure_directory(self.log_dir)
            with open(self.path_for(image_name), "a") as f:
                f.write(f"[{stamp}] {message}\n")
        except OSError:
            pass
