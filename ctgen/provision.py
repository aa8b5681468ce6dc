"""Provisioning stage: render step templates and run them against the staged disk."""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

from ctgen.constants import DEFAULT_STEP_DELAY, PLACEHOLDERS
from ctgen.exceptions import CommandError, GeneratorError, ProvisioningError
from ctgen.executor import CommandExecutor
from ctgen.models import ImageSpec, StepSpec, StepStatus
from ctgen.status import ErrorLog, StatusSink
from ctgen.utils import copy_file, ensure_directory, log

FILE_PATH_PLACEHOLDER = "{{.FilePath}}"

_PLACEHOLDER_RE = re.compile("|".join(re.escape(p) for p in PLACEHOLDERS))

StatusCallback = Callable[[int, StepStatus], None]


def build_context(image: ImageSpec, file_path: Path) -> Dict[str, str]:
    return {
        "{{.ID}}": str(image.id),
        "{{.Name}}": image.name,
        "{{.Tags}}": image.tags,
        "{{.Vendor}}": image.vendor,
        FILE_PATH_PLACEHOLDER: str(file_path),
    }


def render_command(template: str, context: Mapping[str, str]) -> str:
    """Substitute placeholders in a single pass; substituted values are never re-scanned."""
    return _PLACEHOLDER_RE.sub(lambda m: context.get(m.group(0), m.group(0)), template)


def install_vendor_snippet(vendor: str, cloudinit_dir: Path, snippets_dir: Path) -> Path:
    """Copy the vendor's cloud-init config into the hypervisor snippets directory."""
    source = cloudinit_dir / vendor
    destination = snippets_dir / vendor
    if not vendor or not source.is_file():
        raise GeneratorError(f"Cloud-init config for vendor '{vendor}' not found at {source}")
    try:
        ensure_directory(snippets_dir)
        copy_file(source, destination)
    except OSError as exc:
        raise GeneratorError(f"Copying cloud-init config failed: {exc}")
    return destination


class Provisioner:
    def __init__(
        self,
        executor: CommandExecutor,
        sink: StatusSink,
        error_log: Optional[ErrorLog] = None,
        step_delay: float = DEFAULT_STEP_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.executor = executor
        self.sink = sink
        self.error_log = error_log
        self.step_delay = step_delay
        self.sleep = sleep

    def _record(self, image_name: str, message: str) -> None:
        log("DEBUG", f"{image_name}: {message}")
        if self.error_log is not None:
            self.error_log.record(image_name, message)

    def run_steps(
        self,
        image_name: str,
        steps: Sequence[StepSpec],
        context: Mapping[str, str],
        on_status: StatusCallback,
    ) -> None:
        """Run *steps* in order; after the first failure the rest are skipped.

        The staged disk named by ``{{.FilePath}}`` is removed afterwards
        whatever the outcome. Raises ProvisioningError if any step failed.
        """
        failed = False
        for index, step in enumerate(steps):
            if failed:
                on_status(index, StepStatus.SKIPPED)
                continue

            on_status(index, StepStatus.RUNNING)
            command = render_command(step.command, context)
            self.sink.command(image_name, step.name, command)
            try:
                self.executor.run(command, self.sink.output)
            except CommandError as exc:
                on_status(index, StepStatus.FAILED)
                failed = True
                self._record(image_name, f"step '{step.name}' failed: {exc}. Command: {command}")
            else:
                on_status(index, StepStatus.SUCCESS)
                if self.step_delay > 0:
                    self.sleep(self.step_delay)

        self.remove_staged(image_name, Path(context[FILE_PATH_PLACEHOLDER]))
        if failed:
            raise ProvisioningError(f"One or more steps failed for {image_name}")

    def remove_staged(self, image_name: str, staged: Path) -> None:
        try:
            staged.unlink()
        except OSError as exc:
            self._record(image_name, f"failed to remove {staged}: {exc}")
