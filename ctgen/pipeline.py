"""Per-image build pipeline: acquire, stage, provision."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ctgen.acquire import acquire_image
from ctgen.config import GeneratorConfig
from ctgen.constants import STATIC_STEP_NAMES
from ctgen.exceptions import GeneratorError, ProvisioningError
from ctgen.executor import CommandExecutor
from ctgen.models import ImageProgress, ImageSpec, ImageState, PipelineResult, StepSpec, StepStatus
from ctgen.provision import Provisioner, build_context, install_vendor_snippet
from ctgen.status import ErrorLog, StatusSink
from ctgen.utils import copy_file, log

DOWNLOAD_INDEX = 0
COPY_INDEX = 1
FIRST_PROVISION_INDEX = len(STATIC_STEP_NAMES)


class PipelineDriver:
    """Drive images one at a time through Acquiring -> Staging -> Provisioning.

    A failing stage marks its step failed, every later step skipped, and the
    image failed; the next image starts regardless. Any exception raised inside
    a stage counts as that stage failing. Nothing is rolled back.
    """

    def __init__(
        self,
        cfg: GeneratorConfig,
        steps: Sequence[StepSpec],
        sink: StatusSink,
        error_log: Optional[ErrorLog] = None,
        executor: Optional[CommandExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = cfg
        self.steps = list(steps)
        self.sink = sink
        self.error_log = error_log if error_log is not None else ErrorLog(cfg.log_dir)
        self.sleep = sleep
        self.provisioner = Provisioner(
            executor if executor is not None else CommandExecutor(),
            sink,
            error_log=self.error_log,
            step_delay=cfg.step_delay,
            sleep=sleep,
        )
        self.progress: Dict[str, ImageProgress] = {}

    @property
    def step_names(self) -> List[str]:
        return list(STATIC_STEP_NAMES) + [step.name for step in self.steps]

    def run(self, images: Sequence[ImageSpec]) -> List[PipelineResult]:
        results = [self.run_image(image) for image in images]
        self.sink.report(results)
        return results

    def _set(self, progress: ImageProgress, index: int, status: StepStatus) -> None:
        progress.set(index, status)
        self.sink.step_status(progress.image.name, index, progress.step_names[index], status)

    def _enter(self, progress: ImageProgress, state: ImageState) -> None:
        log("DEBUG", f"{progress.image.name}: {progress.state.value} -> {state.value}")
        progress.state = state

    def _fail(self, progress: ImageProgress, index: Optional[int], exc: Exception) -> None:
        self.error_log.record(progress.image.name, str(exc))
        self.sink.output(f"Error: {exc}")
        if index is not None:
            self._set(progress, index, StepStatus.FAILED)

    def _pause(self) -> None:
        if self.cfg.step_delay > 0:
            self.sleep(self.cfg.step_delay)

    def run_image(self, image: ImageSpec) -> PipelineResult:
        progress = ImageProgress(image=image, step_names=self.step_names)
        self.progress[image.name] = progress
        self.sink.image_started(image, progress.step_names)

        cached = self._acquire(progress)
        ok = cached is not None and self._stage(progress, cached) and self._provision(progress)

        for index in progress.pending:
            self._set(progress, index, StepStatus.SKIPPED)
        self._enter(progress, ImageState.DONE)
        progress.success = ok and not progress.failed
        result = PipelineResult(name=image.name, success=progress.success)
        self.sink.image_finished(result)
        return result

    def _acquire(self, progress: ImageProgress) -> Optional[Path]:
        self._enter(progress, ImageState.ACQUIRING)
        self._set(progress, DOWNLOAD_INDEX, StepStatus.RUNNING)
        self.sink.command(
            progress.image.name, progress.step_names[DOWNLOAD_INDEX], "Verifying local file and checksum..."
        )
        try:
            cached = acquire_image(
                progress.image, self.cfg.iso_dir, self.sink, timeout=self.cfg.download_timeout
            )
        except Exception as exc:
            self._fail(progress, DOWNLOAD_INDEX, exc)
            return None
        self._set(progress, DOWNLOAD_INDEX, StepStatus.SUCCESS)
        self._pause()
        return cached

    def _stage(self, progress: ImageProgress, cached: Path) -> bool:
        self._enter(progress, ImageState.STAGING)
        staging = self.cfg.staging_file
        self._set(progress, COPY_INDEX, StepStatus.RUNNING)
        self.sink.command(progress.image.name, progress.step_names[COPY_INDEX], f"cp {cached} {staging}")
        self.sink.output(f"Copying {cached} to {staging}...")
        try:
            copy_file(cached, staging)
        except Exception as exc:
            self._fail(progress, COPY_INDEX, GeneratorError(f"Copy failed: {exc}"))
            return False
        self.sink.output("Copy complete.")
        self._set(progress, COPY_INDEX, StepStatus.SUCCESS)
        self._pause()
        return True

    def _provision(self, progress: ImageProgress) -> bool:
        self._enter(progress, ImageState.PROVISIONING)
        image = progress.image
        staging = self.cfg.staging_file

        if self.cfg.cloudinit_dir is not None:
            try:
                install_vendor_snippet(image.vendor, self.cfg.cloudinit_dir, self.cfg.snippets_dir)
            except Exception as exc:
                self._fail(progress, None, exc)
                self.provisioner.remove_staged(image.name, staging)
                return False

        def on_status(index: int, status: StepStatus) -> None:
            self._set(progress, FIRST_PROVISION_INDEX + index, status)

        try:
            self.provisioner.run_steps(image.name, self.steps, build_context(image, staging), on_status)
        except ProvisioningError as exc:
            self.error_log.record(image.name, str(exc))
            return False
        except Exception as exc:
            running = progress.running
            self._fail(progress, running[0] if running else None, exc)
            self.provisioner.remove_staged(image.name, staging)
            return False
        return True
