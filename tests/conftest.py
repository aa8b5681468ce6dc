"""Shared test fixtures: sample images and steps, a recording sink, a spy executor."""

from __future__ import annotations

from typing import List, Optional

import pytest

from ctgen.config import GeneratorConfig
from ctgen.exceptions import CommandError
from ctgen.models import ImageSpec, PipelineResult, StepSpec, StepStatus
from ctgen.status import StatusSink

SHA256_HEX = "a" * 64


class RecordingSink(StatusSink):
    """Keep every event for later inspection."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List[tuple] = []

    def _on_image_started(self, image, step_names):
        self.events.append(("started", image.name, tuple(step_names)))

    def _on_step_status(self, image_name, index, step_name, status):
        self.events.append(("status", image_name, index, step_name, status))

    def _on_command(self, image_name, step_name, text):
        self.events.append(("command", image_name, step_name, text))

    def _on_output(self, text):
        self.events.append(("output", text))

    def _on_progress(self, done, total):
        self.events.append(("progress", done, total))

    def _on_image_finished(self, result: PipelineResult):
        self.events.append(("finished", result))

    def _on_report(self, results):
        self.events.append(("report", tuple(results)))

    def statuses(self, image_name: str) -> List[tuple]:
        return [(e[2], e[4]) for e in self.events if e[0] == "status" and e[1] == image_name]

    def final_statuses(self, image_name: str) -> dict:
        final = {}
        for index, status in self.statuses(image_name):
            final[index] = status
        return final

    @property
    def output_lines(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "output"]


class SpyExecutor:
    """Stand-in for CommandExecutor that records commands instead of running them."""

    def __init__(self, fail_when: Optional[str] = None, lines: Optional[List[str]] = None) -> None:
        self.fail_when = fail_when
        self.lines = lines or []
        self.commands: List[str] = []

    def run(self, command, on_line):
        self.commands.append(command)
        for line in self.lines:
            on_line(line)
        if self.fail_when is not None and self.fail_when in command:
            raise CommandError("Command failed with exit status 1", 1)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def image() -> ImageSpec:
    return ImageSpec(
        id=9001,
        name="ubuntu.img",
        url="https://example.com/releases/noble-server-cloudimg-amd64.img",
        checksum_url="https://example.com/releases/SHA256SUMS",
        tags="ubuntu;noble",
        vendor="ubuntu.yaml",
    )


@pytest.fixture
def steps() -> List[StepSpec]:
    return [
        StepSpec(name="Create VM", command="qm create {{.ID}} --name {{.Name}} --tags '{{.Tags}}'"),
        StepSpec(name="Import disk", command="qm importdisk {{.ID}} {{.FilePath}} local-lvm"),
        StepSpec(name="Template", command="qm template {{.ID}}"),
    ]


@pytest.fixture
def generator_config(tmp_path) -> GeneratorConfig:
    return GeneratorConfig(
        images_path=tmp_path / "os_list.json",
        steps_path=tmp_path / "steps.json",
        iso_dir=tmp_path / "iso",
        snippets_dir=tmp_path / "snippets",
        log_dir=tmp_path / "logs",
        cloudinit_dir=None,
        staging_file=tmp_path / "base.qcow2",
        step_delay=0,
        download_timeout=5,
    )


@pytest.fixture
def make_executor():
    """Factory for SpyExecutor instances."""
    return SpyExecutor
