"""Tests for ctgen.models module."""

from __future__ import annotations

import pytest

from ctgen.models import ChecksumRecord, ImageProgress, ImageSpec, ImageState, PipelineResult, StepStatus


@pytest.fixture
def progress():
    image = ImageSpec(id=1, name="a.img", url="https://example.com/a.img")
    return ImageProgress(image=image, step_names=["Download/Verify", "Copy Image", "Create VM"])


class TestImageSpec:
    def test_optional_fields_default_empty(self):
        spec = ImageSpec(id=1, name="a.img", url="https://example.com/a.img")
        assert spec.checksum_url == ""
        assert spec.tags == ""
        assert spec.vendor == ""

    def test_immutable(self):
        spec = ImageSpec(id=1, name="a.img", url="https://example.com/a.img")
        with pytest.raises(AttributeError):
            spec.name = "b.img"  # type: ignore[misc]


class TestStepStatus:
    def test_terminal_states(self):
        assert {s for s in StepStatus if s.terminal} == {StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED}

    def test_string_values(self):
        assert StepStatus.RUNNING == "running"


class TestImageProgress:
    def test_starts_pending_and_queued(self, progress):
        assert progress.statuses == [StepStatus.PENDING] * 3
        assert progress.state is ImageState.QUEUED
        assert progress.pending == [0, 1, 2]
        assert not progress.complete

    def test_forward_transitions(self, progress):
        progress.set(0, StepStatus.RUNNING)
        assert progress.running == [0]
        progress.set(0, StepStatus.FAILED)
        progress.set(1, StepStatus.SKIPPED)
        progress.set(2, StepStatus.SKIPPED)
        assert progress.failed
        assert progress.complete

    @pytest.mark.parametrize(
        "path",
        [
            [StepStatus.SUCCESS],
            [StepStatus.RUNNING, StepStatus.SKIPPED],
            [StepStatus.RUNNING, StepStatus.SUCCESS, StepStatus.RUNNING],
            [StepStatus.SKIPPED, StepStatus.RUNNING],
        ],
    )
    def test_illegal_transitions(self, progress, path):
        with pytest.raises(ValueError, match="Illegal status change"):
            for status in path:
                progress.set(0, status)


class TestRecords:
    def test_checksum_record_unpacks(self):
        digest, algorithm = ChecksumRecord("ab" * 16, "md5")
        assert algorithm == "md5"
        assert len(digest) == 32

    def test_pipeline_result(self):
        assert PipelineResult("a.img", False).success is False
