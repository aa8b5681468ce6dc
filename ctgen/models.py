"""Data models for pve-ctgen."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED)


# Statuses only move forward; skipping is only possible before a step starts.
_TRANSITIONS: Dict[StepStatus, frozenset] = {
    StepStatus.PENDING: frozenset({StepStatus.RUNNING, StepStatus.SKIPPED}),
    StepStatus.RUNNING: frozenset({StepStatus.SUCCESS, StepStatus.FAILED}),
    StepStatus.SUCCESS: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}


class ImageState(str, Enum):
    QUEUED = "queued"
    ACQUIRING = "acquiring"
    STAGING = "staging"
    PROVISIONING = "provisioning"
    DONE = "done"


@dataclass(frozen=True)
class ImageSpec:
    id: int
    name: str
    url: str
    checksum_url: str = ""
    tags: str = ""
    vendor: str = ""


@dataclass(frozen=True)
class StepSpec:
    name: str
    command: str


class ChecksumRecord(NamedTuple):
    digest: str
    algorithm: str


class PipelineResult(NamedTuple):
    name: str
    success: bool


@dataclass
class ImageProgress:
    """Status of every step (static and provisioning) for one image."""

    image: ImageSpec
    step_names: List[str]
    statuses: List[StepStatus] = field(default_factory=list)
    state: ImageState = ImageState.QUEUED
    success: Optional[bool] = None

    def __post_init__(self) -> None:
        if not self.statuses:
            self.statuses = [StepStatus.PENDING] * len(self.step_names)

    def set(self, index: int, status: StepStatus) -> None:
        current = self.statuses[index]
        if status not in _TRANSITIONS[current]:
            raise ValueError(
                f"Illegal status change for step '{self.step_names[index]}': {current.value} -> {status.value}"
            )
        self.statuses[index] = status

    @property
    def pending(self) -> List[int]:
        return [idx for idx, status in enumerate(self.statuses) if status is StepStatus.PENDING]

    @property
    def running(self) -> List[int]:
        return [idx for idx, status in enumerate(self.statuses) if status is StepStatus.RUNNING]

    @property
    def failed(self) -> bool:
        return StepStatus.FAILED in self.statuses

    @property
    def complete(self) -> bool:
        return all(status.terminal for status in self.statuses)
