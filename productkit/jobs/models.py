"""Generation request, job schema and status."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from productkit.schemas.models import utcnow

IMAGE_ASSET_TYPES = frozenset({"hero", "lifestyle", "detail"})
MEDIA_ASSET_TYPES = frozenset({"video", "infographic"})


class GenerationRequest(BaseModel):
    """What a caller asked a run to produce. Immutable once submitted."""

    model_config = ConfigDict(frozen=True)

    asset_types: frozenset[str] = Field(default_factory=frozenset)
    count_by_type: dict[str, int] = Field(default_factory=dict)
    style: str | None = None

    @property
    def wants_images(self) -> bool:
        return bool(self.asset_types & IMAGE_ASSET_TYPES)

    def count_for(self, asset_type: str, default: int = 5) -> int:
        return self.count_by_type.get(asset_type, default)


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


_STATUS_ORDER = {
    JobStatus.QUEUED: 0,
    JobStatus.RUNNING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.ERROR: 2,
}


class StepStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


class JobStep(BaseModel):
    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_ms: int | None = None


def default_steps() -> list[JobStep]:
    return [
        JobStep(id="init", name="Initializing"),
        JobStep(id="images", name="Generating Images"),
        JobStep(id="model", name="Generating 3D Model"),
        JobStep(id="copy", name="Writing Marketing Copy"),
        JobStep(id="video", name="Generating Video"),
        JobStep(id="infographic", name="Generating Infographic"),
        JobStep(id="storefront", name="Syncing to Storefront"),
    ]


class GenerationJob(BaseModel):
    """One pipeline run. Mutated only by the task that owns it."""

    job_id: str
    product_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    steps: list[JobStep] = Field(default_factory=default_steps)
    generated_images: list[str] | None = None
    generated_3d_asset_url: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.ERROR)

    @property
    def current_step(self) -> JobStep | None:
        return next((s for s in self.steps if s.status == StepStatus.RUNNING), None)

    def advance(self, progress: int) -> None:
        """Raise progress; never lowers it."""
        self.progress = max(self.progress, min(progress, 100))
        self.updated_at = utcnow()

    def transition(self, status: JobStatus) -> None:
        """Move to a later status. Terminal states are final."""
        if self.is_finished or _STATUS_ORDER[status] < _STATUS_ORDER[self.status]:
            raise ValueError(f"Illegal job transition {self.status.value} -> {status.value}")
        self.status = status
        self.updated_at = utcnow()

    def fail(self, message: str) -> None:
        if self.is_finished:
            return
        self.status = JobStatus.ERROR
        self.error_message = message[:500]
        for step in self.steps:
            if step.status == StepStatus.RUNNING:
                self.mark_step(step.id, StepStatus.ERROR)
        self.updated_at = utcnow()

    def mark_step(self, step_id: str, status: StepStatus) -> None:
        step = next((s for s in self.steps if s.id == step_id), None)
        if step is None:
            return
        now = utcnow()
        step.status = status
        if status == StepStatus.RUNNING:
            step.started_at = now
        elif status in (StepStatus.COMPLETED, StepStatus.ERROR, StepStatus.SKIPPED):
            step.ended_at = now
            if step.started_at is not None:
                step.duration_ms = int((now - step.started_at).total_seconds() * 1000)
        self.updated_at = now
