"""Generation jobs: request/job models, the job store and the orchestrator."""

from productkit.jobs.manager import JobManager, ProductLocks, model_asset_key
from productkit.jobs.merge import merge_assets
from productkit.jobs.models import (
    GenerationJob,
    GenerationRequest,
    JobStatus,
    JobStep,
    StepStatus,
)
from productkit.jobs.store import InMemoryJobStore, JobStore, JobWatch, new_job_id

__all__ = [
    "GenerationJob",
    "GenerationRequest",
    "InMemoryJobStore",
    "JobManager",
    "JobStatus",
    "JobStep",
    "JobStore",
    "JobWatch",
    "ProductLocks",
    "StepStatus",
    "merge_assets",
    "model_asset_key",
    "new_job_id",
]
