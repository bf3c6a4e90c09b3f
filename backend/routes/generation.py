"""Generation API: start a pipeline run for a product and poll its job.

POST /api/products/{product_id}/generate
  → Records the job and returns { job_id, status } immediately (202).
  → The run continues in the background; the product is updated once it completes.

GET /api/generation-jobs/{job_id}
  → Job snapshot: status, progress, steps and stage results.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from productkit.jobs import GenerationJob, GenerationRequest, JobStatus
from productkit.services import Services

logger = logging.getLogger(__name__)
router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    """Body of POST /api/products/{product_id}/generate."""

    asset_types: list[str] = Field(..., min_length=1, description='Tags such as "hero", "lifestyle", "360", "video"')
    count_by_type: dict[str, Annotated[int, Field(ge=1)]] = Field(default_factory=dict)
    style: str | None = None

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            asset_types=frozenset(self.asset_types),
            count_by_type=self.count_by_type,
            style=self.style,
        )


class GenerateResponse(BaseModel):
    job_id: str
    status: JobStatus = JobStatus.QUEUED


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post(
    "/products/{product_id}/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start asset generation for a product",
    description=(
        "Queues a background run that generates images, a 3D model and marketing "
        "copy, then syncs to the owner's storefront. Poll "
        "GET /api/generation-jobs/{job_id} or subscribe to "
        "/ws/products/{product_id}/status for progress."
    ),
)
async def start_generation(
    product_id: str,
    body: GenerateRequest,
    services: Services = Depends(get_services),
):
    job_id = services.manager.enqueue(product_id, body.to_request())
    return GenerateResponse(job_id=job_id)


@router.get(
    "/generation-jobs/{job_id}",
    response_model=GenerationJob,
    summary="Poll generation job status",
)
async def get_generation_job(job_id: str, services: Services = Depends(get_services)):
    job = services.manager.get_job_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return job
