"""Per-subscriber product status stream.

Each subscriber gets its own ``stream(product_id)`` async generator:
a ``connected`` event first, then a ``status_update`` whenever the sampled
(status, progress) pair changes, until the product reaches COMPLETED or ERROR.

A stream follows one generation job for the product (the running one, else the
next queued, else the newest finished) until that job finishes. The product's
coarse lifecycle status is used when no job is known.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Literal

from pydantic import BaseModel, Field

from productkit.jobs.models import GenerationJob, JobStatus, JobStep
from productkit.jobs.store import JobStore
from productkit.repositories import ProductRepository
from productkit.schemas.models import Product, ProductStatus, utcnow

logger = logging.getLogger(__name__)

# Coarse product status -> progress percentage. ERROR keeps the last known value.
PRODUCT_STATUS_PROGRESS: dict[ProductStatus, int] = {
    ProductStatus.DRAFT: 0,
    ProductStatus.PROCESSING: 20,
    ProductStatus.GENERATING_IMAGES: 40,
    ProductStatus.GENERATING_COPY: 60,
    ProductStatus.GENERATING_SITE: 75,
    ProductStatus.SYNCING_STOREFRONT: 85,
    ProductStatus.POST_COMPLETION_ASSETS: 95,
    ProductStatus.COMPLETED: 100,
}

PRODUCT_STATUS_MESSAGES: dict[ProductStatus, str] = {
    ProductStatus.DRAFT: "Product is in draft",
    ProductStatus.PROCESSING: "Processing product...",
    ProductStatus.GENERATING_IMAGES: "Generating product images...",
    ProductStatus.GENERATING_COPY: "Creating marketing copy...",
    ProductStatus.GENERATING_SITE: "Building product site...",
    ProductStatus.SYNCING_STOREFRONT: "Syncing to storefront...",
    ProductStatus.COMPLETED: "Product ready!",
    ProductStatus.POST_COMPLETION_ASSETS: "Finalizing 3D models and videos...",
    ProductStatus.ERROR: "An error occurred",
}

TERMINAL_STATUSES = frozenset({ProductStatus.COMPLETED, ProductStatus.ERROR})

# Running job steps reported with their own product status
_STEP_STATUS = {
    "video": ProductStatus.POST_COMPLETION_ASSETS,
    "infographic": ProductStatus.POST_COMPLETION_ASSETS,
}


class StatusEvent(BaseModel):
    type: Literal["connected", "status_update"] = "status_update"
    product_id: str
    status: ProductStatus | None = None
    progress: int = 0
    message: str = ""
    job_id: str | None = None
    steps: list[JobStep] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def sample_status(
    product: Product, job: GenerationJob | None, last_progress: int = 0
) -> StatusEvent:
    """Compute the event describing ``product`` right now."""
    if job is not None:
        if job.status == JobStatus.COMPLETED:
            status, progress = ProductStatus.COMPLETED, 100
            message = PRODUCT_STATUS_MESSAGES[status]
        elif job.status == JobStatus.ERROR:
            status, progress = ProductStatus.ERROR, job.progress
            message = job.error_message or PRODUCT_STATUS_MESSAGES[status]
        else:
            step = job.current_step
            status = _STEP_STATUS.get(step.id, ProductStatus.PROCESSING) if step else ProductStatus.PROCESSING
            progress = job.progress
            message = step.name if step else "Processing..."
        return StatusEvent(
            product_id=product.id,
            status=status,
            progress=progress,
            message=message,
            job_id=job.job_id,
            steps=job.steps,
        )

    status = product.status
    return StatusEvent(
        product_id=product.id,
        status=status,
        progress=PRODUCT_STATUS_PROGRESS.get(status, last_progress),
        message=PRODUCT_STATUS_MESSAGES[status],
    )


class StatusPublisher:
    """Streams change-only status events for a product."""

    def __init__(
        self,
        products: ProductRepository,
        jobs: JobStore,
        *,
        poll_interval: float = 1.0,
        grace_period: float = 0.5,
    ):
        self._products = products
        self._jobs = jobs
        self._poll_interval = poll_interval
        self._grace_period = grace_period

    async def stream(self, product_id: str) -> AsyncIterator[StatusEvent]:
        yield StatusEvent(type="connected", product_id=product_id, message=f"Connected: {product_id}")

        with self._jobs.watch(product_id) as watch:
            last_key: tuple[ProductStatus | None, int] | None = None
            last_progress = 0
            followed: str | None = None
            while True:
                product = await self._products.find_by_id(product_id)
                if product is None:
                    logger.info("Status stream for %s: product not found", product_id)
                    yield StatusEvent(
                        product_id=product_id,
                        status=ProductStatus.ERROR,
                        progress=0,
                        message="Product not found",
                    )
                    return

                # Stay on the job first reported until it finishes
                job = self._jobs.get(followed) if followed else None
                if job is None:
                    job = self._jobs.current_for_product(product_id)
                    followed = job.job_id if job else None

                event = sample_status(product, job, last_progress)
                key = (event.status, event.progress)
                if key != last_key:
                    logger.debug("Status for %s: %s (%d%%)", product_id, event.status, event.progress)
                    yield event
                    last_key = key
                    last_progress = event.progress

                if event.is_terminal:
                    await asyncio.sleep(self._grace_period)
                    return

                # Woken early when a job for this product changes
                await watch.wait(self._poll_interval)
