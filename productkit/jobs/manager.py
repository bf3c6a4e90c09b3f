"""Generation pipeline orchestrator.

enqueue(product_id, request)
  → Records a QUEUED job and returns its id immediately.
  → A background task runs the stages against the product:
      Initialize → Images → 3D model → Marketing copy → Video + infographic
      → Merge → Storefront → Commit

The job store holds live progress. The product repository receives a single
write at the end of a successful run.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Awaitable, Callable

from productkit.commerce import CommerceClient, Listing
from productkit.generation import (
    ImageGenerator,
    InfographicGenerator,
    ModelGenerator,
    VideoGenerator,
)
from productkit.jobs.merge import merge_assets
from productkit.jobs.models import (
    IMAGE_ASSET_TYPES,
    MEDIA_ASSET_TYPES,
    GenerationJob,
    GenerationRequest,
    JobStatus,
    StepStatus,
)
from productkit.jobs.store import JobStore, new_job_id
from productkit.marketing import Copywriter, fallback_marketing_copy
from productkit.repositories import ProductRepository, UserRepository
from productkit.schemas.models import (
    GeneratedAssets,
    MarketingCopy,
    Product,
    ProductStatus,
    utcnow,
)
from productkit.storage import AssetStore

logger = logging.getLogger(__name__)

MODEL_CONTENT_TYPE = "model/gltf-binary"

# Image tags in the order a run picks its style tag from
_IMAGE_TAG_ORDER = ("hero", "lifestyle", "detail")


def model_asset_key(product_id: str) -> str:
    return f"product-{product_id}-model.glb"


class ProductLocks:
    """One asyncio.Lock per product id, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, product_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(product_id, asyncio.Lock())
        self._users[product_id] = self._users.get(product_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[product_id] -= 1
            if not self._users[product_id]:
                del self._users[product_id]
                del self._locks[product_id]

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._locks


class JobManager:
    """Accepts generation requests and runs each one as an asyncio task."""

    def __init__(
        self,
        *,
        products: ProductRepository,
        users: UserRepository,
        store: JobStore,
        images: ImageGenerator,
        models: ModelGenerator,
        copywriter: Copywriter,
        assets: AssetStore,
        download: Callable[[str], Awaitable[bytes]],
        commerce: CommerceClient | None = None,
        videos: VideoGenerator | None = None,
        infographics: InfographicGenerator | None = None,
        video_prompt: str = "Cinematic product showcase",
        default_image_count: int = 5,
        serialize_product_runs: bool = True,
    ):
        self._products = products
        self._users = users
        self._store = store
        self._images = images
        self._models = models
        self._copywriter = copywriter
        self._assets = assets
        self._download = download
        self._commerce = commerce
        self._videos = videos
        self._infographics = infographics
        self._video_prompt = video_prompt
        self._default_image_count = default_image_count
        self._serialize = serialize_product_runs
        self._locks = ProductLocks()
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, product_id: str, request: GenerationRequest) -> str:
        """Record a QUEUED job, start its run and return the job id.

        Must be called from inside a running event loop.
        """
        job = GenerationJob(job_id=new_job_id(), product_id=product_id)
        self._store.put(job)

        task = asyncio.create_task(self._run(job, request), name=f"generation-{job.job_id}")
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.job_id, None))
        logger.info(
            "Queued job %s for product %s (asset_types=%s)",
            job.job_id,
            product_id,
            sorted(request.asset_types),
        )
        return job.job_id

    def get_job_status(self, job_id: str) -> GenerationJob | None:
        return self._store.get(job_id)

    async def wait(self, job_id: str) -> GenerationJob | None:
        """Wait for a run to finish and return its final job record."""
        task = self._tasks.get(job_id)
        if task is not None:
            # Shielded so a cancelled waiter does not cancel the run
            await asyncio.shield(task)
        return self._store.get(job_id)

    async def shutdown(self) -> None:
        """Let in-flight runs finish."""
        tasks = list(self._tasks.values())
        if tasks:
            logger.info("Waiting for %d running generation jobs", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _hold(self, product_id: str):
        if self._serialize:
            return self._locks.hold(product_id)
        return contextlib.nullcontext()

    async def _run(self, job: GenerationJob, request: GenerationRequest) -> None:
        try:
            async with self._hold(job.product_id):
                await self._execute(job, request)
        except Exception as e:
            logger.exception("Job %s failed", job.job_id)
            job.fail(str(e) or type(e).__name__)
            self._store.put(job)

    def _mark(self, job: GenerationJob, step_id: str, status: StepStatus) -> None:
        job.mark_step(step_id, status)
        self._store.put(job)

    async def _execute(self, job: GenerationJob, request: GenerationRequest) -> None:
        # 1. Initialize
        job.transition(JobStatus.RUNNING)
        job.mark_step("init", StepStatus.RUNNING)
        job.advance(5)
        self._store.put(job)

        product = await self._products.find_by_id(job.product_id)
        if product is None:
            job.fail(f"Product not found: {job.product_id}")
            self._store.put(job)
            logger.warning("Job %s: product %s not found", job.job_id, job.product_id)
            return
        self._mark(job, "init", StepStatus.COMPLETED)

        # 2. Images
        image_tag, images = await self._generate_images(job, product, request)
        job.advance(40)
        self._store.put(job)

        # 3. 3D model
        model_url = await self._generate_model(job, product)
        job.advance(70)
        self._store.put(job)

        # 4. Marketing copy
        copy = await self._write_copy(job, product)
        job.advance(85)
        self._store.put(job)

        # 5. Video and infographic
        video_url, infographic_url = await self._generate_media(job, product, request, images, copy)
        job.advance(90)
        self._store.put(job)

        # 6. Merge
        results = {
            "ar_model_url": model_url,
            "marketing_copy": copy,
            "video_url": video_url,
            "infographic_url": infographic_url,
        }
        if image_tag is not None:
            results[f"{image_tag}_images"] = images
        assets = merge_assets(product.generated_assets, **results)

        # 7. Storefront
        listing = await self._sync_storefront(job, product, assets)

        # 8. Commit
        updates = {
            "status": ProductStatus.COMPLETED,
            "generated_assets": assets,
            "updated_at": utcnow(),
        }
        if listing is not None:
            updates["storefront_product_id"] = listing.listing_id
            updates["storefront_url"] = listing.listing_url
        await self._products.replace(product.model_copy(update=updates))

        # 9. Finalize
        job.generated_images = images if image_tag is not None else None
        job.generated_3d_asset_url = model_url
        job.advance(100)
        job.transition(JobStatus.COMPLETED)
        self._store.put(job)
        logger.info(
            "Job %s completed: %d images, model=%s, listing=%s",
            job.job_id,
            len(images),
            bool(model_url),
            listing.listing_id if listing else None,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _generate_images(
        self, job: GenerationJob, product: Product, request: GenerationRequest
    ) -> tuple[str | None, list[str]]:
        if not request.wants_images:
            self._mark(job, "images", StepStatus.SKIPPED)
            return None, []

        base_image = product.base_image
        if base_image is None:
            logger.info("Job %s: product %s has no images, skipping image stage", job.job_id, product.id)
            self._mark(job, "images", StepStatus.SKIPPED)
            return None, []

        tag = next(t for t in _IMAGE_TAG_ORDER if t in request.asset_types & IMAGE_ASSET_TYPES)
        count = request.count_for(tag, self._default_image_count)
        self._mark(job, "images", StepStatus.RUNNING)

        # Failures here are fatal to the run
        images = await self._images.generate(base_image, tag, count)
        self._mark(job, "images", StepStatus.COMPLETED)
        logger.info("Job %s: generated %d/%d %s images", job.job_id, len(images), count, tag)
        return tag, images

    async def _generate_model(self, job: GenerationJob, product: Product) -> str | None:
        base_image = product.base_image
        if base_image is None:
            self._mark(job, "model", StepStatus.SKIPPED)
            return None

        self._mark(job, "model", StepStatus.RUNNING)
        try:
            transient_url = await self._models.generate(base_image)
            data = await self._download(transient_url)
            url = await self._assets.upload(model_asset_key(product.id), data, MODEL_CONTENT_TYPE)
        except Exception as e:
            logger.warning("Job %s: 3D model generation failed, continuing: %s", job.job_id, e, exc_info=True)
            self._mark(job, "model", StepStatus.ERROR)
            return None
        self._mark(job, "model", StepStatus.COMPLETED)
        return url

    async def _write_copy(self, job: GenerationJob, product: Product) -> MarketingCopy:
        self._mark(job, "copy", StepStatus.RUNNING)
        try:
            copy = await self._copywriter.write(product)
        except Exception as e:
            logger.warning("Job %s: copy generation failed, using fallback copy: %s", job.job_id, e, exc_info=True)
            copy = fallback_marketing_copy(product.name, product.description)
        self._mark(job, "copy", StepStatus.COMPLETED)
        return copy

    async def _generate_media(
        self,
        job: GenerationJob,
        product: Product,
        request: GenerationRequest,
        images: list[str],
        copy: MarketingCopy,
    ) -> tuple[str | None, str | None]:
        """Run the requested video and infographic stages side by side."""
        # Prefer a freshly generated image over the raw upload
        base_image = images[0] if images else product.base_image
        wanted = request.asset_types & MEDIA_ASSET_TYPES

        async def _video() -> str:
            return await self._videos.generate(base_image, self._video_prompt)

        async def _infographic() -> str:
            return await self._infographics.generate(product, base_image, copy)

        video_url, infographic_url = await asyncio.gather(
            self._media_stage(job, "video", "video" in wanted, base_image, self._videos, _video),
            self._media_stage(job, "infographic", "infographic" in wanted, base_image, self._infographics, _infographic),
        )
        return video_url, infographic_url

    async def _media_stage(
        self,
        job: GenerationJob,
        step_id: str,
        requested: bool,
        base_image: str | None,
        generator: object | None,
        make: Callable[[], Awaitable[str]],
    ) -> str | None:
        if not requested or base_image is None:
            self._mark(job, step_id, StepStatus.SKIPPED)
            return None
        if generator is None:
            logger.info("Job %s: no %s generator configured, skipping", job.job_id, step_id)
            self._mark(job, step_id, StepStatus.SKIPPED)
            return None

        self._mark(job, step_id, StepStatus.RUNNING)
        try:
            url = await make()
        except Exception as e:
            logger.warning("Job %s: %s generation failed, continuing: %s", job.job_id, step_id, e, exc_info=True)
            self._mark(job, step_id, StepStatus.ERROR)
            return None
        self._mark(job, step_id, StepStatus.COMPLETED)
        return url

    async def _sync_storefront(
        self, job: GenerationJob, product: Product, assets: GeneratedAssets
    ) -> Listing | None:
        if self._commerce is None:
            self._mark(job, "storefront", StepStatus.SKIPPED)
            return None

        try:
            owner = await self._users.find_by_id(product.owner_id)
        except Exception as e:
            logger.warning("Job %s: owner lookup failed, skipping storefront: %s", job.job_id, e, exc_info=True)
            self._mark(job, "storefront", StepStatus.ERROR)
            return None

        credentials = owner.store_credentials if owner else None
        if credentials is None:
            logger.info("Job %s: owner %s has no store credentials", job.job_id, product.owner_id)
            self._mark(job, "storefront", StepStatus.SKIPPED)
            return None

        self._mark(job, "storefront", StepStatus.RUNNING)
        try:
            result = await self._commerce.create_listing(product, assets, credentials)
        except Exception as e:
            logger.warning("Job %s: storefront sync failed: %s", job.job_id, e, exc_info=True)
            self._mark(job, "storefront", StepStatus.ERROR)
            return None

        if not result.ok:
            logger.warning(
                "Job %s: storefront rejected listing: %s",
                job.job_id,
                "; ".join(err.message for err in result.user_errors),
            )
            self._mark(job, "storefront", StepStatus.ERROR)
            return None

        self._mark(job, "storefront", StepStatus.COMPLETED)
        return result.listing
