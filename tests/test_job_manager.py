"""Tests for the generation pipeline orchestrator."""

import asyncio

import pytest

from conftest import (
    VALID_COPY_JSON,
    MockCommerce,
    MockImageGenerator,
    MockInfographicGenerator,
    MockLLM,
    MockModelGenerator,
    MockVideoGenerator,
    fake_download,
)
from productkit.commerce import ListingResult, UserError
from productkit.errors import GenerationError, StorefrontError
from productkit.jobs import GenerationRequest, JobManager, JobStatus, StepStatus
from productkit.marketing import Copywriter, fallback_marketing_copy
from productkit.schemas.models import GeneratedAssets, MarketingCopy, ProductStatus


def _steps(job):
    return {s.id: s.status for s in job.steps}


@pytest.mark.asyncio
async def test_chair_end_to_end(make_harness, chair):
    """Hero request with count 3: one image call, three images, copy written, product completed."""
    h = make_harness(products=[chair])
    request = GenerationRequest(asset_types=frozenset({"hero"}), count_by_type={"hero": 3})

    job_id = h.manager.enqueue("p1", request)
    job = await h.manager.wait(job_id)

    assert h.images.calls == [("http://img", "hero", 3)]
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert len(job.generated_images) == 3
    assert job.generated_3d_asset_url == "https://assets.example.com/product-p1-model.glb"

    product = await h.products.find_by_id("p1")
    assert product.status == ProductStatus.COMPLETED
    assert product.generated_assets.hero_images == job.generated_images
    assert product.generated_assets.marketing_copy.headline == "Sit Better Every Day"
    assert product.generated_assets.ar_model_url == job.generated_3d_asset_url
    assert product.updated_at >= chair.updated_at


@pytest.mark.asyncio
async def test_enqueue_returns_before_run_starts(make_harness, chair):
    h = make_harness(products=[chair])
    job_id = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"})))

    queued = h.manager.get_job_status(job_id)
    assert queued.status == JobStatus.QUEUED
    assert queued.progress == 0
    assert h.manager.active_jobs == 1

    await h.manager.wait(job_id)
    assert h.manager.active_jobs == 0


@pytest.mark.asyncio
async def test_default_image_count(make_harness, chair):
    h = make_harness(products=[chair])
    job_id = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"})))
    await h.manager.wait(job_id)
    assert h.images.calls == [("http://img", "hero", 5)]


@pytest.mark.asyncio
async def test_lifestyle_only_request_fills_lifestyle_images(make_harness, chair):
    h = make_harness(products=[chair])
    request = GenerationRequest(asset_types=frozenset({"lifestyle"}), count_by_type={"lifestyle": 2})
    await h.manager.wait(h.manager.enqueue("p1", request))

    assert h.images.calls == [("http://img", "lifestyle", 2)]
    assets = (await h.products.find_by_id("p1")).generated_assets
    assert len(assets.lifestyle_images) == 2
    assert assets.hero_images == []


@pytest.mark.asyncio
async def test_no_image_tags_keeps_existing_images(make_harness, chair):
    """A 360-only run never calls the image client and keeps hero images from an earlier run."""
    chair.generated_assets = GeneratedAssets(
        hero_images=["a", "b"],
        lifestyle_images=["c"],
        technical_specs={"weight": "4 kg"},
    )
    h = make_harness(products=[chair])

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    assert h.images.calls == []
    assert job.status == JobStatus.COMPLETED
    assert job.generated_images is None
    assert _steps(job)["images"] == StepStatus.SKIPPED
    assets = (await h.products.find_by_id("p1")).generated_assets
    assert assets.hero_images == ["a", "b"]
    assert assets.lifestyle_images == ["c"]
    assert assets.technical_specs == {"weight": "4 kg"}


@pytest.mark.asyncio
async def test_product_without_images_skips_image_and_model_stages(make_harness, chair):
    chair.original_images = []
    h = make_harness(products=[chair])

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.COMPLETED
    assert h.images.calls == []
    assert h.models.calls == []
    assert _steps(job)["images"] == StepStatus.SKIPPED
    assert _steps(job)["model"] == StepStatus.SKIPPED


@pytest.mark.asyncio
async def test_model_failure_is_soft(make_harness, chair):
    """3D client failure: run still completes and ar_model_url stays absent."""
    h = make_harness(products=[chair], models=MockModelGenerator(error=GenerationError("boom")))

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.COMPLETED
    assert job.generated_3d_asset_url is None
    assert _steps(job)["model"] == StepStatus.ERROR
    assert h.assets.uploads == {}
    product = await h.products.find_by_id("p1")
    assert product.generated_assets.ar_model_url is None
    assert len(product.generated_assets.hero_images) == 5


@pytest.mark.asyncio
async def test_model_failure_keeps_previous_model(make_harness, chair):
    chair.generated_assets = GeneratedAssets(ar_model_url="https://assets.example.com/old.glb")
    h = make_harness(products=[chair], models=MockModelGenerator(error=GenerationError("boom")))

    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    product = await h.products.find_by_id("p1")
    assert product.generated_assets.ar_model_url == "https://assets.example.com/old.glb"


@pytest.mark.asyncio
async def test_model_is_uploaded_under_product_key(make_harness, chair):
    h = make_harness(products=[chair])
    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    assert h.models.calls == ["http://img"]
    assert h.assets.uploads == {"product-p1-model.glb": (b"glTF-binary", "model/gltf-binary")}


@pytest.mark.asyncio
async def test_missing_product_fails_job_without_write(make_harness):
    h = make_harness()

    job = await h.manager.wait(h.manager.enqueue("nope", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.ERROR
    assert "Product not found" in job.error_message
    assert h.products.replaced == []
    assert h.images.calls == []
    assert _steps(job)["init"] == StepStatus.ERROR


@pytest.mark.asyncio
async def test_image_failure_fails_run_and_leaves_product(make_harness, chair):
    h = make_harness(products=[chair], images=MockImageGenerator(error=GenerationError("fal down")))

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.ERROR
    assert job.error_message == "fal down"
    assert _steps(job)["images"] == StepStatus.ERROR
    assert h.products.replaced == []
    assert (await h.products.find_by_id("p1")).status == ProductStatus.DRAFT


@pytest.mark.asyncio
async def test_llm_failure_uses_fallback_copy(make_harness, chair):
    h = make_harness(products=[chair], llm=MockLLM(error=RuntimeError("rate limited")))

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["copy"] == StepStatus.COMPLETED
    copy = (await h.products.find_by_id("p1")).generated_assets.marketing_copy
    assert copy == fallback_marketing_copy("Chair", "A chair.")


@pytest.mark.asyncio
async def test_unparseable_copy_uses_fallback(make_harness, chair):
    h = make_harness(products=[chair], llm=MockLLM(response="Sorry, I can't help with that."))

    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    copy = (await h.products.find_by_id("p1")).generated_assets.marketing_copy
    assert copy.headline == "Discover Chair"


@pytest.mark.asyncio
async def test_fenced_copy_is_parsed(make_harness, chair):
    raw = f"Here is your copy:\n```json\n{VALID_COPY_JSON}\n```\nEnjoy!"
    h = make_harness(products=[chair], llm=MockLLM(response=raw))

    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    copy = (await h.products.find_by_id("p1")).generated_assets.marketing_copy
    assert copy.headline == "Sit Better Every Day"
    assert copy.features == ["Solid Oak Frame", "Hand-Finished Surface", "Curved Backrest"]


@pytest.mark.asyncio
async def test_progress_is_non_decreasing(make_harness, chair):
    h = make_harness(products=[chair])
    job_id = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"})))
    await h.manager.wait(job_id)

    history = h.store.progress_history[job_id]
    assert history == sorted(history)
    assert history[0] == 0
    assert history[-1] == 100
    assert {5, 40, 70, 85, 90}.issubset(history)


@pytest.mark.asyncio
async def test_storefront_listing_is_recorded(make_harness, chair, owner_with_store):
    h = make_harness(products=[chair], users=[owner_with_store])

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert _steps(job)["storefront"] == StepStatus.COMPLETED
    _, assets, credentials = h.commerce.calls[0]
    assert credentials.access_token == "shpat_test"
    assert len(assets.hero_images) == 5
    assert assets.marketing_copy.headline
    product = await h.products.find_by_id("p1")
    assert product.storefront_product_id == "gid://shopify/Product/1"
    assert product.storefront_url == "https://shop.example.com/products/chair"


@pytest.mark.asyncio
async def test_storefront_user_errors_leave_fields_absent(make_harness, chair, owner_with_store):
    rejected = ListingResult(user_errors=[UserError(field=["title"], message="Title can't be blank")])
    h = make_harness(products=[chair], users=[owner_with_store], commerce=MockCommerce(result=rejected))

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["storefront"] == StepStatus.ERROR
    product = await h.products.find_by_id("p1")
    assert product.storefront_product_id is None
    assert product.storefront_url is None
    assert product.status == ProductStatus.COMPLETED


@pytest.mark.asyncio
async def test_storefront_transport_error_is_soft(make_harness, chair, owner_with_store):
    h = make_harness(
        products=[chair],
        users=[owner_with_store],
        commerce=MockCommerce(error=StorefrontError("502")),
    )

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert job.status == JobStatus.COMPLETED
    assert (await h.products.find_by_id("p1")).storefront_product_id is None


@pytest.mark.asyncio
async def test_storefront_skipped_without_credentials(make_harness, chair):
    h = make_harness(products=[chair])

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert h.commerce.calls == []
    assert _steps(job)["storefront"] == StepStatus.SKIPPED


@pytest.mark.asyncio
async def test_all_steps_end_in_final_state(make_harness, chair, owner_with_store):
    h = make_harness(products=[chair], users=[owner_with_store])
    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    for step in job.steps:
        assert step.status == StepStatus.COMPLETED
        assert step.ended_at is not None
        assert step.duration_ms is not None


@pytest.mark.asyncio
async def test_concurrent_runs_on_same_product_are_serialised(make_harness, chair):
    """With the per-product lock, the second run sees the first run's committed assets."""
    h = make_harness(products=[chair], images=MockImageGenerator(delays={"hero": 0.05}))

    first = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}), count_by_type={"hero": 2}))
    second = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"lifestyle"}), count_by_type={"lifestyle": 1}))
    await asyncio.gather(h.manager.wait(first), h.manager.wait(second))

    assets = (await h.products.find_by_id("p1")).generated_assets
    assert len(assets.hero_images) == 2
    assert len(assets.lifestyle_images) == 1
    assert h.products.replaced[0].generated_assets.lifestyle_images == []
    assert "p1" not in h.manager._locks


@pytest.mark.asyncio
async def test_concurrent_runs_without_lock_last_writer_wins(make_harness, chair):
    h = make_harness(
        products=[chair],
        images=MockImageGenerator(delays={"hero": 0.05}),
        serialize_product_runs=False,
    )

    first = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}), count_by_type={"hero": 2}))
    second = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"lifestyle"}), count_by_type={"lifestyle": 1}))
    await asyncio.gather(h.manager.wait(first), h.manager.wait(second))

    # The slow hero run commits last from its stale read and drops the lifestyle images
    assets = (await h.products.find_by_id("p1")).generated_assets
    assert len(assets.hero_images) == 2
    assert assets.lifestyle_images == []


@pytest.mark.asyncio
async def test_shutdown_waits_for_running_jobs(make_harness, chair):
    h = make_harness(products=[chair], images=MockImageGenerator(delays={"hero": 0.02}))
    job_id = h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"})))

    await h.manager.shutdown()

    assert h.manager.active_jobs == 0
    assert h.manager.get_job_status(job_id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_marketing_copy_never_partially_empty(make_harness, chair):
    partial = '{"headline": "Only a headline"}'
    h = make_harness(products=[chair], llm=MockLLM(response=partial))

    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"360"}))))

    copy: MarketingCopy = (await h.products.find_by_id("p1")).generated_assets.marketing_copy
    assert copy.headline and copy.subheadline and copy.description
    assert copy.features and copy.benefits


@pytest.mark.asyncio
async def test_video_and_infographic_are_generated_when_requested(make_harness, chair):
    h = make_harness(products=[chair])
    request = GenerationRequest(asset_types=frozenset({"hero", "video", "infographic"}), count_by_type={"hero": 2})

    job = await h.manager.wait(h.manager.enqueue("p1", request))

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["video"] == StepStatus.COMPLETED
    assert _steps(job)["infographic"] == StepStatus.COMPLETED
    # Both start from the first generated image, and the infographic sees the written copy
    assert h.videos.calls == [("https://cdn.example.com/hero-0.png", "Cinematic product showcase")]
    assert h.infographics.calls == [("p1", "https://cdn.example.com/hero-0.png", "Sit Better Every Day")]

    assets = (await h.products.find_by_id("p1")).generated_assets
    assert assets.video_url == "https://fal.example.com/video.mp4"
    assert assets.infographic_url == "https://fal.example.com/infographic.png"
    assert len(h.products.replaced) == 1


@pytest.mark.asyncio
async def test_media_stages_use_original_image_without_image_stage(make_harness, chair):
    h = make_harness(products=[chair])

    await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"video"}))))

    assert h.images.calls == []
    assert h.videos.calls == [("http://img", "Cinematic product showcase")]
    assert h.infographics.calls == []


@pytest.mark.asyncio
async def test_media_stages_skipped_unless_requested(make_harness, chair):
    h = make_harness(products=[chair])

    job = await h.manager.wait(h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"hero"}))))

    assert _steps(job)["video"] == StepStatus.SKIPPED
    assert _steps(job)["infographic"] == StepStatus.SKIPPED
    assert h.videos.calls == [] and h.infographics.calls == []
    assets = (await h.products.find_by_id("p1")).generated_assets
    assert assets.video_url is None and assets.infographic_url is None


@pytest.mark.asyncio
async def test_media_stages_skipped_without_base_image(make_harness, chair):
    chair.original_images = []
    h = make_harness(products=[chair])

    job = await h.manager.wait(
        h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"video", "infographic"})))
    )

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["video"] == StepStatus.SKIPPED
    assert _steps(job)["infographic"] == StepStatus.SKIPPED


@pytest.mark.asyncio
async def test_video_failure_is_soft_and_keeps_previous_video(make_harness, chair):
    chair.generated_assets = GeneratedAssets(video_url="https://cdn.example.com/old.mp4")
    h = make_harness(
        products=[chair],
        videos=MockVideoGenerator(error=GenerationError("veo2 timed out")),
        infographics=MockInfographicGenerator(error=GenerationError("no image")),
    )

    job = await h.manager.wait(
        h.manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"video", "infographic"})))
    )

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["video"] == StepStatus.ERROR
    assert _steps(job)["infographic"] == StepStatus.ERROR
    assets = (await h.products.find_by_id("p1")).generated_assets
    assert assets.video_url == "https://cdn.example.com/old.mp4"
    assert assets.infographic_url is None


@pytest.mark.asyncio
async def test_media_stages_skipped_without_generators(make_harness, chair):
    h = make_harness(products=[chair])
    manager = JobManager(
        products=h.products,
        users=h.users,
        store=h.store,
        images=h.images,
        models=h.models,
        copywriter=Copywriter(h.llm),
        assets=h.assets,
        download=fake_download,
    )

    job = await manager.wait(
        manager.enqueue("p1", GenerationRequest(asset_types=frozenset({"video", "infographic"})))
    )

    assert job.status == JobStatus.COMPLETED
    assert _steps(job)["video"] == StepStatus.SKIPPED
    assert _steps(job)["infographic"] == StepStatus.SKIPPED
