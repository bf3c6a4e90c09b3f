"""Pytest configuration and shared fixtures."""

import asyncio
import json
from dataclasses import dataclass

import pytest

from productkit.commerce import Listing, ListingResult
from productkit.jobs import InMemoryJobStore, JobManager
from productkit.marketing import Copywriter
from productkit.repositories import InMemoryProductRepository, InMemoryUserRepository
from productkit.schemas.models import Product, User

VALID_COPY_JSON = json.dumps({
    "headline": "Sit Better Every Day",
    "subheadline": "A chair built around how you actually sit",
    "description": "Solid oak, hand finished, made to last.",
    "features": ["Solid Oak Frame", "Hand-Finished Surface", "Curved Backrest"],
    "benefits": ["All-Day Comfort", "Lasts for Years", "Easy to Clean"],
})


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


class MockImageGenerator:
    """Returns ``count`` predictable URLs per call; optionally slow or failing."""

    def __init__(self, error: Exception | None = None, delays: dict[str, float] | None = None):
        self.calls: list[tuple[str, str, int]] = []
        self._error = error
        self._delays = delays or {}

    async def generate(self, base_image_url: str, style_tag: str, count: int) -> list[str]:
        self.calls.append((base_image_url, style_tag, count))
        await asyncio.sleep(self._delays.get(style_tag, 0))
        if self._error:
            raise self._error
        return [f"https://cdn.example.com/{style_tag}-{i}.png" for i in range(count)]


class MockModelGenerator:
    def __init__(self, error: Exception | None = None):
        self.calls: list[str] = []
        self._error = error

    async def generate(self, base_image_url: str) -> str:
        self.calls.append(base_image_url)
        if self._error:
            raise self._error
        return "https://fal.example.com/tmp/model.glb"


class MockVideoGenerator:
    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, str]] = []
        self._error = error

    async def generate(self, base_image_url: str, prompt: str) -> str:
        self.calls.append((base_image_url, prompt))
        if self._error:
            raise self._error
        return "https://fal.example.com/video.mp4"


class MockInfographicGenerator:
    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, str, str]] = []
        self._error = error

    async def generate(self, product, base_image_url: str, copy) -> str:
        self.calls.append((product.id, base_image_url, copy.headline))
        if self._error:
            raise self._error
        return "https://fal.example.com/infographic.png"


class MockLLM:
    def __init__(self, response: str = VALID_COPY_JSON, error: Exception | None = None):
        self.prompts: list[str] = []
        self._response = response
        self._error = error

    async def complete(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        if self._error:
            raise self._error
        return self._response


class MockAssetStore:
    def __init__(self):
        self.uploads: dict[str, tuple[bytes, str]] = {}

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        self.uploads[key] = (data, content_type)
        return f"https://assets.example.com/{key}"


class MockCommerce:
    def __init__(self, result: ListingResult | None = None, error: Exception | None = None):
        self.calls = []
        self._result = result or ListingResult(
            listing=Listing(
                listing_id="gid://shopify/Product/1",
                listing_url="https://shop.example.com/products/chair",
            )
        )
        self._error = error

    async def create_listing(self, product, assets, credentials) -> ListingResult:
        self.calls.append((product, assets, credentials))
        if self._error:
            raise self._error
        return self._result


class RecordingProductRepository(InMemoryProductRepository):
    """Counts ``replace`` calls."""

    def __init__(self, products=None):
        super().__init__(products)
        self.replaced: list[Product] = []

    async def replace(self, product: Product) -> Product:
        self.replaced.append(product)
        return await super().replace(product)


class RecordingJobStore(InMemoryJobStore):
    """Keeps every progress value ever written per job."""

    def __init__(self):
        super().__init__()
        self.progress_history: dict[str, list[int]] = {}

    def put(self, job):
        self.progress_history.setdefault(job.job_id, []).append(job.progress)
        super().put(job)


async def fake_download(url: str) -> bytes:
    return b"glTF-binary"


@dataclass
class Harness:
    products: RecordingProductRepository
    users: InMemoryUserRepository
    store: RecordingJobStore
    images: MockImageGenerator
    models: MockModelGenerator
    videos: MockVideoGenerator
    infographics: MockInfographicGenerator
    llm: MockLLM
    assets: MockAssetStore
    commerce: MockCommerce
    manager: JobManager


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chair():
    return Product(
        id="p1",
        owner_id="u1",
        name="Chair",
        description="A chair.",
        original_images=["http://img"],
    )


@pytest.fixture
def owner_with_store():
    return User(
        id="u1",
        email="owner@example.com",
        store_url="https://chairs.myshopify.com",
        store_access_token="shpat_test",
    )


@pytest.fixture
def make_harness():
    """Factory: build a JobManager around mock collaborators."""

    def _make(
        products=(),
        users=(),
        images=None,
        models=None,
        videos=None,
        infographics=None,
        llm=None,
        commerce=None,
        serialize_product_runs=True,
    ) -> Harness:
        h = Harness(
            products=RecordingProductRepository(list(products)),
            users=InMemoryUserRepository(list(users)),
            store=RecordingJobStore(),
            images=images or MockImageGenerator(),
            models=models or MockModelGenerator(),
            videos=videos or MockVideoGenerator(),
            infographics=infographics or MockInfographicGenerator(),
            llm=llm or MockLLM(),
            assets=MockAssetStore(),
            commerce=commerce or MockCommerce(),
            manager=None,
        )
        h.manager = JobManager(
            products=h.products,
            users=h.users,
            store=h.store,
            images=h.images,
            models=h.models,
            copywriter=Copywriter(h.llm),
            assets=h.assets,
            download=fake_download,
            commerce=h.commerce,
            videos=h.videos,
            infographics=h.infographics,
            serialize_product_runs=serialize_product_runs,
        )
        return h

    return _make
