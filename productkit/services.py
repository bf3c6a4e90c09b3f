"""Wiring of the default collaborators from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from productkit.commerce import ShopifyClient
from productkit.config import Settings, get_settings
from productkit.generation import (
    FalImageGenerator,
    FalInfographicGenerator,
    FalModelGenerator,
    FalQueueClient,
    FalVideoGenerator,
)
from productkit.jobs import InMemoryJobStore, JobManager
from productkit.llm import LLMProvider, get_provider
from productkit.marketing import Copywriter
from productkit.repositories import (
    ProductRepository,
    UserRepository,
    get_product_repository,
    get_user_repository,
)
from productkit.status import StatusPublisher
from productkit.storage import HttpDownloader, get_asset_store

logger = logging.getLogger(__name__)


def resolve_llm(settings: Settings) -> LLMProvider | None:
    """Return the configured provider, or None when its API key is missing."""
    provider_name = settings.pk_llm_provider.lower()
    if provider_name == "openai":
        api_key, model = settings.openai_api_key, settings.pk_openai_model
    else:
        api_key, model = settings.anthropic_api_key, settings.pk_anthropic_model

    if not api_key:
        logger.warning(
            "API key not configured for provider '%s'; marketing copy will use the fallback",
            provider_name,
        )
        return None
    return get_provider(provider_name, api_key=api_key, model=model)


@dataclass
class Services:
    """Everything the backend and CLI share for one process."""

    settings: Settings
    products: ProductRepository
    users: UserRepository
    jobs: InMemoryJobStore
    manager: JobManager
    publisher: StatusPublisher
    _http: list[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.manager.shutdown()
        for client in self._http:
            await client.aclose()


def build_services(settings: Settings | None = None) -> Services:
    settings = settings or get_settings()
    timeout = httpx.Timeout(settings.pk_http_timeout)

    products = get_product_repository(settings)
    users = get_user_repository(settings)
    jobs = InMemoryJobStore()
    llm = resolve_llm(settings)

    fal = FalQueueClient(
        settings.fal_key,
        http=httpx.AsyncClient(timeout=timeout),
        queue_url=settings.pk_fal_queue_url,
        poll_interval=settings.pk_fal_poll_interval,
        max_polls=settings.pk_fal_max_polls,
    )
    downloader = HttpDownloader(httpx.AsyncClient(follow_redirects=True, timeout=timeout))
    shopify = ShopifyClient(
        api_version=settings.shopify_api_version,
        http=httpx.AsyncClient(timeout=timeout),
    )

    manager = JobManager(
        products=products,
        users=users,
        store=jobs,
        images=FalImageGenerator(
            fal,
            endpoint=settings.pk_fal_image_endpoint,
            understand_endpoint=settings.pk_fal_understand_endpoint,
            llm=llm,
        ),
        models=FalModelGenerator(fal, endpoint=settings.pk_fal_model_endpoint),
        copywriter=Copywriter(llm),
        assets=get_asset_store(settings),
        download=downloader,
        commerce=shopify,
        videos=FalVideoGenerator(fal, endpoint=settings.pk_fal_video_endpoint),
        infographics=FalInfographicGenerator(fal, endpoint=settings.pk_fal_image_endpoint),
        video_prompt=settings.pk_video_prompt,
        default_image_count=settings.pk_default_image_count,
        serialize_product_runs=settings.pk_serialize_product_runs,
    )
    publisher = StatusPublisher(
        products,
        jobs,
        poll_interval=settings.pk_status_poll_interval,
        grace_period=settings.pk_status_grace_period,
    )
    return Services(
        settings=settings,
        products=products,
        users=users,
        jobs=jobs,
        manager=manager,
        publisher=publisher,
        _http=[fal, downloader, shopify],
    )
