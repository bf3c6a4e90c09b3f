"""Pydantic models for products, their generated assets, and owners."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductStatus(str, Enum):
    """Coarse product lifecycle tag."""

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    GENERATING_IMAGES = "GENERATING_IMAGES"
    GENERATING_COPY = "GENERATING_COPY"
    GENERATING_SITE = "GENERATING_SITE"
    SYNCING_STOREFRONT = "SYNCING_STOREFRONT"
    COMPLETED = "COMPLETED"
    POST_COMPLETION_ASSETS = "POST_COMPLETION_ASSETS"
    ERROR = "ERROR"


class MarketingCopy(BaseModel):
    """Headline, prose and feature/benefit bullets for a product page."""

    headline: str = ""
    subheadline: str = ""
    description: str = ""
    features: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.headline
            or self.subheadline
            or self.description
            or self.features
            or self.benefits
        )


class GeneratedAssets(BaseModel):
    """Everything derived for a product across all pipeline runs."""

    hero_images: list[str] = Field(default_factory=list)
    lifestyle_images: list[str] = Field(default_factory=list)
    detail_images: list[str] = Field(default_factory=list)
    three_sixty_views: list[str] = Field(default_factory=list)
    marketing_copy: MarketingCopy = Field(default_factory=MarketingCopy)
    technical_specs: dict[str, str] = Field(default_factory=dict)
    site_url: str | None = None
    ar_model_url: str | None = None
    video_url: str | None = None
    infographic_url: str | None = None


class Product(BaseModel):
    """A user-submitted product. Owned by the product repository."""

    id: str
    owner_id: str
    name: str
    description: str | None = None
    original_images: list[str] = Field(default_factory=list)
    pdf_guides: list[str] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.DRAFT
    generated_assets: GeneratedAssets | None = None
    storefront_product_id: str | None = None
    storefront_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def base_image(self) -> str | None:
        """First original image, the input of every image-based stage."""
        return self.original_images[0] if self.original_images else None


class StoreCredentials(BaseModel):
    store_url: str
    access_token: str


class User(BaseModel):
    """Product owner. Only the storefront credentials matter to the pipeline."""

    id: str
    email: str = ""
    store_url: str | None = None
    store_access_token: str | None = None

    @property
    def store_credentials(self) -> StoreCredentials | None:
        if self.store_url and self.store_access_token:
            return StoreCredentials(store_url=self.store_url, access_token=self.store_access_token)
        return None
