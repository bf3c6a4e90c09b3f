"""Shopify Admin GraphQL client: creates a storefront listing for a product."""

from __future__ import annotations

import html
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from productkit.errors import StorefrontError
from productkit.schemas.models import GeneratedAssets, Product, StoreCredentials

logger = logging.getLogger(__name__)

_CREATE_PRODUCT = """
mutation CreateListing($product: ProductCreateInput!, $media: [CreateMediaInput!]) {
  productCreate(product: $product, media: $media) {
    product { id handle onlineStoreUrl }
    userErrors { field message }
  }
}
"""


class Listing(BaseModel):
    listing_id: str
    listing_url: str


class UserError(BaseModel):
    field: list[str] | None = None
    message: str


class ListingResult(BaseModel):
    """Either a created listing or the user errors the platform returned."""

    listing: Listing | None = None
    user_errors: list[UserError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.listing is not None and not self.user_errors


def _shop_domain(store_url: str) -> str:
    domain = store_url.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    return domain.rstrip("/")


def build_description_html(product: Product, assets: GeneratedAssets) -> str:
    copy = assets.marketing_copy
    parts = []
    if copy.headline:
        parts.append(f"<h2>{html.escape(copy.headline)}</h2>")
    if copy.subheadline:
        parts.append(f"<h3>{html.escape(copy.subheadline)}</h3>")
    body = copy.description or product.description or ""
    if body:
        parts.append(f"<p>{html.escape(body)}</p>")
    for title, items in (("Features", copy.features), ("Benefits", copy.benefits)):
        if items:
            bullets = "".join(f"<li>{html.escape(i)}</li>" for i in items)
            parts.append(f"<h4>{title}</h4><ul>{bullets}</ul>")
    return "\n".join(parts)


def build_media(product: Product, assets: GeneratedAssets) -> list[dict[str, str]]:
    media = [
        {"originalSource": url, "mediaContentType": "IMAGE", "alt": product.name}
        for url in assets.hero_images + assets.lifestyle_images + assets.detail_images
    ]
    if assets.ar_model_url:
        media.append(
            {"originalSource": assets.ar_model_url, "mediaContentType": "MODEL_3D", "alt": product.name}
        )
    if assets.infographic_url:
        media.append(
            {"originalSource": assets.infographic_url, "mediaContentType": "IMAGE", "alt": f"{product.name} infographic"}
        )
    if assets.video_url:
        media.append({"originalSource": assets.video_url, "mediaContentType": "VIDEO", "alt": product.name})
    return media


class ShopifyClient:
    """Creates products through the Admin GraphQL API."""

    def __init__(
        self,
        *,
        api_version: str = "2025-01",
        http: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self._api_version = api_version
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def _graphql(
        self, credentials: StoreCredentials, query: str, variables: dict[str, Any]
    ) -> dict[str, Any]:
        domain = _shop_domain(credentials.store_url)
        url = f"https://{domain}/admin/api/{self._api_version}/graphql.json"
        try:
            response = await self._http.post(
                url,
                json={"query": query, "variables": variables},
                headers={"X-Shopify-Access-Token": credentials.access_token},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise StorefrontError(
                f"Shopify request failed ({e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise StorefrontError(f"Shopify request failed: {e}") from e
        if payload.get("errors"):
            raise StorefrontError(f"Shopify GraphQL errors: {payload['errors']}")
        return payload.get("data") or {}

    async def create_listing(
        self,
        product: Product,
        assets: GeneratedAssets,
        credentials: StoreCredentials,
    ) -> ListingResult:
        variables = {
            "product": {
                "title": product.name,
                "descriptionHtml": build_description_html(product, assets),
                "status": "ACTIVE",
            },
            "media": build_media(product, assets),
        }
        data = await self._graphql(credentials, _CREATE_PRODUCT, variables)
        result = data.get("productCreate") or {}

        user_errors = [UserError.model_validate(e) for e in result.get("userErrors") or []]
        if user_errors:
            return ListingResult(user_errors=user_errors)

        created = result.get("product")
        if not created:
            return ListingResult(user_errors=[UserError(message="productCreate returned no product")])

        listing_url = created.get("onlineStoreUrl") or (
            f"https://{_shop_domain(credentials.store_url)}/products/{created.get('handle', '')}"
        )
        logger.info("Created Shopify listing %s for product %s", created["id"], product.id)
        return ListingResult(listing=Listing(listing_id=created["id"], listing_url=listing_url))

    async def aclose(self) -> None:
        await self._http.aclose()
