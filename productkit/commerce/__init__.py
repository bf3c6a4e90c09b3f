"""Commerce platform (storefront) integration."""

from typing import Protocol

from productkit.commerce.shopify import Listing, ListingResult, ShopifyClient, UserError
from productkit.schemas.models import GeneratedAssets, Product, StoreCredentials


class CommerceClient(Protocol):
    async def create_listing(
        self,
        product: Product,
        assets: GeneratedAssets,
        credentials: StoreCredentials,
    ) -> ListingResult: ...


__all__ = ["CommerceClient", "Listing", "ListingResult", "ShopifyClient", "UserError"]
