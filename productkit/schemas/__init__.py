"""Pydantic models: single source of truth for product data shapes."""

from productkit.schemas.models import (
    GeneratedAssets,
    MarketingCopy,
    Product,
    ProductStatus,
    StoreCredentials,
    User,
)

__all__ = [
    "GeneratedAssets",
    "MarketingCopy",
    "Product",
    "ProductStatus",
    "StoreCredentials",
    "User",
]
