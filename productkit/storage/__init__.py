"""Durable storage for generated assets."""

from productkit.storage.asset_store import (
    AssetStore,
    HttpDownloader,
    LocalAssetStore,
    S3AssetStore,
    get_asset_store,
)

__all__ = ["AssetStore", "HttpDownloader", "LocalAssetStore", "S3AssetStore", "get_asset_store"]
