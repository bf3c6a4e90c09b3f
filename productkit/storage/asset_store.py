"""Asset storage: S3-compatible object storage (preferred) or local directory fallback."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit

import httpx

from productkit.config import Settings
from productkit.errors import StorageError

logger = logging.getLogger(__name__)


class AssetStore(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""
        ...


# ---------------------------------------------------------------------------
# S3 / DigitalOcean Spaces implementation
# ---------------------------------------------------------------------------

class S3AssetStore:
    """Public-read objects in an S3-compatible bucket."""

    def __init__(
        self,
        *,
        endpoint: str,
        bucket: str,
        access_key: str,
        secret_key: str,
        region: str = "us-east-1",
        client=None,
    ):
        self._endpoint = endpoint.rstrip("/")
        self._bucket = bucket
        self._client = client or self._connect(access_key, secret_key, region)

    def _connect(self, access_key: str, secret_key: str, region: str):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=self._endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    def public_url(self, key: str) -> str:
        """https://{bucket}.{endpoint host}/{key}"""
        parts = urlsplit(self._endpoint)
        scheme = parts.scheme or "https"
        host = parts.netloc or parts.path
        return f"{scheme}://{self._bucket}.{host}/{key}"

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ACL="public-read",
            ContentType=content_type,
        )

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(self._put, key, data, content_type)
        except Exception as e:
            raise StorageError(f"Upload of {key} to {self._bucket} failed: {e}") from e
        url = self.public_url(key)
        logger.info("Uploaded %s (%d bytes) to %s", key, len(data), url)
        return url


# ---------------------------------------------------------------------------
# Local directory implementation (fallback when no object storage is configured)
# ---------------------------------------------------------------------------

class LocalAssetStore:
    """Write assets under a directory that the backend serves statically."""

    def __init__(self, root: Path, public_base_url: str):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Invalid asset key: {key}")
        return path

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.info("Stored %s (%d bytes, %s) at %s", key, len(data), content_type, path)
        return f"{self._base_url}/{key}"


# ---------------------------------------------------------------------------
# Downloads of transient provider URLs
# ---------------------------------------------------------------------------

class HttpDownloader:
    """Fetch the bytes behind a URL."""

    def __init__(self, http: httpx.AsyncClient | None = None, timeout: float = 60.0):
        self._http = http or httpx.AsyncClient(follow_redirects=True, timeout=timeout)

    async def __call__(self, url: str) -> bytes:
        response = await self._http.get(url)
        response.raise_for_status()
        return response.content

    async def aclose(self) -> None:
        await self._http.aclose()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_asset_store(settings: Settings) -> AssetStore:
    """S3 store when Spaces credentials are configured, else local directory store."""
    if settings.storage_configured:
        logger.info("Using S3 asset store (bucket=%s)", settings.do_spaces_bucket)
        return S3AssetStore(
            endpoint=settings.do_spaces_endpoint,
            bucket=settings.do_spaces_bucket,
            access_key=settings.do_spaces_key,
            secret_key=settings.do_spaces_secret,
            region=settings.do_spaces_region,
        )
    logger.info("Using local asset store (%s)", settings.assets_dir)
    return LocalAssetStore(settings.assets_dir, settings.pk_public_asset_base_url)
