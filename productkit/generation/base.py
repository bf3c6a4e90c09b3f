"""Protocols for the image and 3D generation clients."""

from typing import Protocol

from productkit.schemas.models import MarketingCopy, Product


class ImageGenerator(Protocol):
    async def generate(self, base_image_url: str, style_tag: str, count: int) -> list[str]:
        """Return generated image URLs."""
        ...


class ModelGenerator(Protocol):
    async def generate(self, base_image_url: str) -> str:
        """Return a transient URL of the generated model file."""
        ...


class VideoGenerator(Protocol):
    async def generate(self, base_image_url: str, prompt: str) -> str:
        """Return the URL of a short product video."""
        ...


class InfographicGenerator(Protocol):
    async def generate(self, product: Product, base_image_url: str, copy: MarketingCopy) -> str:
        """Return the URL of an infographic image for ``product``."""
        ...
