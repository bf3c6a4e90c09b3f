"""fal.ai clients for product images, 3D models, videos and infographics.

All calls go through the fal queue REST API: submit a request, poll its
status URL until it completes, then fetch the result payload.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any

import httpx

from productkit.errors import GenerationError
from productkit.llm.base import LLMProvider
from productkit.schemas.models import MarketingCopy, Product

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_URL = "https://queue.fal.run"

DEFAULT_IMAGE_PROMPTS = [
    "Professional studio product photography with clean white background, perfect lighting, high resolution, commercial quality",
    "Lifestyle product photo in modern minimalist setting, natural lighting, elegant composition, lifestyle magazine style",
    "Close-up product detail shot highlighting texture and quality, macro photography, sharp focus, premium look",
    "Product in outdoor natural environment, beautiful scenery background, golden hour lighting, atmospheric",
    "Product in use demonstration, real-world context, lifestyle photography, authentic setting, professional quality",
]

_DESCRIBE_PROMPT = (
    "Describe this product image in detail. Focus on visual characteristics, "
    "style, material, and setting."
)

_SCENE_PROMPT = """Based on the following description, generate five distinct, high-quality AI image generation prompts for this product.
The prompts should cover these styles:
1. Professional studio photography
2. Lifestyle setting
3. Close-up detail
4. Outdoor/Nature environment
5. Creative/Artistic composition

Return each prompt on a separate line, numbered 1-5.

Description: {description}"""

_INFOGRAPHIC_PROMPT = """Create a highly detailed, professional product infographic or manual with clear ENGLISH TEXT that is READABLE.
The infographic must include readable English text labels, headings, and descriptions.

Product: {name}
{description}
The infographic should prominently feature:
- Product name as the main heading in large, bold, readable English text
- Key features section with readable bullet points: {features}
- Benefits section with readable text: {benefits}
- Professional layout with clear typography
- Icons and visual elements to illustrate features
- Clean, modern design with good use of whitespace
- High contrast text for readability
- Product specifications in a structured format

Style: Professional infographic design, similar to product manuals or technical specifications sheets.
All text must be in clear, legible English. Use a clean, modern sans-serif font.
Layout should be well-organized with distinct sections for features, benefits, and specifications.
Include visual diagrams or icons where appropriate."""

_NUMBERED_LINE = re.compile(r"^\d+\.\s*")


class FalQueueClient:
    """Minimal async client for the fal queue API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        http: httpx.AsyncClient | None = None,
        queue_url: str = DEFAULT_QUEUE_URL,
        poll_interval: float = 1.0,
        max_polls: int = 300,
        timeout: float = 60.0,
    ):
        self._api_key = api_key
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._queue_url = queue_url.rstrip("/")
        self._poll_interval = poll_interval
        self._max_polls = max_polls

    @property
    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise GenerationError("FAL_KEY not configured")
        return {"Authorization": f"Key {self._api_key}"}

    async def _request(self, method: str, url: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                f"fal request failed ({e.response.status_code}): {e.response.text[:200]}",
                endpoint=endpoint,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"fal request failed: {e}", endpoint=endpoint) from e

    async def subscribe(self, endpoint: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Submit ``arguments`` to ``endpoint`` and wait for the result."""
        submission = await self._request(
            "POST", f"{self._queue_url}/{endpoint}", endpoint, json=arguments
        )
        request_id = submission.get("request_id", "")
        status_url = submission.get("status_url") or f"{self._queue_url}/{endpoint}/requests/{request_id}/status"
        response_url = submission.get("response_url") or f"{self._queue_url}/{endpoint}/requests/{request_id}"
        logger.debug("fal request %s submitted to %s", request_id, endpoint)

        for _ in range(self._max_polls):
            status = await self._request("GET", status_url, endpoint)
            state = status.get("status")
            if state == "COMPLETED":
                if status.get("error"):
                    raise GenerationError(f"fal request {request_id} failed: {status['error']}", endpoint=endpoint)
                return await self._request("GET", response_url, endpoint)
            await asyncio.sleep(self._poll_interval)

        raise GenerationError(
            f"fal request {request_id} did not complete after {self._max_polls} polls",
            endpoint=endpoint,
        )

    async def aclose(self) -> None:
        await self._http.aclose()


def _image_urls(result: dict[str, Any]) -> list[str]:
    return [img["url"] for img in result.get("images", []) if isinstance(img, dict) and img.get("url")]


def parse_numbered_prompts(text: str) -> list[str]:
    """Keep lines shaped like ``1. prompt`` and strip the numbering."""
    prompts = []
    for line in text.splitlines():
        line = line.strip()
        if not _NUMBERED_LINE.match(line):
            continue
        prompt = _NUMBERED_LINE.sub("", line, count=1).strip()
        if prompt:
            prompts.append(prompt)
    return prompts


class FalImageGenerator:
    """Generates product images by editing the base image with scene prompts."""

    def __init__(
        self,
        fal: FalQueueClient,
        *,
        endpoint: str = "fal-ai/bytedance/seedream/v4/edit",
        understand_endpoint: str | None = "fal-ai/bagel/understand",
        llm: LLMProvider | None = None,
    ):
        self._fal = fal
        self._endpoint = endpoint
        self._understand_endpoint = understand_endpoint
        self._llm = llm

    async def _describe(self, base_image_url: str) -> str:
        result = await self._fal.subscribe(
            self._understand_endpoint,
            {"image_url": base_image_url, "prompt": _DESCRIBE_PROMPT},
        )
        return str(result.get("text", "")).strip()

    async def scene_prompts(self, base_image_url: str) -> list[str]:
        """Prompts tailored to the image, or the built-in set when that fails."""
        if self._llm is None or not self._understand_endpoint:
            return list(DEFAULT_IMAGE_PROMPTS)
        try:
            description = await self._describe(base_image_url)
            if not description:
                return list(DEFAULT_IMAGE_PROMPTS)
            text = await self._llm.complete(
                _SCENE_PROMPT.format(description=description),
                max_tokens=512,
                temperature=0.7,
            )
            prompts = parse_numbered_prompts(text)
        except Exception as e:
            logger.warning("Scene prompt generation failed, using defaults: %s", e)
            return list(DEFAULT_IMAGE_PROMPTS)
        return prompts or list(DEFAULT_IMAGE_PROMPTS)

    async def generate(self, base_image_url: str, style_tag: str, count: int) -> list[str]:
        """Return up to ``count`` image URLs. Individual failures are dropped."""
        prompts = await self.scene_prompts(base_image_url)
        wanted = min(count, len(prompts))
        logger.info("Generating %d %s images from %s", wanted, style_tag, base_image_url)

        async def _one(i: int) -> list[str]:
            result = await self._fal.subscribe(
                self._endpoint,
                {"prompt": prompts[i], "image_urls": [base_image_url], "seed": i + 1},
            )
            return _image_urls(result)

        results = await asyncio.gather(*(_one(i) for i in range(wanted)), return_exceptions=True)
        urls: list[str] = []
        for i, result in enumerate(results):
            if isinstance(result, BaseException):
                logger.warning("Image %d/%d failed: %s", i + 1, wanted, result)
                continue
            urls.extend(result)
        return urls


class FalModelGenerator:
    """Generates a GLB model from the base image."""

    def __init__(self, fal: FalQueueClient, *, endpoint: str = "fal-ai/omnipart"):
        self._fal = fal
        self._endpoint = endpoint

    async def generate(self, base_image_url: str) -> str:
        result = await self._fal.subscribe(self._endpoint, {"input_image_url": base_image_url})
        try:
            return result["full_model_mesh"]["url"]
        except (KeyError, TypeError) as e:
            raise GenerationError("3D result has no full_model_mesh url", endpoint=self._endpoint) from e


class FalVideoGenerator:
    """Animates a product image into a short showcase video."""

    def __init__(self, fal: FalQueueClient, *, endpoint: str = "fal-ai/veo2/image-to-video"):
        self._fal = fal
        self._endpoint = endpoint

    async def generate(self, base_image_url: str, prompt: str) -> str:
        logger.info("Generating video from %s", base_image_url)
        result = await self._fal.subscribe(self._endpoint, {"prompt": prompt, "image_url": base_image_url})
        try:
            return result["video"]["url"]
        except (KeyError, TypeError) as e:
            raise GenerationError("video result has no video url", endpoint=self._endpoint) from e


def build_infographic_prompt(product: Product, copy: MarketingCopy) -> str:
    description = f"Description: {product.description}\n" if product.description else ""
    return _INFOGRAPHIC_PROMPT.format(
        name=product.name,
        description=description,
        features=", ".join(copy.features),
        benefits=", ".join(copy.benefits),
    )


class FalInfographicGenerator:
    """Renders a readable product infographic by editing the base image."""

    def __init__(self, fal: FalQueueClient, *, endpoint: str = "fal-ai/bytedance/seedream/v4/edit"):
        self._fal = fal
        self._endpoint = endpoint

    async def generate(self, product: Product, base_image_url: str, copy: MarketingCopy) -> str:
        logger.info("Generating infographic for product %s", product.id)
        result = await self._fal.subscribe(
            self._endpoint,
            {
                "prompt": build_infographic_prompt(product, copy),
                "image_urls": [base_image_url],
                "seed": int(time.time() * 1000),
            },
        )
        urls = _image_urls(result)
        if not urls:
            raise GenerationError("No infographic image generated", endpoint=self._endpoint)
        return urls[0]
