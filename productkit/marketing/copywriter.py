"""Marketing copy generation.

The LLM is asked for a single JSON object; responses are tolerated when they
wrap it in markdown fences or surrounding prose. When the call or the parse
fails, ``fallback_marketing_copy`` gives a deterministic result built from the
product name and description so a run never ends with empty copy.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from productkit.errors import CopyParseError, GenerationError
from productkit.llm.base import LLMProvider
from productkit.schemas.models import MarketingCopy, Product

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

COPY_MAX_TOKENS = 1024
COPY_TEMPERATURE = 0.7
MAX_BULLETS = 5

_REQUIRED_FIELDS = ("headline", "description", "features", "benefits")

_FALLBACK_SUBHEADLINE = "Premium quality meets exceptional design"


def build_copy_prompt(name: str, description: str | None, pdf_guides_count: int = 0) -> str:
    env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)))
    template = env.get_template("marketing_copy.j2")
    return template.render(
        name=name,
        description=description,
        pdf_guides_count=pdf_guides_count,
    )


def _strip_code_fence(raw: str) -> str:
    s = raw.replace("```json", "").replace("```JSON", "")
    return s.replace("```", "").strip()


def extract_json_object(raw: str) -> dict[str, Any]:
    """Return the first well-formed JSON object embedded in ``raw``."""
    text = _strip_code_fence(raw)
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            obj, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    raise CopyParseError("No JSON object found in LLM response")


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(v).strip() for v in value if str(v).strip()]
    return items[:MAX_BULLETS]


def parse_marketing_copy(raw: str, fallback: MarketingCopy | None = None) -> MarketingCopy:
    """Parse an LLM response into ``MarketingCopy``.

    headline, description, features and benefits are required; a missing
    subheadline is taken from ``fallback`` (or the generic fallback line).
    """
    data = extract_json_object(raw)
    copy = MarketingCopy(
        headline=_as_text(data.get("headline")),
        subheadline=_as_text(data.get("subheadline")),
        description=_as_text(data.get("description")),
        features=_as_list(data.get("features")),
        benefits=_as_list(data.get("benefits")),
    )
    missing = [f for f in _REQUIRED_FIELDS if not getattr(copy, f)]
    if missing:
        raise CopyParseError(f"Marketing copy missing fields: {', '.join(missing)}")
    if not copy.subheadline:
        copy.subheadline = fallback.subheadline if fallback else _FALLBACK_SUBHEADLINE
    return copy


def fallback_marketing_copy(name: str, description: str | None) -> MarketingCopy:
    """Deterministic copy from simple token heuristics over name and description."""
    name_words = [w for w in name.split() if len(w) > 3]
    desc_words = [w for w in (description or "").split() if len(w) > 4][:3]

    features: list[str] = []
    if name_words:
        features.append(f"Premium {name_words[0]} Design")
    if desc_words:
        features.append(f"{desc_words[0].strip('.,;:!?').capitalize()} Quality")
    features.extend(["Durable Construction", "Modern Aesthetic", "Expert Craftsmanship"])

    benefits = ["Built to Last", "Exceptional Value", "Customer Favorite", "Trusted Quality"]

    body = description or (
        f"Experience the perfect blend of style, quality, and functionality with {name}."
    )

    return MarketingCopy(
        headline=f"Discover {name}",
        subheadline=_FALLBACK_SUBHEADLINE,
        description=body,
        features=features[:4],
        benefits=benefits[:4],
    )


class Copywriter:
    """Writes marketing copy for a product with an LLM."""

    def __init__(
        self,
        llm: LLMProvider | None,
        max_tokens: int = COPY_MAX_TOKENS,
        temperature: float = COPY_TEMPERATURE,
    ):
        self._llm = llm
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def write(self, product: Product) -> MarketingCopy:
        """Return AI-written copy. Raises on call or parse failure."""
        if self._llm is None:
            raise GenerationError("No LLM provider configured")
        prompt = build_copy_prompt(product.name, product.description, len(product.pdf_guides))
        raw = await self._llm.complete(
            prompt,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        logger.debug("Raw marketing copy response for %s: %s", product.id, raw[:500])
        return parse_marketing_copy(
            raw, fallback=fallback_marketing_copy(product.name, product.description)
        )
