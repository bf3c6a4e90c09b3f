"""Marketing copy: LLM prompt, response parsing and deterministic fallback."""

from productkit.marketing.copywriter import (
    Copywriter,
    build_copy_prompt,
    extract_json_object,
    fallback_marketing_copy,
    parse_marketing_copy,
)

__all__ = [
    "Copywriter",
    "build_copy_prompt",
    "extract_json_object",
    "fallback_marketing_copy",
    "parse_marketing_copy",
]
