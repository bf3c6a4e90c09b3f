"""LLM adapter layer: Anthropic and OpenAI behind a common protocol."""

from productkit.llm.anthropic_provider import AnthropicProvider
from productkit.llm.base import LLMProvider
from productkit.llm.openai_provider import OpenAIProvider


def get_provider(provider_name: str, **kwargs: object) -> LLMProvider:
    """Return the configured LLM provider. provider_name: 'anthropic' | 'openai'."""
    if provider_name.lower() == "openai":
        return OpenAIProvider(**kwargs)
    return AnthropicProvider(**kwargs)


__all__ = ["LLMProvider", "AnthropicProvider", "OpenAIProvider", "get_provider"]
