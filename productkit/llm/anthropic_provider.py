"""Anthropic LLM implementation."""

from typing import Any

from anthropic import AsyncAnthropic


class AnthropicProvider:
    """Anthropic Messages API text completion."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5-20250929",
        client: AsyncAnthropic | None = None,
    ):
        self._client = client or AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> str:
        params: dict[str, Any] = {
            "model": kwargs.get("model") or self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if kwargs.get("system"):
            params["system"] = kwargs["system"]
        response = await self._client.messages.create(**params)
        texts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        return "".join(texts)
