"""OpenAI LLM implementation."""

from typing import Any

from openai import AsyncOpenAI


class OpenAIProvider:
    """OpenAI chat completion."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        client: AsyncOpenAI | None = None,
    ):
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> str:
        messages = []
        if kwargs.get("system"):
            messages.append({"role": "system", "content": kwargs["system"]})
        messages.append({"role": "user", "content": prompt})
        # OpenAI exceptions (RateLimitError, APIStatusError) propagate to the caller
        response = await self._client.chat.completions.create(
            model=kwargs.get("model") or self._model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        msg = response.choices[0].message
        return msg.content or ""
