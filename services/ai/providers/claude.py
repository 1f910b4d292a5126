"""Anthropic Claude provider via the Messages API."""

from __future__ import annotations

from typing import Any

import httpx
from anthropic import AsyncAnthropic

from services.ai.providers.base import (
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
)


class ClaudeProvider(ModelProvider):
    """Claude models.

    Only ``temperature`` is forwarded: current Claude models reject
    requests that set both temperature and top_p.
    """

    name = "anthropic"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        http_client: httpx.AsyncClient | None = None,
        defaults: GenerationConfig | None = None,
        request_timeout: float = 30.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        super().__init__(model=model, defaults=defaults, request_timeout=request_timeout)
        self._client = client or AsyncAnthropic(api_key=api_key, http_client=http_client, max_retries=0)

    async def _complete(self, prompt: str, config: GenerationConfig, system: str | None) -> Completion:
        return await self._create([{"role": "user", "content": prompt}], config, system)

    async def _chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig,
        system: str | None,
    ) -> Completion:
        messages: list[dict[str, Any]] = [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.text}
            for turn in history
        ]
        messages.append({"role": "user", "content": new_message})
        return await self._create(messages, config, system)

    async def _complete_with_image(
        self,
        image: ImageSource,
        prompt: str,
        config: GenerationConfig,
    ) -> Completion:
        if image.url:
            source: dict[str, Any] = {"type": "url", "url": image.url}
        else:
            source = {"type": "base64", "media_type": image.media_type, "data": image.base64_data}
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image", "source": source},
                    {"type": "text", "text": prompt},
                ],
            }
        ]
        return await self._create(messages, config, None)

    async def _create(
        self,
        messages: list[dict[str, Any]],
        config: GenerationConfig,
        system: str | None,
    ) -> Completion:
        kwargs: dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=config.max_output_tokens,
            temperature=config.temperature,
            messages=messages,  # type: ignore[arg-type]
            **kwargs,
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return Completion(
            text=text,
            model=response.model or self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
