"""OpenRouter provider via the OpenAI-compatible chat completions API."""

from __future__ import annotations

from typing import Any

import httpx
from openai import AsyncOpenAI

from services.ai.providers.base import (
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(ModelProvider):
    name = "openrouter"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        http_client: httpx.AsyncClient | None = None,
        site_url: str = "",
        defaults: GenerationConfig | None = None,
        request_timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(model=model, defaults=defaults, request_timeout=request_timeout)
        self._client = client or AsyncOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=api_key,
            http_client=http_client,
            default_headers={"HTTP-Referer": site_url, "X-Title": "Kupado"} if site_url else {},
            max_retries=0,
        )

    async def _complete(self, prompt: str, config: GenerationConfig, system: str | None) -> Completion:
        messages = self._with_system(system, [{"role": "user", "content": prompt}])
        return await self._create(messages, config)

    async def _chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig,
        system: str | None,
    ) -> Completion:
        messages = [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.text}
            for turn in history
        ]
        messages.append({"role": "user", "content": new_message})
        return await self._create(self._with_system(system, messages), config)

    async def _complete_with_image(
        self,
        image: ImageSource,
        prompt: str,
        config: GenerationConfig,
    ) -> Completion:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": image.data_uri}},
                    {"type": "text", "text": prompt},
                ],
            }
        ]
        return await self._create(messages, config)

    @staticmethod
    def _with_system(system: str | None, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if system:
            return [{"role": "system", "content": system}, *messages]
        return messages

    async def _create(self, messages: list[dict[str, Any]], config: GenerationConfig) -> Completion:
        extra_body: dict[str, Any] = {"provider": {"data_collection": "deny"}}
        if config.top_k is not None:
            extra_body["top_k"] = config.top_k

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            temperature=config.temperature,
            max_tokens=config.max_output_tokens,
            top_p=config.top_p,
            extra_body=extra_body,
        )
        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        usage = response.usage
        return Completion(
            text=text,
            model=response.model or self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
