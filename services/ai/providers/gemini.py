"""Google Gemini provider via the google-genai async client."""

from __future__ import annotations

from typing import Any

import httpx
from google import genai
from google.genai import types

from services.ai.providers.base import (
    DEFAULT_MAX_IMAGE_BYTES,
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
    download_image,
)


class GeminiProvider(ModelProvider):
    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        http_client: httpx.AsyncClient,
        defaults: GenerationConfig | None = None,
        request_timeout: float = 30.0,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        client: genai.Client | None = None,
    ) -> None:
        super().__init__(model=model, defaults=defaults, request_timeout=request_timeout)
        self._client = client or genai.Client(api_key=api_key)
        # Gemini takes inline bytes here, so URL images are downloaded first
        self._http = http_client
        self._max_image_bytes = max_image_bytes

    async def _complete(self, prompt: str, config: GenerationConfig, system: str | None) -> Completion:
        return await self._generate(prompt, config, system)

    async def _chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig,
        system: str | None,
    ) -> Completion:
        contents = [
            types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
            for turn in history
        ]
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=new_message)]))
        return await self._generate(contents, config, system)

    async def _complete_with_image(
        self,
        image: ImageSource,
        prompt: str,
        config: GenerationConfig,
    ) -> Completion:
        if image.url:
            image = await download_image(
                self._http,
                image.url,
                max_bytes=self._max_image_bytes,
                fallback_media_type=image.media_type,
            )
        contents = [
            types.Part.from_bytes(data=image.data or b"", mime_type=image.media_type),
            types.Part.from_text(text=prompt),
        ]
        return await self._generate(contents, config, None)

    async def _generate(self, contents: Any, config: GenerationConfig, system: str | None) -> Completion:
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                temperature=config.temperature,
                max_output_tokens=config.max_output_tokens,
                top_p=config.top_p,
                top_k=config.top_k,
                system_instruction=system or None,
            ),
        )
        usage = response.usage_metadata
        return Completion(
            text=response.text or "",
            model=self.model,
            input_tokens=(usage.prompt_token_count or 0) if usage else 0,
            output_tokens=(usage.candidates_token_count or 0) if usage else 0,
        )
