"""Model providers behind a single provider-neutral interface."""

import httpx

from app.config import Settings
from services.ai.providers.base import (
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
    classify_provider_error,
    parse_image_data,
)
from services.ai.providers.claude import ClaudeProvider
from services.ai.providers.gemini import GeminiProvider
from services.ai.providers.openrouter import OpenRouterProvider

__all__ = [
    "ChatTurn",
    "ClaudeProvider",
    "Completion",
    "GeminiProvider",
    "GenerationConfig",
    "ImageSource",
    "ModelProvider",
    "OpenRouterProvider",
    "classify_provider_error",
    "create_model_client",
    "parse_image_data",
]


def create_model_client(settings: Settings, http_client: httpx.AsyncClient) -> ModelProvider:
    """Build the provider selected by ``AI_PROVIDER`` with configured defaults."""
    defaults = GenerationConfig(
        temperature=settings.ai_temperature,
        max_output_tokens=settings.ai_max_output_tokens,
        top_p=settings.ai_top_p,
        top_k=settings.ai_top_k,
    )
    api_key = settings.provider_api_key.get_secret_value()
    common = {
        "api_key": api_key,
        "model": settings.resolved_model,
        "http_client": http_client,
        "defaults": defaults,
        "request_timeout": settings.ai_request_timeout,
    }
    if settings.ai_provider == "anthropic":
        return ClaudeProvider(**common)
    if settings.ai_provider == "gemini":
        return GeminiProvider(max_image_bytes=settings.image_max_bytes, **common)
    return OpenRouterProvider(site_url=settings.public_url, **common)
