"""Application configuration via Pydantic Settings v2."""

import math
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cache.keys import CONVERSATION_LOCK_MARGIN, CONVERSATION_LOCK_TTL

AIProvider = Literal["openrouter", "anthropic", "gemini"]

# Model used when AI_MODEL is empty
DEFAULT_MODELS: dict[str, str] = {
    "openrouter": "google/gemini-2.0-flash-001",
    "anthropic": "claude-sonnet-4-20250514",
    "gemini": "gemini-2.0-flash",
}


class Settings(BaseSettings):
    """Service configuration read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Required ===
    supabase_url: str
    supabase_key: SecretStr
    upstash_redis_url: str
    upstash_redis_token: SecretStr

    # === Model provider ===
    ai_provider: AIProvider = "openrouter"
    openrouter_api_key: SecretStr = SecretStr("")
    anthropic_api_key: SecretStr = SecretStr("")
    gemini_api_key: SecretStr = SecretStr("")
    ai_model: str = ""

    # === Generation defaults ===
    ai_temperature: float = 0.7
    ai_max_output_tokens: int = 2048
    ai_top_p: float = 0.95
    ai_top_k: int = 40
    ai_request_timeout: float = 30.0
    ai_max_retries: int = 2
    ai_retry_base_delay: float = 1.0
    ai_max_concurrency: int = 10

    # === Features ===
    chat_history_window: int = 20
    comparison_cache_ttl_days: int = 7
    # Comma-separated hosts image URLs may point to; empty allows any public host
    image_url_hosts: str = ""
    image_max_bytes: int = 10 * 1024 * 1024

    # === Optional ===
    sentry_dsn: str = ""
    public_url: str = ""
    health_check_token: SecretStr = SecretStr("")
    log_level: str = "INFO"

    @field_validator("supabase_url")
    @classmethod
    def _supabase_url_must_be_https(cls, v: str) -> str:
        if not v.startswith("https://"):
            msg = "SUPABASE_URL must start with https://"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("ai_max_retries", "chat_history_window", "comparison_cache_ttl_days")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            msg = "value must be >= 0"
            raise ValueError(msg)
        return v

    @field_validator("ai_max_concurrency", "ai_request_timeout", "image_max_bytes")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            msg = "value must be > 0"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _provider_key_present(self) -> "Settings":
        if not self.provider_api_key.get_secret_value():
            msg = f"{self.ai_provider.upper()}_API_KEY is required when AI_PROVIDER={self.ai_provider}"
            raise ValueError(msg)
        return self

    @property
    def provider_api_key(self) -> SecretStr:
        return {
            "openrouter": self.openrouter_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
        }[self.ai_provider]

    @property
    def resolved_model(self) -> str:
        """Configured model, or the provider's default."""
        return self.ai_model or DEFAULT_MODELS[self.ai_provider]

    @property
    def allowed_image_hosts(self) -> frozenset[str]:
        return frozenset(h.strip().lower() for h in self.image_url_hosts.split(",") if h.strip())

    @property
    def conversation_lock_ttl(self) -> int:
        """Chat lock lifetime: outlasts one model call plus the store round trips."""
        return max(CONVERSATION_LOCK_TTL, math.ceil(self.ai_request_timeout) + CONVERSATION_LOCK_MARGIN)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance (cached after first call)."""
    return Settings()  # type: ignore[call-arg]
