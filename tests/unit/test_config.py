"""Tests for app/config.py — Settings and get_settings singleton."""

import pytest
from pydantic import SecretStr, ValidationError

from app.config import DEFAULT_MODELS, Settings, get_settings
from cache.keys import CONVERSATION_LOCK_TTL

# All required env vars for a valid Settings
REQUIRED_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_KEY": "test-supabase-key",
    "UPSTASH_REDIS_URL": "https://redis.upstash.io",
    "UPSTASH_REDIS_TOKEN": "test-redis-token",
    "AI_PROVIDER": "openrouter",
    "OPENROUTER_API_KEY": "test-openrouter",
}

_OPTIONAL_ENV = (
    "AI_MODEL", "AI_TEMPERATURE", "AI_MAX_RETRIES", "AI_REQUEST_TIMEOUT", "CHAT_HISTORY_WINDOW",
    "COMPARISON_CACHE_TTL_DAYS", "SENTRY_DSN", "PUBLIC_URL", "HEALTH_CHECK_TOKEN", "LOG_LEVEL",
    "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "AI_MAX_CONCURRENCY", "IMAGE_URL_HOSTS", "IMAGE_MAX_BYTES",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of Settings."""
    for var in (*REQUIRED_ENV, *_OPTIONAL_ENV):
        monkeypatch.delenv(var, raising=False)


def _make_settings(**overrides: str) -> Settings:
    """Create Settings from REQUIRED_ENV, ignoring .env file.

    Pass UPPERCASE keys in overrides to match env var names.
    """
    env = {**REQUIRED_ENV, **overrides}
    lower_env = {k.lower(): v for k, v in env.items()}
    return Settings(_env_file=None, **lower_env)  # type: ignore[call-arg]


class TestSettings:
    def test_loads_required_vars(self) -> None:
        s = _make_settings()
        assert s.supabase_url == "https://test.supabase.co"
        assert s.ai_provider == "openrouter"

    def test_secret_str_fields_hide_values(self) -> None:
        s = _make_settings()
        assert isinstance(s.supabase_key, SecretStr)
        assert "test-supabase-key" not in repr(s.supabase_key)

    def test_generation_defaults(self) -> None:
        s = _make_settings()
        assert s.ai_temperature == 0.7
        assert s.ai_max_output_tokens == 2048
        assert s.ai_top_p == 0.95
        assert s.ai_top_k == 40
        assert s.ai_max_retries == 2
        assert s.ai_request_timeout == 30.0
        assert s.chat_history_window == 20
        assert s.comparison_cache_ttl_days == 7

    def test_supabase_url_must_be_https(self) -> None:
        with pytest.raises(ValidationError, match="https"):
            _make_settings(SUPABASE_URL="http://insecure.supabase.co")

    def test_supabase_url_trailing_slash_stripped(self) -> None:
        s = _make_settings(SUPABASE_URL="https://test.supabase.co/")
        assert s.supabase_url == "https://test.supabase.co"

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _make_settings(AI_MAX_RETRIES="-1")

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("AI_MAX_CONCURRENCY", "0"),
            ("AI_MAX_CONCURRENCY", "-3"),
            ("AI_REQUEST_TIMEOUT", "0"),
            ("IMAGE_MAX_BYTES", "0"),
        ],
    )
    def test_non_positive_limits_rejected(self, var: str, value: str) -> None:
        with pytest.raises(ValidationError, match="> 0"):
            _make_settings(**{var: value})

    def test_allowed_image_hosts_parsed(self) -> None:
        s = _make_settings(IMAGE_URL_HOSTS=" cdn.kupado.sk, Images.Kupado.sk ,,")
        assert s.allowed_image_hosts == frozenset({"cdn.kupado.sk", "images.kupado.sk"})

    def test_allowed_image_hosts_empty_by_default(self) -> None:
        assert _make_settings().allowed_image_hosts == frozenset()


class TestConversationLockTtl:
    def test_floor_at_default_timeout(self) -> None:
        assert _make_settings().conversation_lock_ttl == CONVERSATION_LOCK_TTL

    @pytest.mark.parametrize(("timeout", "expected"), [("120", 150), ("90.5", 121)])
    def test_follows_request_timeout(self, timeout: str, expected: int) -> None:
        assert _make_settings(AI_REQUEST_TIMEOUT=timeout).conversation_lock_ttl == expected

    def test_always_outlasts_request_timeout(self) -> None:
        s = _make_settings(AI_REQUEST_TIMEOUT="45")
        assert s.conversation_lock_ttl > s.ai_request_timeout


class TestProviderSelection:
    def test_selected_provider_key_required(self) -> None:
        with pytest.raises(ValidationError, match="ANTHROPIC_API_KEY"):
            _make_settings(AI_PROVIDER="anthropic")

    def test_provider_api_key_follows_selection(self) -> None:
        s = _make_settings(AI_PROVIDER="gemini", GEMINI_API_KEY="g-key")
        assert s.provider_api_key.get_secret_value() == "g-key"

    def test_unknown_provider_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _make_settings(AI_PROVIDER="mystery")

    def test_resolved_model_defaults_per_provider(self) -> None:
        s = _make_settings(AI_PROVIDER="anthropic", ANTHROPIC_API_KEY="a-key")
        assert s.resolved_model == DEFAULT_MODELS["anthropic"]

    def test_resolved_model_explicit(self) -> None:
        s = _make_settings(AI_MODEL="openai/gpt-4o-mini")
        assert s.resolved_model == "openai/gpt-4o-mini"


class TestGetSettings:
    def test_returns_cached_instance(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for k, v in REQUIRED_ENV.items():
            monkeypatch.setenv(k, v)
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
