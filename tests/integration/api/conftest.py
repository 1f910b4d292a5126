"""Fixtures for API integration tests using aiohttp TestClient."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from app.config import Settings
from app.main import build_app
from tests.integration.conftest import FakeProvider, InMemorySupabase, MockRedisClient

HEALTH_TOKEN = "health_token_secret"  # noqa: S105


@pytest.fixture
def settings() -> Settings:
    """Real Settings with fast retries; no .env or host environment involved."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        supabase_url="https://test.supabase.co",
        supabase_key="sb_fake",
        upstash_redis_url="https://redis.upstash.io",
        upstash_redis_token="redis_fake",
        ai_provider="openrouter",
        openrouter_api_key="or_fake",
        ai_model="fake-model",
        ai_max_retries=2,
        ai_retry_base_delay=0.0,
        chat_history_window=20,
        health_check_token=HEALTH_TOKEN,
    )


@pytest.fixture
async def api_client(
    settings: Settings,
    store: InMemorySupabase,
    mock_redis: MockRedisClient,
    provider: FakeProvider,
) -> AsyncIterator[TestClient]:
    """aiohttp TestClient over the fully wired application.

    Usage:
        async def test_health(api_client):
            resp = await api_client.get("/health")
            assert resp.status == 200
    """
    async with httpx.AsyncClient() as http_client:
        app = build_app(settings, db=store, redis=mock_redis, http_client=http_client, provider=provider)  # type: ignore[arg-type]
        async with TestClient(TestServer(app)) as client:
            yield client
