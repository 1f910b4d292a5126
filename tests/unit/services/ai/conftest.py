"""Fixtures for AI service tests: a scripted model provider and wired services."""

from __future__ import annotations

import time
from typing import Any

import pytest

from services.ai.ledger import CacheLedger, UsageLedger
from services.ai.orchestrator import AIOrchestrator
from services.ai.prompt_engine import PromptEngine
from services.ai.providers.base import (
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
)
from tests.unit.db.repositories.conftest import MockResponse, MockSupabaseClient

__all__ = ["FakeProvider", "MockRedisClient", "MockResponse", "MockSupabaseClient", "ProviderHTTPError"]


class ProviderHTTPError(Exception):
    """Stand-in for an SDK status error (openai.APIStatusError and friends)."""

    def __init__(self, status_code: int, message: str = "provider error") -> None:
        super().__init__(message)
        self.status_code = status_code


class FakeProvider(ModelProvider):
    """Provider returning scripted replies in order.

    Each scripted item is a reply text or an exception to raise. The last
    item repeats once the script is exhausted. Every call is recorded.
    """

    name = "fake"

    def __init__(self, *script: str | BaseException, request_timeout: float = 5.0) -> None:
        super().__init__(model="fake-model", request_timeout=request_timeout)
        self._script: list[str | BaseException] = list(script)
        self.calls: list[dict[str, Any]] = []

    def queue(self, *script: str | BaseException) -> None:
        self._script.extend(script)

    def _next(self, kind: str, **recorded: Any) -> Completion:
        self.calls.append({"kind": kind, **recorded})
        if not self._script:
            msg = "unexpected model call"
            raise AssertionError(msg)
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, BaseException):
            raise item
        return Completion(text=item, model=self.model, input_tokens=100, output_tokens=50)

    async def _complete(self, prompt: str, config: GenerationConfig, system: str | None) -> Completion:
        return self._next("complete", prompt=prompt, config=config, system=system)

    async def _chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig,
        system: str | None,
    ) -> Completion:
        return self._next("chat", history=list(history), message=new_message, config=config, system=system)

    async def _complete_with_image(self, image: ImageSource, prompt: str, config: GenerationConfig) -> Completion:
        return self._next("image", image=image, prompt=prompt, config=config)


# ---------------------------------------------------------------------------
# In-memory Redis mock (deterministic, zero infra)
# ---------------------------------------------------------------------------


class MockRedisClient:
    """Async in-memory Redis that mimics cache.client.RedisClient.

    Supports: get, set (with ex/nx), delete, incr, decr, expire, ttl, try_lock, unlock, ping.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._ttls: dict[str, float] = {}

    def _is_expired(self, key: str) -> bool:
        if key in self._ttls and time.monotonic() > self._ttls[key]:
            del self._store[key]
            del self._ttls[key]
            return True
        return False

    async def get(self, key: str) -> str | None:
        self._is_expired(key)
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> str | None:
        self._is_expired(key)
        if nx and key in self._store:
            return None
        self._store[key] = str(value)
        if ex is not None:
            self._ttls[key] = time.monotonic() + ex
        return "OK"

    async def delete(self, *keys: str) -> int:
        count = 0
        for k in keys:
            if k in self._store:
                del self._store[k]
                self._ttls.pop(k, None)
                count += 1
        return count

    async def incr(self, key: str) -> int:
        self._is_expired(key)
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def decr(self, key: str) -> int:
        self._is_expired(key)
        val = int(self._store.get(key, "0")) - 1
        self._store[key] = str(val)
        return val

    async def expire(self, key: str, seconds: int) -> bool:
        if key in self._store:
            self._ttls[key] = time.monotonic() + seconds
            return True
        return False

    async def ttl(self, key: str) -> int:
        if key not in self._store or self._is_expired(key):
            return -2
        if key not in self._ttls:
            return -1
        return max(int(self._ttls[key] - time.monotonic()), 0)

    async def try_lock(self, key: str, owner: str, ttl: int) -> bool:
        return bool(await self.set(key, owner, ex=ttl, nx=True))

    async def unlock(self, key: str, owner: str) -> bool:
        if await self.get(key) != owner:
            return False
        return await self.delete(key) > 0

    async def ping(self) -> bool:
        return True


@pytest.fixture(scope="session")
def prompts() -> PromptEngine:
    return PromptEngine()


@pytest.fixture
def mock_db() -> MockSupabaseClient:
    return MockSupabaseClient()


@pytest.fixture
def mock_redis() -> MockRedisClient:
    return MockRedisClient()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def usage(mock_db: MockSupabaseClient) -> UsageLedger:
    return UsageLedger(mock_db)


@pytest.fixture
def cache_ledger(mock_db: MockSupabaseClient) -> CacheLedger:
    return CacheLedger(mock_db, ttl_days=7)


@pytest.fixture
def orchestrator(provider: FakeProvider, usage: UsageLedger) -> AIOrchestrator:
    return AIOrchestrator(provider, usage, max_retries=2, retry_base_delay=0.0, max_concurrency=4)
