"""AI Orchestrator: one entry point for every model call a feature makes.

Composes the injected ModelProvider with bounded retry, structured decoding,
a backpressure semaphore, and the usage ledger. Every call is timed and
recorded exactly once, on success and on failure; typed errors propagate
to the API layer untouched.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel

from app.exceptions import DecodeError, InputValidationError, ModelFailedError, ModelOverloadedError
from services.ai.ledger import UsageLedger
from services.ai.prompt_engine import RenderedPrompt
from services.ai.providers.base import (
    ChatTurn,
    Completion,
    GenerationConfig,
    ImageSource,
    ModelProvider,
)
from services.ai.retry import retry_with_backoff
from services.ai.structured import append_schema, decode_structured

log = structlog.get_logger()


@dataclass
class GenerationResult[T]:
    """Result from AI generation."""

    content: T
    model_used: str
    input_tokens: int
    output_tokens: int
    generation_time_ms: int
    prompt_version: str = ""
    raw_text: str = ""

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class _CallContext:
    feature: str
    user_id: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


def _error_kind(exc: BaseException) -> str:
    if isinstance(exc, InputValidationError):
        return "invalid_input"
    if isinstance(exc, ModelOverloadedError):
        return "overloaded"
    if isinstance(exc, DecodeError):
        return "decode_error"
    if isinstance(exc, ModelFailedError):
        return "failed"
    return "unknown"


class AIOrchestrator:
    """Central AI generation client over a pluggable provider."""

    def __init__(
        self,
        provider: ModelProvider,
        usage: UsageLedger,
        *,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        max_concurrency: int = 10,
    ) -> None:
        self._provider = provider
        self._usage = usage
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._semaphore = asyncio.Semaphore(max_concurrency)  # Backpressure on provider calls

    @property
    def provider(self) -> ModelProvider:
        return self._provider

    async def _gated(self, attempt: Callable[[], Awaitable[Completion]]) -> Completion:
        """One provider attempt under the concurrency gate; retry sleeps happen outside it."""
        async with self._semaphore:
            return await attempt()

    def _config_for(self, rendered: RenderedPrompt) -> GenerationConfig:
        """Provider defaults with per-template overrides from ``meta``."""
        meta = rendered.meta
        return self._provider.defaults.merged(
            temperature=meta.get("temperature"),
            max_output_tokens=meta.get("max_tokens"),
            top_p=meta.get("top_p"),
        )

    async def generate_text(
        self,
        feature: str,
        rendered: RenderedPrompt,
        *,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> GenerationResult[str]:
        """Free-text completion with bounded retry on transient failures."""
        config = self._config_for(rendered)

        async def _call() -> Completion:
            return await retry_with_backoff(
                lambda: self._gated(
                    lambda: self._provider.complete(rendered.user, config, system=rendered.system or None)
                ),
                max_retries=self._max_retries,
                base_delay=self._retry_base_delay,
                operation=feature,
            )

        return await self._invoke(
            _CallContext(feature, user_id, metadata or {}),
            rendered,
            _call,
            lambda text: text.strip(),
        )

    async def generate_structured[M: BaseModel](
        self,
        feature: str,
        rendered: RenderedPrompt,
        schema: type[M],
        *,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> GenerationResult[M]:
        """Completion coerced into ``schema``.

        The template's schema hint is appended to the prompt, the call is
        retried on transient failures, and the first JSON object in the reply
        is validated. DecodeError is terminal.
        """
        config = self._config_for(rendered)
        prompt = append_schema(rendered.user, rendered.schema_hint)

        async def _call() -> Completion:
            return await retry_with_backoff(
                lambda: self._gated(
                    lambda: self._provider.complete(prompt, config, system=rendered.system or None)
                ),
                max_retries=self._max_retries,
                base_delay=self._retry_base_delay,
                operation=feature,
            )

        return await self._invoke(
            _CallContext(feature, user_id, metadata or {}),
            rendered,
            _call,
            lambda text: decode_structured(text, schema),
        )

    async def chat(
        self,
        feature: str,
        rendered: RenderedPrompt,
        history: list[ChatTurn],
        *,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> GenerationResult[str]:
        """Multi-turn reply to ``rendered.user``. Never retried (caller-paced)."""
        config = self._config_for(rendered)
        return await self._invoke(
            _CallContext(feature, user_id, metadata or {}),
            rendered,
            lambda: self._gated(
                lambda: self._provider.chat(history, rendered.user, config, system=rendered.system or None)
            ),
            lambda text: text.strip(),
        )

    async def analyze_image(
        self,
        feature: str,
        rendered: RenderedPrompt,
        image: ImageSource,
        *,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> GenerationResult[str]:
        """Image-conditioned completion. Never retried (caller-paced)."""
        config = self._config_for(rendered)
        return await self._invoke(
            _CallContext(feature, user_id, metadata or {}),
            rendered,
            lambda: self._gated(lambda: self._provider.complete_with_image(image, rendered.user, config)),
            lambda text: text.strip(),
        )

    async def _invoke[T](
        self,
        ctx: _CallContext,
        rendered: RenderedPrompt,
        call: Callable[[], Awaitable[Completion]],
        decode: Callable[[str], T],
    ) -> GenerationResult[T]:
        start_time = time.monotonic()
        completion: Completion | None = None
        try:
            completion = await call()
            content = decode(completion.text)
        except Exception as exc:
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            kind = _error_kind(exc)
            log.warning(
                "generation_failed",
                feature=ctx.feature,
                error_kind=kind,
                elapsed_ms=elapsed_ms,
                error=str(exc)[:200],
            )
            await self._usage.record_invocation(
                ctx.feature,
                elapsed_ms,
                False,
                user_id=ctx.user_id,
                tokens_used=completion.total_tokens if completion else None,
                error_kind=kind,
                metadata={**ctx.metadata, "model": self._provider.model, "prompt_version": rendered.version},
            )
            raise

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        log.info(
            "generation_complete",
            feature=ctx.feature,
            model=completion.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            elapsed_ms=elapsed_ms,
        )
        await self._usage.record_invocation(
            ctx.feature,
            elapsed_ms,
            True,
            user_id=ctx.user_id,
            tokens_used=completion.total_tokens,
            metadata={**ctx.metadata, "model": completion.model, "prompt_version": rendered.version},
        )
        return GenerationResult(
            content=content,
            model_used=completion.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            generation_time_ms=elapsed_ms,
            prompt_version=rendered.version,
            raw_text=completion.text,
        )
