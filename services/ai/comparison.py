"""Side-by-side product comparison with an order-independent result cache.

Products are sorted into a canonical order before prompting, so one cached
result serves every permutation of the same set. Indices in the result
(``bestChoice``, ``suitability[].productIndex``) are translated back to the
caller's order on the way out.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from db.client import SupabaseClient
from db.models import ComparisonCreate
from db.repositories.results import AnalysesRepository
from services.ai.ledger import CacheLedger, UsageLedger, cache_key, canonical_json
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import ComparisonResult

log = structlog.get_logger()

FEATURE = "compare_products"
MIN_PRODUCTS = 2
MAX_PRODUCTS = 4


@dataclass(frozen=True)
class CanonicalProducts:
    """Products in canonical order plus ``to_caller[canonical_index] -> caller_index``."""

    products: list[dict[str, Any]]
    to_caller: list[int]


def canonicalize(products: list[dict[str, Any]]) -> CanonicalProducts:
    order = sorted(range(len(products)), key=lambda i: canonical_json(products[i]))
    return CanonicalProducts([products[i] for i in order], order)


def comparison_cache_key(products: list[dict[str, Any]], category: str) -> str:
    return cache_key(FEATURE, products, category=category)


class ComparisonService:
    def __init__(
        self,
        orchestrator: AIOrchestrator,
        prompts: PromptEngine,
        db: SupabaseClient,
        cache: CacheLedger,
        usage: UsageLedger,
    ) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._cache = cache
        self._usage = usage
        self._analyses = AnalysesRepository(db)

    async def compare(
        self,
        products: list[dict[str, Any]],
        category: str = "general",
        user_id: str | None = None,
    ) -> FeatureOutcome[ComparisonResult]:
        canon = canonicalize(products)
        key = comparison_cache_key(products, category)
        metadata = {"product_count": len(products)}

        cached = await self._lookup(key)
        if cached is not None:
            result, tokens_saved = cached
            await self._cache.record_hit(key, tokens_saved)
            await self._usage.record_invocation(
                FEATURE,
                0,
                True,
                user_id=user_id,
                metadata={**metadata, "cached": True},
            )
            log.info("comparison_cache_hit", cache_key=key)
            return FeatureOutcome(result.reindexed(canon.to_caller), 0, cached=True)

        rendered = self._prompts.render(
            "compare_products",
            {"products": canon.products, "category": category},
        )
        generated = await self._orchestrator.generate_structured(
            FEATURE,
            rendered,
            ComparisonResult,
            user_id=user_id,
            metadata=metadata,
        )

        await self._cache.store(
            FEATURE,
            key,
            generated.content.model_dump(by_alias=True),
            tokens_used=generated.tokens_used,
        )

        comparison = generated.content.reindexed(canon.to_caller)
        persisted = await persist_best_effort(
            FEATURE,
            self._analyses.create_comparison(
                ComparisonCreate(
                    user_id=user_id,
                    ad_ids=[_product_id(p) for p in products],
                    category=category,
                    comparison_data=comparison.model_dump(by_alias=True),
                    summary=comparison.summary,
                    best_choice=comparison.recommendation.best_choice,
                    recommendation_reasoning=comparison.recommendation.reasoning,
                )
            ),
        )
        return FeatureOutcome(comparison, generated.generation_time_ms, persisted)

    async def _lookup(self, key: str) -> tuple[ComparisonResult, int] | None:
        entry = await self._cache.lookup(FEATURE, key)
        if entry is None:
            return None
        try:
            result = ComparisonResult.model_validate(entry.cached_response)
        except ValidationError:
            log.warning("comparison_cache_entry_invalid", cache_key=key)
            return None
        return result, entry.tokens_used or 0


def _product_id(product: dict[str, Any]) -> str | None:
    value = product.get("id")
    return str(value) if value is not None else None
