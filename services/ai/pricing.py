"""Price recommendations and alternative-product suggestions."""

from decimal import Decimal
from typing import Any

import structlog

from db.client import SupabaseClient
from db.models import PriceAnalysisCreate
from db.repositories.results import AnalysesRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import Alternative, AlternativeSuggestions, PriceRecommendation

log = structlog.get_logger()

FEATURE_PRICE = "recommend_price"
FEATURE_ALTERNATIVES = "suggest_alternatives"


class PricingService:
    def __init__(self, orchestrator: AIOrchestrator, prompts: PromptEngine, db: SupabaseClient) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._analyses = AnalysesRepository(db)

    async def recommend_price(
        self,
        product: dict[str, Any],
        similar_products: list[dict[str, Any]] | None = None,
        *,
        user_id: str | None = None,
        ad_id: str | None = None,
        category: str = "general",
    ) -> FeatureOutcome[PriceRecommendation]:
        """Suggested price and range. Stored in price history only for identified users."""
        similar = similar_products or []
        rendered = self._prompts.render(
            "recommend_price",
            {"product": product, "similar_products": similar},
        )
        result = await self._orchestrator.generate_structured(
            FEATURE_PRICE,
            rendered,
            PriceRecommendation,
            user_id=user_id,
            metadata={"similar_products": len(similar)},
        )
        rec = result.content

        persisted: bool | None = None
        if user_id:
            persisted = await persist_best_effort(
                FEATURE_PRICE,
                self._analyses.create_price_analysis(
                    PriceAnalysisCreate(
                        ad_id=ad_id,
                        user_id=user_id,
                        category=category,
                        recommended_price=Decimal(str(rec.recommended_price)),
                        price_range_min=Decimal(str(rec.price_range.min)),
                        price_range_max=Decimal(str(rec.price_range.max)),
                        market_analysis=rec.market_analysis,
                        reasoning=rec.reasoning,
                        competitiveness=rec.competitiveness,
                        similar_products_analyzed=len(similar),
                    )
                ),
            )
        return FeatureOutcome(rec, result.generation_time_ms, persisted)

    async def suggest_alternatives(
        self,
        product: dict[str, Any],
        category: str,
        user_id: str | None = None,
    ) -> FeatureOutcome[list[Alternative]]:
        rendered = self._prompts.render("suggest_alternatives", {"product": product, "category": category})
        result = await self._orchestrator.generate_structured(
            FEATURE_ALTERNATIVES,
            rendered,
            AlternativeSuggestions,
            user_id=user_id,
        )
        return FeatureOutcome(result.content.alternatives, result.generation_time_ms)
