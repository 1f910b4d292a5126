"""Listing quality scoring (0-100 across four weighted criteria)."""

from datetime import UTC, datetime
from typing import Any

import structlog

from db.client import SupabaseClient
from db.models import AdQualityScoreUpsert
from db.repositories.results import QualityScoresRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import QualityEvaluation

log = structlog.get_logger()

FEATURE = "evaluate_quality"


class QualityService:
    def __init__(self, orchestrator: AIOrchestrator, prompts: PromptEngine, db: SupabaseClient) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._scores = QualityScoresRepository(db)

    async def evaluate(
        self,
        ad: dict[str, Any],
        user_id: str,
        ad_id: str | None = None,
    ) -> FeatureOutcome[QualityEvaluation]:
        """Score a listing; the score is stored against ``ad_id`` when given.

        The model's total is reported as returned. A total that disagrees
        with the breakdown sum is logged, not corrected.
        """
        rendered = self._prompts.render("ad_quality", {"ad": ad})
        result = await self._orchestrator.generate_structured(
            FEATURE,
            rendered,
            QualityEvaluation,
            user_id=user_id,
            metadata={"ad_id": ad_id} if ad_id else None,
        )
        evaluation = result.content

        if not evaluation.is_consistent:
            log.warning(
                "quality_score_inconsistent",
                ad_id=ad_id,
                total_score=evaluation.total_score,
                breakdown_sum=evaluation.breakdown.total,
            )

        persisted: bool | None = None
        if ad_id:
            persisted = await persist_best_effort(
                FEATURE,
                self._scores.upsert(
                    AdQualityScoreUpsert(
                        ad_id=ad_id,
                        user_id=user_id,
                        total_score=evaluation.total_score,
                        description_score=evaluation.breakdown.description,
                        photos_score=evaluation.breakdown.photos,
                        specifications_score=evaluation.breakdown.specifications,
                        pricing_score=evaluation.breakdown.pricing,
                        suggestions=evaluation.suggestions,
                        strengths=evaluation.strengths,
                        weaknesses=evaluation.weaknesses,
                        updated_at=datetime.now(UTC),
                    )
                ),
            )
        return FeatureOutcome(evaluation, result.generation_time_ms, persisted)
