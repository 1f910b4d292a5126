"""Fraud-risk screening of listings for the moderation queue."""

from typing import Any

import structlog

from db.client import SupabaseClient
from db.models import FraudDetectionCreate
from db.repositories.results import AnalysesRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import FraudAnalysis

log = structlog.get_logger()

FEATURE = "fraud_detection"


class FraudService:
    def __init__(self, orchestrator: AIOrchestrator, prompts: PromptEngine, db: SupabaseClient) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._analyses = AnalysesRepository(db)

    async def detect(self, ad: dict[str, Any], ad_id: str | None = None) -> FeatureOutcome[FraudAnalysis]:
        """Risk analysis; high and critical listings are queued for manual review."""
        owner = ad.get("user_id") or ad.get("userId")
        rendered = self._prompts.render("fraud_detection", {"ad": ad})
        result = await self._orchestrator.generate_structured(
            FEATURE,
            rendered,
            FraudAnalysis,
            user_id=str(owner) if owner else None,
            metadata={"ad_id": ad_id} if ad_id else None,
        )
        analysis = result.content

        if analysis.flagged_for_review:
            log.info("listing_flagged", ad_id=ad_id, risk_level=analysis.risk_level, risk_score=analysis.risk_score)

        persisted: bool | None = None
        if ad_id:
            persisted = await persist_best_effort(
                FEATURE,
                self._analyses.create_fraud_detection(
                    FraudDetectionCreate(
                        ad_id=ad_id,
                        risk_score=analysis.risk_score,
                        risk_level=analysis.risk_level,
                        detected_patterns=analysis.detected_patterns,
                        suspicious_indicators=analysis.suspicious_indicators,
                        flagged_for_review=analysis.flagged_for_review,
                        review_status="pending" if analysis.flagged_for_review else "approved",
                    )
                ),
            )
        return FeatureOutcome(analysis, result.generation_time_ms, persisted)
