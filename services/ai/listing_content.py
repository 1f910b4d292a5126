"""Listing copy: descriptions, title variants and search tags."""

import json
from typing import Any

import structlog

from db.client import SupabaseClient
from db.models import AutoTagsUpsert, GeneratedContentCreate
from db.repositories.results import GeneratedContentRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import TagSuggestions, TitleSuggestions

log = structlog.get_logger()

FEATURE_DESCRIPTION = "generate_description"
FEATURE_TITLE = "generate_title"
FEATURE_TAGS = "auto_tagging"


class ListingContentService:
    """Generates listing descriptions (plain text), titles and tags (JSON)."""

    def __init__(self, orchestrator: AIOrchestrator, prompts: PromptEngine, db: SupabaseClient) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._content = GeneratedContentRepository(db)

    async def generate_description(self, product: dict[str, Any], user_id: str) -> FeatureOutcome[str]:
        rendered = self._prompts.render("ad_description", {"product": product})
        result = await self._orchestrator.generate_text(FEATURE_DESCRIPTION, rendered, user_id=user_id)

        persisted = await persist_best_effort(
            FEATURE_DESCRIPTION,
            self._content.create(
                GeneratedContentCreate(
                    user_id=user_id,
                    content_type="description",
                    generated_text=result.content,
                    input_data=product,
                    generation_time_ms=result.generation_time_ms,
                )
            ),
        )
        return FeatureOutcome(result.content, result.generation_time_ms, persisted)

    async def generate_titles(self, product: dict[str, Any], user_id: str) -> FeatureOutcome[list[str]]:
        rendered = self._prompts.render("ad_title", {"product": product})
        result = await self._orchestrator.generate_structured(
            FEATURE_TITLE,
            rendered,
            TitleSuggestions,
            user_id=user_id,
        )
        titles = [t.strip() for t in result.content.titles if t.strip()]

        persisted = await persist_best_effort(
            FEATURE_TITLE,
            self._content.create(
                GeneratedContentCreate(
                    user_id=user_id,
                    content_type="title",
                    generated_text=json.dumps(titles, ensure_ascii=False),
                    input_data=product,
                    generation_time_ms=result.generation_time_ms,
                )
            ),
        )
        return FeatureOutcome(titles, result.generation_time_ms, persisted)

    async def generate_tags(
        self,
        ad: dict[str, Any],
        *,
        user_id: str | None = None,
        ad_id: str | None = None,
    ) -> FeatureOutcome[TagSuggestions]:
        rendered = self._prompts.render("ad_tags", {"ad": ad})
        result = await self._orchestrator.generate_structured(
            FEATURE_TAGS,
            rendered,
            TagSuggestions,
            user_id=user_id,
            metadata={"ad_id": ad_id} if ad_id else None,
        )
        tags = result.content

        persisted: bool | None = None
        if ad_id:
            persisted = await persist_best_effort(
                FEATURE_TAGS,
                self._content.upsert_tags(
                    AutoTagsUpsert(
                        ad_id=ad_id,
                        generated_tags=tags.tags,
                        category_keywords=tags.category_keywords,
                        search_keywords=tags.search_keywords,
                        confidence_scores=tags.confidence_scores,
                    )
                ),
            )
        return FeatureOutcome(tags, result.generation_time_ms, persisted)
