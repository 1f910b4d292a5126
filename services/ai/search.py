"""Natural-language listing search: the model extracts filters, the store runs them."""

from dataclasses import dataclass, field

import structlog

from db.client import SupabaseClient
from db.models import Ad, SearchQueryCreate
from db.repositories.ads import AdsRepository
from db.repositories.results import AnalysesRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.schemas import SearchAnalysis

log = structlog.get_logger()

FEATURE = "semantic_search"
RESULTS_LIMIT = 50


@dataclass
class SearchResults:
    analysis: SearchAnalysis
    ads: list[Ad] = field(default_factory=list)


class SemanticSearchService:
    def __init__(self, orchestrator: AIOrchestrator, prompts: PromptEngine, db: SupabaseClient) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._ads = AdsRepository(db)
        self._analyses = AnalysesRepository(db)

    async def search(self, query: str, user_id: str | None = None) -> FeatureOutcome[SearchResults]:
        rendered = self._prompts.render("semantic_search", {"query": query})
        result = await self._orchestrator.generate_structured(FEATURE, rendered, SearchAnalysis, user_id=user_id)
        analysis = result.content
        filters = analysis.extracted_filters

        ads: list[Ad] = []
        try:
            ads = await self._ads.search_active(
                analysis.processed_query,
                price_min=filters.price_min,
                price_max=filters.price_max,
                location=filters.location,
                limit=RESULTS_LIMIT,
            )
        except Exception:
            log.warning("semantic_search_query_failed", processed_query=analysis.processed_query, exc_info=True)

        persisted = await persist_best_effort(
            FEATURE,
            self._analyses.create_search_query(
                SearchQueryCreate(
                    user_id=user_id,
                    original_query=query,
                    processed_query=analysis.processed_query,
                    extracted_filters=filters.model_dump(by_alias=True, exclude_none=True),
                    suggested_terms=analysis.suggested_terms,
                    semantic_expansion=analysis.semantic_expansion,
                    results_count=len(ads),
                )
            ),
        )
        return FeatureOutcome(SearchResults(analysis, ads), result.generation_time_ms, persisted)
