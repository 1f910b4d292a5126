"""Repositories for per-feature result tables.

Each feature writes at most one row per request. Upserts key on ``ad_id``
for tables that hold the latest result per listing.
"""

from db.models import (
    AdQualityScoreUpsert,
    AutoTagsUpsert,
    ComparisonCreate,
    FraudDetectionCreate,
    GeneratedContentCreate,
    ImageAnalysisCreate,
    PriceAnalysisCreate,
    SearchQueryCreate,
)
from db.repositories.base import BaseRepository

_QUALITY_TABLE = "ad_quality_scores"
_CONTENT_TABLE = "ai_generated_content"
_TAGS_TABLE = "ai_auto_tags"
_COMPARISONS_TABLE = "ai_comparisons"
_PRICE_TABLE = "price_analysis"
_FRAUD_TABLE = "ai_fraud_detection"
_IMAGE_TABLE = "ai_image_analysis"
_SEARCH_TABLE = "ai_search_queries"


class QualityScoresRepository(BaseRepository):
    async def upsert(self, data: AdQualityScoreUpsert) -> None:
        """Create or replace the score for a listing (UNIQUE on ad_id)."""
        await self._table(_QUALITY_TABLE).upsert(self._payload(data), on_conflict="ad_id").execute()


class GeneratedContentRepository(BaseRepository):
    async def create(self, data: GeneratedContentCreate) -> None:
        await self._table(_CONTENT_TABLE).insert(self._payload(data)).execute()

    async def upsert_tags(self, data: AutoTagsUpsert) -> None:
        """Create or replace tags for a listing (UNIQUE on ad_id)."""
        await self._table(_TAGS_TABLE).upsert(self._payload(data), on_conflict="ad_id").execute()


class AnalysesRepository(BaseRepository):
    """Insert-only history of comparisons, pricing, fraud, image and search analyses."""

    async def create_comparison(self, data: ComparisonCreate) -> None:
        await self._table(_COMPARISONS_TABLE).insert(self._payload(data)).execute()

    async def create_price_analysis(self, data: PriceAnalysisCreate) -> None:
        await self._table(_PRICE_TABLE).insert(self._payload(data)).execute()

    async def create_fraud_detection(self, data: FraudDetectionCreate) -> None:
        await self._table(_FRAUD_TABLE).insert(self._payload(data)).execute()

    async def create_image_analysis(self, data: ImageAnalysisCreate) -> None:
        await self._table(_IMAGE_TABLE).insert(self._payload(data)).execute()

    async def create_search_query(self, data: SearchQueryCreate) -> None:
        await self._table(_SEARCH_TABLE).insert(self._payload(data)).execute()
