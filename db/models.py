"""Pydantic v2 models for the tables touched by the AI service.

User and ad identifiers are Supabase UUID strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# 1. ai_usage_logs (append-only)
# ---------------------------------------------------------------------------


class UsageLogCreate(BaseModel):
    user_id: str | None = None
    feature_type: str
    response_time_ms: int
    success: bool
    tokens_used: int | None = None
    error_kind: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# 2. ai_cache
# ---------------------------------------------------------------------------


class AICacheEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | str | None = None
    cache_key: str
    feature_type: str
    input_hash: str | None = None
    cached_response: dict[str, Any]
    hit_count: int = 0
    tokens_saved: int = 0
    tokens_used: int | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None


class AICacheCreate(BaseModel):
    cache_key: str
    feature_type: str
    input_hash: str
    cached_response: dict[str, Any]
    tokens_used: int | None = None
    expires_at: datetime


# ---------------------------------------------------------------------------
# 3. ai_chat_conversations
# ---------------------------------------------------------------------------


class Conversation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    context_type: str = "general"
    conversation_data: list[dict[str, Any]] = Field(default_factory=list)
    last_message_at: datetime | None = None
    created_at: datetime | None = None


class ConversationCreate(BaseModel):
    id: str
    user_id: str
    context_type: str
    conversation_data: list[dict[str, Any]]
    last_message_at: datetime


class ConversationUpdate(BaseModel):
    conversation_data: list[dict[str, Any]]
    last_message_at: datetime


# ---------------------------------------------------------------------------
# 4. ads (read-only here)
# ---------------------------------------------------------------------------


class Ad(BaseModel):
    """Listing row. Category-specific columns pass through untouched."""

    model_config = ConfigDict(from_attributes=True, extra="allow")

    id: str
    title: str = ""
    description: str | None = None
    price: Decimal | None = None
    location: str | None = None
    status: str | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# 5. ad_quality_scores (UNIQUE ad_id)
# ---------------------------------------------------------------------------


class AdQualityScoreUpsert(BaseModel):
    ad_id: str
    user_id: str
    total_score: int
    description_score: int
    photos_score: int
    specifications_score: int
    pricing_score: int
    suggestions: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    updated_at: datetime


# ---------------------------------------------------------------------------
# 6. ai_generated_content + ai_auto_tags (UNIQUE ad_id)
# ---------------------------------------------------------------------------


class GeneratedContentCreate(BaseModel):
    user_id: str
    content_type: str  # description | title
    generated_text: str
    input_data: dict[str, Any]
    generation_time_ms: int


class AutoTagsUpsert(BaseModel):
    ad_id: str
    generated_tags: list[str]
    category_keywords: list[str]
    search_keywords: list[str]
    confidence_scores: dict[str, float]


# ---------------------------------------------------------------------------
# 7. analysis result tables (insert-only)
# ---------------------------------------------------------------------------


class ComparisonCreate(BaseModel):
    user_id: str | None = None
    ad_ids: list[str | None]
    category: str
    comparison_data: dict[str, Any]
    summary: str
    best_choice: int
    recommendation_reasoning: str


class PriceAnalysisCreate(BaseModel):
    ad_id: str | None = None
    user_id: str
    category: str
    recommended_price: Decimal
    price_range_min: Decimal
    price_range_max: Decimal
    market_analysis: str
    reasoning: str
    competitiveness: str
    similar_products_analyzed: int = 0


class FraudDetectionCreate(BaseModel):
    ad_id: str
    risk_score: int
    risk_level: str
    detected_patterns: list[str]
    suspicious_indicators: list[str]
    flagged_for_review: bool
    review_status: str  # pending | approved


class ImageAnalysisCreate(BaseModel):
    ad_id: str
    image_url: str | None = None
    description: str
    category: str | None = None
    characteristics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class SearchQueryCreate(BaseModel):
    user_id: str | None = None
    original_query: str
    processed_query: str
    extracted_filters: dict[str, Any]
    suggested_terms: list[str]
    semantic_expansion: list[str]
    results_count: int
