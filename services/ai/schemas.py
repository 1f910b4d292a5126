"""Typed shapes of model-produced JSON.

Field names are snake_case in Python and camelCase on the wire, matching what
the prompts ask the model for and what the web client reads.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _round_number(v: Any) -> Any:
    return round(v) if isinstance(v, float) else v


# ---------------------------------------------------------------------------
# Quality evaluation
# ---------------------------------------------------------------------------


class QualityBreakdown(_Schema):
    description: int
    photos: int
    specifications: int
    pricing: int

    @field_validator("*", mode="before")
    @classmethod
    def _round_points(cls, v: Any) -> Any:
        return _round_number(v)

    @property
    def total(self) -> int:
        return self.description + self.photos + self.specifications + self.pricing


class QualityEvaluation(_Schema):
    total_score: int
    breakdown: QualityBreakdown
    suggestions: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)

    @field_validator("total_score", mode="before")
    @classmethod
    def _round_total(cls, v: Any) -> Any:
        return _round_number(v)

    @property
    def is_consistent(self) -> bool:
        """The model's total equals the sum of its own breakdown (advisory only)."""
        return self.total_score == self.breakdown.total


# ---------------------------------------------------------------------------
# Product comparison
# ---------------------------------------------------------------------------


class ComparisonAspects(_Schema):
    specifications: str
    price_value: str
    condition: str


class ComparisonRecommendation(_Schema):
    best_choice: int
    reasoning: str


class Suitability(_Schema):
    product_index: int
    suitable_for: str


class ComparisonResult(_Schema):
    summary: str
    comparison: ComparisonAspects
    recommendation: ComparisonRecommendation
    suitability: list[Suitability] = Field(default_factory=list)

    def reindexed(self, mapping: list[int]) -> "ComparisonResult":
        """Copy with product indices translated through ``mapping[old] -> new``.

        Out-of-range indices are kept as the model returned them.
        """

        def _map(i: int) -> int:
            return mapping[i] if 0 <= i < len(mapping) else i

        return self.model_copy(
            update={
                "recommendation": self.recommendation.model_copy(
                    update={"best_choice": _map(self.recommendation.best_choice)},
                ),
                "suitability": sorted(
                    (s.model_copy(update={"product_index": _map(s.product_index)}) for s in self.suitability),
                    key=lambda s: s.product_index,
                ),
            },
        )


# ---------------------------------------------------------------------------
# Semantic search
# ---------------------------------------------------------------------------


class SearchFilters(_Schema):
    category: str | None = None
    price_min: float | None = None
    price_max: float | None = None
    location: str | None = None
    condition: str | None = None
    brand: str | None = None


class SearchAnalysis(_Schema):
    processed_query: str
    extracted_filters: SearchFilters = Field(default_factory=SearchFilters)
    suggested_terms: list[str] = Field(default_factory=list)
    semantic_expansion: list[str] = Field(default_factory=list)
    intent: Literal["buy", "sell", "compare", "research"]

    def to_response(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["extractedFilters"] = self.extracted_filters.model_dump(by_alias=True, exclude_none=True)
        return data


# ---------------------------------------------------------------------------
# Listing content
# ---------------------------------------------------------------------------


class TitleSuggestions(_Schema):
    titles: list[str] = Field(min_length=1)


class TagSuggestions(_Schema):
    tags: list[str]
    category_keywords: list[str] = Field(default_factory=list)
    search_keywords: list[str] = Field(default_factory=list)
    confidence_scores: dict[str, float] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


class PriceRange(_Schema):
    min: float
    max: float


class PriceRecommendation(_Schema):
    recommended_price: float
    price_range: PriceRange
    market_analysis: str
    reasoning: str
    competitiveness: str


class Alternative(_Schema):
    brand: str
    model: str
    differences: str
    why: str
    price_range: str

    @field_validator("price_range", "model", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return str(v) if isinstance(v, (int, float)) else v


class AlternativeSuggestions(_Schema):
    alternatives: list[Alternative]


# ---------------------------------------------------------------------------
# Fraud detection
# ---------------------------------------------------------------------------


class FraudAnalysis(_Schema):
    risk_score: int = Field(ge=0, le=100)
    risk_level: Literal["low", "medium", "high", "critical"]
    detected_patterns: list[str] = Field(default_factory=list)
    suspicious_indicators: list[str] = Field(default_factory=list)
    reasoning: str
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("risk_score", mode="before")
    @classmethod
    def _round_risk(cls, v: Any) -> Any:
        return _round_number(v)

    @property
    def flagged_for_review(self) -> bool:
        return self.risk_level in ("high", "critical")


# ---------------------------------------------------------------------------
# Image analysis (parsed from labelled lines, not JSON)
# ---------------------------------------------------------------------------


class ImageAnalysis(_Schema):
    description: str
    category: str | None = None
    characteristics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
