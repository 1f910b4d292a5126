"""Pydantic v2 request bodies for the AI endpoints.

Field names are camelCase on the wire. Product and ad payloads are free-form
objects: the web and mobile clients send category-specific attributes.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from services.ai.comparison import MAX_PRODUCTS, MIN_PRODUCTS

ContextType = Literal["general", "ad_help", "buying_guide", "support"]

Payload = dict[str, Any]


class _Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


class ChatRequest(_Body):
    message: str = Field(min_length=1, max_length=4000)
    user_id: str = Field(min_length=1)
    conversation_id: str | None = None
    context_type: ContextType = "general"


class EvaluateQualityRequest(_Body):
    ad_data: Payload = Field(min_length=1)
    user_id: str = Field(min_length=1)
    ad_id: str | None = None


class SemanticSearchRequest(_Body):
    query: str = Field(min_length=1, max_length=500)
    user_id: str | None = None


class CompareProductsRequest(_Body):
    products: list[Payload] = Field(min_length=MIN_PRODUCTS, max_length=MAX_PRODUCTS)
    user_id: str | None = None
    category: str = "general"


class GenerateDescriptionRequest(_Body):
    product_info: Payload = Field(min_length=1)
    user_id: str = Field(min_length=1)


class GenerateTitleRequest(GenerateDescriptionRequest):
    pass


class GenerateTagsRequest(_Body):
    ad_data: Payload = Field(min_length=1)
    user_id: str | None = None
    ad_id: str | None = None


class RecommendPriceRequest(_Body):
    product_info: Payload = Field(min_length=1)
    similar_products: list[Payload] = Field(default_factory=list, max_length=20)
    user_id: str | None = None
    ad_id: str | None = None
    category: str = "general"


class SuggestAlternativesRequest(_Body):
    product: Payload = Field(min_length=1)
    category: str = Field(min_length=1)
    user_id: str | None = None


class DetectFraudRequest(_Body):
    ad_data: Payload = Field(min_length=1)
    ad_id: str | None = None


class AnalyzeImageRequest(_Body):
    image: str | None = None
    image_url: str | None = None
    ad_id: str | None = None
    user_id: str | None = None

    @model_validator(mode="after")
    def _require_image(self) -> "AnalyzeImageRequest":
        if not (self.image or self.image_url):
            raise ValueError("image or imageUrl is required")
        return self

    @property
    def source(self) -> str:
        return self.image or self.image_url or ""
