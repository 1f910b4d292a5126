"""AI feature endpoints.

POST /ai/* handlers are thin: validate (decorator), rate-limit identified
users, call the feature service, shape the camelCase response.
"""

from typing import Any

import structlog
from aiohttp import web

from api import ai_endpoint
from api.models import (
    AnalyzeImageRequest,
    ChatRequest,
    CompareProductsRequest,
    DetectFraudRequest,
    EvaluateQualityRequest,
    GenerateDescriptionRequest,
    GenerateTagsRequest,
    GenerateTitleRequest,
    RecommendPriceRequest,
    SemanticSearchRequest,
    SuggestAlternativesRequest,
)
from db.models import Ad
from services.ai.outcome import FeatureOutcome

log = structlog.get_logger()


async def _rate_limit(request: web.Request, user_id: str | None, action: str) -> None:
    if user_id:
        await request.app["rate_limiter"].check(user_id, action)


def _ads(ads: list[Ad]) -> list[dict[str, Any]]:
    return [ad.model_dump(mode="json") for ad in ads]


def _respond(outcome: FeatureOutcome[Any], payload: dict[str, Any]) -> web.Response:
    """Attach timing and, where the feature stored something, the persistence flag."""
    payload["generationTime"] = outcome.generation_time_ms
    if outcome.persisted is not None:
        payload["persisted"] = outcome.persisted
    return web.json_response(payload)


@ai_endpoint(ChatRequest)
async def chat_handler(request: web.Request, body: ChatRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "chat")
    reply = await request.app["chat_service"].reply(
        body.message,
        body.user_id,
        conversation_id=body.conversation_id,
        context_type=body.context_type,
    )
    return web.json_response({
        "response": reply.response,
        "conversationId": reply.conversation_id,
        "timestamp": reply.timestamp.isoformat(),
        "searchResults": _ads(reply.search_results),
        "generationTime": reply.generation_time_ms,
        "persisted": reply.persisted,
    })


@ai_endpoint(EvaluateQualityRequest)
async def evaluate_quality_handler(request: web.Request, body: EvaluateQualityRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "analysis")
    outcome = await request.app["quality_service"].evaluate(body.ad_data, body.user_id, body.ad_id)
    evaluation = outcome.result
    return _respond(outcome, {**evaluation.to_response(), "scoreConsistent": evaluation.is_consistent})


@ai_endpoint(SemanticSearchRequest)
async def semantic_search_handler(request: web.Request, body: SemanticSearchRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "analysis")
    outcome = await request.app["search_service"].search(body.query, body.user_id)
    return _respond(outcome, {
        "analysis": outcome.result.analysis.to_response(),
        "results": _ads(outcome.result.ads),
    })


@ai_endpoint(CompareProductsRequest)
async def compare_products_handler(request: web.Request, body: CompareProductsRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "analysis")
    outcome = await request.app["comparison_service"].compare(body.products, body.category, body.user_id)
    return _respond(outcome, {"comparison": outcome.result.to_response(), "cached": outcome.cached})


@ai_endpoint(GenerateDescriptionRequest)
async def generate_description_handler(request: web.Request, body: GenerateDescriptionRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "text_generation")
    outcome = await request.app["listing_content_service"].generate_description(body.product_info, body.user_id)
    return _respond(outcome, {"description": outcome.result})


@ai_endpoint(GenerateTitleRequest)
async def generate_title_handler(request: web.Request, body: GenerateTitleRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "text_generation")
    outcome = await request.app["listing_content_service"].generate_titles(body.product_info, body.user_id)
    return _respond(outcome, {"titles": outcome.result})


@ai_endpoint(GenerateTagsRequest)
async def generate_tags_handler(request: web.Request, body: GenerateTagsRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "text_generation")
    outcome = await request.app["listing_content_service"].generate_tags(
        body.ad_data,
        user_id=body.user_id,
        ad_id=body.ad_id,
    )
    return _respond(outcome, outcome.result.to_response())


@ai_endpoint(RecommendPriceRequest)
async def recommend_price_handler(request: web.Request, body: RecommendPriceRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "analysis")
    outcome = await request.app["pricing_service"].recommend_price(
        body.product_info,
        body.similar_products,
        user_id=body.user_id,
        ad_id=body.ad_id,
        category=body.category,
    )
    return _respond(outcome, {"recommendation": outcome.result.to_response()})


@ai_endpoint(SuggestAlternativesRequest)
async def suggest_alternatives_handler(request: web.Request, body: SuggestAlternativesRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "analysis")
    outcome = await request.app["pricing_service"].suggest_alternatives(body.product, body.category, body.user_id)
    return _respond(outcome, {"alternatives": [alt.to_response() for alt in outcome.result]})


@ai_endpoint(DetectFraudRequest)
async def detect_fraud_handler(request: web.Request, body: DetectFraudRequest) -> web.Response:
    owner = body.ad_data.get("user_id") or body.ad_data.get("userId")
    await _rate_limit(request, str(owner) if owner else None, "analysis")
    outcome = await request.app["fraud_service"].detect(body.ad_data, body.ad_id)
    return _respond(outcome, {
        "analysis": outcome.result.to_response(),
        "flaggedForReview": outcome.result.flagged_for_review,
    })


@ai_endpoint(AnalyzeImageRequest)
async def analyze_image_handler(request: web.Request, body: AnalyzeImageRequest) -> web.Response:
    await _rate_limit(request, body.user_id, "image_analysis")
    outcome = await request.app["image_service"].analyze(
        body.source,
        image_url=body.image_url,
        ad_id=body.ad_id,
        user_id=body.user_id,
    )
    return _respond(outcome, {
        "analysis": outcome.result.text,
        "detailedAnalysis": outcome.result.analysis.to_response(),
    })


def setup_routes(app: web.Application) -> None:
    app.router.add_post("/ai/chat", chat_handler)
    app.router.add_post("/ai/evaluate-quality", evaluate_quality_handler)
    app.router.add_post("/ai/semantic-search", semantic_search_handler)
    app.router.add_post("/ai/compare-products", compare_products_handler)
    app.router.add_post("/ai/generate-description", generate_description_handler)
    app.router.add_post("/ai/generate-title", generate_title_handler)
    app.router.add_post("/ai/generate-tags", generate_tags_handler)
    app.router.add_post("/ai/recommend-price", recommend_price_handler)
    app.router.add_post("/ai/suggest-alternatives", suggest_alternatives_handler)
    app.router.add_post("/ai/detect-fraud", detect_fraud_handler)
    app.router.add_post("/ai/analyze-image", analyze_image_handler)
