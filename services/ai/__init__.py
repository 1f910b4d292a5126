"""AI services: orchestration, prompt engine, feature services."""

from services.ai.chat import ChatReply, ChatService
from services.ai.comparison import ComparisonService
from services.ai.fraud import FraudService
from services.ai.images import ImageAnalysisService, ImageReport, parse_image_analysis
from services.ai.ledger import CacheLedger, UsageLedger, cache_key
from services.ai.listing_content import ListingContentService
from services.ai.orchestrator import AIOrchestrator, GenerationResult
from services.ai.outcome import FeatureOutcome
from services.ai.pricing import PricingService
from services.ai.prompt_engine import PromptEngine, RenderedPrompt
from services.ai.quality import QualityService
from services.ai.rate_limiter import RATE_LIMITS, RateLimiter
from services.ai.search import SearchResults, SemanticSearchService

__all__ = [
    "RATE_LIMITS",
    "AIOrchestrator",
    "CacheLedger",
    "ChatReply",
    "ChatService",
    "ComparisonService",
    "FeatureOutcome",
    "FraudService",
    "GenerationResult",
    "ImageAnalysisService",
    "ImageReport",
    "ListingContentService",
    "PricingService",
    "PromptEngine",
    "QualityService",
    "RateLimiter",
    "RenderedPrompt",
    "SearchResults",
    "SemanticSearchService",
    "UsageLedger",
    "cache_key",
    "parse_image_analysis",
]
