"""Service startup: logging, shared clients, feature services, routes."""

import logging

import httpx
import sentry_sdk
import structlog
from aiohttp import web

from api.ai import setup_routes
from api.health import health_handler
from api.middleware import security_headers_middleware
from app.config import Settings, get_settings
from cache.client import RedisClient
from db.client import SupabaseClient
from services.ai.chat import ChatService
from services.ai.comparison import ComparisonService
from services.ai.fraud import FraudService
from services.ai.images import ImageAnalysisService
from services.ai.ledger import CacheLedger, UsageLedger
from services.ai.listing_content import ListingContentService
from services.ai.orchestrator import AIOrchestrator
from services.ai.pricing import PricingService
from services.ai.prompt_engine import PromptEngine
from services.ai.providers import ModelProvider, create_model_client
from services.ai.quality import QualityService
from services.ai.rate_limiter import RateLimiter
from services.ai.search import SemanticSearchService

log = structlog.get_logger()


def _init_sentry(dsn: str) -> None:
    """Initialize Sentry SDK if DSN is configured."""
    if dsn:
        sentry_sdk.init(dsn=dsn, traces_sample_rate=0.1)
        log.info("sentry_initialized")


def configure_logging(level: str = "INFO") -> None:
    """JSON logs to stdout, filtered at ``level``."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_http_client() -> httpx.AsyncClient:
    """Shared httpx client for model providers and image downloads."""
    return httpx.AsyncClient(
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        timeout=httpx.Timeout(30.0, connect=5.0),
    )


def build_app(
    settings: Settings,
    *,
    db: SupabaseClient,
    redis: RedisClient,
    http_client: httpx.AsyncClient,
    provider: ModelProvider,
    prompts: PromptEngine | None = None,
) -> web.Application:
    """Wire feature services around already-constructed clients.

    Everything is built once here and stored on the application; handlers
    read their dependencies from ``request.app``.
    """
    prompts = prompts or PromptEngine()
    usage = UsageLedger(db)
    cache = CacheLedger(db, ttl_days=settings.comparison_cache_ttl_days)
    orchestrator = AIOrchestrator(
        provider,
        usage,
        max_retries=settings.ai_max_retries,
        retry_base_delay=settings.ai_retry_base_delay,
        max_concurrency=settings.ai_max_concurrency,
    )

    app = web.Application(middlewares=[security_headers_middleware])
    app["settings"] = settings
    app["db"] = db
    app["redis"] = redis
    app["http_client"] = http_client
    app["ai_orchestrator"] = orchestrator
    app["rate_limiter"] = RateLimiter(redis)
    app["chat_service"] = ChatService(
        orchestrator,
        prompts,
        db,
        redis,
        history_window=settings.chat_history_window,
        lock_ttl=settings.conversation_lock_ttl,
    )
    app["quality_service"] = QualityService(orchestrator, prompts, db)
    app["search_service"] = SemanticSearchService(orchestrator, prompts, db)
    app["comparison_service"] = ComparisonService(orchestrator, prompts, db, cache, usage)
    app["listing_content_service"] = ListingContentService(orchestrator, prompts, db)
    app["pricing_service"] = PricingService(orchestrator, prompts, db)
    app["fraud_service"] = FraudService(orchestrator, prompts, db)
    app["image_service"] = ImageAnalysisService(
        orchestrator,
        prompts,
        db,
        allowed_hosts=settings.allowed_image_hosts,
    )

    setup_routes(app)
    app.router.add_get("/health", health_handler)
    return app


def create_app() -> web.Application:
    """Create the production application. Entry point for ``python -m app``."""
    settings = get_settings()
    configure_logging(settings.log_level)
    _init_sentry(settings.sentry_dsn)

    db = SupabaseClient(
        url=settings.supabase_url,
        key=settings.supabase_key.get_secret_value(),
    )
    redis = RedisClient(
        url=settings.upstash_redis_url,
        token=settings.upstash_redis_token.get_secret_value(),
    )
    http_client = create_http_client()
    provider = create_model_client(settings, http_client)

    app = build_app(settings, db=db, redis=redis, http_client=http_client, provider=provider)

    async def _cleanup(app: web.Application) -> None:
        # Redis (Upstash HTTP) is stateless, nothing to close
        await http_client.aclose()
        await db.close()
        log.info("shutdown_complete")

    app.on_cleanup.append(_cleanup)
    log.info("app_created", provider=provider.name, model=provider.model)
    return app
