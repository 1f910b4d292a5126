"""Health check endpoint.

GET /health: public liveness, or dependency checks with a Bearer token.
"""

import hmac
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from aiohttp import web

log = structlog.get_logger()

_VERSION = "1.0.0"
_START_TIME = time.monotonic()


async def _check_dependency(name: str, check: Callable[[], Awaitable[bool | None]]) -> dict[str, Any]:
    """Run ``check``; False or an exception marks the dependency as failed."""
    t0 = time.monotonic()
    try:
        ok = await check() is not False
    except Exception:
        log.warning("health_check_failed", dependency=name, exc_info=True)
        ok = False
    return {"status": "ok" if ok else "error", "latency_ms": round((time.monotonic() - t0) * 1000)}


def _authorized(request: web.Request, token: str) -> bool:
    auth = request.headers.get("Authorization", "")
    if not token or not auth.startswith("Bearer "):
        return False
    return hmac.compare_digest(auth[7:].encode(), token.encode())


async def health_handler(request: web.Request) -> web.Response:
    settings = request.app["settings"]
    if not _authorized(request, settings.health_check_token.get_secret_value()):
        return web.json_response({"status": "ok"})

    checks: dict[str, dict[str, Any]] = {
        "database": await _check_dependency("database", request.app["db"].ping),
        "redis": await _check_dependency("redis", request.app["redis"].ping),
    }
    overall = "ok" if all(c["status"] == "ok" for c in checks.values()) else "down"
    checks["model"] = {"provider": settings.ai_provider, "model": settings.resolved_model}

    return web.json_response({
        "status": overall,
        "version": _VERSION,
        "uptime_seconds": round(time.monotonic() - _START_TIME),
        "checks": checks,
    })
