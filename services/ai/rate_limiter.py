"""Hourly per-user quotas for AI actions, counted in Redis."""

import structlog

from app.exceptions import RateLimitError
from cache.client import RedisClient
from cache.keys import RATE_LIMIT_WINDOW, CacheKeys

log = structlog.get_logger()

# Requests per RATE_LIMIT_WINDOW, by action
RATE_LIMITS: dict[str, int] = {
    "chat": 60,
    "text_generation": 30,
    "analysis": 30,
    "image_analysis": 20,
}


class RateLimiter:
    """Fixed-window counter per (user, action)."""

    def __init__(self, redis: RedisClient, window_seconds: int = RATE_LIMIT_WINDOW) -> None:
        self._redis = redis
        self._window = window_seconds

    async def check(self, user_id: str, action: str) -> None:
        """Count one request, or raise RateLimitError when the quota is used up.

        INCR is the atomic step; a rejected request is decremented back out so
        it does not extend the lockout. Actions without a quota pass freely.
        """
        quota = RATE_LIMITS.get(action)
        if quota is None:
            return

        key = CacheKeys.rate_limit(user_id, action)
        count = await self._redis.incr(key)
        window_left = await self._arm_window(key, fresh=count == 1)
        if count <= quota:
            return

        await self._redis.decr(key)
        log.warning(
            "rate_limit_exceeded",
            user_id=user_id,
            action=action,
            quota=quota,
            retry_after=window_left,
        )
        minutes = -(-window_left // 60)
        raise RateLimitError(
            message=f"Rate limit exceeded for {action}: {quota}/{self._window}s",
            user_message=f"Prekročili ste limit požiadaviek. Skúste to znova o {minutes} min.",
            retry_after_seconds=window_left,
        )

    async def _arm_window(self, key: str, *, fresh: bool) -> int:
        """Seconds until the window resets. Starts it on the first hit or when its TTL went missing."""
        if not fresh:
            ttl = await self._redis.ttl(key)
            if ttl >= 0:
                return ttl
        await self._redis.expire(key, self._window)
        return self._window
