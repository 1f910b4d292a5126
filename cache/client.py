"""Upstash Redis (REST) client used for rate counters and conversation locks."""

import structlog
from upstash_redis.asyncio import Redis as AsyncRedis

log = structlog.get_logger()


class RedisClient:
    """Async Upstash client. Every call is one HTTP request; nothing to close."""

    def __init__(self, url: str, token: str) -> None:
        self._redis = AsyncRedis(url=url, token=token)

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> str | bool | None:
        """SET with optional EX seconds. With ``nx=True`` a falsy result means the key existed."""
        return await self._redis.set(key, value, ex=ex, nx=nx)

    async def delete(self, *keys: str) -> int:
        return await self._redis.delete(*keys)

    # Counters

    async def incr(self, key: str) -> int:
        return await self._redis.incr(key)

    async def decr(self, key: str) -> int:
        return await self._redis.decr(key)

    async def expire(self, key: str, seconds: int) -> bool:
        return await self._redis.expire(key, seconds)

    async def ttl(self, key: str) -> int:
        """Seconds left; -1 when the key has no expiry, -2 when it is missing."""
        return await self._redis.ttl(key)

    # Locks

    async def try_lock(self, key: str, owner: str, ttl: int) -> bool:
        """Take ``key`` for ``owner`` unless someone holds it. Expires after ``ttl`` seconds."""
        return bool(await self.set(key, owner, ex=ttl, nx=True))

    async def unlock(self, key: str, owner: str) -> bool:
        """Release ``key`` if ``owner`` still holds it.

        Check and delete are two requests; the lock TTL bounds the window in
        which a lock taken over after expiry could be dropped.
        """
        if await self.get(key) != owner:
            return False
        return await self.delete(key) > 0

    async def ping(self) -> bool:
        """True when Redis answers PONG. Never raises."""
        try:
            return await self._redis.ping() == "PONG"
        except Exception:
            log.warning("redis_ping_failed", exc_info=True)
            return False
