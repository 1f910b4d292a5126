from cache.client import RedisClient
from cache.keys import CONVERSATION_LOCK_TTL, RATE_LIMIT_WINDOW, CacheKeys

__all__ = [
    "CONVERSATION_LOCK_TTL",
    "RATE_LIMIT_WINDOW",
    "CacheKeys",
    "RedisClient",
]
