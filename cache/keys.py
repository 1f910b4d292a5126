"""Redis key namespaces and TTL constants."""

# TTL values in seconds
RATE_LIMIT_WINDOW = 3600  # 1 hour (default for per-action rate limits)
CONVERSATION_LOCK_TTL = 60  # minimum chat lock lifetime
CONVERSATION_LOCK_MARGIN = 30  # lock time on top of the model request timeout


class CacheKeys:
    """Redis key builders for all namespaces."""

    @staticmethod
    def rate_limit(user_id: str, action: str) -> str:
        return f"rate:{user_id}:{action}"

    @staticmethod
    def conversation_lock(conversation_id: str) -> str:
        return f"chat_lock:{conversation_id}"
