"""Repository for the ai_cache table (memoized model results)."""

from datetime import datetime

from db.models import AICacheCreate, AICacheEntry
from db.repositories.base import BaseRepository

_TABLE = "ai_cache"


class AICacheRepository(BaseRepository):
    """Lookup/store for cached model payloads. Hit counting is an atomic RPC."""

    async def get_valid(self, cache_key: str, feature_type: str, now: datetime) -> AICacheEntry | None:
        """Entry for ``cache_key`` that has not expired at ``now``."""
        resp = (
            await self._table(_TABLE)
            .select("*")
            .eq("cache_key", cache_key)
            .eq("feature_type", feature_type)
            .gt("expires_at", now.isoformat())
            .maybe_single()
            .execute()
        )
        row = self._single(resp)
        return AICacheEntry(**row) if row else None

    async def create(self, data: AICacheCreate) -> AICacheEntry:
        """Store a payload, replacing an expired row with the same key (UNIQUE cache_key)."""
        resp = await (
            self._table(_TABLE)
            .upsert(self._payload(data), on_conflict="cache_key")
            .execute()
        )
        row = self._first(resp)
        return AICacheEntry(**row) if row else AICacheEntry(**self._payload(data))

    async def increment_hit(self, cache_key: str, tokens_saved: int = 0) -> None:
        """Atomically bump hit_count and add to tokens_saved."""
        await self._db.rpc(
            "increment_cache_hit",
            {"cache_key_param": cache_key, "tokens_saved_param": tokens_saved},
        )
