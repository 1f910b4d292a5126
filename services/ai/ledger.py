"""Usage and cache ledgers around model calls.

Both ledgers are best-effort: a failing store never fails the request that
triggered the write. Usage rows are append-only; cache rows are created on
first miss and only mutated through the atomic ``increment_cache_hit`` RPC.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from db.client import SupabaseClient
from db.models import AICacheCreate, AICacheEntry, UsageLogCreate
from db.repositories.ai_cache import AICacheRepository
from db.repositories.usage import UsageRepository

log = structlog.get_logger()


def canonical_json(value: Any) -> str:
    """Key-sorted compact JSON, stable across dict insertion orders."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def cache_key(feature_type: str, items: Iterable[Any], **params: Any) -> str:
    """sha256 over the feature, the items in canonical order, and extra params.

    Item order does not matter: ``[a, b]`` and ``[b, a]`` map to the same key.
    """
    parts = sorted(canonical_json(item) for item in items)
    material = canonical_json({"feature": feature_type, "items": parts, "params": params})
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class UsageLedger:
    """Append-only log of model invocations (``ai_usage_logs``)."""

    def __init__(self, db: SupabaseClient) -> None:
        self._repo = UsageRepository(db)

    async def record_invocation(
        self,
        feature_type: str,
        response_time_ms: int,
        success: bool,
        *,
        user_id: str | None = None,
        tokens_used: int | None = None,
        error_kind: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append one invocation row. Store failures are logged and swallowed."""
        entry = UsageLogCreate(
            user_id=user_id,
            feature_type=feature_type,
            response_time_ms=response_time_ms,
            success=success,
            tokens_used=tokens_used,
            error_kind=error_kind,
            metadata=metadata or {},
        )
        try:
            await self._repo.create(entry)
        except Exception:
            log.warning(
                "usage_log_failed",
                feature_type=feature_type,
                success=success,
                exc_info=True,
            )


class CacheLedger:
    """Memoized structured results with a time-to-live (``ai_cache``)."""

    def __init__(self, db: SupabaseClient, ttl_days: int = 7) -> None:
        self._repo = AICacheRepository(db)
        self._ttl = timedelta(days=ttl_days)

    async def lookup(self, feature_type: str, key: str) -> AICacheEntry | None:
        """Unexpired entry for ``key``; store errors count as a miss."""
        try:
            entry = await self._repo.get_valid(key, feature_type, datetime.now(UTC))
        except Exception:
            log.warning("cache_lookup_failed", feature_type=feature_type, cache_key=key, exc_info=True)
            return None
        log.debug("cache_lookup", feature_type=feature_type, cache_key=key, hit=entry is not None)
        return entry

    async def store(
        self,
        feature_type: str,
        key: str,
        payload: dict[str, Any],
        *,
        tokens_used: int | None = None,
    ) -> bool:
        """Persist ``payload`` under ``key``. Returns False if the store failed."""
        entry = AICacheCreate(
            cache_key=key,
            feature_type=feature_type,
            input_hash=key,
            cached_response=payload,
            tokens_used=tokens_used,
            expires_at=datetime.now(UTC) + self._ttl,
        )
        try:
            await self._repo.create(entry)
        except Exception:
            log.warning("cache_store_failed", feature_type=feature_type, cache_key=key, exc_info=True)
            return False
        return True

    async def record_hit(self, key: str, tokens_saved: int = 0) -> None:
        """Atomically increment hit_count and tokens_saved for ``key``."""
        try:
            await self._repo.increment_hit(key, tokens_saved)
        except Exception:
            log.warning("cache_hit_record_failed", cache_key=key, exc_info=True)
