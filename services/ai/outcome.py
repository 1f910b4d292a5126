"""Shared result envelope and best-effort persistence for feature services."""

from collections.abc import Awaitable
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass
class FeatureOutcome[T]:
    """What a feature hands back to the API layer.

    ``persisted`` is None when the request had nothing to persist
    (e.g. no ``adId``), False when the write failed after a successful
    computation.
    """

    result: T
    generation_time_ms: int
    persisted: bool | None = None
    cached: bool = False


async def persist_best_effort(feature: str, write: Awaitable[object]) -> bool:
    """Await a domain write; a failing store is logged, never raised."""
    try:
        await write
    except Exception:
        log.warning("result_persist_failed", feature=feature, exc_info=True)
        return False
    return True
