"""Bounded retry for single-turn model calls.

Rules:
  - ModelFailedError: retry after ``base_delay * n`` seconds (n = 1-based attempt)
  - ModelOverloadedError: never retried, surfaces to the caller immediately
  - anything else (decode errors, caller bugs): never retried
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from app.exceptions import ModelFailedError

log = structlog.get_logger()


def retry_delay(attempt: int, base_delay: float) -> float:
    """Linear backoff: 1x, 2x, 3x ``base_delay`` for attempts 1, 2, 3."""
    return base_delay * attempt


async def retry_with_backoff[T](
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    base_delay: float = 1.0,
    operation: str = "model_call",
) -> T:
    """Execute ``func`` with up to ``max_retries`` extra attempts on transient model failures.

    Args:
        func: Zero-argument async callable to execute.
        max_retries: Maximum number of retry attempts (0 = no retry).
        base_delay: Base delay in seconds for linear backoff.
        operation: Human-readable name for logging.

    Returns:
        The result of func() on success.

    Raises:
        The last ModelFailedError once attempts are exhausted, or immediately
        any other exception.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except ModelFailedError as exc:
            attempt += 1
            if attempt > max_retries:
                raise

            delay = retry_delay(attempt, base_delay)
            log.warning(
                "model_retry",
                operation=operation,
                attempt=attempt,
                max_retries=max_retries,
                delay_s=round(delay, 2),
                error=str(exc)[:200],
            )
            await asyncio.sleep(delay)
