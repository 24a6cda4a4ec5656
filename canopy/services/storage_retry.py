"""
Bounded retry for transient storage failures.

Shared by every service that reads or writes ledger state. Only
TransientStorageError is retried; business errors propagate on the first
attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from canopy.core.config import settings
from canopy.errors import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleeper = Callable[[float], Awaitable[Any]]


class StorageRetry:
    """Retry policy with linear backoff (backoff * attempt) and an injectable sleeper."""

    def __init__(
        self,
        attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleeper: Sleeper = asyncio.sleep,
    ):
        attempts = settings.LEDGER_RETRY_ATTEMPTS if attempts is None else attempts
        # 0 or less still makes the single initial attempt
        self.attempts = max(1, attempts)
        self.backoff_seconds = (
            settings.LEDGER_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.sleeper = sleeper

    async def run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await call()
            except TransientStorageError as exc:
                if attempt >= self.attempts:
                    logger.error("Storage %s failed after %s attempts: %s", operation, attempt, exc)
                    raise
                wait_seconds = self.backoff_seconds * attempt
                logger.warning(
                    "Transient storage error during %s (attempt %s/%s), retrying in %.2fs",
                    operation,
                    attempt,
                    self.attempts,
                    wait_seconds,
                )
                await self.sleeper(wait_seconds)
                attempt += 1
