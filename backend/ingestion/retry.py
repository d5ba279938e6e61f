"""
Bounded exponential backoff for page fetches.

Orchestrators wrap each fetch in RetryPolicy.run; the reconciliation engine
itself never retries. Only transient failures are retried: transport errors
and HTTP 429/5xx. Anything else (4xx, parse errors) is raised at once, and
the last transient error is re-raised once attempts run out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from core.config import Settings

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _is_transient_status(status_code: Optional[int]) -> bool:
    if status_code is None:
        return False
    return status_code == 429 or status_code >= 500


def is_transient_error(exc: BaseException) -> bool:
    """True for errors worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return _is_transient_status(exc.response.status_code)
    # TcgplayerRequestError carries status_code; None means "success: false" payload.
    return _is_transient_status(getattr(exc, "status_code", None))


@dataclass
class RetryPolicy:
    attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            attempts=max(1, settings.sync_retry_attempts),
            base_delay_seconds=settings.sync_retry_base_delay_seconds,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(attempts=1)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based): base, 2*base, 4*base, ... capped."""
        return min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))

    async def run(self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        attempt = 1
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                if attempt >= self.attempts or not is_transient_error(exc):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Transient fetch failure (attempt %d/%d): %s; retrying in %.1fs",
                    attempt,
                    self.attempts,
                    exc,
                    delay,
                )
                await self.sleep(delay)
                attempt += 1
