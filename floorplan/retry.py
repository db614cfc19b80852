"""Explicit retry loop shared by the transport client and the provider services.

Backoff is linear: attempt n (1-based) waits `base_delay_ms * n` before the
next try. Sleeping goes through an injected coroutine so callers and tests can
run the policy without real time passing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)


def _never(_: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    """How many extra attempts to make, how long to wait, and on what."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    retryable: Callable[[BaseException], bool] = field(default=_never)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return self.base_delay_ms * attempt / 1000.0


async def run_with_retry(
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Optional[Sleep] = None,
    label: str = "call",
) -> T:
    """Await `call()` until it succeeds, fails terminally or retries run out.

    The last error is re-raised unchanged.
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        attempt += 1
        try:
            return await call()
        except Exception as e:
            if attempt > policy.max_retries or not policy.retryable(e):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "[%s] attempt %d failed (%s); retrying in %.1fs",
                label,
                attempt,
                type(e).__name__,
                delay,
            )
            await sleep(delay)
