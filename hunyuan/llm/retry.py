"""Bounded async retry for outbound calls.

The orchestrator only knows ``await retry.execute(operation)``; which
failures are retried and how long to wait lives here.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from hunyuan.errors import APIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt bound and exponential backoff with optional full jitter."""

    max_attempts: int = 3
    initial_delay_s: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_s: float = 10.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")

    def delay_for(self, retry_index: int) -> float:
        """Sleep before retry number *retry_index* (1-based)."""
        base = self.initial_delay_s * (self.backoff_multiplier ** max(0, retry_index - 1))
        base = min(self.max_delay_s, base)
        if base <= 0 or not self.jitter:
            return max(0.0, base)
        return random.random() * base  # noqa: S311


def should_retry(exc: BaseException) -> bool:
    """
    Transport failures, retryable HTTP statuses and provider errors flagged
    retryable are retried. Everything else, including cancellation and our
    own configuration/validation errors, propagates at once.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, APIError):
        if exc.retryable is not None:
            return exc.retryable
        return exc.status_code in RETRYABLE_STATUS_CODES
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


class RetryTemplate:
    """Runs an async operation under a ``RetryPolicy``."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        retry_on: Callable[[BaseException], bool] = should_retry,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._retry_on = retry_on

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Await ``operation()`` until it succeeds or the policy gives up.

        The initial attempt counts toward ``max_attempts``. The last error is
        re-raised unchanged.
        """
        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if attempt >= attempts or not self._retry_on(exc):
                    raise
                delay = self.policy.delay_for(attempt)
                logger.warning(
                    "Call failed (attempt %d/%d): %s; retrying in %.2fs",
                    attempt, attempts, exc, delay,
                )
                if delay > 0:
                    await asyncio.sleep(delay)
        raise RuntimeError("unreachable")  # pragma: no cover
