"""Bounded retry with exponential backoff and jitter.

`with_retry` runs an async operation up to ``max_retries + 1`` times. Between
attempts it sleeps for ``min(base * 2**attempt, max)`` milliseconds plus a
uniform random jitter in ``[0, 1000)`` ms, which keeps many clients that
failed together from retrying together.

It stops early on success, and on the first error the retry predicate
rejects. Client errors such as 400 or 404 therefore fail with no added
latency.

The loop itself is tenacity's `AsyncRetrying`; this module supplies the
stop, wait and retry strategies that give it the behaviour above.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Final

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.retry import retry_base
from tenacity.wait import wait_base

from .errors import is_retryable
from .protocols import RetryPredicate

logger = logging.getLogger(__name__)

JITTER_MS: Final[float] = 1000
"""Upper bound (exclusive) of the random jitter added to each delay."""

_DEFAULT_MAX_RETRIES: Final[int] = 3
_DEFAULT_BASE_DELAY_MS: Final[float] = 1000
_DEFAULT_MAX_DELAY_MS: Final[float] = 10000


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry policy for one logical call.

    Attributes:
        max_retries: Retries after the first attempt. Total attempts never
            exceed ``max_retries + 1``.
        base_delay_ms: Delay before the first retry, doubled per attempt.
        max_delay_ms: Cap on the exponential part of the delay.
        retry_condition: Predicate deciding whether an error is worth
            another attempt. Not consulted after the final attempt.
    """

    max_retries: int = _DEFAULT_MAX_RETRIES
    base_delay_ms: float = _DEFAULT_BASE_DELAY_MS
    max_delay_ms: float = _DEFAULT_MAX_DELAY_MS
    retry_condition: RetryPredicate = field(default=is_retryable)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < 0:
            raise ValueError(f"max_delay_ms must be >= 0, got {self.max_delay_ms}")

def backoff_delay_ms(attempt: int, config: RetryConfig) -> float:
    """Exponential part of the delay after failed attempt `attempt` (0-based)."""
    return min(config.base_delay_ms * (2**attempt), config.max_delay_ms)


class wait_jitter(wait_base):
    """Uniform jitter in ``[0, JITTER_MS)`` ms, drawn from an injectable source."""

    def __init__(self, rand: Callable[[], float] = random.random) -> None:
        self._rand = rand

    def __call__(self, retry_state: RetryCallState) -> float:
        return self._rand() * JITTER_MS / 1000


class retry_if_condition(retry_base):
    """Consult the policy's predicate for every attempt but the last.

    Cancellation and other non-`Exception` errors are never retried. Once
    the attempt budget is spent the predicate is skipped and the stop
    strategy ends the loop.
    """

    def __init__(self, config: RetryConfig) -> None:
        self._max_attempts = config.max_retries + 1
        self._predicate = retry_if_exception(config.retry_condition)

    def __call__(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        if not isinstance(outcome.exception(), Exception):
            return False
        if retry_state.attempt_number >= self._max_attempts:
            return True
        return self._predicate(retry_state)


def _log_retry(max_attempts: int) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        delay_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Attempt %d/%d failed (%s); retrying in %.0f ms",
            retry_state.attempt_number,
            max_attempts,
            retry_state.outcome.exception() if retry_state.outcome else None,
            delay_s * 1000,
        )

    return log


async def with_retry[T](
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Run `operation` with retries.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        config: Retry policy. Defaults to `RetryConfig()`.
        sleep: Awaitable sleep taking seconds. Injected by tests.
        rand: Source of uniform floats in ``[0, 1)`` for jitter.

    Returns:
        The first successful result.

    Raises:
        The error of the last attempt made, unchanged. Cancellation is
        propagated immediately and never retried.
    """
    cfg = config or RetryConfig()
    max_attempts = cfg.max_retries + 1

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=cfg.base_delay_ms / 1000, max=cfg.max_delay_ms / 1000
        )
        + wait_jitter(rand),
        retry=retry_if_condition(cfg),
        sleep=sleep,
        before_sleep=_log_retry(max_attempts),
        reraise=True,
    )
    return await retrying(operation)
