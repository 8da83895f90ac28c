"""
Retry controller for a single provider invocation.

Total attempts = retry_attempts + 1. After failed attempt i (0-indexed) the
controller waits (i + 1) * retry_multiplier seconds before trying again, so
the delay grows linearly: 0.3s, 0.6s, 0.9s... with the default multiplier.

There is no jitter and no cap on the delay. Large retry budgets therefore
wait a long time; callers choose the budget.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

import httpx

from llm_interface.errors import TERMINAL_ERRORS, ProviderError
from llm_interface.observability.metrics import llm_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_MULTIPLIER = 0.3


@dataclass(frozen=True)
class RetryState:
    attempts_remaining: int
    attempt_index: int = 0
    multiplier: float = DEFAULT_RETRY_MULTIPLIER

    def __post_init__(self) -> None:
        if self.attempts_remaining < 0 or self.attempt_index < 0:
            raise ValueError("retry counters must be non-negative")
        if self.multiplier <= 0:
            raise ValueError("retry multiplier must be positive")

    @property
    def exhausted(self) -> bool:
        return self.attempts_remaining == 0

    @property
    def delay_seconds(self) -> float:
        """Wait before the attempt that follows attempt_index."""
        return (self.attempt_index + 1) * self.multiplier

    def advance(self) -> RetryState:
        return replace(
            self,
            attempts_remaining=self.attempts_remaining - 1,
            attempt_index=self.attempt_index + 1,
        )


def error_payload(exc: BaseException) -> Any:
    """Structured diagnostic data carried by a failed call, if any."""
    if isinstance(exc, ProviderError):
        return exc.response_data
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return exc.response.json()
        except ValueError:
            return exc.response.text
    return getattr(exc, "response_data", None)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    retry_attempts: int = 0,
    retry_multiplier: float = DEFAULT_RETRY_MULTIPLIER,
    provider: str | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run fn until it succeeds or the attempt budget is spent.

    Configuration and message errors are raised on the first attempt.
    On exhaustion the last error's payload is logged and the error re-raised.
    """
    state = RetryState(attempts_remaining=retry_attempts, multiplier=retry_multiplier)
    label = provider or "unknown"

    while True:
        try:
            return await fn()
        except TERMINAL_ERRORS:
            raise
        except Exception as exc:
            if state.exhausted:
                logger.error(
                    "Response data: %s",
                    error_payload(exc),
                    extra={
                        "_extra": {
                            "provider": label,
                            "attempts": state.attempt_index + 1,
                            "error": str(exc)[:200],
                        }
                    },
                )
                raise

            delay = state.delay_seconds
            logger.warning(
                "Provider %s attempt %d failed: %s. Retrying in %.2fs",
                label,
                state.attempt_index + 1,
                exc,
                delay,
            )
            llm_retries.labels(provider=label).inc()
            await sleep(delay)
            state = state.advance()
