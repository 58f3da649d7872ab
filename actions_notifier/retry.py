"""Bounded exponential backoff for outbound GitHub and Slack calls."""
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 4.0

    def delay_for(self, attempt: int) -> float:
        """Sleep before attempt `attempt + 1`: base * 2^(attempt-1), capped."""
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)


def call_with_retry(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool] = lambda _exc: True,
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    attempts = max(1, policy.max_attempts)
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as exc:
            if attempt >= attempts or not is_retryable(exc):
                raise
            if on_retry:
                on_retry(attempt, exc)
            sleep(policy.delay_for(attempt))
            attempt += 1
