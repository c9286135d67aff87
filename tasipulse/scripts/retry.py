"""
Retry helpers for flaky upstreams.

A RetryPolicy says how many attempts to make and how long to wait before
each retry; retry_call applies it to any callable, retrying only the errors
a predicate accepts.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tasipulse.scripts.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


def linear_backoff(base: float) -> Callable[[int], float]:
    """Wait base * attempt seconds after the given failed attempt (1-based)."""
    return lambda attempt: base * attempt


def exponential_backoff(base: float, cap: float = 300.0) -> Callable[[int], float]:
    """Wait base * 2**(attempt - 1) seconds, never more than ``cap``."""
    return lambda attempt: min(cap, base * (2 ** (attempt - 1)))


@dataclass
class RetryPolicy:
    """How many attempts to make and how long to sleep between them."""

    max_attempts: int
    backoff: Callable[[int], float]

    def delay_for(self, attempt: int) -> float:
        return max(0.0, float(self.backoff(attempt)))


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> T:
    """
    Call ``func`` until it succeeds or the policy gives up.

    Args:
        func: Zero-argument callable
        policy: Attempt budget and backoff
        should_retry: Predicate on the raised exception; False re-raises at once
        sleep: Sleep function (injected by tests)
        on_retry: Called with (attempt, delay, error) before each sleep

    Returns:
        Whatever ``func`` returns

    Raises:
        The last exception when attempts are exhausted or the error is not retryable
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except Exception as e:
            if not should_retry(e) or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(f"[Retry] Attempt {attempt}/{policy.max_attempts} failed ({e}); retrying in {delay:.0f}s")
            if on_retry:
                on_retry(attempt, delay, e)
            sleep(delay)
