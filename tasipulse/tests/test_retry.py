"""
Retry helper tests.
"""

import pytest
from tasipulse.scripts.retry import RetryPolicy, exponential_backoff, linear_backoff, retry_call


class Flaky:
    def __init__(self, failures, error=RuntimeError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


def test_backoff_functions():
    assert [linear_backoff(20)(n) for n in (1, 2, 3)] == [20, 40, 60]
    assert [exponential_backoff(1, cap=5)(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]


def test_retry_until_success(sleeps):
    func = Flaky(2)
    policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(10))

    assert retry_call(func, policy, should_retry=lambda e: True, sleep=sleeps) == "ok"
    assert func.calls == 3
    assert sleeps.calls == [10, 20]


def test_retry_gives_up_after_max_attempts(sleeps):
    func = Flaky(5)
    with pytest.raises(RuntimeError, match="failure 3"):
        retry_call(func, RetryPolicy(3, linear_backoff(1)), should_retry=lambda e: True, sleep=sleeps)
    assert func.calls == 3
    assert len(sleeps.calls) == 2


def test_non_retryable_error_propagates_immediately(sleeps):
    func = Flaky(1, error=ValueError)
    with pytest.raises(ValueError):
        retry_call(func, RetryPolicy(5, linear_backoff(1)),
                   should_retry=lambda e: isinstance(e, KeyError), sleep=sleeps)
    assert func.calls == 1
    assert sleeps.calls == []


def test_on_retry_callback(sleeps):
    seen = []
    retry_call(Flaky(1), RetryPolicy(2, linear_backoff(7)), should_retry=lambda e: True, sleep=sleeps,
               on_retry=lambda attempt, delay, error: seen.append((attempt, delay, str(error))))
    assert seen == [(1, 7.0, "failure 1")]
