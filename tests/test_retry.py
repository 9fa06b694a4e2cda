"""
Tests for retry logic with exponential backoff.
"""

import pytest
from recordsweep.errors import PermanentStoreError, ThrottledError
from recordsweep.retry import (
    RetryPolicy,
    call_with_backoff,
    should_retry_http_status,
    RetryError,
)


class TestRetryPolicy:
    """Test the delay schedule."""

    def test_delays_double_from_base(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5)
        assert list(policy.delays()) == [0.5, 1.0, 2.0, 4.0]

    def test_delays_capped(self):
        policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=3.0)
        assert list(policy.delays()) == [1.0, 2.0, 3.0, 3.0, 3.0]

    def test_single_attempt_has_no_delays(self):
        assert list(RetryPolicy(max_attempts=1).delays()) == []

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestCallWithBackoff:
    """Test retrying a single call."""

    def test_success_on_first_try(self, no_sleep):
        """Function that succeeds immediately should not retry."""
        call_count = [0]

        def succeeds():
            call_count[0] += 1
            return "success"

        assert call_with_backoff(succeeds, sleep=no_sleep) == "success"
        assert call_count[0] == 1
        assert no_sleep.delays == []

    def test_retry_then_succeed(self, no_sleep):
        """Throttled twice, then succeeds on the third attempt."""
        call_count = [0]

        def throttled_twice():
            call_count[0] += 1
            if call_count[0] < 3:
                raise ThrottledError("429 Too Many Requests")
            return "success"

        policy = RetryPolicy(max_attempts=5, base_delay=0.5)
        assert call_with_backoff(throttled_twice, policy=policy, sleep=no_sleep) == "success"
        assert call_count[0] == 3
        assert no_sleep.delays == [0.5, 1.0]

    def test_all_attempts_exhausted(self, no_sleep):
        """Should raise RetryError after max_attempts throttled calls."""
        call_count = [0]

        def always_throttled():
            call_count[0] += 1
            raise ThrottledError("rate limited")

        with pytest.raises(RetryError):
            call_with_backoff(always_throttled, policy=RetryPolicy(max_attempts=3, base_delay=0.1), sleep=no_sleep)

        assert call_count[0] == 3
        assert no_sleep.delays == [0.1, 0.2]

    def test_permanent_error_not_retried(self, no_sleep):
        """Non-transient errors propagate on the first attempt."""
        call_count = [0]

        def rejected():
            call_count[0] += 1
            raise PermanentStoreError("validation failed")

        with pytest.raises(PermanentStoreError):
            call_with_backoff(rejected, sleep=no_sleep)

        assert call_count[0] == 1
        assert no_sleep.delays == []

    def test_retry_after_hint_raises_delay(self, no_sleep):
        attempts = [0]

        def hinted():
            attempts[0] += 1
            if attempts[0] == 1:
                raise ThrottledError("slow down", retry_after=2)
            return "ok"

        policy = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=10.0)
        call_with_backoff(hinted, policy=policy, sleep=no_sleep)
        assert no_sleep.delays == [2.0]

    def test_retry_after_hint_respects_ceiling(self, no_sleep):
        attempts = [0]

        def hinted():
            attempts[0] += 1
            if attempts[0] == 1:
                raise ThrottledError("slow down", retry_after=120)
            return "ok"

        policy = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=5.0)
        call_with_backoff(hinted, policy=policy, sleep=no_sleep)
        assert no_sleep.delays == [5.0]

    def test_on_retry_callback(self, no_sleep):
        seen = []

        def always_throttled():
            raise ThrottledError("429")

        with pytest.raises(RetryError):
            call_with_backoff(
                always_throttled,
                policy=RetryPolicy(max_attempts=3, base_delay=0.01),
                on_retry=lambda attempt, exc, delay: seen.append((attempt, delay)),
                sleep=no_sleep,
            )

        assert seen == [(1, 0.01), (2, 0.02)]

    def test_passes_arguments(self, no_sleep):
        def add(a, b=0):
            return a + b

        assert call_with_backoff(add, 2, b=3, sleep=no_sleep) == 5


class TestHttpStatus:

    def test_http_status_retry_logic(self):
        assert should_retry_http_status(429)
        assert should_retry_http_status(503)
        assert should_retry_http_status(504)

        assert not should_retry_http_status(200)
        assert not should_retry_http_status(400)
        assert not should_retry_http_status(404)
        assert not should_retry_http_status(500)
