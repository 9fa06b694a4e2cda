"""
Retry logic with exponential backoff for throttled store calls.

Only transient failures (``ThrottledError`` by default) are retried. Anything
else propagates on the first attempt so the caller can mark the record as
failed and move on.
"""

import time
from dataclasses import dataclass
from typing import Callable, Type, Tuple, Optional

from .errors import RetryError, ThrottledError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff settings for a single store call.

    Args:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Multiplier applied to the delay after each retry
    """

    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 30.0
    exponential_base: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delays(self):
        """Yield the delay used before each retry, in order."""
        delay = self.base_delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.exponential_base


def call_with_backoff(
    func: Callable,
    *args,
    policy: RetryPolicy = RetryPolicy(),
    exceptions: Tuple[Type[Exception], ...] = (ThrottledError,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
):
    """
    Call ``func`` and retry it with exponential backoff on transient errors.

    Args:
        func: Callable to invoke
        policy: Attempt count and delay schedule
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback function(attempt, exception, delay)
        sleep: Sleep function, injectable for tests

    Raises:
        RetryError: All attempts raised one of ``exceptions``
        Exception: Any other exception is re-raised untouched
    """
    delays = policy.delays()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            delay = next(delays, None)
            if delay is None:
                raise RetryError(
                    f"Failed after {policy.max_attempts} attempts: {str(e)}"
                ) from e

            # Honour a server hint, but never past the policy ceiling
            hint = getattr(e, "retry_after", None)
            if hint:
                delay = min(max(delay, float(hint)), policy.max_delay)

            if on_retry:
                on_retry(attempt, e, delay)

            sleep(delay)

    # Should not reach here, max_attempts is validated
    raise RetryError("Unexpected retry exhaustion")


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Args:
        status_code: HTTP status code

    Returns:
        True if should retry
    """
    retryable_codes = {
        408,  # Request Timeout
        429,  # Too Many Requests
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }

    return status_code in retryable_codes
