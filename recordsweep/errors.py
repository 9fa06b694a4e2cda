"""
Exception hierarchy for reconciliation jobs and the entity stores they use.

Only ``JobRejected`` and ``ScanError`` abort a job. Store errors raised while
mutating a single record are absorbed by the executor and counted.
"""


class SweepError(Exception):
    """Base class for all recordsweep errors."""
    pass


class JobRejected(SweepError):
    """Raised before any scan when a caller or its parameters are not acceptable."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class ScanError(SweepError):
    """Raised when a job cannot read its input data."""
    pass


class StoreError(SweepError):
    """Base class for failures reported by an entity store."""
    pass


class ThrottledError(StoreError):
    """Transient failure: the store asked us to slow down or was briefly unreachable."""

    def __init__(self, message: str, retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after


class PermanentStoreError(StoreError):
    """The store rejected the call and retrying will not help."""
    pass


class RecordNotFound(PermanentStoreError):
    pass


class RetryError(SweepError):
    """Raised when all retry attempts are exhausted."""
    pass
