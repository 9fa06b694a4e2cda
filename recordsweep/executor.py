"""
Applies classifier verdicts to the store, one record at a time.

A single record's failure never escapes ``apply``: throttled calls are retried
with exponential backoff, and anything still failing, store error or not,
comes back as a ``failed`` outcome so the job can move on to the next record.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from .classify import DELETE, SKIP, UPDATE, Verdict, describe
from .errors import RetryError, StoreError
from .logger import get_logger
from .retry import RetryPolicy, call_with_backoff
from .storage import EntityStore, Record

logger = get_logger()

UPDATED = "updated"
DELETED = "deleted"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    kind: str
    record_id: Optional[str] = None
    message: str = ""


class MutationExecutor:
    """
    Execute verdicts against one entity type.

    Args:
        store: Entity store to mutate
        entity: Entity type name the verdicts apply to
        policy: Backoff schedule for throttled calls
        pace_every: Sleep ``pace_delay`` after this many store mutations (0 = never)
        pace_delay: Pacing pause in seconds
        sleep: Sleep function, injectable for tests
    """

    def __init__(
        self,
        store: EntityStore,
        entity: str,
        policy: RetryPolicy = RetryPolicy(),
        pace_every: int = 100,
        pace_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.entity = entity
        self.policy = policy
        self.pace_every = pace_every
        self.pace_delay = pace_delay
        self.sleep = sleep
        self.mutations = 0

    def _on_retry(self, attempt, exception, delay):
        logger.record_retry()
        logger.warning(
            "Store throttled, backing off",
            entity=self.entity,
            attempt=attempt,
            delay=delay,
            error=str(exception),
        )

    def _call(self, func, *args):
        return call_with_backoff(
            func,
            *args,
            policy=self.policy,
            on_retry=self._on_retry,
            sleep=self.sleep,
        )

    def _pace(self):
        self.mutations += 1
        if self.pace_every and self.pace_delay and self.mutations % self.pace_every == 0:
            self.sleep(self.pace_delay)

    def apply(self, record: Record, verdict: Verdict) -> Outcome:
        """Apply one verdict. Failures come back as a ``failed`` outcome, never raised."""
        record_id = record.get("id")

        if verdict.action == SKIP:
            return Outcome(SKIPPED, record_id, verdict.reason)

        if not record_id:
            logger.record_error("MissingId")
            return Outcome(FAILED, None, "record has no id")

        try:
            if verdict.action == UPDATE:
                self._call(self.store.update, self.entity, record_id, verdict.fields)
                kind = UPDATED
            elif verdict.action == DELETE:
                self._call(self.store.delete, self.entity, record_id)
                kind = DELETED
            else:
                return Outcome(FAILED, record_id, f"unknown action {verdict.action!r}")
        except RetryError as e:
            logger.record_error("RetryExhausted")
            logger.error("Giving up on record", entity=self.entity, record_id=record_id, error=str(e))
            return Outcome(FAILED, record_id, str(e))
        except StoreError as e:
            logger.record_error(type(e).__name__)
            logger.error(
                f"Failed to {verdict.action} record",
                entity=self.entity,
                record_id=record_id,
                error=str(e),
            )
            return Outcome(FAILED, record_id, str(e))
        except Exception as e:
            logger.record_error(type(e).__name__)
            logger.error(
                f"Unexpected error during {verdict.action}",
                entity=self.entity,
                record_id=record_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return Outcome(FAILED, record_id, f"{type(e).__name__}: {e}")
        finally:
            self._pace()

        logger.debug(describe(verdict, record_id), entity=self.entity)
        return Outcome(kind, record_id, verdict.reason)
