"""Counters and bounded error samples for one job run."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .executor import DELETED, FAILED, SKIPPED, UPDATED, Outcome

MAX_SAMPLED_ERRORS = 10

_COUNT_KEYS = {
    UPDATED: "updated",
    SKIPPED: "skipped",
    DELETED: "deleted",
    FAILED: "errors",
}


@dataclass
class JobResult:
    job: str
    success: bool
    counts: Dict[str, int]
    total_scanned: int
    sampled_errors: List[Dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "job": self.job,
            "success": self.success,
            "counts": dict(self.counts),
            "total_scanned": self.total_scanned,
            "sampled_errors": [dict(e) for e in self.sampled_errors],
        }
        if self.cancelled:
            data["cancelled"] = True
        if self.details:
            data["details"] = self.details
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def failure(cls, job: str, error: str) -> "JobResult":
        """Result for a job that was rejected or could not read its input."""
        return cls(
            job=job,
            success=False,
            counts={"updated": 0, "skipped": 0, "deleted": 0, "errors": 0},
            total_scanned=0,
            error=error,
        )


class ResultAggregator:
    """
    Accumulates outcomes for a single job run.

    Not thread safe; a job feeds it from one loop. ``on_progress`` receives a
    counters snapshot every ``progress_every`` recorded outcomes.
    """

    def __init__(
        self,
        job: str,
        max_samples: int = MAX_SAMPLED_ERRORS,
        on_progress: Optional[Callable[[Dict[str, int]], None]] = None,
        progress_every: int = 100,
    ):
        self.job = job
        self.max_samples = max_samples
        self.on_progress = on_progress
        self.progress_every = progress_every
        self.counts = {"updated": 0, "skipped": 0, "deleted": 0, "errors": 0}
        self.total_scanned = 0
        self.sampled_errors: List[Dict[str, Any]] = []
        self.processed = 0

    def scanned(self, n: int = 1) -> None:
        self.total_scanned += n

    def record(self, outcome: Outcome) -> None:
        self.counts[_COUNT_KEYS[outcome.kind]] += 1
        if outcome.kind == FAILED and len(self.sampled_errors) < self.max_samples:
            self.sampled_errors.append({"id": outcome.record_id, "message": outcome.message})

        self.processed += 1
        if self.on_progress and self.progress_every and self.processed % self.progress_every == 0:
            self.on_progress(self.snapshot())

    def snapshot(self) -> Dict[str, int]:
        snap = dict(self.counts)
        snap["processed"] = self.processed
        snap["total_scanned"] = self.total_scanned
        return snap

    def summarize(self, success: bool = True, cancelled: bool = False, details=None) -> JobResult:
        return JobResult(
            job=self.job,
            success=success,
            counts=dict(self.counts),
            total_scanned=self.total_scanned,
            sampled_errors=list(self.sampled_errors),
            cancelled=cancelled,
            details=dict(details or {}),
        )
