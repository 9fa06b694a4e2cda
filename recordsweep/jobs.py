"""
Named reconciliation jobs.

Each job is a fixed composition: drain the collections it needs, build any
lookup index, then classify and apply record by record. Mutating jobs drain
the primary collection completely before the first mutation; deleting while
paging by offset would shift later pages and silently skip records.

Only rejected input (``JobRejected``) and unreadable input (``ScanError``)
abort a job. Per-record failures end up in the result's error count.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .auth import Caller, require_admin
from .classify import (
    Classifier,
    classify_date,
    classify_date_padding,
    classify_invalid_date,
    classify_org_backfill,
    classify_org_scoped_delete,
    classify_orphan,
)
from .cleanup import DEFAULT_SENTINEL, classify_team_cleanup
from .env import Settings
from .errors import JobRejected, ScanError, StoreError
from .executor import SKIPPED, MutationExecutor, Outcome
from .logger import get_logger
from .normalize import canonical_date, is_valid_date, pad_date, read_field
from .relationships import build_index, field_getter, id_set
from .results import JobResult, ResultAggregator
from .retry import RetryPolicy
from .scanner import scan_all
from .schema import validate_job_params
from .storage import EntityStore, Record

logger = get_logger()

ATHLETE = "Athlete"
METRIC = "Metric"
METRIC_RECORD = "MetricRecord"

DIAGNOSE_SAMPLE_SIZE = 20


@dataclass
class JobContext:
    """
    Collaborators for one job invocation.

    ``cancel`` is anything with an ``is_set()`` method (e.g. threading.Event);
    it is checked before every record.
    """

    store: EntityStore
    caller: Optional[Caller]
    settings: Settings = field(default_factory=Settings)
    cancel: Any = None
    on_progress: Optional[Callable[[Dict[str, int]], None]] = None
    sleep: Callable[[float], None] = time.sleep

    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def load(self, entity: str, sort: str = "-created_date") -> List[Record]:
        return list(scan_all(self.store, entity, page_size=self.settings.page_size, sort=sort))

    def executor(self, entity: str) -> MutationExecutor:
        policy = RetryPolicy(
            max_attempts=self.settings.retry_max_attempts,
            base_delay=self.settings.retry_base_delay,
        )
        return MutationExecutor(
            self.store,
            entity,
            policy=policy,
            pace_every=self.settings.pace_every,
            pace_delay=self.settings.pace_delay,
            sleep=self.sleep,
        )

    def aggregator(self, job: str) -> ResultAggregator:
        def progress(snapshot):
            logger.info(f"{job}: processed {snapshot['processed']} records so far", **snapshot)
            if self.on_progress:
                self.on_progress(snapshot)

        return ResultAggregator(job, on_progress=progress)


@dataclass(frozen=True)
class JobSpec:
    name: str
    func: Callable[..., JobResult]
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()
    description: str = ""


JOBS: Dict[str, JobSpec] = {}


def job(name: str, required: Tuple[str, ...] = (), optional: Tuple[str, ...] = ()):
    """Register a job function under ``name``."""
    def decorator(func):
        doc = (func.__doc__ or "").strip().splitlines()
        JOBS[name] = JobSpec(name, func, required, optional, doc[0] if doc else "")
        return func
    return decorator


def run_job(name: str, ctx: JobContext, **params) -> JobResult:
    """
    Run a registered job.

    Raises:
        JobRejected: Unknown job, unauthorized caller, or bad parameters
        ScanError: The store could not be read
    """
    spec = JOBS.get(name)
    if spec is None:
        raise JobRejected(f"Unknown job: {name}")

    require_admin(ctx.caller)

    # Unset optional parameters fall back to the job's defaults
    params = {k: v for k, v in params.items() if v is not None or k in spec.required}
    errors = validate_job_params(params, required=spec.required, optional=spec.optional)
    if errors:
        raise JobRejected(errors[0], errors)

    logger.record_job_start()
    logger.info(f"Starting {name}", user=ctx.caller.user_id, **params)
    try:
        result = spec.func(ctx, **params)
    except ScanError as e:
        logger.record_job_failure("ScanError")
        logger.error(f"{name} aborted", error=str(e))
        raise

    logger.info(
        f"{name} complete",
        cancelled=result.cancelled,
        total_scanned=result.total_scanned,
        **result.counts,
    )
    return result


def _reconcile(
    ctx: JobContext,
    records: Iterable[Record],
    classify: Classifier,
    executor: MutationExecutor,
    agg: ResultAggregator,
) -> bool:
    """Classify and apply each record in order. Returns True if cancelled."""
    for record in records:
        if ctx.cancelled():
            logger.warning(f"{agg.job} cancelled", processed=agg.processed)
            return True
        agg.record(executor.apply(record, classify(record)))
    return False


def _org_matches(organization_id: str) -> Callable[[Record], bool]:
    return lambda record: read_field(record, "organization_id") == organization_id


@job("backfill-org-ids")
def backfill_org_ids(ctx: JobContext) -> JobResult:
    """Fill missing organization_id on records (from their athlete) and metrics (from their records)."""
    athletes = ctx.load(ATHLETE)
    records = ctx.load(METRIC_RECORD)
    metrics = ctx.load(METRIC)
    tie_break = ctx.settings.tie_break

    athlete_orgs = build_index(
        athletes, field_getter("id"), field_getter("organization_id"), tie_break=tie_break
    )

    agg = ctx.aggregator("backfill-org-ids")
    agg.scanned(len(records))
    cancelled = _reconcile(
        ctx, records, classify_org_backfill(athlete_orgs), ctx.executor(METRIC_RECORD), agg
    )

    # A metric inherits the organization of the first athlete seen using it
    metric_orgs = build_index(
        records,
        field_getter("metric_id"),
        lambda r: athlete_orgs.get(read_field(r, "athlete_id")),
        tie_break=tie_break,
    )
    metric_agg = ResultAggregator("backfill-org-ids:metrics")
    metric_agg.scanned(len(metrics))
    if not cancelled:
        cancelled = _reconcile(
            ctx,
            metrics,
            classify_org_backfill(metric_orgs, key_field="id"),
            ctx.executor(METRIC),
            metric_agg,
        )

    metric_result = metric_agg.summarize(cancelled=cancelled)
    return agg.summarize(
        cancelled=cancelled,
        details={
            "athletes_indexed": len(athlete_orgs),
            "metrics": {
                "counts": metric_result.counts,
                "total_scanned": metric_result.total_scanned,
                "sampled_errors": metric_result.sampled_errors,
            },
        },
    )


@job("delete-orphans", required=("organization_id",))
def delete_orphans(ctx: JobContext, organization_id: str) -> JobResult:
    """Delete an organization's records whose athlete is not one of its athletes."""
    try:
        athletes = ctx.store.filter(ATHLETE, organization_id=organization_id)
    except StoreError as e:
        raise ScanError(f"Failed to filter {ATHLETE}: {e}") from e
    known = id_set(athletes)
    logger.info(f"Found {len(known)} athletes in organization", organization_id=organization_id)

    records = ctx.load(METRIC_RECORD, sort="-recorded_date")
    candidates = [r for r in records if _org_matches(organization_id)(r)]

    agg = ctx.aggregator("delete-orphans")
    agg.scanned(len(records))
    cancelled = _reconcile(ctx, candidates, classify_orphan(known), ctx.executor(METRIC_RECORD), agg)
    return agg.summarize(
        cancelled=cancelled,
        details={"organization_id": organization_id, "organization_records": len(candidates)},
    )


def _date_job(ctx: JobContext, name: str, classify: Classifier) -> JobResult:
    records = ctx.load(METRIC_RECORD, sort="-recorded_date")
    agg = ctx.aggregator(name)
    agg.scanned(len(records))
    cancelled = _reconcile(ctx, records, classify, ctx.executor(METRIC_RECORD), agg)
    return agg.summarize(cancelled=cancelled)


@job("delete-invalid-dates")
def delete_invalid_dates(ctx: JobContext) -> JobResult:
    """Delete records whose recorded_date is empty, a placeholder, or not a calendar date."""
    return _date_job(ctx, "delete-invalid-dates", classify_invalid_date)


@job("fix-dates")
def fix_dates(ctx: JobContext) -> JobResult:
    """Delete records with invalid dates and zero-pad the valid ones."""
    return _date_job(ctx, "fix-dates", classify_date)


@job("fix-date-padding")
def fix_date_padding(ctx: JobContext) -> JobResult:
    """Zero-pad month and day of recorded_date; never deletes."""
    return _date_job(ctx, "fix-date-padding", classify_date_padding)


@job("delete-org-records", required=("organization_id",))
def delete_org_records(ctx: JobContext, organization_id: str) -> JobResult:
    """Delete every record belonging to one organization."""
    records = ctx.load(METRIC_RECORD)
    agg = ctx.aggregator("delete-org-records")
    agg.scanned(len(records))
    cancelled = _reconcile(
        ctx,
        records,
        classify_org_scoped_delete(organization_id),
        ctx.executor(METRIC_RECORD),
        agg,
    )
    return agg.summarize(cancelled=cancelled, details={"organization_id": organization_id})


@job("cleanup-unknown-teams", required=("organization_id",), optional=("sentinel",))
def cleanup_unknown_teams(
    ctx: JobContext, organization_id: str, sentinel: str = DEFAULT_SENTINEL
) -> JobResult:
    """Remove the placeholder team id from an organization's athletes."""
    athletes = ctx.load(ATHLETE)
    members = [a for a in athletes if _org_matches(organization_id)(a)]
    logger.info(f"Found {len(members)} athletes in organization", organization_id=organization_id)

    agg = ctx.aggregator("cleanup-unknown-teams")
    agg.scanned(len(athletes))
    cancelled = _reconcile(ctx, members, classify_team_cleanup(sentinel), ctx.executor(ATHLETE), agg)
    return agg.summarize(
        cancelled=cancelled,
        details={"organization_id": organization_id, "sentinel": sentinel},
    )


@job("diagnose-dates")
def diagnose_dates(ctx: JobContext) -> JobResult:
    """Report invalid and unpadded dates without changing anything."""
    records = ctx.load(METRIC_RECORD, sort="-recorded_date")
    agg = ctx.aggregator("diagnose-dates")
    agg.scanned(len(records))

    invalid_samples = []
    checked = 0
    invalid = 0
    unpadded = 0
    formats: Dict[str, int] = {}
    valid_dates = []
    cancelled = False

    for record in records:
        if ctx.cancelled():
            cancelled = True
            break
        checked += 1
        value = read_field(record, "recorded_date")
        if not is_valid_date(value):
            invalid += 1
            agg.record(Outcome(SKIPPED, record.get("id"), "invalid date"))
            if len(invalid_samples) < DIAGNOSE_SAMPLE_SIZE:
                invalid_samples.append({
                    "id": record.get("id"),
                    "athlete_id": read_field(record, "athlete_id"),
                    "metric_id": read_field(record, "metric_id"),
                    "recorded_date": value,
                    "value": read_field(record, "value"),
                })
        else:
            padded = pad_date(value.strip())
            if padded is not None and padded != value:
                unpadded += 1
            if value in formats or len(formats) < DIAGNOSE_SAMPLE_SIZE:
                formats[value] = formats.get(value, 0) + 1
            valid_dates.append(canonical_date(value))
            agg.record(Outcome(SKIPPED, record.get("id"), "date ok"))

    details = {
        "valid_records": checked - invalid,
        "invalid_records": invalid,
        "unpadded_records": unpadded,
        "percentage_invalid": f"{(invalid / checked * 100) if checked else 0:.2f}%",
        "invalid_samples": invalid_samples,
        "date_format_samples": [{"date": d, "count": c} for d, c in formats.items()],
        "date_range": {"earliest": min(valid_dates), "latest": max(valid_dates)} if valid_dates else None,
    }
    return agg.summarize(cancelled=cancelled, details=details)
