import argparse
import json
import os
import signal
import threading
from pathlib import Path

from . import __version__
from .auth import Caller
from .backup import export_backup, import_backup
from .env import load_env, load_settings
from .errors import JobRejected, ScanError
from .jobs import JOBS, JobContext, run_job
from .logger import get_logger
from .remote import HttpEntityStore
from .results import JobResult
from .storage import SqlEntityStore


def build_store(args: argparse.Namespace, settings):
    api_url = getattr(args, "api_url", None) or settings.api_url
    if api_url and not getattr(args, "db", None):
        return HttpEntityStore(api_url, api_key=settings.api_key, app_id=settings.app_id)
    return SqlEntityStore(Path(args.db) if getattr(args, "db", None) else settings.db_path)


def _load_settings():
    try:
        return load_settings()
    except ValueError as e:
        raise SystemExit(f"Configuration error: {e}")


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_jobs(args: argparse.Namespace) -> None:
    for name, spec in sorted(JOBS.items()):
        params = " ".join([f"--{p.replace('_', '-')}" for p in spec.required])
        print(f"{name:24} {spec.description}" + (f" (requires {params})" if params else ""))


def cmd_run(args: argparse.Namespace) -> None:
    settings = _load_settings()
    if args.page_size:
        settings.page_size = args.page_size
    if args.tie_break:
        settings.tie_break = args.tie_break

    logger = get_logger()
    logger.set_level(settings.log_level)
    store = build_store(args, settings)
    caller = Caller(user_id=args.user or os.getenv("USER", "cli"), role=args.role)

    # First Ctrl-C stops between records and still reports what was done
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())

    ctx = JobContext(store=store, caller=caller, settings=settings, cancel=cancel)
    params = {"organization_id": args.org, "sentinel": args.sentinel}
    try:
        result = run_job(args.job, ctx, **params)
    except JobRejected as e:
        _print(JobResult.failure(args.job, str(e)).to_dict())
        raise SystemExit(1)
    except ScanError as e:
        _print(JobResult.failure(args.job, str(e)).to_dict())
        raise SystemExit(2)
    finally:
        signal.signal(signal.SIGINT, previous)
        logger.log_metrics_summary()

    _print(result.to_dict())


def cmd_backup(args: argparse.Namespace) -> None:
    settings = _load_settings()
    store = build_store(args, settings)
    try:
        stats = export_backup(store, Path(args.out), page_size=settings.page_size)
    except ScanError as e:
        raise SystemExit(f"Backup failed: {e}")
    print(f"Backup written to {args.out}")
    for key, count in stats.items():
        print(f"  {key}: {count}")


def cmd_restore(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    settings = _load_settings()
    store = SqlEntityStore(Path(args.db) if args.db else settings.db_path)
    imported, skipped, errors = import_backup(input_path, store)
    print(f"Done. imported={imported} skipped={skipped} errors={errors}")


def main():
    # Load .env if present (RECORDSWEEP_API_URL, RECORDSWEEP_API_KEY, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="recordsweep", description="Bulk reconciliation jobs for performance records")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    lst = subparsers.add_parser("jobs", help="List available jobs")
    lst.set_defaults(func=cmd_jobs)

    run = subparsers.add_parser("run", help="Run a reconciliation job and print its summary")
    run.add_argument("job", choices=sorted(JOBS), help="Job name")
    run.add_argument("--org", help="Organization id for organization-scoped jobs")
    run.add_argument("--sentinel", help="Placeholder team id to remove (cleanup-unknown-teams, default: unknown)")
    run.add_argument("--role", default=os.getenv("RECORDSWEEP_ROLE", "user"), help="Caller role (jobs require admin)")
    run.add_argument("--user", help="Caller id recorded in the logs")
    run.add_argument("--db", help="SQLite database path (default: RECORDSWEEP_DB)")
    run.add_argument("--api-url", help="Managed backend base URL (or set RECORDSWEEP_API_URL)")
    run.add_argument("--page-size", type=int, help="Records per page (default: RECORDSWEEP_PAGE_SIZE or 5000)")
    run.add_argument("--tie-break", choices=["first", "lowest_id"], help="Duplicate-key policy for inferred values")
    run.set_defaults(func=cmd_run)

    bak = subparsers.add_parser("backup", help="Export athletes, metrics and records to a JSON file")
    bak.add_argument("--out", required=True, help="Output JSON path")
    bak.add_argument("--db", help="SQLite database path (default: RECORDSWEEP_DB)")
    bak.add_argument("--api-url", help="Managed backend base URL (or set RECORDSWEEP_API_URL)")
    bak.set_defaults(func=cmd_backup)

    rst = subparsers.add_parser("restore", help="Load a JSON backup into a SQLite database")
    rst.add_argument("--input", required=True, help="Backup JSON path")
    rst.add_argument("--db", help="SQLite database path (default: RECORDSWEEP_DB)")
    rst.set_defaults(func=cmd_restore)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
