"""
DocMS CLI — service bootstrap and management commands.

Commands:
- docms run           — Start the service (same path as python -m docms)
- docms validate      — Validate docms.yaml, including scheduled job definitions
- docms init-db       — Create the platform tables
- docms jobs          — List configured jobs and their Celery Beat entries
- docms health        — Query a running instance's /health endpoint
- docms cleanup-logs  — Apply event log retention (delete / gzip old files)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from docms.engine.config import PlatformConfig, load_platform_config
from docms.engine.errors import ConfigError, DocMSError, ScheduleError, StartupError

logger = logging.getLogger("docms.cli")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docms",
        description="DocMS — Document Management System service",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_help = "Path to docms.yaml (default: auto-discover)"

    # docms run
    run_parser = subparsers.add_parser("run", help="Start the service")
    run_parser.add_argument("--config", help=config_help)
    run_parser.add_argument(
        "app_args", nargs=argparse.REMAINDER, help="Arguments forwarded to the runtime"
    )

    # docms validate
    validate_parser = subparsers.add_parser("validate", help="Validate docms.yaml")
    validate_parser.add_argument("--config", help=config_help)

    # docms init-db
    init_db_parser = subparsers.add_parser("init-db", help="Create the platform tables")
    init_db_parser.add_argument("--config", help=config_help)

    # docms jobs
    jobs_parser = subparsers.add_parser("jobs", help="List configured scheduled jobs")
    jobs_parser.add_argument("--config", help=config_help)

    # docms health
    health_parser = subparsers.add_parser("health", help="Query a running instance")
    health_parser.add_argument(
        "--url", default="http://localhost:8080", help="Base URL (default: http://localhost:8080)"
    )
    health_parser.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")

    # docms cleanup-logs
    cleanup_parser = subparsers.add_parser("cleanup-logs", help="Apply event log retention")
    cleanup_parser.add_argument("--config", help=config_help)

    args = parser.parse_args(argv)

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "init-db":
        return cmd_init_db(args)
    elif args.command == "jobs":
        return cmd_jobs(args)
    elif args.command == "health":
        return cmd_health(args)
    elif args.command == "cleanup-logs":
        return cmd_cleanup_logs(args)
    else:
        parser.print_help()
        return 0


def _load_config(config_path: Optional[str]) -> Optional[PlatformConfig]:
    """Load config for a command, printing [ERROR] and returning None on failure."""
    if config_path and not Path(config_path).exists():
        print(f"[ERROR] Config file not found: {config_path}")
        return None
    try:
        return load_platform_config(config_path)
    except ConfigError as e:
        print(f"[ERROR] {e.message}")
        for err in e.validation_errors or []:
            print(f"  - {err}")
        return None


def cmd_run(args: argparse.Namespace) -> int:
    """Start the service through the bootstrap entry point."""
    from docms.application import main as bootstrap

    config = _load_config(args.config)
    if config is None:
        return 1

    try:
        return bootstrap(args.app_args, config=config)
    except StartupError as e:
        print(f"[ERROR] {e.message}")
        if e.__cause__ is not None:
            print(f"  Caused by: {type(e.__cause__).__name__}: {e.__cause__}")
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate docms.yaml and the scheduled jobs it declares."""
    from docms.tasks.executor import TaskExecutor
    from docms.tasks.scheduler import JobScheduler

    config = _load_config(args.config)
    if config is None:
        return 1
    print(f"[OK] {config.name} {config.version} ({config.environment})")
    print(f"[OK] database: {config.database.url.split('@')[-1]}")
    print(f"[OK] tasks: backend={config.tasks.backend}, concurrency={config.tasks.concurrency}")

    scheduler = JobScheduler(TaskExecutor(config.tasks), config.scheduler)
    try:
        count = scheduler.load_jobs(config.scheduler.jobs, check_tasks=False)
    except ScheduleError as e:
        print(f"[ERROR] {e.message}")
        return 1
    print(f"[OK] scheduler: {count} job(s) valid")
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the platform tables in the configured database."""
    from docms.db.base import Base
    from docms.db.session import TransactionManager

    config = _load_config(args.config)
    if config is None:
        return 1

    db_config = config.database.model_copy(update={"create_tables": True})
    tx = TransactionManager(db_config)
    try:
        tx.start()
    except DocMSError as e:
        print(f"[ERROR] {e.message}")
        return 1
    try:
        for table in Base.metadata.sorted_tables:
            print(f"[OK] Table ready: {table.name}")
    finally:
        tx.stop()
    return 0


def cmd_jobs(args: argparse.Namespace) -> int:
    """List configured scheduled jobs."""
    from docms.tasks.executor import TaskExecutor
    from docms.tasks.scheduler import JobScheduler

    config = _load_config(args.config)
    if config is None:
        return 1

    scheduler = JobScheduler(TaskExecutor(config.tasks), config.scheduler)
    try:
        scheduler.load_jobs(config.scheduler.jobs, check_tasks=False)
    except ScheduleError as e:
        print(f"[ERROR] {e.message}")
        return 1

    if not scheduler.jobs:
        print("No scheduled jobs configured.")
        return 0

    beat = scheduler.beat_schedule()
    for job in scheduler.jobs:
        when = f"cron '{job.cron}'" if job.cron else f"every {job.interval_seconds}s"
        state = "enabled" if job.enabled else "disabled"
        print(f"  {job.name:<30} {job.task_name:<30} {when} ({state})")
    print(f"\n{len(scheduler.jobs)} job(s), {len(beat)} Celery Beat entr{'y' if len(beat) == 1 else 'ies'}")
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    """GET /health on a running instance."""
    url = f"{args.url.rstrip('/')}/health"
    try:
        resp = httpx.get(url, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"[ERROR] Could not reach {url}: {e}")
        return 1

    try:
        body = resp.json()
    except ValueError:
        print(f"[ERROR] {url} returned HTTP {resp.status_code} with a non-JSON body")
        return 1

    print(json.dumps(body, indent=2))
    return 0 if resp.status_code == 200 else 1


def cmd_cleanup_logs(args: argparse.Namespace) -> int:
    """Delete / compress event log files past their retention period."""
    from docms.engine.logging import LogRetentionManager

    config = _load_config(args.config)
    if config is None:
        return 1

    retention = config.logging.retention
    manager = LogRetentionManager(
        log_dir=config.logging.directory,
        retention_days={
            "lifecycle": retention.lifecycle_days,
            "execution": retention.execution_days,
            "performance": retention.performance_days,
        },
        compress_after_days=retention.compress_after_days,
    )
    result = manager.cleanup()
    print(f"[OK] Deleted {result['deleted']} file(s), compressed {result['compressed']} file(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
