"""
DocMS Job Scheduler — time-based triggering of registered tasks.

Jobs map a cron expression or a fixed interval to a task name registered
with the TaskExecutor. Schedules are Celery schedule objects (crontab /
schedule) so the same definitions can be exported to Celery Beat.

Nothing is scheduled implicitly: the timer thread is only started when at
least one enabled job has been registered.

Usage:
    scheduler = JobScheduler(executor, config.scheduler, tx=tx)
    scheduler.register("nightly-reindex", "reindex", cron="0 2 * * *")
    scheduler.register("heartbeat", "ping", interval_seconds=30)
    scheduler.start()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from celery.schedules import ParseException, crontab
from celery.schedules import schedule as every
from sqlalchemy.exc import SQLAlchemyError

from docms.db.models import JobRun
from docms.engine.config import JobConfig, SchedulerConfig
from docms.engine.errors import DocMSError, ScheduleError
from docms.engine.logging import log, log_job_event
from docms.tasks.executor import CELERY_TASK_PREFIX, TaskExecutor

logger = logging.getLogger("docms.tasks.scheduler")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScheduledJob:
    """A registered job and its firing state."""
    name: str
    task_name: str
    schedule: Any
    cron: Optional[str] = None
    interval_seconds: Optional[float] = None
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    last_run_at: Optional[datetime] = None
    run_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "task": self.task_name,
            "cron": self.cron,
            "interval_seconds": self.interval_seconds,
            "enabled": self.enabled,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "run_count": self.run_count,
        }


class JobScheduler:
    """
    Registry of scheduled jobs plus the timer thread that fires them.

    Each tick evaluates ``job.schedule.is_due(job.last_run_at)``; a due job's
    task is submitted to the executor and the firing is recorded.
    """

    def __init__(
        self,
        executor: TaskExecutor,
        config: Optional[SchedulerConfig] = None,
        tx: Any = None,
        clock: Optional[Clock] = None,
    ):
        self._executor = executor
        self._config = config or SchedulerConfig()
        self._tx = tx
        self._clock: Clock = clock or _utcnow
        self._jobs: Dict[str, ScheduledJob] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._config_loaded = False
        self._fired = 0
        self._errors = 0

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------

    def register(
        self,
        name: str,
        task: str,
        cron: Optional[str] = None,
        interval_seconds: Optional[float] = None,
        args: Iterable[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
        enabled: bool = True,
    ) -> ScheduledJob:
        """
        Register a job that submits ``task`` on a cron or interval schedule.

        Raises:
            ScheduleError: duplicate name, both/neither of cron and interval,
                malformed cron expression or non-positive interval.
        """
        if not name:
            raise ScheduleError("Job name must not be empty")
        if name in self._jobs:
            raise ScheduleError(f"Job '{name}' is already registered", job_name=name)
        if (cron is None) == (interval_seconds is None):
            raise ScheduleError(
                f"Job '{name}' needs exactly one of cron or interval_seconds",
                job_name=name,
            )

        if cron is not None:
            sched = self._build_crontab(name, cron)
        else:
            if interval_seconds <= 0:
                raise ScheduleError(
                    f"Job '{name}' interval must be positive, got {interval_seconds}",
                    job_name=name,
                )
            sched = every(
                run_every=timedelta(seconds=interval_seconds),
                nowfun=self._clock,
                app=self._executor.celery_app,
            )

        job = ScheduledJob(
            name=name,
            task_name=task,
            schedule=sched,
            cron=cron,
            interval_seconds=interval_seconds,
            args=tuple(args),
            kwargs=dict(kwargs or {}),
            enabled=enabled,
            last_run_at=self._clock(),
        )
        with self._lock:
            self._jobs[name] = job
        logger.debug(f"Registered job: {name} → {task} ({cron or f'every {interval_seconds}s'})")
        return job

    def _build_crontab(self, name: str, expression: str) -> crontab:
        # "minute hour day_of_month month_of_year day_of_week"
        parts = expression.strip().split()
        if len(parts) != 5:
            raise ScheduleError(
                f"Invalid cron expression for job '{name}': '{expression}' "
                f"(expected 5 fields)",
                job_name=name,
            )
        try:
            return crontab(
                minute=parts[0],
                hour=parts[1],
                day_of_month=parts[2],
                month_of_year=parts[3],
                day_of_week=parts[4],
                nowfun=self._clock,
                app=self._executor.celery_app,
            )
        except (ValueError, ParseException) as e:
            raise ScheduleError(
                f"Invalid cron expression for job '{name}': '{expression}': {e}",
                job_name=name,
            ) from e

    def load_jobs(self, jobs: Iterable[JobConfig], check_tasks: bool = True) -> int:
        """
        Register jobs declared in docms.yaml.

        ``check_tasks=False`` skips the task lookup (used by the CLI, which
        inspects schedules without importing task code).

        Raises:
            ScheduleError: a job is invalid or names a task the executor
                does not know.
        """
        count = 0
        for job in jobs:
            if check_tasks and not self._executor.is_registered(job.task):
                raise ScheduleError(
                    f"Job '{job.name}' references unregistered task '{job.task}'",
                    job_name=job.name,
                )
            self.register(
                job.name,
                job.task,
                cron=job.cron,
                interval_seconds=job.interval_seconds,
                args=job.args,
                kwargs=job.kwargs,
                enabled=job.enabled,
            )
            count += 1
        return count

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        return self._jobs.get(name)

    @property
    def jobs(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    def enabled_jobs(self) -> List[ScheduledJob]:
        return [job for job in self._jobs.values() if job.enabled]

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def start(self) -> None:
        """Load configured jobs and start the timer thread if anything is enabled."""
        if not self._config_loaded:
            self.load_jobs(self._config.jobs)
            self._config_loaded = True

        if not self._config.enabled:
            logger.info("Scheduler disabled by configuration")
            return
        if not self.enabled_jobs():
            logger.info("Scheduler idle: no enabled jobs")
            return
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="docms-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Scheduler started ({len(self.enabled_jobs())} enabled jobs)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            logger.info("Scheduler stopped")
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.wait(self._config.check_interval_seconds):
            try:
                self.run_pending()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}")

    # -------------------------------------------------------------------
    # Firing
    # -------------------------------------------------------------------

    def run_pending(self) -> List[str]:
        """
        Submit every due job's task to the executor.

        Returns:
            Names of the jobs that were due on this tick, in registration order.
        """
        fired: List[str] = []
        for job in self.enabled_jobs():
            state = job.schedule.is_due(job.last_run_at)
            if not state.is_due:
                continue
            job.last_run_at = self._clock()
            job.run_count += 1
            self._fire(job)
            fired.append(job.name)
        return fired

    def _fire(self, job: ScheduledJob) -> None:
        task_id: Optional[str] = None
        error: Optional[str] = None
        try:
            handle = self._executor.submit(job.task_name, *job.args, **job.kwargs)
            task_id = handle.task_id
        except DocMSError as e:
            error = str(e)
        except Exception as e:
            # broker outages surface as kombu / socket errors
            error = f"{type(e).__name__}: {e}"

        with self._lock:
            self._fired += 1
            if error is not None:
                self._errors += 1

        if error is None:
            logger.info(f"Job fired: {job.name} → {job.task_name} ({task_id})")
        else:
            logger.error(f"Job {job.name} could not submit {job.task_name}: {error}")
        log(log_job_event(
            job.name, job.task_name, task_id=task_id,
            success=error is None, error=error,
        ))

        if self._config.record_runs and self._tx is not None:
            self._record_run(job, task_id, error)

    def _record_run(self, job: ScheduledJob, task_id: Optional[str], error: Optional[str]) -> None:
        try:
            with self._tx.session_scope() as session:
                session.add(JobRun(
                    job_name=job.name,
                    task_name=job.task_name,
                    task_id=task_id,
                    status="submitted" if error is None else "failed",
                    error=error,
                ))
        except SQLAlchemyError as e:
            logger.error(f"Could not record run of job {job.name}: {e}")

    # -------------------------------------------------------------------
    # Celery Beat export
    # -------------------------------------------------------------------

    def beat_schedule(self) -> Dict[str, Any]:
        """
        Generate a Celery Beat schedule from the enabled jobs.

        Returns:
            Dict suitable for celery_app.conf.beat_schedule.
        """
        beat: Dict[str, Any] = {}
        for job in self.enabled_jobs():
            beat[f"job-{job.name}"] = {
                "task": f"{CELERY_TASK_PREFIX}{job.task_name}",
                "schedule": job.schedule,
                "args": job.args,
                "kwargs": job.kwargs,
                "options": {"queue": self._executor.queue},
            }
        return beat

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "jobs": len(self._jobs),
                "enabled": len(self.enabled_jobs()),
                "fired": self._fired,
                "errors": self._errors,
                "running": self.is_running,
            }
