"""DocMS Tasks — worker pool and time-based job scheduling."""

from docms.tasks.executor import TaskExecutor, TaskHandle, create_celery_app  # noqa: F401
from docms.tasks.scheduler import JobScheduler, ScheduledJob  # noqa: F401

__all__ = [
    "TaskExecutor",
    "TaskHandle",
    "create_celery_app",
    "JobScheduler",
    "ScheduledJob",
]
