"""
DocMS Task Executor — explicit worker pool for asynchronous work.

Tasks are plain callables registered by name. Nothing runs until a caller
submits a registered task; the worker pool itself is only created on the
first submission.

Backends:
    local  — concurrent.futures.ThreadPoolExecutor inside this process
    celery — Celery tasks on a broker (``always_eager`` runs them inline)

Usage:
    executor = TaskExecutor(config.tasks)

    @executor.task("reindex")
    def reindex(folder_id): ...

    executor.start()
    handle = executor.submit("reindex", 42)
    handle.result(timeout=5)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Tuple

from celery import Celery

from docms.engine.config import TasksConfig
from docms.engine.errors import (
    TaskExecutorError,
    TaskNotFoundError,
    TaskRegistrationError,
)
from docms.engine.logging import log, log_task_event, log_task_performance

logger = logging.getLogger("docms.tasks.executor")

CELERY_TASK_PREFIX = "docms.tasks."


def create_celery_app(config: TasksConfig) -> Celery:
    """Create and configure the Celery application for the task executor."""
    app = Celery("docms", broker=config.broker, backend=config.result_backend)

    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_default_queue=config.queue,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_always_eager=config.always_eager,
    )

    return app


class TaskHandle:
    """Handle for a submitted task, backed by a Future or a Celery AsyncResult."""

    def __init__(self, task_id: str, name: str, future: Optional[Future] = None, async_result: Any = None):
        self.task_id = task_id
        self.name = name
        self._future = future
        self._async_result = async_result

    def done(self) -> bool:
        if self._future is not None:
            return self._future.done()
        return bool(self._async_result.ready())

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block for the task's return value; re-raises the task's exception."""
        if self._future is not None:
            return self._future.result(timeout=timeout)
        return self._async_result.get(timeout=timeout)

    def __repr__(self) -> str:
        return f"<TaskHandle {self.name} id={self.task_id}>"


class TaskExecutor:
    """
    Registry of named tasks plus the pool that runs them.

    Counters (submitted / completed / failed) are guarded by a lock and
    reported through stats().
    """

    def __init__(self, config: Optional[TasksConfig] = None, celery_app: Optional[Celery] = None):
        self._config = config or TasksConfig()
        self._celery_app = celery_app
        self._handlers: Dict[str, Callable[..., Any]] = {}
        self._celery_tasks: Dict[str, Any] = {}
        self._pool: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._running = False

        self._submitted = 0
        self._completed = 0
        self._failed = 0

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------

    @property
    def backend(self) -> str:
        return self._config.backend

    @property
    def queue(self) -> str:
        return self._config.queue

    @property
    def celery_app(self) -> Celery:
        """The Celery app; also used by the scheduler for its clock."""
        if self._celery_app is None:
            self._celery_app = create_celery_app(self._config)
        return self._celery_app

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register ``fn`` under ``name``. Names are unique."""
        if not name:
            raise TaskRegistrationError("Task name must not be empty")
        if not callable(fn):
            raise TaskRegistrationError(
                f"Task '{name}' handler is not callable", task_name=name
            )
        if name in self._handlers:
            raise TaskRegistrationError(
                f"Task '{name}' is already registered", task_name=name
            )

        self._handlers[name] = fn
        if self.backend == "celery":
            self._celery_tasks[name] = self._bind_celery_task(name, fn)
        logger.debug(f"Registered task: {name}")

    def task(self, name: Optional[str] = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register(); defaults to the function name."""
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name or fn.__name__, fn)
            return fn
        return decorator

    def is_registered(self, name: str) -> bool:
        return name in self._handlers

    @property
    def registered_tasks(self) -> list:
        return sorted(self._handlers)

    def _bind_celery_task(self, name: str, fn: Callable[..., Any]) -> Any:
        executor = self

        def runner(task_self, *args: Any, **kwargs: Any) -> Any:
            return executor._run(name, task_self.request.id, fn, args, kwargs)

        # shared=False keeps the task off other Celery apps in this process
        return self.celery_app.task(bind=True, shared=False, name=f"{CELERY_TASK_PREFIX}{name}")(runner)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def start(self) -> None:
        """Accept submissions. The pool is created lazily on first submit()."""
        self._running = True
        logger.info(
            f"Task executor ready (backend={self.backend}, "
            f"{len(self._handlers)} tasks registered)"
        )

    def stop(self, wait: bool = True) -> None:
        """Stop accepting work and shut the pool down."""
        with self._lock:
            self._running = False
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)
            logger.info("Task pool shut down")

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------

    def submit(self, name: str, *args: Any, **kwargs: Any) -> TaskHandle:
        """
        Submit a registered task for asynchronous execution.

        Raises:
            TaskExecutorError: executor not started (or already stopped).
            TaskNotFoundError: no task registered under ``name``.
        """
        if not self._running:
            raise TaskExecutorError(
                f"Task executor is not running; cannot submit '{name}'",
                task_name=name,
            )
        fn = self._handlers.get(name)
        if fn is None:
            raise TaskNotFoundError(f"Task not registered: {name}", task_name=name)

        if self.backend == "celery":
            async_result = self._celery_tasks[name].apply_async(
                args=args, kwargs=kwargs, queue=self._config.queue
            )
            with self._lock:
                self._submitted += 1
            logger.debug(f"Submitted celery task {name} → {async_result.id}")
            return TaskHandle(async_result.id, name, async_result=async_result)

        task_id = uuid.uuid4().hex
        with self._lock:
            # stop() may have run since the check above
            if not self._running:
                raise TaskExecutorError(
                    f"Task executor is not running; cannot submit '{name}'",
                    task_name=name,
                )
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._config.concurrency,
                    thread_name_prefix="docms-task",
                )
                logger.info(f"Task pool created ({self._config.concurrency} workers)")
            self._submitted += 1
            future = self._pool.submit(self._run, name, task_id, fn, args, kwargs)
        logger.debug(f"Submitted task {name} → {task_id}")
        return TaskHandle(task_id, name, future=future)

    def _run(
        self,
        name: str,
        task_id: str,
        fn: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ) -> Any:
        start_time = time.monotonic()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            with self._lock:
                self._failed += 1
            logger.error(f"Task {name} ({task_id}) failed: {e}")
            log(log_task_event(
                name, task_id, success=False, duration_ms=duration_ms,
                backend=self.backend, error=str(e),
            ))
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        with self._lock:
            self._completed += 1
        log(log_task_event(name, task_id, success=True, duration_ms=duration_ms, backend=self.backend))
        log(log_task_performance(name, task_id, duration_ms))
        return result

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": self.backend,
                "running": self._running,
                "registered": len(self._handlers),
                "submitted": self._submitted,
                "completed": self._completed,
                "failed": self._failed,
                "pool_active": self._pool is not None,
            }
