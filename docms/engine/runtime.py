"""
DocMS Runtime Context — composition root for every long-lived component.

Wiring is explicit: the runtime constructs each component, hands it the
components it depends on, and records the dependency in a ComponentGraph.
Start order is the graph's topological order; stop order is its reverse.

    event log → database → task executor → scheduler → health → web server

Lifecycle:
    runtime = ApplicationRuntime(config, args)
    runtime.startup()     # NOT_STARTED → STARTED (or FAILED + StartupError)
    runtime.wait()        # STARTED → RUNNING, blocks while serving
    runtime.shutdown()    # → STOPPED
"""

from __future__ import annotations

import logging
import signal
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from docms.db.session import TransactionManager
from docms.engine.components import ComponentGraph
from docms.engine.config import LoggingConfig, PlatformConfig
from docms.engine.errors import DependencyCycleError, StartupError
from docms.engine.health import HealthCheckService
from docms.engine.logging import (
    configure_logging,
    get_log_queue,
    init_logging,
    log,
    log_system_event,
    shutdown_logging,
)
from docms.tasks.executor import TaskExecutor
from docms.tasks.scheduler import JobScheduler, ScheduledJob

logger = logging.getLogger("docms.engine.runtime")


class LifecycleState(str, Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class EventLog:
    """Component wrapper for the stdlib logger setup and the JSONL event queue."""

    def __init__(self, config: LoggingConfig):
        self._config = config

    def start(self) -> None:
        configure_logging(self._config.level)
        init_logging(
            log_dir=self._config.directory,
            flush_interval_ms=self._config.async_queue.flush_interval_ms,
            flush_batch_size=self._config.async_queue.flush_batch_size,
            max_queue_size=self._config.async_queue.max_queue_size,
        )

    def stop(self) -> None:
        shutdown_logging()


class ApplicationRuntime:
    """
    The runtime context started by the bootstrap.

    The executor, scheduler and transaction manager exist from construction
    so work can be registered before startup(); nothing runs until then.
    """

    def __init__(self, config: Optional[PlatformConfig] = None, args: Sequence[str] = ()):
        self.config = config or PlatformConfig()
        self.args = tuple(args)

        self.tx = TransactionManager(self.config.database)
        self.executor = TaskExecutor(self.config.tasks)
        self.scheduler = JobScheduler(self.executor, self.config.scheduler, tx=self.tx)
        self.health = HealthCheckService()
        self.web = None  # WebServer — built in startup() when server.enabled

        self._graph: Optional[ComponentGraph] = None
        self._started: List[str] = []
        self._state = LifecycleState.NOT_STARTED
        self._lock = threading.Lock()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state in (LifecycleState.STARTED, LifecycleState.RUNNING)

    # -----------------------------------------------------------------------
    # Registration delegates
    # -----------------------------------------------------------------------

    def task(self, name: Optional[str] = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a task with the executor (decorator)."""
        return self.executor.task(name)

    def schedule(self, name: str, task: str, **kwargs: Any) -> ScheduledJob:
        """Register a scheduled job; see JobScheduler.register()."""
        return self.scheduler.register(name, task, **kwargs)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def _build_graph(self) -> ComponentGraph:
        graph = ComponentGraph()
        graph.add("logging", EventLog(self.config.logging))
        graph.add("database", self.tx, depends_on=["logging"])
        graph.add("tasks", self.executor, depends_on=["logging"])
        graph.add("scheduler", self.scheduler, depends_on=["tasks", "database"])

        self.health.register_check("database", self.tx.ping)
        self.health.register_check("scheduler", self._scheduler_healthy)
        tasks_config = self.config.tasks
        if tasks_config.backend == "celery" and tasks_config.broker.startswith("redis"):
            self.health.register_redis_check("redis", tasks_config.broker)
        graph.add("health", self.health, depends_on=["database", "scheduler"])

        if self.config.server.enabled:
            from docms.web.app import create_app
            from docms.web.server import WebServer

            self.web = WebServer(create_app(self), self.config.server)
            graph.add("web", self.web, depends_on=["health"])
        return graph

    def _scheduler_healthy(self) -> bool:
        # Idle is healthy; with enabled jobs the timer thread must be alive
        if not self.config.scheduler.enabled or not self.scheduler.enabled_jobs():
            return True
        return self.scheduler.is_running

    def startup(self) -> None:
        """
        Start every component in dependency order.

        Raises:
            StartupError: any component failed to start. Components already
                started are stopped again and the runtime is left FAILED.
        """
        with self._lock:
            if self.is_ready:
                logger.warning("Runtime already started")
                return
            if self._state != LifecycleState.NOT_STARTED:
                raise StartupError(
                    f"Runtime cannot be started from state '{self._state.value}'",
                    component="runtime",
                )

            logger.info(f"Starting {self.config.name} {self.config.version} ({self.config.environment})")

            try:
                self._graph = self._build_graph()
                order = self._graph.start_order()
            except DependencyCycleError as e:
                self._state = LifecycleState.FAILED
                raise StartupError(
                    f"Runtime context failed to start: {e.message}", component="runtime"
                ) from e
            except Exception as e:
                logger.error(f"Runtime wiring failed: {e!r}")
                self._state = LifecycleState.FAILED
                raise StartupError(
                    f"Runtime context failed to start: {e!r}", component="runtime"
                ) from e

            for name in order:
                try:
                    self._graph.get(name).start()
                except Exception as e:
                    logger.error(f"Component '{name}' failed to start: {e}")
                    log(log_system_event(
                        "startup_failed", level="ERROR",
                        details={"component": name, "error": str(e)},
                    ))
                    self._stop_components()
                    self._state = LifecycleState.FAILED
                    raise StartupError(
                        f"Runtime context failed to start: component '{name}': {e}",
                        component=name,
                    ) from e
                self._started.append(name)
                logger.debug(f"Component started: {name}")

            self._state = LifecycleState.STARTED
            log(log_system_event("platform_started", details=self._component_status()))
            logger.info(f"Runtime started ({len(self._started)} components)")

    def wait(self) -> None:
        """
        Block while the web server is serving.

        Returns immediately when no web server is configured. SIGINT and
        SIGTERM end the wait when called from the main thread.
        """
        if self._state != LifecycleState.STARTED:
            return
        self._state = LifecycleState.RUNNING

        if self.web is None:
            logger.info("No web server configured; nothing to wait for")
            return

        previous = None
        on_main_thread = threading.current_thread() is threading.main_thread()
        if on_main_thread:
            previous = signal.signal(signal.SIGTERM, lambda signum, frame: self.web.request_exit())
        try:
            self.web.wait()
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
        finally:
            if on_main_thread:
                signal.signal(signal.SIGTERM, previous)

    def shutdown(self) -> None:
        """Stop components in reverse start order. Idempotent."""
        with self._lock:
            if not self.is_ready:
                return
            logger.info("Shutting down runtime...")
            log(log_system_event("platform_shutdown", details=self._component_status()))
            self._stop_components()
            self._state = LifecycleState.STOPPED
            logger.info("Runtime stopped")

    def _stop_components(self) -> None:
        while self._started:
            name = self._started.pop()
            try:
                self._graph.get(name).stop()
            except Exception as e:
                logger.error(f"Component '{name}' failed to stop cleanly: {e}")

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------

    def _component_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "components": list(self._started),
            "tasks": self.executor.stats(),
            "scheduler": self.scheduler.stats(),
            "log_queue": None,
        }
        queue = get_log_queue()
        if queue is not None:
            status["log_queue"] = {
                "pending": queue.pending_count,
                "dropped": queue.dropped_count,
            }
        return status

    def status(self) -> Dict[str, Any]:
        """JSON-friendly snapshot of the runtime and its components."""
        status = {
            "name": self.config.name,
            "version": self.config.version,
            "environment": self.config.environment,
            "state": self._state.value,
            "args": list(self.args),
            "graph": self._graph.stats() if self._graph else None,
        }
        status.update(self._component_status())
        return status
