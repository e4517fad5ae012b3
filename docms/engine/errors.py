"""
DocMS Error Hierarchy — Structured exceptions with serializable context.

Every error carries a free-form context dict so it can be written to the
structured event log as-is.

Hierarchy:
    DocMSError
    ├── ConfigError             — Invalid docms.yaml / config values
    ├── StartupError            — Runtime context failed to start
    ├── DependencyCycleError    — Component graph has a cycle or missing node
    ├── DatabaseError           — Engine creation / connectivity failed
    ├── TaskExecutorError       — Executor not running, submission failed
    │   ├── TaskRegistrationError — Duplicate or invalid task registration
    │   └── TaskNotFoundError     — Submitted task name not registered
    ├── ScheduleError           — Invalid job definition
    └── WebServerError          — HTTP server could not bind / start
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DocMSError(Exception):
    """
    Base error for all DocMS failures.
    All context is JSON-serializable through to_dict().
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.component: Optional[str] = context.get("component")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        data: Dict[str, Any] = {
            "error_type": self.error_type,
            "message": self.message,
            "component": self.component,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items() if k != "component"
            },
        }
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.component:
            parts.append(f"component={self.component}")
        return " | ".join(parts)


class ConfigError(DocMSError):
    """Configuration error — unreadable or invalid docms.yaml."""

    def __init__(self, message: str, **context: Any):
        self.config_path: Optional[str] = context.get("config_path")
        self.validation_errors: Optional[list] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["config_path"] = self.config_path
        d["validation_errors"] = self.validation_errors
        return d


class StartupError(DocMSError):
    """
    The runtime context failed to start.

    The single failure class surfaced by the bootstrap. The underlying cause
    (config, database, port binding, wiring) is chained as __cause__ and the
    failing component is named in ``component``.
    """
    pass


class DependencyCycleError(DocMSError):
    """Component dependencies form a cycle or reference an unknown component."""

    def __init__(self, message: str, **context: Any):
        self.cycle: Optional[list] = context.get("cycle")
        super().__init__(message, **context)


class DatabaseError(DocMSError):
    """Database engine could not be created or reached."""
    pass


class TaskExecutorError(DocMSError):
    """Task executor is not accepting work or a submission failed."""

    def __init__(self, message: str, **context: Any):
        self.task_name: Optional[str] = context.get("task_name")
        super().__init__(message, **context)


class TaskRegistrationError(TaskExecutorError):
    """Task registered twice or with an invalid handler."""
    pass


class TaskNotFoundError(TaskExecutorError):
    """Task name not registered with the executor."""
    pass


class ScheduleError(DocMSError):
    """Invalid scheduled job definition (cron/interval/name)."""

    def __init__(self, message: str, **context: Any):
        self.job_name: Optional[str] = context.get("job_name")
        super().__init__(message, **context)


class WebServerError(DocMSError):
    """HTTP server failed to start (port conflict, startup timeout)."""
    pass
