"""
DocMS Configuration — Load and validate docms.yaml at startup.

Usage:
    from docms.engine.config import load_platform_config, get_platform_config
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from docms.engine.errors import ConfigError

CONFIG_FILENAME = "docms.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for docms.yaml
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    startup_timeout: float = 10.0
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.lower()
        if level not in ("critical", "error", "warning", "info", "debug", "trace"):
            raise ValueError(f"server.log_level must be a uvicorn level name, got '{v}'")
        return level



class DatabaseConfig(BaseModel):
    url: str = "sqlite:///docms.db"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    create_tables: bool = True
    echo: bool = False


class TasksConfig(BaseModel):
    backend: str = "local"
    concurrency: int = 4
    broker: str = "redis://localhost:6379/0"
    result_backend: str = "redis://localhost:6379/1"
    queue: str = "docms_tasks"
    always_eager: bool = False

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("local", "celery"):
            raise ValueError(f"tasks.backend must be local/celery, got '{v}'")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("tasks.concurrency must be >= 1")
        return v


class JobConfig(BaseModel):
    name: str
    task: str
    cron: Optional[str] = None
    interval_seconds: Optional[float] = None
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class SchedulerConfig(BaseModel):
    enabled: bool = True
    check_interval_seconds: float = 1.0
    record_runs: bool = True
    jobs: List[JobConfig] = Field(default_factory=list)


class LogRetentionConfig(BaseModel):
    lifecycle_days: int = 365
    execution_days: int = 30
    performance_days: int = 7
    compress_after_days: int = 7


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".docms/logs"
    retention: LogRetentionConfig = LogRetentionConfig()
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level must be a stdlib level name, got '{v}'")
        return level


class PlatformConfig(BaseModel):
    """Root model for docms.yaml."""
    name: str = "Document Management System"
    version: str = "1.0.0"
    environment: str = "dev"

    server: ServerConfig = ServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    tasks: TasksConfig = TasksConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_platform_config: Optional[PlatformConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for docms.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def get_project_root() -> Path:
    """Return the project root directory."""
    return _find_project_root()


def load_platform_config(config_path: Optional[str] = None) -> PlatformConfig:
    """
    Load and validate docms.yaml.

    Args:
        config_path: Explicit path to docms.yaml. If None, auto-discovers.

    Returns:
        Validated PlatformConfig instance. Defaults when the file is absent.

    Raises:
        ConfigError: file is not valid YAML or fails validation.
    """
    global _platform_config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        _platform_config = PlatformConfig()
        return _platform_config

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Cannot parse {path}: {e}", config_path=str(path)
        ) from e

    if not isinstance(raw, dict):
        raise ConfigError(
            f"{path} must contain a mapping at the top level",
            config_path=str(path),
        )

    # The "platform" block holds identity fields; everything else is top-level
    platform_data = raw.get("platform", {}) or {}
    config_data = {
        "name": platform_data.get("name", raw.get("name", "Document Management System")),
        "version": platform_data.get("version", raw.get("version", "1.0.0")),
        "environment": platform_data.get("environment", raw.get("environment", "dev")),
    }
    for section in ("server", "database", "tasks", "scheduler", "logging"):
        if raw.get(section) is not None:
            config_data[section] = raw[section]

    try:
        _platform_config = PlatformConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}",
            config_path=str(path),
            validation_errors=[
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
        ) from e
    return _platform_config


def get_platform_config() -> PlatformConfig:
    """Get the currently loaded platform config, loading if necessary."""
    global _platform_config
    if _platform_config is None:
        _platform_config = load_platform_config()
    return _platform_config


def get_environment() -> str:
    """Get the current platform environment."""
    return get_platform_config().environment
