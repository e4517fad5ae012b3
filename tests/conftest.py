"""
DocMS Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from docms.engine.config import (
    DatabaseConfig,
    LoggingConfig,
    PlatformConfig,
    SchedulerConfig,
    ServerConfig,
    TasksConfig,
)


# ---------------------------------------------------------------------------
# Environment setup — no real Redis / Postgres in unit tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset global singletons between tests."""
    import docms.engine.config as cfg_mod
    import docms.engine.logging as log_mod

    cfg_mod._platform_config = None
    yield
    log_mod.shutdown_logging()
    cfg_mod._platform_config = None

    # configure_logging() binds sys.stderr, which pytest swaps per test
    root = logging.getLogger("docms")
    for handler in [h for h in root.handlers if getattr(h, "_docms_handler", False)]:
        root.removeHandler(handler)


@pytest.fixture
def project_root(tmp_path):
    """
    Create a minimal project tree with docms.yaml.
    Returns the root Path.
    """
    root = tmp_path / "project"
    root.mkdir()
    (root / "docms.yaml").write_text(
        "platform:\n"
        "  name: TestDocMS\n"
        "  version: '2.0.0'\n"
        "  environment: staging\n"
        "server:\n"
        "  enabled: false\n"
        "database:\n"
        f"  url: sqlite:///{(root / 'docms.db').as_posix()}\n"
        "tasks:\n"
        "  backend: local\n"
        "  concurrency: 2\n"
        "scheduler:\n"
        "  jobs:\n"
        "    - name: nightly-reindex\n"
        "      task: reindex\n"
        "      cron: '0 2 * * *'\n"
        "    - name: heartbeat\n"
        "      task: ping\n"
        "      interval_seconds: 30\n"
        "      enabled: false\n"
        "logging:\n"
        f"  directory: {(root / 'logs').as_posix()}\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def db_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig(url=f"sqlite:///{(tmp_path / 'test.db').as_posix()}")


@pytest.fixture
def platform_config(tmp_path, db_config) -> PlatformConfig:
    """Headless config: SQLite in tmp, local task pool, no web server."""
    return PlatformConfig(
        name="TestDocMS",
        server=ServerConfig(enabled=False),
        database=db_config,
        tasks=TasksConfig(backend="local", concurrency=2),
        scheduler=SchedulerConfig(check_interval_seconds=0.05),
        logging=LoggingConfig(directory=str(tmp_path / "logs")),
    )


@pytest.fixture
def log_dir(tmp_path) -> Path:
    return tmp_path / "logs"
