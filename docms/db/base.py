"""
DocMS Database Base — SQLAlchemy declarative base and engine construction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from docms.engine.config import DatabaseConfig


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all DocMS tables."""
    pass


class TimestampMixin:
    """Adds a created_at column."""
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


def engine_options(config: DatabaseConfig) -> Dict[str, Any]:
    """
    Keyword arguments for create_engine().

    SQLite uses a single-connection pool that rejects the QueuePool sizing
    options, so those are only passed for server databases.
    """
    options: Dict[str, Any] = {"echo": config.echo}
    if not config.url.startswith("sqlite"):
        options.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=config.pool_pre_ping,
        )
    return options


def build_engine(config: DatabaseConfig) -> Engine:
    return create_engine(config.url, **engine_options(config))
