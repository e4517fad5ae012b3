"""
DocMS Transaction Management.

TransactionManager owns the SQLAlchemy engine and session factory and
provides declarative transaction demarcation:

    with tx.session_scope() as session:       # commit / rollback / close
        session.add(...)

    @tx.transactional
    def archive(session, job_name): ...        # session injected, same scope
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from docms.db.base import Base, build_engine
from docms.engine.config import DatabaseConfig
from docms.engine.errors import DatabaseError

logger = logging.getLogger("docms.db.session")

T = TypeVar("T")


class TransactionManager:
    """Engine + session factory with commit/rollback scopes."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def start(self) -> None:
        """
        Create the engine, verify connectivity and optionally create tables.

        Raises:
            DatabaseError: engine cannot be created or the database is unreachable.
        """
        if self._engine is not None:
            return

        engine: Optional[Engine] = None
        try:
            engine = build_engine(self._config)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if self._config.create_tables:
                Base.metadata.create_all(engine)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            if engine is not None:
                engine.dispose()
            raise DatabaseError(
                f"Database unavailable: {e}", component="database"
            ) from e

        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")

    def stop(self) -> None:
        """Dispose the engine's connection pool."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseError("Database not started", component="database")
        return self._engine

    # -------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------

    def new_session(self) -> Session:
        if self._session_factory is None:
            raise DatabaseError("Database not started", component="database")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for a transactional session with auto-commit/rollback.

        Usage:
            with tx.session_scope() as session:
                session.add(JobRun(...))
        """
        session = self.new_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def transactional(self, fn: Callable[..., T]) -> Callable[..., T]:
        """Run ``fn(session, *args, **kwargs)`` inside session_scope()."""
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with self.session_scope() as session:
                return fn(session, *args, **kwargs)
        return wrapper

    def ping(self) -> bool:
        """Health probe: True if SELECT 1 succeeds."""
        if self._engine is None:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.debug(f"Database ping failed: {e}")
            return False
