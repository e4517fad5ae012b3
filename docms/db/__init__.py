"""DocMS Database — SQLAlchemy engine, transaction scopes, platform tables."""

from docms.db.base import Base  # noqa: F401
from docms.db.models import JobRun  # noqa: F401
from docms.db.session import TransactionManager  # noqa: F401

__all__ = ["Base", "JobRun", "TransactionManager"]
