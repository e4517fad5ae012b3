"""
DocMS — Document Management System service.

Process bootstrap plus the runtime it starts: explicit component wiring,
asynchronous task execution, cron/interval scheduling and SQLAlchemy
transaction demarcation, served behind a small FastAPI health surface.

Entry points:
    python -m docms [args...]     — bootstrap (docms.application.main)
    docms <command>               — management CLI (docms.cli.main)
"""

__version__ = "1.0.0"
__all__ = ["engine", "tasks", "db", "web", "application", "cli"]
