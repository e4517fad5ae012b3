"""
DocMS Platform Tables.

job_runs — one row per scheduled job firing (written by JobScheduler).
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, String, Text

from docms.db.base import Base, TimestampMixin


class JobRun(TimestampMixin, Base):
    __tablename__ = "job_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(200), nullable=False, index=True)
    task_name = Column(String(200), nullable=False)
    task_id = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False)
    error = Column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_name": self.job_name,
            "task_name": self.task_name,
            "task_id": self.task_id,
            "status": self.status,
            "error": self.error,
            "fired_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} {self.status}>"
