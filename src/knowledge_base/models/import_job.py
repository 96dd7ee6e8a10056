"""
ImportJob model for bulk import audit records.

One row is written per non-dry-run import. The row records the lifecycle
status, aggregate statistics and the full list of per-item errors so that an
administrator can inspect a run after the fact.
"""

from sqlalchemy import JSON, Column, DateTime, Index, String

from .base import BaseModel
from .enums import ImportJobStatus


def _empty_stats() -> dict:
    return {"total": 0, "success": 0, "failed": 0}


class ImportJob(BaseModel):
    """
    ImportJob model representing one bulk import run.

    Attributes:
        status: ImportJobStatus value
        file_name: Name of the uploaded file
        stats: {"total": int, "success": int, "failed": int}
        errors: List of error dicts ({row?, item?, error, external_id?})
        created_by: Identity of the administrator who started the run
        started_at: When processing began
        completed_at: When the job reached a terminal state (set once)
    """

    __tablename__ = "import_jobs"

    status = Column(String(20), nullable=False, default=ImportJobStatus.PENDING.value)
    file_name = Column(String(255), nullable=False)
    stats = Column(JSON, nullable=False, default=_empty_stats)
    errors = Column(JSON, nullable=False, default=list)
    created_by = Column(String(64), nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_import_job_status", "status"),
        Index("idx_import_job_created_by", "created_by"),
        Index("idx_import_job_created_at", "created_at"),
    )

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def __repr__(self) -> str:
        """String representation of import job."""
        return f"ImportJob(id={self.id}, status='{self.status}', file_name='{self.file_name}')"
