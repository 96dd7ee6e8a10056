"""
Import Job Service - Lifecycle and queries for import job records.

A job moves through a small state machine:

    pending --begin--> processing --finish--> completed | failed
    pending | processing --fail--> failed

Terminal states are never left. ``completed_at`` is written on the first
terminal transition and never changed afterwards.

All functions accept an optional session and otherwise open their own
session_scope(), so job writes commit independently of the items they
describe.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from knowledge_base.models import ImportJob, ImportJobStatus
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import (
    ImportJobNotFound,
    JobTrackingError,
    ValidationError,
)
from knowledge_base.services.import_types import ImportStats
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.constants import DEFAULT_JOB_PAGE_SIZE
from knowledge_base.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)

ALLOWED_TRANSITIONS = {
    ImportJobStatus.PENDING: {ImportJobStatus.PROCESSING, ImportJobStatus.FAILED},
    ImportJobStatus.PROCESSING: {ImportJobStatus.COMPLETED, ImportJobStatus.FAILED},
    ImportJobStatus.COMPLETED: set(),
    ImportJobStatus.FAILED: set(),
}


def job_to_dict(job: ImportJob, include_errors: bool = True) -> Dict[str, Any]:
    """
    Render a job for callers.

    Args:
        job: ImportJob instance
        include_errors: Include the full error list; otherwise only has_errors

    Returns:
        Dictionary with ISO formatted timestamps
    """
    result = {
        "id": job.id,
        "status": job.status,
        "file_name": job.file_name,
        "stats": dict(job.stats or {}),
        "created_by": job.created_by,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "has_errors": job.has_errors,
    }
    if include_errors:
        result["errors"] = list(job.errors or [])
    return result


def _get_job_or_raise(session: Session, job_id: int) -> ImportJob:
    job = session.query(ImportJob).filter(ImportJob.id == job_id).first()
    if job is None:
        raise ImportJobNotFound(job_id)
    return job


def _transition(job: ImportJob, target: ImportJobStatus) -> None:
    current = ImportJobStatus(job.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise JobTrackingError(
            f"Cannot move job {job.id} from '{current.value}' to '{target.value}'"
        )
    job.status = target.value
    if target.is_terminal and job.completed_at is None:
        job.completed_at = utc_now()

    log_operation(
        logger,
        operation="import_job_transition",
        outcome=target.value,
        job_id=job.id,
        previous_status=current.value,
    )


# ============================================================================
# Lifecycle
# ============================================================================


def create_job(file_name: str, actor_id: str, session: Optional[Session] = None) -> int:
    """
    Create a job in the pending state.

    Args:
        file_name: Name of the uploaded file
        actor_id: Administrator starting the run
        session: Optional database session

    Returns:
        The new job's id
    """

    def _impl(sess: Session) -> int:
        job = ImportJob(
            status=ImportJobStatus.PENDING.value,
            file_name=file_name,
            stats=ImportStats().to_dict(),
            errors=[],
            created_by=actor_id,
        )
        sess.add(job)
        sess.flush()
        log_operation(logger, operation="create_import_job", outcome="pending", job_id=job.id)
        return job.id

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def begin_job(job_id: int, total: int = 0, session: Optional[Session] = None) -> None:
    """
    Move a pending job to processing.

    Args:
        job_id: Job to start
        total: Number of items about to be processed

    Raises:
        ImportJobNotFound: If the job doesn't exist
        JobTrackingError: If the job is not pending
    """

    def _impl(sess: Session) -> None:
        job = _get_job_or_raise(sess, job_id)
        _transition(job, ImportJobStatus.PROCESSING)
        job.started_at = utc_now()
        job.stats = ImportStats(total=total).to_dict()

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def finish_job(
    job_id: int,
    stats: ImportStats,
    errors: List[Dict[str, Any]],
    session: Optional[Session] = None,
) -> str:
    """
    Record final statistics and move the job to a terminal state.

    The job is completed when at least one item succeeded, failed otherwise.

    Returns:
        The terminal status value

    Raises:
        ImportJobNotFound: If the job doesn't exist
        JobTrackingError: If the job is not processing
    """

    def _impl(sess: Session) -> str:
        job = _get_job_or_raise(sess, job_id)
        target = ImportJobStatus.COMPLETED if stats.success > 0 else ImportJobStatus.FAILED
        _transition(job, target)
        job.stats = stats.to_dict()
        job.errors = list(errors)
        return job.status

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def fail_job(
    job_id: int,
    message: str,
    stats: Optional[ImportStats] = None,
    errors: Optional[List[Dict[str, Any]]] = None,
    session: Optional[Session] = None,
) -> str:
    """
    Force a job to failed after an unexpected error.

    A synthetic error entry describing the failure is appended to the error
    list. A job that already reached a terminal state is left untouched.

    Returns:
        The job's status after the call
    """

    def _impl(sess: Session) -> str:
        job = _get_job_or_raise(sess, job_id)
        if ImportJobStatus(job.status).is_terminal:
            log_operation(
                logger,
                operation="fail_import_job",
                outcome="already_terminal",
                level=logging.WARNING,
                job_id=job_id,
                status=job.status,
            )
            return job.status

        _transition(job, ImportJobStatus.FAILED)
        if stats is not None:
            job.stats = stats.to_dict()
        job.errors = list(errors or []) + [{"error": f"Import failed: {message}"}]
        return job.status

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# Queries
# ============================================================================


def get_job(job_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Get one job with its full error list.

    Raises:
        ImportJobNotFound: If the job doesn't exist
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        return job_to_dict(_get_job_or_raise(sess, job_id))

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def list_jobs(
    limit: int = DEFAULT_JOB_PAGE_SIZE,
    offset: int = 0,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    List jobs newest first.

    Entries carry ``has_errors`` instead of the error list.

    Returns:
        {"jobs": [...], "total": int, "limit": int, "offset": int}

    Raises:
        ValidationError: If limit is not positive or offset is negative
    """
    problems = []
    if limit < 1:
        problems.append("Limit must be at least 1")
    if offset < 0:
        problems.append("Offset must be non-negative")
    if problems:
        raise ValidationError(problems)

    def _impl(sess: Session) -> Dict[str, Any]:
        total = sess.query(ImportJob).count()
        jobs = (
            sess.query(ImportJob)
            .order_by(ImportJob.created_at.desc(), ImportJob.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "jobs": [job_to_dict(job, include_errors=False) for job in jobs],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)
