"""
Import Service - Entry point for bulk imports of documents and categories.

Runs the whole pipeline for one uploaded file:

    parse -> (dry run: validate and report)
          -> create job -> categories -> documents -> finish job

The caller always receives an ImportReport. Authorization and file type are
checked before anything else and raise; every later problem ends up in the
report. Job bookkeeping failures are logged and never stop item processing.

Usage:
    from knowledge_base.services.import_service import run_import
    from knowledge_base.services.import_types import ImportActor

    report = run_import("export.json", text, ImportActor("admin-1"))
    print(report.to_dict())
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from knowledge_base.services import import_job_service
from knowledge_base.services.category_import_service import (
    CategoryImportOutcome,
    import_categories,
)
from knowledge_base.services.document_import_service import (
    DocumentImportOutcome,
    import_documents,
)
from knowledge_base.services.exceptions import (
    AuthorizationError,
    JobTrackingError,
    ParseError,
)
from knowledge_base.services.import_parser_service import detect_file_kind, parse_import
from knowledge_base.services.import_types import ImportActor, ImportStats
from knowledge_base.services.import_validation_service import perform_dry_run
from knowledge_base.services.logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


@dataclass
class ImportReport:
    """Structured outcome of an import or dry run."""

    dry_run: bool
    stats: ImportStats = field(default_factory=ImportStats)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    imported_items: List[Dict[str, Any]] = field(default_factory=list)
    job_id: Optional[int] = None
    status: Optional[str] = None
    valid: Optional[bool] = None
    warnings: List[str] = field(default_factory=list)
    breakdown: Optional[Dict[str, Dict[str, int]]] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str, dry_run: bool = False) -> "ImportReport":
        """Report for a run that could not start (no job was created)."""
        return cls(dry_run=dry_run, errors=[{"error": message}], error=message)

    def add_outcome(self, outcome: Union[CategoryImportOutcome, DocumentImportOutcome]) -> None:
        """Fold one importer's results, errors and counts into the report."""
        self.imported_items.extend(r.to_item_dict() for r in outcome.results)
        self.errors.extend(e.to_dict() for e in outcome.errors)
        self.stats.success += outcome.success_count
        self.stats.failed += outcome.failed

    @property
    def succeeded(self) -> bool:
        if self.error is not None:
            return False
        if self.dry_run:
            return bool(self.valid)
        return self.stats.success > 0

    def to_dict(self) -> Dict[str, Any]:
        """Render with the camelCase keys HTTP callers expect."""
        result: Dict[str, Any] = {
            "dryRun": self.dry_run,
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
            "importedItems": list(self.imported_items),
        }
        if self.job_id is not None:
            result["jobId"] = self.job_id
        if self.status is not None:
            result["status"] = self.status
        if self.dry_run:
            result["valid"] = self.valid
            result["warnings"] = list(self.warnings)
            if self.breakdown is not None:
                result["breakdown"] = self.breakdown
        if self.error is not None:
            result["error"] = self.error
        return result


def run_import(
    file_name: str,
    content: str,
    actor: ImportActor,
    dry_run: bool = False,
) -> ImportReport:
    """
    Import documents and categories from an uploaded file.

    Args:
        file_name: Original file name (.csv or .json)
        content: Decoded file text
        actor: Caller; must be an administrator
        dry_run: Validate and report without writing anything

    Returns:
        ImportReport

    Raises:
        AuthorizationError: If the actor is not an administrator
        UnsupportedFileTypeError: If the file is not .csv or .json
    """
    if not actor.is_admin:
        log_operation(
            logger,
            operation="run_import",
            outcome="unauthorized",
            level=logging.WARNING,
            user_id=actor.user_id,
        )
        raise AuthorizationError()

    detect_file_kind(file_name)

    try:
        parsed = parse_import(content, file_name)
    except ParseError as e:
        return ImportReport.failure(str(e), dry_run=dry_run)

    if dry_run:
        result = perform_dry_run(parsed)
        log_operation(
            logger,
            operation="run_import",
            outcome="dry_run",
            file_name=file_name,
            valid=result.valid,
            total=result.stats.total,
        )
        return ImportReport(
            dry_run=True,
            stats=result.stats,
            errors=[e.to_dict() for e in result.errors],
            valid=result.valid,
            warnings=result.warnings,
            breakdown=result.breakdown(),
        )

    try:
        job_id = import_job_service.create_job(file_name, actor.user_id)
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="run_import",
            outcome="job_create_failed",
            level=logging.ERROR,
            file_name=file_name,
            error=str(e),
        )
        return ImportReport.failure(f"Failed to create import job: {e}")

    report = ImportReport(dry_run=False, job_id=job_id)
    report.stats.total = parsed.total_items

    try:
        _track_job(import_job_service.begin_job, job_id, parsed.total_items)

        categories = import_categories(parsed.categories, actor.user_id, job_id=job_id)
        # Recorded before documents start so an aborted run still reports them
        report.add_outcome(categories)

        documents = import_documents(
            parsed.documents,
            actor.user_id,
            id_map=categories.id_map,
            job_id=job_id,
        )
        report.add_outcome(documents)

        report.status = _track_job(
            import_job_service.finish_job, job_id, report.stats, report.errors
        )
    except Exception as e:
        logger.exception(f"Import job {job_id} aborted")
        report.status = _track_job(
            import_job_service.fail_job,
            job_id,
            str(e),
            stats=report.stats,
            errors=report.errors,
        )
        report.errors = report.errors + [{"error": f"Import failed: {e}"}]
        report.error = str(e)

    log_operation(
        logger,
        operation="run_import",
        outcome=report.status or "untracked",
        job_id=job_id,
        file_name=file_name,
        **report.stats.to_dict(),
    )
    return report


def run_import_file(path: str, actor: ImportActor, dry_run: bool = False) -> ImportReport:
    """
    Import from a UTF-8 file on disk.

    Raises:
        FileNotFoundError: If the path doesn't exist
        AuthorizationError: If the actor is not an administrator
        UnsupportedFileTypeError: If the file is not .csv or .json
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        if not actor.is_admin:
            raise AuthorizationError()
        detect_file_kind(file_path.name)
        return ImportReport.failure(f"File is not valid UTF-8: {e}", dry_run=dry_run)

    return run_import(file_path.name, content, actor, dry_run=dry_run)


def _track_job(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[str]:
    """Run a job bookkeeping call, logging instead of raising on failure."""
    try:
        return operation(*args, **kwargs)
    except (JobTrackingError, SQLAlchemyError) as e:
        error = e if isinstance(e, JobTrackingError) else JobTrackingError(str(e), e)
        log_operation(
            logger,
            operation=operation.__name__,
            outcome="tracking_failed",
            level=logging.ERROR,
            job_id=args[0] if args else None,
            error=str(error),
        )
        return None
