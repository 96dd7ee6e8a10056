"""
Document Import Service - Persist imported documents and their category links.

Documents are processed one at a time in file order, each in its own
transaction:

1. Field checks; an invalid document is reported and skipped.
2. Duplicate check by slug or exact title; a hit reuses the existing id.
3. Content conversion to a block document, plus a plain-text excerpt.
4. Insert, with the import actor as author and the source details kept in
   ``import_metadata``.
5. Category links, written in a second transaction. References that resolve
   neither through the current import nor to an existing category name are
   skipped. A failed link write is logged and leaves the document in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from knowledge_base.models import (
    Category,
    Document,
    DocumentCategory,
    DocumentStatus,
    ImportItemKind,
)
from knowledge_base.services.category_import_service import CategoryIdMap
from knowledge_base.services.content_converter import (
    convert_to_block_document,
    generate_excerpt,
)
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import ImportItemError
from knowledge_base.services.import_types import ExternalDocument, ImportError, ImportResult
from knowledge_base.services.import_validation_service import validate_document
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.datetime_utils import utc_now
from knowledge_base.utils.slug_utils import create_slug, generate_unique_slug

logger = get_service_logger(__name__)


@dataclass
class DocumentImportOutcome:
    """Results of importing a list of documents."""

    results: List[ImportResult] = field(default_factory=list)
    errors: List[ImportError] = field(default_factory=list)
    failed: int = 0

    @property
    def success_count(self) -> int:
        return len(self.results)


def import_documents(
    documents: List[ExternalDocument],
    actor_id: str,
    id_map: Optional[CategoryIdMap] = None,
    job_id: Optional[int] = None,
) -> DocumentImportOutcome:
    """
    Persist documents in file order.

    Args:
        documents: Parsed documents
        actor_id: Identity recorded as author of new documents
        id_map: Category ids produced by the category importer for this run
        job_id: Import job the run belongs to, for log context

    Returns:
        DocumentImportOutcome with results and errors
    """
    outcome = DocumentImportOutcome()

    for document in documents:
        field_errors = validate_document(document)
        if field_errors:
            outcome.errors.extend(field_errors)
            outcome.failed += 1
            log_operation(
                logger,
                operation="import_document",
                outcome="invalid",
                job_id=job_id,
                title=document.label,
                error=field_errors[0].error,
            )
            continue

        try:
            with session_scope() as session:
                result = _import_single_document(document, actor_id, session)
        except (ImportItemError, SQLAlchemyError, ValueError) as e:
            outcome.errors.append(
                ImportError(
                    error=_failure_message("document", e),
                    row=document.row,
                    item=document.title,
                    external_id=document.external_id,
                )
            )
            outcome.failed += 1
            log_operation(
                logger,
                operation="import_document",
                outcome="error",
                level=logging.ERROR,
                job_id=job_id,
                title=document.title,
                error=str(e),
            )
            continue

        outcome.results.append(result)

        if not result.matched_existing and document.category_refs:
            link_document_categories(result.id, document.category_refs, id_map, job_id=job_id)

    return outcome


def _import_single_document(
    document: ExternalDocument,
    actor_id: str,
    session: Session,
) -> ImportResult:
    """Match or insert one document inside the caller's transaction."""
    title = document.title.strip()
    slug = create_slug(title)

    existing = _find_existing_document(session, slug, title)
    if existing is not None:
        log_operation(
            logger,
            operation="import_document",
            outcome="matched",
            level=logging.DEBUG,
            document_id=existing.id,
            title=title,
        )
        return ImportResult(
            success=True,
            kind=ImportItemKind.DOCUMENT,
            title=title,
            id=existing.id,
            external_id=document.external_id,
            matched_existing=True,
        )

    published = document.published is not False
    status = DocumentStatus.PUBLISHED if published else DocumentStatus.DRAFT

    new_document = Document(
        title=title,
        slug=generate_unique_slug(slug, Document, session),
        content=convert_to_block_document(document.content),
        excerpt=generate_excerpt(document.content),
        status=status.value,
        author_id=actor_id,
        published_at=utc_now() if published else None,
        import_metadata=build_import_metadata(document),
    )
    session.add(new_document)
    try:
        session.flush()
    except SQLAlchemyError as e:
        raise ImportItemError(title, f"Failed to insert document: {e}") from e

    log_operation(
        logger,
        operation="import_document",
        outcome="inserted",
        level=logging.DEBUG,
        document_id=new_document.id,
        status=status.value,
    )
    return ImportResult(
        success=True,
        kind=ImportItemKind.DOCUMENT,
        title=new_document.title,
        id=new_document.id,
        external_id=document.external_id,
    )


def build_import_metadata(document: ExternalDocument) -> Optional[Dict[str, Any]]:
    """
    Collect the source details worth keeping for an imported document.

    Returns:
        Dict with any of external_id, original_author, original_created_at,
        original_updated_at; None when the source supplied none of them
    """
    metadata: Dict[str, Any] = {}
    if document.external_id:
        metadata["external_id"] = document.external_id
    if document.author:
        metadata["original_author"] = document.author
    if document.created_at:
        metadata["original_created_at"] = document.created_at
    if document.updated_at:
        metadata["original_updated_at"] = document.updated_at
    return metadata or None


def resolve_category_refs(
    refs: List[str],
    id_map: Optional[CategoryIdMap],
    session: Session,
) -> List[int]:
    """
    Resolve category references to database ids.

    Each trimmed reference is looked up in the current import first (external
    id, then name), then by exact name among existing categories.
    Unresolvable references are dropped. Duplicates are removed, keeping the
    first occurrence.
    """
    category_ids: List[int] = []
    for ref in refs:
        key = (ref or "").strip()
        if not key:
            continue

        category_id = id_map.resolve(key) if id_map is not None else None
        if category_id is None:
            row = (
                session.query(Category.id)
                .filter(Category.name == key)
                .order_by(Category.id)
                .first()
            )
            category_id = row[0] if row else None

        if category_id is not None and category_id not in category_ids:
            category_ids.append(category_id)
    return category_ids


def link_document_categories(
    document_id: int,
    refs: List[str],
    id_map: Optional[CategoryIdMap] = None,
    job_id: Optional[int] = None,
) -> List[int]:
    """
    Link a newly imported document to the categories it references.

    Failures are logged, never raised: the document already exists.

    Returns:
        Category ids that were linked (empty on failure)
    """
    try:
        with session_scope() as session:
            category_ids = resolve_category_refs(refs, id_map, session)
            for category_id in category_ids:
                session.add(DocumentCategory(document_id=document_id, category_id=category_id))
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="link_document_categories",
            outcome="error",
            level=logging.WARNING,
            job_id=job_id,
            document_id=document_id,
            error=str(e),
        )
        return []

    if len(category_ids) < len(refs):
        log_operation(
            logger,
            operation="link_document_categories",
            outcome="partially_resolved",
            level=logging.DEBUG,
            document_id=document_id,
            resolved=len(category_ids),
            requested=len(refs),
        )
    return category_ids


def _find_existing_document(session: Session, slug: str, title: str) -> Optional[Document]:
    """Find a document by slug or exact title (title only when the slug is empty)."""
    if slug:
        condition = or_(Document.slug == slug, Document.title == title)
    else:
        condition = Document.title == title
    return session.query(Document).filter(condition).order_by(Document.id).first()


def _failure_message(kind: str, error: Exception) -> str:
    if isinstance(error, ImportItemError):
        return error.message
    return f"Failed to insert {kind}: {error}"
