"""
Enumerations shared by the knowledge base models.

This module contains:
- DocumentStatus: Publication state of a document
- ImportJobStatus: Lifecycle state of a bulk import job
- ImportItemKind: Entity kind an import result or error refers to
"""

from enum import Enum


class DocumentStatus(str, Enum):
    """
    Publication state of a document.

    Values:
        DRAFT: Visible to its author and administrators only
        PUBLISHED: Visible to every authenticated user
        ARCHIVED: Retained but hidden from navigation
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ImportJobStatus(str, Enum):
    """
    Lifecycle state of an import job.

    A job moves pending -> processing -> completed | failed. Terminal
    states are never left; a re-run creates a new job.

    Values:
        PENDING: Created, processing not yet started
        PROCESSING: Items are being imported
        COMPLETED: Finished with at least one successful item
        FAILED: Finished with no successful item, or aborted by an error
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportJobStatus.COMPLETED, ImportJobStatus.FAILED)


class ImportItemKind(str, Enum):
    """Entity kind handled by the import pipeline."""

    DOCUMENT = "document"
    CATEGORY = "category"
