"""
Database models package.

This package contains all SQLAlchemy ORM models for the knowledge base core.
"""

from .base import Base, BaseModel
from .category import Category
from .document import Document, DocumentCategory
from .enums import DocumentStatus, ImportItemKind, ImportJobStatus
from .import_job import ImportJob

__all__ = [
    "Base",
    "BaseModel",
    # Hierarchy
    "Category",
    # Content
    "Document",
    "DocumentCategory",
    # Import audit
    "ImportJob",
    # Enums
    "DocumentStatus",
    "ImportItemKind",
    "ImportJobStatus",
]
