"""
Import Validation Service - Field and hierarchy checks for parsed imports.

Everything here is pure: functions take canonical records and return lists
of ImportError, never touching the database. The same per-item checks are
used by the dry run and, item by item, by a real import, so both agree on
which items are invalid.

Usage:
    from knowledge_base.services.import_validation_service import perform_dry_run

    result = perform_dry_run(parsed)
    if not result.valid:
        for error in result.errors:
            print(error.to_dict())
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from knowledge_base.services.import_types import (
    CategoryIndex,
    ExternalCategory,
    ExternalDocument,
    ImportError,
    ImportStats,
    ParsedImport,
)
from knowledge_base.utils.constants import (
    MAX_CATEGORY_NAME_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
)
from knowledge_base.utils.datetime_utils import is_valid_datetime

NO_ITEMS_WARNING = "No documents or categories found in import file"
UNCATEGORIZED_DOCUMENTS_WARNING = "Some documents have no categories assigned"
UNDESCRIBED_CATEGORIES_WARNING = "Some categories have no description"


@dataclass
class DryRunResult:
    """Report of a validation pass that persisted nothing."""

    valid: bool
    errors: List[ImportError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: ImportStats = field(default_factory=ImportStats)
    total_documents: int = 0
    valid_documents: int = 0
    total_categories: int = 0
    valid_categories: int = 0

    def breakdown(self) -> Dict[str, Dict[str, int]]:
        return {
            "documents": {"total": self.total_documents, "valid": self.valid_documents},
            "categories": {"total": self.total_categories, "valid": self.valid_categories},
        }


# ============================================================================
# Per-item Checks
# ============================================================================


def validate_document(document: ExternalDocument) -> List[ImportError]:
    """
    Check one document's fields.

    Rules:
        - title present and at most MAX_TITLE_LENGTH characters
        - content present
        - category_refs, when given, a list of non-empty strings
        - created_at / updated_at, when given, parseable dates

    Returns:
        List of ImportError (empty when the document is valid)
    """
    errors: List[ImportError] = []
    title = (document.title or "").strip()
    item = document.label

    def add(message: str) -> None:
        errors.append(
            ImportError(
                error=message,
                row=document.row,
                item=item,
                external_id=document.external_id,
            )
        )

    if not title:
        add("Title is required")
    elif len(document.title) > MAX_TITLE_LENGTH:
        add(f"Title must be {MAX_TITLE_LENGTH} characters or less")

    if not (document.content or "").strip():
        add("Content is required")

    refs = document.category_refs
    if refs is not None:
        if not isinstance(refs, list):
            add("Categories must be a list")
        elif any(not isinstance(ref, str) or not ref.strip() for ref in refs):
            add("Category names must be non-empty strings")

    if document.created_at and not is_valid_datetime(document.created_at):
        add(f"Invalid created_at date format: {document.created_at}")
    if document.updated_at and not is_valid_datetime(document.updated_at):
        add(f"Invalid updated_at date format: {document.updated_at}")

    return errors


def validate_category(category: ExternalCategory) -> List[ImportError]:
    """
    Check one category's fields.

    Rules:
        - name present and at most MAX_CATEGORY_NAME_LENGTH characters
        - description at most MAX_DESCRIPTION_LENGTH characters
        - sort_order not negative

    Returns:
        List of ImportError (empty when the category is valid)
    """
    errors: List[ImportError] = []
    name = (category.name or "").strip()
    item = category.label

    def add(message: str) -> None:
        errors.append(
            ImportError(
                error=message,
                row=category.row,
                item=item,
                external_id=category.external_id,
            )
        )

    if not name:
        add("Category name is required")
    elif len(category.name) > MAX_CATEGORY_NAME_LENGTH:
        add(f"Category name must be {MAX_CATEGORY_NAME_LENGTH} characters or less")

    if category.description and len(category.description) > MAX_DESCRIPTION_LENGTH:
        add(f"Category description must be {MAX_DESCRIPTION_LENGTH} characters or less")

    if category.sort_order < 0:
        add("Sort order must be non-negative")

    return errors


# ============================================================================
# Hierarchy Check
# ============================================================================


def validate_category_hierarchy(
    categories: List[ExternalCategory],
    index: Optional[CategoryIndex] = None,
) -> List[ImportError]:
    """
    Detect circular parent references within a set of categories.

    For each category with a parent reference, the parent chain is walked
    through the category index. A key seen twice means a cycle; the error
    names the full path. A parent that is not in the set ends the walk
    without an error (it becomes an orphan at import time).

    The walk is bounded by the number of categories, so it terminates on any
    input.

    Args:
        categories: Categories with dense indices assigned
        index: Optional prebuilt index over ``categories``

    Returns:
        One ImportError per category whose chain loops
    """
    if index is None:
        index = CategoryIndex(categories)

    errors: List[ImportError] = []

    for category in categories:
        if not category.parent_ref:
            continue

        path: List[str] = []
        seen: Set[str] = set()
        current = category

        for _ in range(len(categories) + 2):
            parent_key = (current.parent_ref or "").strip()
            if not parent_key:
                break

            if parent_key in seen:
                path_text = " -> ".join(path + [parent_key])
                errors.append(
                    ImportError(
                        error=f"Circular reference detected in category hierarchy: {path_text}",
                        row=category.row,
                        item=category.label,
                        external_id=category.external_id,
                    )
                )
                break

            seen.add(parent_key)
            path.append(parent_key)

            parent_position = index.resolve(parent_key)
            if parent_position is None:
                break
            current = categories[parent_position]

    return errors


# ============================================================================
# Dry Run
# ============================================================================


def perform_dry_run(parsed: ParsedImport) -> DryRunResult:
    """
    Validate a parsed import without touching storage.

    Items are counted invalid when their title (documents) or name
    (categories) appears among the errors of the same kind. Warnings are
    informational and never make the result invalid.

    Args:
        parsed: Parser output

    Returns:
        DryRunResult with errors, warnings and stats
    """
    document_errors: List[ImportError] = []
    for document in parsed.documents:
        document_errors.extend(validate_document(document))

    category_errors: List[ImportError] = []
    for category in parsed.categories:
        category_errors.extend(validate_category(category))
    if parsed.categories:
        category_errors.extend(validate_category_hierarchy(parsed.categories))

    invalid_documents = _count_flagged([d.label for d in parsed.documents], document_errors)
    invalid_categories = _count_flagged([c.label for c in parsed.categories], category_errors)

    total_documents = len(parsed.documents)
    total_categories = len(parsed.categories)
    valid_documents = total_documents - invalid_documents
    valid_categories = total_categories - invalid_categories

    warnings: List[str] = []
    if total_documents == 0 and total_categories == 0:
        warnings.append(NO_ITEMS_WARNING)
    if any(not d.category_refs for d in parsed.documents):
        warnings.append(UNCATEGORIZED_DOCUMENTS_WARNING)
    if any(not c.description for c in parsed.categories):
        warnings.append(UNDESCRIBED_CATEGORIES_WARNING)

    errors = document_errors + category_errors
    total = total_documents + total_categories
    success = valid_documents + valid_categories

    return DryRunResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        stats=ImportStats(total=total, success=success, failed=total - success),
        total_documents=total_documents,
        valid_documents=valid_documents,
        total_categories=total_categories,
        valid_categories=valid_categories,
    )


def _count_flagged(labels: List[str], errors: List[ImportError]) -> int:
    """Count distinct labels named by at least one error."""
    flagged = {e.item for e in errors if e.item is not None}
    return len(flagged & set(labels))
