"""
Category Import Service - Sequence and persist imported categories.

Categories are ordered so that each one follows its parent, then inserted one
at a time. Every category runs in its own transaction, so a rejected insert
only loses that category.

Duplicate handling: a category whose slug or name already exists is matched,
not inserted, and the existing id is reused. Matching by name can attach an
incoming category to an unrelated existing one that happens to share its
name; that behavior is kept as is.

Resolution: every category has a dense index (ParsedImport.reindex). Parent
references and document category references are resolved to an index
through CategoryIndex, and from the index to a database id through
CategoryIdMap.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from knowledge_base.models import Category, ImportItemKind
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import ImportItemError
from knowledge_base.services.import_types import (
    CategoryIndex,
    ExternalCategory,
    ImportError,
    ImportResult,
)
from knowledge_base.services.import_validation_service import validate_category
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.slug_utils import create_slug, generate_unique_slug

logger = get_service_logger(__name__)


class CategoryIdMap:
    """Map imported categories to the database ids they ended up with.

    Keyed by arena index; lookups by external id or name go through the
    CategoryIndex of the same import.
    """

    def __init__(self, index: CategoryIndex):
        self._index = index
        self._ids: Dict[int, int] = {}

    def record(self, position: int, category_id: int) -> None:
        self._ids[position] = category_id

    def get(self, position: Optional[int]) -> Optional[int]:
        if position is None:
            return None
        return self._ids.get(position)

    def resolve(self, ref: Optional[str]) -> Optional[int]:
        """Return the database id for an external id or name, if imported."""
        return self.get(self._index.resolve(ref))

    def parent_id(self, category: ExternalCategory) -> Optional[int]:
        """Return the database id of the category's declared parent, if imported."""
        return self.get(self._index.parent_index(category))

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class CategoryImportOutcome:
    """Results of importing a list of categories."""

    results: List[ImportResult] = field(default_factory=list)
    errors: List[ImportError] = field(default_factory=list)
    failed: int = 0
    id_map: Optional[CategoryIdMap] = None

    @property
    def success_count(self) -> int:
        return len(self.results)


# ============================================================================
# Hierarchy Sequencer
# ============================================================================


def sequence_categories(
    categories: List[ExternalCategory],
    index: Optional[CategoryIndex] = None,
) -> Tuple[List[ExternalCategory], Set[int]]:
    """
    Order categories so that no category precedes its parent.

    Each pass places every category whose parent reference is empty or
    already placed, keeping original relative order. Passes repeat until one
    places nothing. Whatever is left (a parent outside the set, a parent that
    is itself stuck, or a cycle) is appended in original order.

    The placed set is a snapshot taken at the start of each pass, so a parent
    and its child never land in the same pass.

    Args:
        categories: Categories with dense indices assigned
        index: Optional prebuilt index over ``categories``

    Returns:
        Tuple of (ordered categories, indices of the appended leftovers)
    """
    if index is None:
        index = CategoryIndex(categories)

    ordered: List[ExternalCategory] = []
    placed: Set[int] = set()
    remaining = list(categories)

    while remaining:
        snapshot = frozenset(placed)
        ready = []
        waiting = []
        for category in remaining:
            parent_position = index.parent_index(category)
            if not category.parent_ref or (
                parent_position is not None and parent_position in snapshot
            ):
                ready.append(category)
            else:
                waiting.append(category)

        if not ready:
            break

        ordered.extend(ready)
        placed.update(c.index for c in ready)
        remaining = waiting

    leftovers = {c.index for c in remaining}
    ordered.extend(remaining)
    return ordered, leftovers


# ============================================================================
# Category Importer
# ============================================================================


def import_categories(
    categories: List[ExternalCategory],
    actor_id: str,
    job_id: Optional[int] = None,
) -> CategoryImportOutcome:
    """
    Persist categories in parent-first order.

    Args:
        categories: Parsed categories with dense indices assigned
        actor_id: Identity recorded as created_by on new categories
        job_id: Import job the run belongs to, for log context

    Returns:
        CategoryImportOutcome with results, errors and the id map that the
        document importer resolves category references through
    """
    index = CategoryIndex(categories)
    id_map = CategoryIdMap(index)
    outcome = CategoryImportOutcome(id_map=id_map)

    ordered, leftovers = sequence_categories(categories, index)

    for category in ordered:
        field_errors = validate_category(category)
        if field_errors:
            outcome.errors.extend(field_errors)
            outcome.failed += 1
            log_operation(
                logger,
                operation="import_category",
                outcome="invalid",
                job_id=job_id,
                category_name=category.label,
                error=field_errors[0].error,
            )
            continue

        as_root = category.index in leftovers
        if as_root and category.parent_ref:
            log_operation(
                logger,
                operation="import_category",
                outcome="orphan_as_root",
                level=logging.WARNING,
                job_id=job_id,
                category_name=category.name,
                parent_ref=category.parent_ref,
            )

        try:
            with session_scope() as session:
                result = _import_single_category(category, id_map, as_root, actor_id, session)
        except (ImportItemError, SQLAlchemyError, ValueError) as e:
            outcome.errors.append(
                ImportError(
                    error=_failure_message("category", e),
                    row=category.row,
                    item=category.name,
                    external_id=category.external_id,
                )
            )
            outcome.failed += 1
            log_operation(
                logger,
                operation="import_category",
                outcome="error",
                level=logging.ERROR,
                job_id=job_id,
                category_name=category.name,
                error=str(e),
            )
            continue

        id_map.record(category.index, result.id)
        outcome.results.append(result)

    log_operation(
        logger,
        operation="import_categories",
        outcome="done",
        job_id=job_id,
        imported=outcome.success_count,
        failed=outcome.failed,
        mapped=len(id_map),
    )
    return outcome


def _import_single_category(
    category: ExternalCategory,
    id_map: CategoryIdMap,
    as_root: bool,
    actor_id: str,
    session: Session,
) -> ImportResult:
    """Match or insert one category inside the caller's transaction."""
    name = category.name.strip()
    slug = create_slug(name)

    existing = _find_existing_category(session, slug, name)
    if existing is not None:
        log_operation(
            logger,
            operation="import_category",
            outcome="matched",
            level=logging.DEBUG,
            category_id=existing.id,
            category_name=name,
        )
        return ImportResult(
            success=True,
            kind=ImportItemKind.CATEGORY,
            title=name,
            id=existing.id,
            external_id=category.external_id,
            matched_existing=True,
        )

    parent_id = None
    if not as_root:
        parent_id = id_map.parent_id(category)

    new_category = Category(
        name=name,
        slug=generate_unique_slug(slug, Category, session),
        description=category.description,
        parent_id=parent_id,
        sort_order=category.sort_order or 0,
        created_by=actor_id,
    )
    session.add(new_category)
    try:
        session.flush()
    except SQLAlchemyError as e:
        raise ImportItemError(name, f"Failed to insert category: {e}") from e

    log_operation(
        logger,
        operation="import_category",
        outcome="inserted",
        level=logging.DEBUG,
        category_id=new_category.id,
        parent_id=parent_id,
        category_name=name,
    )
    return ImportResult(
        success=True,
        kind=ImportItemKind.CATEGORY,
        title=new_category.name,
        id=new_category.id,
        external_id=category.external_id,
    )


def _find_existing_category(session: Session, slug: str, name: str) -> Optional[Category]:
    """Find a category by slug or exact name (name only when the slug is empty)."""
    if slug:
        condition = or_(Category.slug == slug, Category.name == name)
    else:
        condition = Category.name == name
    return session.query(Category).filter(condition).order_by(Category.id).first()


def _failure_message(kind: str, error: Exception) -> str:
    if isinstance(error, ImportItemError):
        return error.message
    return f"Failed to insert {kind}: {error}"
