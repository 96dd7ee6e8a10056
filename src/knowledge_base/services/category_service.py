"""
Category Service - CRUD operations for the category hierarchy.

Every parent assignment made here goes through the hierarchy guard in
category_hierarchy_service, so categories created or moved through this API
never form cycles or nest deeper than three levels. The import pipeline
writes categories directly and is not subject to the guard.

Session Management Pattern:
- All functions accept optional `session` parameter
- If session is provided, use it directly (allows callers to manage transactions)
- If session is None, create a new session_scope for the operation
"""

from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from knowledge_base.models import Category, DocumentCategory
from knowledge_base.services.category_hierarchy_service import (
    build_category_tree,
    get_ancestors,
    get_category_tree,
    validate_parent_assignment,
)
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import (
    CategoryInUse,
    CategoryNotFound,
    ValidationError,
)
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.constants import MAX_CATEGORY_NAME_LENGTH, MAX_DESCRIPTION_LENGTH
from knowledge_base.utils.slug_utils import (
    create_slug,
    generate_unique_slug,
    validate_slug_format,
)

logger = get_service_logger(__name__)

ROOT_FILTER = "root"

# Keyword arguments accepted by update_category
UPDATABLE_FIELDS = ("name", "slug", "description", "sort_order", "parent_id")

__all__ = [
    "create_category",
    "update_category",
    "delete_category",
    "get_category",
    "list_categories",
    "get_category_tree",
    "get_ancestors",
    "build_category_tree",
]


# ============================================================================
# Validation Helpers
# ============================================================================


def _validate_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError(["Category name cannot be empty"])
    name = name.strip()
    if len(name) > MAX_CATEGORY_NAME_LENGTH:
        raise ValidationError(
            [f"Category name must be {MAX_CATEGORY_NAME_LENGTH} characters or less"]
        )
    return name


def _validate_description(description: Optional[str]) -> None:
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            [f"Category description must be {MAX_DESCRIPTION_LENGTH} characters or less"]
        )


def _validate_sort_order(sort_order: int) -> None:
    if sort_order is None or sort_order < 0:
        raise ValidationError(["Sort order must be non-negative"])


def _get_or_raise(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise CategoryNotFound(category_id)
    return category


def _document_count(session: Session, category_id: int) -> int:
    return (
        session.query(DocumentCategory)
        .filter(DocumentCategory.category_id == category_id)
        .count()
    )


# ============================================================================
# CRUD Operations
# ============================================================================


def create_category(
    name: str,
    actor_id: str,
    parent_id: Optional[int] = None,
    description: Optional[str] = None,
    sort_order: int = 0,
    slug: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Create a new category.

    Args:
        name: Category display name (e.g., "Onboarding")
        actor_id: Identity of the creating user
        parent_id: Parent category (None for a root)
        description: Optional description
        sort_order: Display ordering among siblings (default 0)
        slug: URL-friendly identifier (auto-generated if not provided)
        session: Optional database session

    Returns:
        Created category as a dictionary

    Raises:
        ValidationError: If a field is invalid or the slug is taken
        CategoryNotFound: If parent_id doesn't exist
        HierarchyValidationError: If the parent would nest it too deeply
    """
    name = _validate_name(name)
    _validate_description(description)
    _validate_sort_order(sort_order)
    if slug is not None and not validate_slug_format(slug):
        raise ValidationError(
            ["Slug must contain only lowercase letters, numbers, and hyphens"]
        )

    def _impl(sess: Session) -> Dict[str, Any]:
        validate_parent_assignment(None, parent_id, session=sess)

        if slug is not None:
            if sess.query(Category).filter(Category.slug == slug).first() is not None:
                raise ValidationError([f"Slug '{slug}' is already in use"])
            unique_slug = slug
        else:
            unique_slug = generate_unique_slug(create_slug(name), Category, sess)

        category = Category(
            name=name,
            slug=unique_slug,
            description=description,
            parent_id=parent_id,
            sort_order=sort_order,
            created_by=actor_id,
        )
        sess.add(category)
        sess.flush()
        sess.refresh(category)

        log_operation(
            logger,
            operation="create_category",
            outcome="success",
            category_id=category.id,
            parent_id=parent_id,
        )
        return category.to_dict()

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def update_category(
    category_id: int,
    session: Optional[Session] = None,
    **changes: Any,
) -> Dict[str, Any]:
    """
    Update a category's fields.

    Args:
        category_id: Category ID to update
        session: Optional database session
        **changes: Any of name, slug, description, sort_order, parent_id.
            parent_id=None moves the category to the root level.

    Returns:
        Updated category as a dictionary

    Raises:
        CategoryNotFound: If the category or new parent doesn't exist
        ValidationError: If a field is invalid or the slug is taken
        HierarchyValidationError: If the new parent is rejected
    """
    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError([f"Unknown field(s): {', '.join(unknown)}"])

    if "name" in changes:
        changes["name"] = _validate_name(changes["name"])
    if "description" in changes:
        _validate_description(changes["description"])
    if "sort_order" in changes:
        _validate_sort_order(changes["sort_order"])
    if "slug" in changes and not validate_slug_format(changes["slug"]):
        raise ValidationError(
            ["Slug must contain only lowercase letters, numbers, and hyphens"]
        )

    def _impl(sess: Session) -> Dict[str, Any]:
        category = _get_or_raise(sess, category_id)

        if "slug" in changes and changes["slug"] != category.slug:
            taken = (
                sess.query(Category)
                .filter(Category.slug == changes["slug"], Category.id != category_id)
                .first()
            )
            if taken is not None:
                raise ValidationError([f"Slug '{changes['slug']}' is already in use"])

        if "parent_id" in changes and changes["parent_id"] != category.parent_id:
            validate_parent_assignment(category_id, changes["parent_id"], session=sess)
            log_operation(
                logger,
                operation="move_category",
                outcome="success",
                category_id=category_id,
                previous_parent_id=category.parent_id,
                parent_id=changes["parent_id"],
            )

        category.update_from_dict(changes)

        sess.flush()
        sess.refresh(category)
        return category.to_dict()

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def delete_category(category_id: int, session: Optional[Session] = None) -> None:
    """
    Delete a category and its subcategories.

    Args:
        category_id: Category ID to delete
        session: Optional database session

    Raises:
        CategoryNotFound: If the category doesn't exist
        CategoryInUse: If documents are linked to the category
    """

    def _impl(sess: Session) -> None:
        category = _get_or_raise(sess, category_id)

        document_count = _document_count(sess, category_id)
        if document_count > 0:
            raise CategoryInUse(category.name, document_count)

        sess.delete(category)
        log_operation(logger, operation="delete_category", outcome="success", category_id=category_id)

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# Queries
# ============================================================================


def get_category(category_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Get a category with counts, its parent and its direct subcategories.

    Returns:
        Category dict plus document_count, subcategory_count, parent
        ({id, name, slug} or None) and subcategories (ordered by sort_order,
        then name)

    Raises:
        CategoryNotFound: If the category doesn't exist
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        category = _get_or_raise(sess, category_id)
        subcategories = (
            sess.query(Category)
            .filter(Category.parent_id == category_id)
            .order_by(Category.sort_order, Category.name)
            .all()
        )

        result = category.to_dict()
        result["document_count"] = _document_count(sess, category_id)
        result["subcategory_count"] = len(subcategories)
        result["parent"] = (
            {
                "id": category.parent.id,
                "name": category.parent.name,
                "slug": category.parent.slug,
            }
            if category.parent is not None
            else None
        )
        result["subcategories"] = [c.to_dict() for c in subcategories]
        return result

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def list_categories(
    parent_id: Union[int, str, None] = None,
    include_counts: bool = False,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List categories ordered by sort_order, then name.

    Args:
        parent_id: None for every category, "root" for root categories only,
            or an id for the direct children of that category
        include_counts: Add document_count to each entry
        session: Optional database session

    Returns:
        List of category dicts
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        query = sess.query(Category)
        if parent_id == ROOT_FILTER:
            query = query.filter(Category.parent_id.is_(None))
        elif parent_id is not None:
            query = query.filter(Category.parent_id == parent_id)

        categories = query.order_by(Category.sort_order, Category.name).all()

        results = []
        for category in categories:
            entry = category.to_dict()
            if include_counts:
                entry["document_count"] = _document_count(sess, category.id)
            results.append(entry)
        return results

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)
