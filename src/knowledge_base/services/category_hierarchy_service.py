"""
Category Hierarchy Service - Tree building and parent assignment rules.

Categories form a tree of at most MAX_CATEGORY_DEPTH levels:

    Level 1: root ("Engineering")
    Level 2: child ("Backend")
    Level 3: grandchild ("Databases")

Two responsibilities live here:

- Building the nested tree from the flat table on every read. The builder is
  pure and tolerates bad data: a category whose parent is missing becomes a
  root, and a cycle stops growing instead of recursing forever.
- Guarding parent assignments made through the category API: no self
  parent, no cycles, no nesting beyond MAX_CATEGORY_DEPTH.

All parent-pointer walks are iterative and capped at MAX_HIERARCHY_WALK
steps, since the stored data is not assumed to be well formed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from knowledge_base.models import Category, DocumentCategory
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import (
    CategoryNotFound,
    CircularReferenceError,
    MaxDepthExceededError,
    SelfParentError,
)
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.constants import MAX_CATEGORY_DEPTH, MAX_HIERARCHY_WALK

logger = get_service_logger(__name__)


# ============================================================================
# Tree Builder
# ============================================================================


@dataclass
class CategoryTreeNode:
    """A category with its nested children, built fresh on each read."""

    id: int
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    document_count: int = 0
    depth: int = 0
    children: List["CategoryTreeNode"] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CategoryTreeNode":
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            slug=row.get("slug"),
            description=row.get("description"),
            parent_id=row.get("parent_id"),
            sort_order=row.get("sort_order") or 0,
            document_count=row.get("document_count") or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            "document_count": self.document_count,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }


def _sibling_key(row: Dict[str, Any]):
    return (row.get("sort_order") or 0, row.get("name") or "")


def build_category_tree(rows: List[Dict[str, Any]]) -> List[CategoryTreeNode]:
    """
    Build a nested category tree from flat rows.

    Args:
        rows: Category dicts with at least id, name, parent_id and sort_order;
            document_count is copied through when present

    Returns:
        Root nodes, siblings ordered by sort_order then name. Depth is the
        distance from the root (0 for roots).

    Roots are rows without a parent, or whose parent is not in ``rows``.
    Each row yields exactly one node: rows only reachable through a cycle
    are promoted to roots, and a visited set stops the cycle from growing.
    """
    by_id: Dict[int, Dict[str, Any]] = {}
    for row in rows:
        by_id.setdefault(row["id"], row)

    children_of: Dict[int, List[Dict[str, Any]]] = {}
    roots: List[Dict[str, Any]] = []
    for row in by_id.values():
        parent_id = row.get("parent_id")
        if parent_id is None or parent_id not in by_id or parent_id == row["id"]:
            roots.append(row)
        else:
            children_of.setdefault(parent_id, []).append(row)

    visited: Set[int] = set()
    tree: List[CategoryTreeNode] = []

    def grow(root_row: Dict[str, Any]) -> CategoryTreeNode:
        root = CategoryTreeNode.from_row(root_row)
        visited.add(root.id)
        stack = [root]
        while stack:
            node = stack.pop()
            for child_row in sorted(children_of.get(node.id, []), key=_sibling_key):
                if child_row["id"] in visited:
                    continue
                visited.add(child_row["id"])
                child = CategoryTreeNode.from_row(child_row)
                child.depth = node.depth + 1
                node.children.append(child)
                stack.append(child)
        return root

    for row in sorted(roots, key=_sibling_key):
        tree.append(grow(row))

    # Rows caught in a cycle are unreachable from any root
    stranded = [row for row in by_id.values() if row["id"] not in visited]
    for row in sorted(stranded, key=_sibling_key):
        if row["id"] not in visited:
            log_operation(
                logger,
                operation="build_category_tree",
                outcome="cycle_promoted_to_root",
                level=logging.WARNING,
                category_id=row["id"],
            )
            tree.append(grow(row))

    return tree


def flatten_tree(nodes: List[CategoryTreeNode]) -> List[CategoryTreeNode]:
    """Return every node in depth-first order."""
    flat: List[CategoryTreeNode] = []
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.children))
    return flat


def get_category_tree(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """
    Load every category with its document count and build the tree.

    Returns:
        List of root node dicts, each with nested "children"
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        counts = dict(
            sess.query(DocumentCategory.category_id, func.count(DocumentCategory.document_id))
            .group_by(DocumentCategory.category_id)
            .all()
        )
        rows = [
            {
                "id": c.id,
                "name": c.name,
                "slug": c.slug,
                "description": c.description,
                "parent_id": c.parent_id,
                "sort_order": c.sort_order,
                "document_count": counts.get(c.id, 0),
            }
            for c in sess.query(Category).order_by(Category.id).all()
        ]
        return [node.to_dict() for node in build_category_tree(rows)]

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# Ancestry
# ============================================================================


def _ancestor_chain(session: Session, start: Optional[Category]) -> List[Category]:
    """
    Walk parent pointers from ``start`` upward, ``start`` included.

    Stops at a root, at a repeated id, or after MAX_HIERARCHY_WALK steps.
    """
    chain: List[Category] = []
    seen: Set[int] = set()
    current = start
    while current is not None and current.id not in seen and len(chain) < MAX_HIERARCHY_WALK:
        chain.append(current)
        seen.add(current.id)
        if current.parent_id is None:
            break
        current = session.get(Category, current.parent_id)
    return chain


def get_ancestors(category_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """
    Get the path from a category up to its root (for breadcrumbs).

    Returns:
        Ancestors ordered from immediate parent to root

    Raises:
        CategoryNotFound: If the category doesn't exist
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        category = sess.get(Category, category_id)
        if category is None:
            raise CategoryNotFound(category_id)
        parent = sess.get(Category, category.parent_id) if category.parent_id else None
        return [
            {"id": c.id, "name": c.name, "slug": c.slug}
            for c in _ancestor_chain(sess, parent)
            if c.id != category_id
        ]

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def get_level(category_id: int, session: Optional[Session] = None) -> int:
    """Return a category's level (root = 1)."""

    def _impl(sess: Session) -> int:
        category = sess.get(Category, category_id)
        if category is None:
            raise CategoryNotFound(category_id)
        return len(_ancestor_chain(sess, category))

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def _subtree_height(session: Session, category_id: int) -> int:
    """Number of levels below a category (0 for a leaf), capped."""
    height = 0
    frontier = [category_id]
    seen: Set[int] = {category_id}
    while frontier and height < MAX_HIERARCHY_WALK:
        child_ids = [
            row[0]
            for row in session.query(Category.id).filter(Category.parent_id.in_(frontier)).all()
            if row[0] not in seen
        ]
        if not child_ids:
            break
        seen.update(child_ids)
        frontier = child_ids
        height += 1
    return height


# ============================================================================
# Mutation Guard
# ============================================================================


def validate_parent_assignment(
    category_id: Optional[int],
    parent_id: Optional[int],
    session: Optional[Session] = None,
) -> None:
    """
    Check that ``category_id`` may be placed under ``parent_id``.

    Args:
        category_id: Category being moved, or None for a new category
        parent_id: Proposed parent (None means root, always allowed)
        session: Optional database session

    Raises:
        SelfParentError: If parent_id equals category_id
        CategoryNotFound: If the proposed parent doesn't exist
        CircularReferenceError: If the proposed parent is the category itself
            or one of its descendants
        MaxDepthExceededError: If the category, or its deepest descendant,
            would end up below level MAX_CATEGORY_DEPTH
    """
    if parent_id is None:
        return

    def _reject(error: Exception) -> None:
        log_operation(
            logger,
            operation="validate_parent_assignment",
            outcome="rejected",
            category_id=category_id,
            parent_id=parent_id,
            error=str(error),
        )
        raise error

    if category_id is not None and parent_id == category_id:
        _reject(SelfParentError(category_id))

    def _impl(sess: Session) -> None:
        parent = sess.get(Category, parent_id)
        if parent is None:
            raise CategoryNotFound(parent_id)

        chain = _ancestor_chain(sess, parent)
        if category_id is not None and any(c.id == category_id for c in chain):
            _reject(CircularReferenceError(category_id, parent_id))

        reached_root = chain[-1].parent_id is None
        if not reached_root:
            # Stored ancestry loops or is too long to trust
            _reject(MaxDepthExceededError(category_id, MAX_HIERARCHY_WALK + 1, MAX_CATEGORY_DEPTH))

        new_level = len(chain) + 1
        if new_level > MAX_CATEGORY_DEPTH:
            _reject(MaxDepthExceededError(category_id, new_level, MAX_CATEGORY_DEPTH))

        if category_id is not None:
            deepest = new_level + _subtree_height(sess, category_id)
            if deepest > MAX_CATEGORY_DEPTH:
                _reject(MaxDepthExceededError(category_id, deepest, MAX_CATEGORY_DEPTH))

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def would_create_cycle(
    category_id: int, new_parent_id: int, session: Optional[Session] = None
) -> bool:
    """Check whether placing category_id under new_parent_id would form a cycle."""
    if category_id == new_parent_id:
        return True

    def _impl(sess: Session) -> bool:
        parent = sess.get(Category, new_parent_id)
        return any(c.id == category_id for c in _ancestor_chain(sess, parent))

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)
