"""Data structures shared by the import pipeline.

Canonical records are the format-independent shape every parser output is
reduced to. Per-item outcomes (ImportResult, ImportError) are accumulated
during a run; only the aggregate error list is persisted on the job.

Categories in a parsed file are addressed by a dense integer index assigned
at parse time. Parent references and document category references are
resolved through CategoryIndex, which knows both spellings of a category key
(external id and name) and always prefers the external id.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from knowledge_base.models.enums import ImportItemKind
from knowledge_base.utils.constants import ADMIN_ROLE


# ============================================================================
# Canonical Records
# ============================================================================


@dataclass
class ExternalCategory:
    """A category as read from an import file.

    Attributes:
        name: Display name (required)
        external_id: Identifier in the source system
        description: Optional description
        parent_ref: External id or bare name of the parent category
        sort_order: Ordering among siblings
        row: 1-based position in the source file (None when synthesized)
        index: Dense position in ParsedImport.categories
    """

    name: str
    external_id: Optional[str] = None
    description: Optional[str] = None
    parent_ref: Optional[str] = None
    sort_order: int = 0
    row: Optional[int] = None
    index: Optional[int] = None

    @property
    def label(self) -> str:
        return self.name or self.external_id or "Unknown"


@dataclass
class ExternalDocument:
    """A document as read from an import file.

    Attributes:
        title: Document title (required)
        content: Raw text or HTML body (required)
        external_id: Identifier in the source system
        category_refs: Names or external ids of the categories it belongs to
        author: Original author, kept as descriptive metadata only
        created_at: Original creation timestamp text
        updated_at: Original modification timestamp text
        published: False when the source marked it unpublished or deleted
        row: 1-based position in the source file
    """

    title: str
    content: str
    external_id: Optional[str] = None
    category_refs: Optional[List[str]] = None
    author: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published: Optional[bool] = None
    row: Optional[int] = None

    @property
    def label(self) -> str:
        return self.title or self.external_id or "Unknown"


class CategoryIndex:
    """Resolve category keys (external id or name) to arena indices.

    The first category declaring a key owns it. External ids are consulted
    before names so that an id is never shadowed by an unrelated category
    whose name happens to equal it.
    """

    def __init__(self, categories: Iterable[ExternalCategory]):
        self._by_external_id: Dict[str, int] = {}
        self._by_name: Dict[str, int] = {}
        for category in categories:
            if category.index is None:
                raise ValueError(f"Category '{category.label}' has no index assigned")
            if category.external_id:
                self._by_external_id.setdefault(str(category.external_id).strip(), category.index)
            if category.name:
                self._by_name.setdefault(category.name.strip(), category.index)

    def resolve(self, key: Optional[str]) -> Optional[int]:
        """Return the index of the category identified by ``key``, if any."""
        if key is None:
            return None
        key = str(key).strip()
        if not key:
            return None
        if key in self._by_external_id:
            return self._by_external_id[key]
        return self._by_name.get(key)

    def parent_index(self, category: ExternalCategory) -> Optional[int]:
        """Return the index of ``category``'s declared parent, if it is in the set."""
        return self.resolve(category.parent_ref)


@dataclass
class ParsedImport:
    """Canonical output of the format parser."""

    documents: List[ExternalDocument] = field(default_factory=list)
    categories: List[ExternalCategory] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.reindex()

    def reindex(self) -> None:
        """Assign each category its position as a dense index."""
        for position, category in enumerate(self.categories):
            category.index = position

    @property
    def total_items(self) -> int:
        return len(self.documents) + len(self.categories)


# ============================================================================
# Per-item Outcomes
# ============================================================================


@dataclass
class ImportError:
    """Structured error for a single failed or invalid item."""

    error: str
    row: Optional[int] = None
    item: Optional[str] = None
    external_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"error": self.error}
        if self.row is not None:
            result["row"] = self.row
        if self.item is not None:
            result["item"] = self.item
        if self.external_id is not None:
            result["external_id"] = self.external_id
        return result


@dataclass
class ImportResult:
    """Outcome of persisting one item (inserted or matched to an existing row)."""

    success: bool
    kind: ImportItemKind
    title: str
    id: Optional[int] = None
    external_id: Optional[str] = None
    matched_existing: bool = False

    def to_item_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "title": self.title, "id": self.id}


@dataclass
class ImportStats:
    """Aggregate counts for a run."""

    total: int = 0
    success: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "success": self.success, "failed": self.failed}


# ============================================================================
# Caller Identity
# ============================================================================


@dataclass
class ImportActor:
    """The authenticated caller, as supplied by the authorization layer."""

    user_id: str
    role: str = ADMIN_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
