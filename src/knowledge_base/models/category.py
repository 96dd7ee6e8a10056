"""
Category model for hierarchical document grouping.

Categories form a tree of at most three levels (root > child > grandchild)
through the self-referencing ``parent_id`` column. The tree invariants (no
cycles, bounded depth) are enforced by the category hierarchy service, not by
the database.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Category(BaseModel):
    """
    Category model representing a node in the category hierarchy.

    Attributes:
        name: Category display name (e.g., "Engineering", "Onboarding")
        slug: URL-friendly unique identifier (e.g., "engineering")
        description: Optional description text
        parent_id: Foreign key to the parent category (None for roots)
        sort_order: Display ordering among siblings (default 0)
        created_by: Identity of the user who created the category

    Relationships:
        parent: Many-to-One with Category
        children: One-to-Many with Category (cascade delete)
        document_links: One-to-Many with DocumentCategory (cascade delete)
    """

    __tablename__ = "categories"

    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    parent_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    sort_order = Column(Integer, nullable=False, default=0)
    created_by = Column(String(64), nullable=True)

    parent = relationship("Category", remote_side="Category.id", back_populates="children")
    children = relationship(
        "Category",
        back_populates="parent",
        cascade="all, delete-orphan",
        lazy="select",
    )
    document_links = relationship(
        "DocumentCategory",
        back_populates="category",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_category_name", "name"),
        Index("idx_category_sort", "sort_order"),
    )

    def __repr__(self) -> str:
        """String representation of category."""
        return f"Category(id={self.id}, name='{self.name}', parent_id={self.parent_id})"
