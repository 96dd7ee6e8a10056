"""
Document and DocumentCategory models.

A document stores its body as a structured block document (JSON) rather than
raw HTML. Documents link to any number of categories through the
``document_categories`` association table.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from knowledge_base.utils.datetime_utils import utc_now

from .base import Base, BaseModel
from .enums import DocumentStatus


class Document(BaseModel):
    """
    Document model representing a knowledge base article.

    Attributes:
        title: Document title (max 200 characters)
        slug: URL-friendly unique identifier derived from the title
        content: Structured block document ({"type": "doc", "content": [...]})
        excerpt: Plain-text preview of the content
        status: DocumentStatus value ("draft", "published", "archived")
        author_id: Identity of the owning user
        published_at: When the document was published
        import_metadata: Opaque source details for imported documents
            (external id, original author, original timestamps)

    Relationships:
        category_links: One-to-Many with DocumentCategory (cascade delete)
    """

    __tablename__ = "documents"

    title = Column(String(200), nullable=False)
    slug = Column(String(220), nullable=False, unique=True, index=True)
    content = Column(JSON, nullable=False)
    excerpt = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=DocumentStatus.DRAFT.value)
    author_id = Column(String(64), nullable=False)
    published_at = Column(DateTime, nullable=True)
    import_metadata = Column(JSON, nullable=True)

    category_links = relationship(
        "DocumentCategory",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_document_title", "title"),
        Index("idx_document_status", "status"),
        Index("idx_document_author", "author_id"),
    )

    @property
    def category_ids(self) -> list:
        """IDs of the categories this document is linked to."""
        return [link.category_id for link in self.category_links]

    def __repr__(self) -> str:
        """String representation of document."""
        return f"Document(id={self.id}, title='{self.title}', status='{self.status}')"


class DocumentCategory(Base):
    """
    Association between a document and a category.

    Attributes:
        document_id: Foreign key to Document
        category_id: Foreign key to Category
        created_at: When the link was created
    """

    __tablename__ = "document_categories"

    document_id = Column(
        Integer,
        ForeignKey("documents.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(DateTime, nullable=False, default=utc_now)

    document = relationship("Document", back_populates="category_links")
    category = relationship("Category", back_populates="document_links")

    def __repr__(self) -> str:
        return f"DocumentCategory(document_id={self.document_id}, category_id={self.category_id})"
