"""
Base model class for all database models.

Provides common functionality and fields for all models:
- Integer primary key
- UUID column for external references
- Timestamp fields (created_at, updated_at)
- Utility methods (to_dict, update_from_dict)
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from knowledge_base.utils.datetime_utils import utc_now

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    All models should inherit from this class to get:
    - id: Primary key
    - uuid: UUID identifier
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last modified
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model columns to a dictionary.

        Datetimes are rendered as ISO 8601 strings.
        """
        result = {}

        for column in self.__table__.columns:
            value = getattr(self, column.name)

            if isinstance(value, datetime):
                value = value.isoformat()

            result[column.name] = value

        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Update model instance from dictionary.

        Only updates fields that exist in the model and are in the dictionary.

        Args:
            data: Dictionary with field names and values
        """
        for column in self.__table__.columns:
            if column.name in data and column.name not in ["id", "uuid", "created_at", "updated_at"]:
                setattr(self, column.name, data[column.name])

        self.updated_at = utc_now()

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ClassName(id=1, ...)"
        """
        class_name = self.__class__.__name__
        attrs = []

        if getattr(self, "id", None) is not None:
            attrs.append(f"id={self.id}")

        if getattr(self, "name", None) is not None:
            attrs.append(f"name='{self.name}'")

        attrs_str = ", ".join(attrs)
        return f"{class_name}({attrs_str})"
