"""Service layer exception classes for the knowledge base core.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the import pipeline and the category API.

Exception Hierarchy:
    ServiceError (base)
    ├── ParseError
    │   └── UnsupportedFileTypeError
    ├── ValidationError
    ├── ImportItemError
    ├── JobTrackingError
    ├── AuthorizationError
    ├── CategoryNotFound
    ├── ImportJobNotFound
    ├── CategoryInUse
    └── HierarchyValidationError
        ├── SelfParentError
        ├── CircularReferenceError
        └── MaxDepthExceededError
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ParseError(ServiceError):
    """Raised when an import file is malformed or has an unrecognized shape.

    Parse errors are fatal: they abort the import before any job is created.
    """

    pass


class UnsupportedFileTypeError(ParseError):
    """Raised when an import file has an extension other than .csv or .json.

    Example:
        >>> raise UnsupportedFileTypeError("export.xlsx")
        UnsupportedFileTypeError: Invalid file type 'export.xlsx'. Only CSV and JSON files are supported.
    """

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f"Invalid file type '{file_name}'. Only CSV and JSON files are supported."
        )


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class ImportItemError(ServiceError):
    """Raised when a single import item cannot be persisted.

    Args:
        item: Title or name of the item
        message: Why the item failed
    """

    def __init__(self, item: str, message: str):
        self.item = item
        self.message = message
        super().__init__(message)


class JobTrackingError(ServiceError):
    """Raised when an import job row cannot be written."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Import job tracking failed: {message}")


class AuthorizationError(ServiceError):
    """Raised when the caller lacks the role an operation requires."""

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class CategoryNotFound(ServiceError):
    """Raised when a category cannot be found by ID.

    Example:
        >>> raise CategoryNotFound(12)
        CategoryNotFound: Category with ID 12 not found
    """

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category with ID {category_id} not found")


class ImportJobNotFound(ServiceError):
    """Raised when an import job cannot be found by ID."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Import job with ID {job_id} not found")


class CategoryInUse(ServiceError):
    """Raised when deleting a category that still has linked documents."""

    def __init__(self, category_name: str, document_count: int):
        self.category_name = category_name
        self.document_count = document_count
        super().__init__(
            f"Cannot delete category '{category_name}': "
            f"linked to {document_count} document(s)"
        )


class HierarchyValidationError(ServiceError):
    """Raised when a category parent assignment violates tree invariants."""

    pass


class SelfParentError(HierarchyValidationError):
    """Raised when a category is assigned as its own parent."""

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__("Category cannot be its own parent")


class CircularReferenceError(HierarchyValidationError):
    """Raised when a parent assignment would create a cycle.

    Args:
        category_id: Category being moved
        parent_id: Proposed parent, which is one of its descendants
    """

    def __init__(self, category_id: int, parent_id: int):
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(
            f"Cannot move category {category_id} under {parent_id}: "
            "the new parent is one of its own descendants"
        )


class MaxDepthExceededError(HierarchyValidationError):
    """Raised when a parent assignment would nest categories too deeply.

    Args:
        category_id: Category being created or moved (None when creating)
        depth: Level the deepest affected category would end up at (root = 1)
        max_depth: Maximum supported level
    """

    def __init__(self, category_id: Optional[int], depth: int, max_depth: int):
        self.category_id = category_id
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(
            f"Maximum category nesting depth ({max_depth} levels) would be exceeded "
            f"(resulting depth {depth})"
        )
