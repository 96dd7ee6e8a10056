"""Services package - Import pipeline and category hierarchy for the knowledge base.

Architecture:
- Services: Stateless functions organized by concern
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy
- Logging: get_service_logger()/log_operation() with structured context

Import Pipeline (leaves first):
- import_parser_service: CSV/JSON to canonical records
- import_validation_service: Field and hierarchy checks, dry run
- category_import_service: Parent-first sequencing and category persistence
- content_converter: Raw HTML/text to block documents
- document_import_service: Document persistence and category links
- import_job_service: Job state machine and job queries
- import_service: Entry point wrapping the whole run

Category Hierarchy:
- category_hierarchy_service: Tree builder and parent assignment guard
- category_service: Category CRUD

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Service logger helpers
"""

from . import (
    category_hierarchy_service,
    category_import_service,
    category_service,
    content_converter,
    database,
    document_import_service,
    import_job_service,
    import_parser_service,
    import_service,
    import_validation_service,
)
from .exceptions import (
    AuthorizationError,
    CategoryInUse,
    CategoryNotFound,
    CircularReferenceError,
    HierarchyValidationError,
    ImportItemError,
    ImportJobNotFound,
    JobTrackingError,
    MaxDepthExceededError,
    ParseError,
    SelfParentError,
    ServiceError,
    UnsupportedFileTypeError,
    ValidationError,
)
from .import_service import ImportReport, run_import, run_import_file
from .import_types import ImportActor

__all__ = [
    # Modules
    "category_hierarchy_service",
    "category_import_service",
    "category_service",
    "content_converter",
    "database",
    "document_import_service",
    "import_job_service",
    "import_parser_service",
    "import_service",
    "import_validation_service",
    # Entry points
    "ImportActor",
    "ImportReport",
    "run_import",
    "run_import_file",
    # Exceptions
    "AuthorizationError",
    "CategoryInUse",
    "CategoryNotFound",
    "CircularReferenceError",
    "HierarchyValidationError",
    "ImportItemError",
    "ImportJobNotFound",
    "JobTrackingError",
    "MaxDepthExceededError",
    "ParseError",
    "SelfParentError",
    "ServiceError",
    "UnsupportedFileTypeError",
    "ValidationError",
]
