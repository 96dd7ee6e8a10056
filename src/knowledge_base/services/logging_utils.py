"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across the import pipeline and the
category services.

Usage:
    from knowledge_base.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="import_category",
        outcome="inserted",
        category_id=12,
        external_id="cat-7",
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "knowledge_base.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance under the 'knowledge_base.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'knowledge_base.services.category_import_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "import_document", "move_category")
        outcome: Outcome description (e.g., "success", "matched", "error")
        level: Log level (default: INFO). Use DEBUG for per-item chatter.
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - job_id: Import job being processed
            - category_id / document_id: Entity affected
            - external_id: Identifier from the source export
            - error: Error message if outcome is "error"
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
