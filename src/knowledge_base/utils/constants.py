"""
Constants for the knowledge base core.

This module defines system-wide constants including:
- Storage defaults
- Field limits enforced by import validation and the category service
- Category hierarchy limits
- Import file and job-listing settings
"""

from typing import List

# ============================================================================
# Storage
# ============================================================================

DATABASE_FILENAME = "knowledge_base.db"

# ============================================================================
# Field Limits
# ============================================================================

MAX_TITLE_LENGTH = 200
MAX_CATEGORY_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

# Excerpts longer than this are cut to EXCERPT_LENGTH - 3 characters plus "..."
EXCERPT_LENGTH = 200

# ============================================================================
# Category Hierarchy
# ============================================================================

# Three levels total: root (1), child (2), grandchild (3)
MAX_CATEGORY_DEPTH = 3

# Upper bound on parent-pointer walks over untrusted data
MAX_HIERARCHY_WALK = MAX_CATEGORY_DEPTH + 5

# ============================================================================
# Import Files
# ============================================================================

SUPPORTED_IMPORT_EXTENSIONS: List[str] = [".csv", ".json"]

# Delimiters accepted between category names in a single field
CATEGORY_REF_DELIMITERS = r"[,;|]"

TRUE_STRINGS = {"true", "yes", "1", "published", "active"}
FALSE_STRINGS = {"false", "no", "0", "draft", "inactive"}

# ============================================================================
# Roles
# ============================================================================

ADMIN_ROLE = "admin"

# ============================================================================
# Import Jobs
# ============================================================================

DEFAULT_JOB_PAGE_SIZE = 10
