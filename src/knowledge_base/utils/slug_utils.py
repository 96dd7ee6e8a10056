"""Slug generation utilities for categories and documents.

This module provides utilities for generating URL-safe, deterministic slugs
from names and titles with Unicode support and uniqueness guarantees.

Key Features:
- Unicode normalization (NFD decomposition)
- ASCII transliteration
- Deterministic output (same input always gives same slug)
- Optional uniqueness checking against a model's slug column

Examples:
    >>> create_slug("Getting Started")
    'getting-started'

    >>> create_slug("Café Policies")
    'cafe-policies'

    >>> create_slug("  HR / Benefits  ")
    'hr-benefits'
"""

import re
import unicodedata
from typing import Optional

from sqlalchemy.orm import Session

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def create_slug(text: str) -> str:
    """Generate a URL-safe slug from a name or title.

    Algorithm:
        1. Normalize Unicode to NFD and drop combining marks
        2. Encode to ASCII, ignoring non-ASCII characters
        3. Lowercase and trim
        4. Replace whitespace and underscore runs with hyphens
        5. Remove everything except letters, digits and hyphens
        6. Collapse repeated hyphens and strip them from both ends

    Args:
        text: Name or title to convert

    Returns:
        Slug string; empty if the input has no usable characters

    Examples:
        >>> create_slug("Onboarding & HR")
        'onboarding-hr'

        >>> create_slug("100% Remote")
        '100-remote'
    """
    if not text:
        return ""

    normalized = unicodedata.normalize("NFD", str(text))
    slug = normalized.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().strip()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def generate_unique_slug(
    base_slug: str,
    model,
    session: Session,
    exclude_id: Optional[int] = None,
    fallback: str = "untitled",
) -> str:
    """
    Generate a unique slug by appending a number suffix if needed.

    Args:
        base_slug: The base slug to make unique
        model: Mapped class with a ``slug`` column
        session: Database session
        exclude_id: ID to exclude from uniqueness check (for updates)
        fallback: Base used when ``base_slug`` is empty

    Returns:
        Unique slug (e.g., "policies" or "policies-2")
    """
    base_slug = base_slug or fallback
    slug = base_slug
    counter = 1

    while True:
        query = session.query(model).filter(model.slug == slug)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)

        if query.first() is None:
            return slug

        counter += 1
        slug = f"{base_slug}-{counter}"

        if counter > 10000:
            raise ValueError(f"Unable to generate unique slug for '{base_slug}'")


def validate_slug_format(slug: str) -> bool:
    """Validate that a slug is lowercase alphanumeric with hyphens only.

    Examples:
        >>> validate_slug_format("getting-started")
        True

        >>> validate_slug_format("Getting_Started")
        False

        >>> validate_slug_format("")
        False
    """
    if not slug:
        return False
    return bool(SLUG_PATTERN.match(slug))
