"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from knowledge_base.utils.datetime_utils import utc_now, parse_datetime

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # For loosely formatted timestamps found in import files
    parse_datetime("2024-01-15T10:30:00Z")
"""

from datetime import datetime, timezone
from typing import Optional

# Formats tried after ISO 8601 parsing fails
_FALLBACK_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%d %b %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%a, %d %b %Y %H:%M:%S %Z",
)


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def parse_datetime(value: str) -> Optional[datetime]:
    """Parse a timestamp string from an external export.

    ISO 8601 is tried first (a trailing "Z" is accepted), then a small set of
    common human-entered formats.

    Args:
        value: Timestamp text

    Returns:
        Parsed datetime, or None if the text is not a recognizable date
    """
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return None


def is_valid_datetime(value: str) -> bool:
    """Check whether a timestamp string parses as a date."""
    return parse_datetime(value) is not None
