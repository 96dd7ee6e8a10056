"""
Import Parser Service - Turn CSV or JSON exports into canonical records.

Exports come from systems this application does not control, so the same
field may arrive under several spellings. Every accepted spelling is declared
once, in DOCUMENT_FIELD_SYNONYMS and CATEGORY_FIELD_SYNONYMS; the first
present, non-empty candidate wins. Nothing else in the pipeline looks at
source key names.

Supported shapes:
- CSV with a header row; the header set decides whether rows are documents
  or categories.
- JSON array of document-like or category-like objects.
- JSON object with "documents" and/or "categories" lists.
- JSON object with a single "data" key wrapping either of the above.

Usage:
    from knowledge_base.services import import_parser_service

    parsed = import_parser_service.parse_import(text, "export.json")
    print(len(parsed.documents), len(parsed.categories))
"""

import csv
import io
import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from knowledge_base.services.exceptions import ParseError, UnsupportedFileTypeError
from knowledge_base.services.import_types import (
    ExternalCategory,
    ExternalDocument,
    ParsedImport,
)
from knowledge_base.services.logging_utils import get_service_logger, log_operation
from knowledge_base.utils.constants import (
    CATEGORY_REF_DELIMITERS,
    FALSE_STRINGS,
    SUPPORTED_IMPORT_EXTENSIONS,
    TRUE_STRINGS,
)

logger = get_service_logger(__name__)


# ============================================================================
# Field Synonym Tables
# ============================================================================

# Canonical field -> accepted source keys, in priority order (keys are
# compared lowercased)
DOCUMENT_FIELD_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "external_id": ("id", "article_id", "document_id", "external_id"),
    "title": ("page_title", "title", "name"),
    "content": ("html", "content", "body", "text"),
    "category_refs": ("categories", "category", "tags"),
    "category_name": ("category_name",),
    "subcategory_name": ("subcategory_name",),
    "author": ("owner_name", "author", "created_by", "author_name"),
    "created_at": ("created_at", "created", "date"),
    "updated_at": ("updated_at", "updated", "modified", "modified_at"),
    "published": ("published", "status", "state"),
    "deleted": ("deleted_at", "deleted", "is_deleted"),
}

CATEGORY_FIELD_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "external_id": ("id", "category_id", "external_id"),
    "name": ("name", "title", "category"),
    "description": ("description", "desc"),
    "parent_ref": ("parent", "parent_id", "parent_category"),
    "sort_order": ("sort_order", "order", "position"),
}

# Keys that mark a record as a document (title family without the ambiguous
# "name", plus the body family)
DOCUMENT_TITLE_KEYS = ("page_title", "title")
DOCUMENT_BODY_KEYS = DOCUMENT_FIELD_SYNONYMS["content"]
CATEGORY_MARKER_KEYS = ("name", "category")

# Top-level keys of the JSON object shape
ROOT_DOCUMENT_KEYS = ("documents", "articles")
ROOT_CATEGORY_KEYS = ("categories",)
ROOT_WRAPPER_KEY = "data"

# Nesting limit for {"data": {"data": ...}} wrappers
MAX_WRAPPER_DEPTH = 5


# ============================================================================
# Public API
# ============================================================================


def detect_file_kind(file_name: str) -> str:
    """
    Return "csv" or "json" for a file name.

    Raises:
        UnsupportedFileTypeError: If the extension is not supported
    """
    suffix = Path(file_name or "").suffix.lower()
    if suffix not in SUPPORTED_IMPORT_EXTENSIONS:
        raise UnsupportedFileTypeError(file_name)
    return suffix.lstrip(".")


def parse_import(content: str, file_name: str) -> ParsedImport:
    """
    Parse raw file text into canonical documents and categories.

    Args:
        content: Decoded file text
        file_name: Original file name; its extension selects the parser

    Returns:
        ParsedImport with documents and categories

    Raises:
        UnsupportedFileTypeError: If the extension is not .csv or .json
        ParseError: If the file is empty, malformed or of an unknown shape
    """
    kind = detect_file_kind(file_name)

    if content is None or not content.strip():
        raise ParseError("File is empty")

    try:
        if kind == "csv":
            parsed = parse_csv(content)
        else:
            parsed = parse_json(content)
    except ParseError as e:
        log_operation(
            logger,
            operation="parse_import",
            outcome="parse_error",
            file_name=file_name,
            error=str(e),
        )
        raise

    log_operation(
        logger,
        operation="parse_import",
        outcome="success",
        file_name=file_name,
        documents=len(parsed.documents),
        categories=len(parsed.categories),
    )
    return parsed


# ============================================================================
# CSV
# ============================================================================


def parse_csv(content: str) -> ParsedImport:
    """
    Parse CSV text whose first row is a header.

    Fields are split honoring double-quote escaping (a doubled quote inside a
    quoted field is a literal quote). Blank lines are skipped. A file holds
    either documents or categories, decided by its header set.

    Raises:
        ParseError: If the file is empty, malformed, or the header set
            matches neither kind
    """
    rows = _read_csv_rows(content)
    if not rows:
        raise ParseError("CSV file is empty")

    headers = [h.strip().lower() for h in rows[0]]
    header_set = set(headers)
    records = [_row_to_record(headers, values) for values in rows[1:]]

    has_document_headers = bool(header_set & set(DOCUMENT_TITLE_KEYS + DOCUMENT_BODY_KEYS))
    has_category_headers = bool(header_set & set(CATEGORY_MARKER_KEYS))

    if has_document_headers:
        documents = [normalize_document(r, row=i) for i, r in enumerate(records, start=1)]
        categories = synthesize_categories(records, [])
        return ParsedImport(documents=documents, categories=categories)

    if has_category_headers:
        categories = [normalize_category(r, row=i) for i, r in enumerate(records, start=1)]
        return ParsedImport(documents=[], categories=categories)

    raise ParseError("Unable to determine CSV data type. Expected document or category data.")


def _read_csv_rows(content: str) -> List[List[str]]:
    text = content.lstrip("\ufeff")
    try:
        reader = csv.reader(io.StringIO(text), skipinitialspace=False)
        rows = [[value.strip() for value in row] for row in reader]
    except csv.Error as e:
        raise ParseError(f"Invalid CSV format: {e}") from e
    return [row for row in rows if any(value for value in row)]


def _row_to_record(headers: List[str], values: List[str]) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    for header, value in zip(headers, values):
        # First column wins when a header repeats
        if header and header not in record:
            record[header] = value
    return record


# ============================================================================
# JSON
# ============================================================================


def parse_json(content: str) -> ParsedImport:
    """
    Parse JSON text in any of the supported shapes.

    Raises:
        ParseError: If the text is not valid JSON or the shape is unknown
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON format: {e}") from e

    return _parse_json_value(data, depth=0)


def _parse_json_value(data: Any, depth: int) -> ParsedImport:
    if isinstance(data, list):
        return _parse_array_format(data)

    if isinstance(data, dict):
        keys = {str(k).lower(): k for k in data}
        if any(k in keys for k in ROOT_DOCUMENT_KEYS + ROOT_CATEGORY_KEYS):
            return _parse_object_format(data, keys)
        if ROOT_WRAPPER_KEY in keys:
            if depth >= MAX_WRAPPER_DEPTH:
                raise ParseError("JSON 'data' wrappers are nested too deeply")
            return _parse_json_value(data[keys[ROOT_WRAPPER_KEY]], depth + 1)

    raise ParseError(
        "Unrecognized JSON structure. Expected an array or an object with "
        "documents/categories fields."
    )


def _parse_array_format(data: List[Any]) -> ParsedImport:
    if not data:
        raise ParseError("JSON array is empty")

    records = _require_objects(data, "array")
    first_keys = {k for k, v in records[0].items() if v is not None}

    is_document_data = bool(first_keys & set(DOCUMENT_TITLE_KEYS + ("name",))) and bool(
        first_keys & set(DOCUMENT_BODY_KEYS)
    )
    is_category_data = "name" in first_keys and not (
        first_keys & set(DOCUMENT_TITLE_KEYS + DOCUMENT_BODY_KEYS)
    )

    if is_document_data:
        documents = [normalize_document(r, row=i) for i, r in enumerate(records, start=1)]
        categories = synthesize_categories(records, [])
        return ParsedImport(documents=documents, categories=categories)

    if is_category_data:
        categories = [normalize_category(r, row=i) for i, r in enumerate(records, start=1)]
        return ParsedImport(documents=[], categories=categories)

    raise ParseError("Unable to determine data type from JSON array")


def _parse_object_format(data: Dict[str, Any], keys: Dict[str, Any]) -> ParsedImport:
    raw_documents = _first_list(data, keys, ROOT_DOCUMENT_KEYS)
    raw_categories = _first_list(data, keys, ROOT_CATEGORY_KEYS)

    document_records = _require_objects(raw_documents, "documents")
    category_records = _require_objects(raw_categories, "categories")

    documents = [normalize_document(r, row=i) for i, r in enumerate(document_records, start=1)]
    categories = [normalize_category(r, row=i) for i, r in enumerate(category_records, start=1)]
    categories.extend(synthesize_categories(document_records, categories))

    return ParsedImport(documents=documents, categories=categories)


def _first_list(data: Dict[str, Any], keys: Dict[str, Any], candidates: Iterable[str]) -> List[Any]:
    for candidate in candidates:
        if candidate not in keys:
            continue
        value = data[keys[candidate]]
        if not isinstance(value, list):
            raise ParseError(f"'{keys[candidate]}' must be an array, got {type(value).__name__}")
        return value
    return []


def _require_objects(items: List[Any], context: str) -> List[Dict[str, Any]]:
    records = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ParseError(f"Entry {position} in {context} is not an object")
        records.append(_lower_keys(item))
    return records


def _lower_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    lowered: Dict[str, Any] = {}
    for key, value in record.items():
        lowered.setdefault(str(key).strip().lower(), value)
    return lowered


# ============================================================================
# Normalization
# ============================================================================


def resolve_field(record: Dict[str, Any], synonyms: Dict[str, Tuple[str, ...]], field: str) -> Any:
    """
    Return the first present, non-empty value among a field's source keys.

    Args:
        record: Source record with lowercased keys
        synonyms: Synonym table for the record kind
        field: Canonical field name

    Returns:
        The winning raw value, or None
    """
    for key in synonyms[field]:
        value = record.get(key)
        if _is_present(value):
            return value
    return None


def normalize_document(record: Dict[str, Any], row: Optional[int] = None) -> ExternalDocument:
    """Reduce one source record to an ExternalDocument."""
    record = _lower_keys(record)

    def get(field: str) -> Any:
        return resolve_field(record, DOCUMENT_FIELD_SYNONYMS, field)

    category_refs = parse_category_refs(get("category_refs"))
    if category_refs is None:
        category_refs = _flat_pair_refs(record)

    published = parse_boolean(get("published"))
    deleted = get("deleted")
    if deleted is not None and parse_boolean(deleted) is not False:
        # Soft-deleted pages surface as drafts instead of vanishing
        published = False

    return ExternalDocument(
        external_id=_as_text(get("external_id")),
        title=_as_text(get("title")) or "",
        content=_as_text(get("content")) or "",
        category_refs=category_refs,
        author=_as_text(get("author")),
        created_at=_as_text(get("created_at")),
        updated_at=_as_text(get("updated_at")),
        published=published,
        row=row,
    )


def normalize_category(record: Dict[str, Any], row: Optional[int] = None) -> ExternalCategory:
    """Reduce one source record to an ExternalCategory."""
    record = _lower_keys(record)

    def get(field: str) -> Any:
        return resolve_field(record, CATEGORY_FIELD_SYNONYMS, field)

    return ExternalCategory(
        external_id=_as_text(get("external_id")),
        name=_as_text(get("name")) or "",
        description=_as_text(get("description")),
        parent_ref=_as_text(get("parent_ref")),
        sort_order=parse_int(get("sort_order")),
        row=row,
    )


def synthesize_categories(
    document_records: List[Dict[str, Any]],
    declared: List[ExternalCategory],
) -> List[ExternalCategory]:
    """
    Build category records implied by category_name/subcategory_name fields.

    Parents are emitted before children. Names already declared (by name or
    external id) are not repeated.

    Args:
        document_records: Raw document records
        declared: Categories the file declared explicitly

    Returns:
        New ExternalCategory records (may be empty)
    """
    known = {c.name for c in declared if c.name}
    known.update(c.external_id for c in declared if c.external_id)

    parents: List[str] = []
    children: Dict[str, str] = {}

    for record in document_records:
        record = _lower_keys(record)
        if resolve_field(record, DOCUMENT_FIELD_SYNONYMS, "category_refs") is not None:
            continue
        parent_name = _as_text(resolve_field(record, DOCUMENT_FIELD_SYNONYMS, "category_name"))
        child_name = _as_text(resolve_field(record, DOCUMENT_FIELD_SYNONYMS, "subcategory_name"))

        if parent_name and parent_name not in parents:
            parents.append(parent_name)
        if child_name and parent_name:
            children[child_name] = parent_name
        elif child_name and child_name not in parents and child_name not in children:
            # A subcategory with no parent becomes a root of its own
            parents.append(child_name)

    synthesized: List[ExternalCategory] = []
    for name in parents:
        if name not in known:
            known.add(name)
            synthesized.append(ExternalCategory(name=name))
    for name, parent_name in children.items():
        if name not in known:
            known.add(name)
            synthesized.append(ExternalCategory(name=name, parent_ref=parent_name))

    return synthesized


# ============================================================================
# Value Coercion
# ============================================================================


def _flat_pair_refs(record: Dict[str, Any]) -> Optional[List[str]]:
    """Refs from the category_name/subcategory_name pair, parent first."""
    names = [
        _as_text(resolve_field(record, DOCUMENT_FIELD_SYNONYMS, field))
        for field in ("category_name", "subcategory_name")
    ]
    refs = [name for name in names if name]
    return refs or None


def parse_category_refs(value: Any) -> Optional[List[str]]:
    """
    Parse a category reference field.

    Accepts a delimited string (comma, semicolon or pipe), a list of strings
    or {name} objects, or a single {name} object.
    """
    if not _is_present(value):
        return None

    if isinstance(value, list):
        refs = []
        for item in value:
            if isinstance(item, dict):
                item = _lower_keys(item)
                refs.append(_as_text(item.get("name") or item.get("title")) or "")
            elif isinstance(item, str):
                refs.append(item)
            else:
                refs.append(str(item))
        return refs

    if isinstance(value, dict):
        value = _lower_keys(value)
        name = _as_text(value.get("name") or value.get("title"))
        return [name] if name else None

    if isinstance(value, str):
        return [part.strip() for part in re.split(CATEGORY_REF_DELIMITERS, value) if part.strip()]

    return [str(value)]


def parse_boolean(value: Any) -> Optional[bool]:
    """Interpret boolean-like values; None when the value is not recognizable."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return None


def parse_int(value: Any, default: int = 0) -> int:
    """Interpret an integer-like value, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (dict, list)):
        return None
    return str(value)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return True
