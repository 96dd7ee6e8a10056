"""Convert raw import content into structured block documents.

Imported bodies arrive as HTML or plain text. Documents store a block tree
instead:

    {"type": "doc", "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "..."}]},
    ]}

HTML is parsed with BeautifulSoup; each block-level element becomes one
paragraph and inline formatting is dropped. Text without block markup is
only split on blank lines.
"""

import re
from typing import Any, Dict, List

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from knowledge_base.utils.constants import EXCERPT_LENGTH

# Tags whose presence switches content to the HTML path
BLOCK_MARKUP_TAGS = [
    "p", "div", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "blockquote", "pre", "br", "tr",
]

# Elements that start and end a paragraph
BLOCK_BOUNDARY_TAGS = set(BLOCK_MARKUP_TAGS) | {
    "ul", "ol", "table", "thead", "tbody", "section", "article",
}

# Elements whose text never reaches a document
DISCARDED_TAGS = ["script", "style", "template", "noscript"]

WHITESPACE_PATTERN = re.compile(r"\s+")
PARAGRAPH_BREAK_PATTERN = re.compile(r"\n\s*\n+")


def _parse(content: str) -> BeautifulSoup:
    return BeautifulSoup(content, "html.parser")


def has_block_markup(content: str) -> bool:
    if not content or "<" not in content:
        return False
    return _parse(content).find(BLOCK_MARKUP_TAGS) is not None


def split_into_chunks(content: str) -> List[str]:
    """
    Split raw content into paragraph texts.

    HTML is split on block elements and <br>, with script and style bodies
    discarded and entities decoded. Plain text is split on blank lines and
    otherwise left as written. Empty chunks are dropped.
    """
    if not content:
        return []

    if has_block_markup(content):
        chunks = _html_chunks(content)
    else:
        chunks = [chunk.strip() for chunk in PARAGRAPH_BREAK_PATTERN.split(content)]

    return [chunk for chunk in chunks if chunk]


def convert_to_block_document(content: str) -> Dict[str, Any]:
    """
    Convert HTML or plain text to a block document.

    Args:
        content: Raw body from the import file

    Returns:
        Block document; one empty paragraph when no text survives
    """
    paragraphs = [
        {"type": "paragraph", "content": [{"type": "text", "text": chunk}]}
        for chunk in split_into_chunks(content)
    ]
    if not paragraphs:
        paragraphs = [{"type": "paragraph", "content": []}]
    return {"type": "doc", "content": paragraphs}


def generate_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    """
    Build a plain-text preview of raw content.

    Uses the same paragraphs as convert_to_block_document, joined by spaces
    with whitespace collapsed. Text longer than ``length`` is cut to
    ``length - 3`` characters followed by "...".
    """
    text = WHITESPACE_PATTERN.sub(" ", " ".join(split_into_chunks(content))).strip()
    if len(text) > length:
        return text[: length - 3] + "..."
    return text


def extract_plain_text(document: Dict[str, Any]) -> str:
    """Flatten a block document to text, one line per top-level block."""
    if not isinstance(document, dict):
        return ""
    blocks = document.get("content") or []
    return "\n".join(text for text in (_node_text(block) for block in blocks) if text)


def _node_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    if node.get("type") == "text":
        return str(node.get("text") or "")
    return "".join(_node_text(child) for child in node.get("content") or [])


# Marks the end of a block element on the walk stack
_BLOCK_END = object()


def _html_chunks(content: str) -> List[str]:
    soup = _parse(content)
    for element in soup.find_all(DISCARDED_TAGS):
        element.decompose()

    chunks: List[str] = []
    buffer: List[str] = []

    def flush() -> None:
        text = WHITESPACE_PATTERN.sub(" ", "".join(buffer)).strip()
        if text:
            chunks.append(text)
        buffer.clear()

    # Iterative walk; block elements flush on entry and exit
    stack: List[Any] = list(reversed(soup.contents))
    while stack:
        node = stack.pop()
        if node is _BLOCK_END:
            flush()
        elif isinstance(node, PreformattedString):
            continue
        elif isinstance(node, NavigableString):
            buffer.append(str(node))
        elif isinstance(node, Tag):
            if node.name == "br":
                flush()
                continue
            if node.name in BLOCK_BOUNDARY_TAGS:
                flush()
                stack.append(_BLOCK_END)
            stack.extend(reversed(node.contents))

    flush()
    return chunks
