"""Tests for content_converter."""

from knowledge_base.services.content_converter import (
    convert_to_block_document,
    extract_plain_text,
    generate_excerpt,
    has_block_markup,
    split_into_chunks,
)


def _paragraph(text):
    return {"type": "paragraph", "content": [{"type": "text", "text": text}]}


class TestSplitIntoChunks:
    """Tests for split_into_chunks() and has_block_markup()."""

    def test_block_markup_detection(self):
        assert has_block_markup("<p>Hi</p>")
        assert has_block_markup("line<br/>line")
        assert not has_block_markup("<span>inline</span>")
        assert not has_block_markup("plain text")
        assert not has_block_markup("")

    def test_html_blocks(self):
        content = "<h1>Title</h1><p>One &amp; two</p><ul><li>A</li><li>B</li></ul>"
        assert split_into_chunks(content) == ["Title", "One & two", "A", "B"]

    def test_line_breaks_split_paragraphs(self):
        assert split_into_chunks("<p>Line<br>break</p>") == ["Line", "break"]

    def test_inline_tags_are_stripped(self):
        assert split_into_chunks("<p>Hello <b>bold</b>   world</p>") == ["Hello bold world"]

    def test_plain_text_splits_on_blank_lines(self):
        content = "First para\n\nSecond\npara\n\n\n"
        assert split_into_chunks(content) == ["First para", "Second\npara"]

    def test_plain_text_is_left_as_written(self):
        """Angle brackets without block markup are not treated as tags."""
        content = "Use x<y and y>z to compare.\n\nSecond paragraph"
        assert split_into_chunks(content) == [
            "Use x<y and y>z to compare.",
            "Second paragraph",
        ]

    def test_inline_only_markup_is_plain_text(self):
        assert split_into_chunks("Hello <b>world</b>") == ["Hello <b>world</b>"]

    def test_script_and_style_are_discarded(self):
        content = "<p>Hello</p><script>alert('x')</script><style>p{color:red}</style>"
        assert split_into_chunks(content) == ["Hello"]

    def test_nested_blocks_and_comments(self):
        content = "<div>Intro<!-- hidden --><p>Body</p>Outro</div>"
        assert split_into_chunks(content) == ["Intro", "Body", "Outro"]

    def test_empty(self):
        assert split_into_chunks("") == []
        assert split_into_chunks("<p>  </p>") == []


class TestConvertToBlockDocument:
    """Tests for convert_to_block_document()."""

    def test_paragraphs(self):
        document = convert_to_block_document("<p>A</p><p>B</p>")
        assert document == {"type": "doc", "content": [_paragraph("A"), _paragraph("B")]}

    def test_plain_text(self):
        document = convert_to_block_document("Only line")
        assert document["content"] == [_paragraph("Only line")]

    def test_script_and_style_bodies_do_not_become_paragraphs(self):
        document = convert_to_block_document(
            "<p>Hello</p><script>alert('x')</script><style>p{color:red}</style>"
        )
        assert document["content"] == [_paragraph("Hello")]

    def test_empty_content_yields_one_empty_paragraph(self):
        document = convert_to_block_document("")
        assert document == {"type": "doc", "content": [{"type": "paragraph", "content": []}]}


class TestGenerateExcerpt:
    """Tests for generate_excerpt()."""

    def test_markup_is_removed(self):
        assert generate_excerpt("<p>Hello</p><p>World &amp; co</p>") == "Hello World & co"

    def test_long_text_is_truncated(self):
        excerpt = generate_excerpt("a" * 250)
        assert len(excerpt) == 200
        assert excerpt.endswith("...")
        assert excerpt[:197] == "a" * 197

    def test_text_at_limit_is_kept(self):
        assert generate_excerpt("b" * 200) == "b" * 200

    def test_custom_length(self):
        assert generate_excerpt("abcdefghij", length=8) == "abcde..."

    def test_plain_text_comparison_survives(self):
        assert generate_excerpt("Use x<y and y>z\n\nto compare") == "Use x<y and y>z to compare"

    def test_script_body_is_not_excerpted(self):
        assert generate_excerpt("<script>track()</script><p>Visible</p>") == "Visible"

    def test_empty(self):
        assert generate_excerpt("") == ""


class TestExtractPlainText:
    """Tests for extract_plain_text()."""

    def test_one_line_per_block(self):
        document = convert_to_block_document("<p>A</p><p>B</p>")
        assert extract_plain_text(document) == "A\nB"

    def test_nested_nodes(self):
        document = {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [
                        {"type": "text", "text": "Hello "},
                        {"type": "bold", "content": [{"type": "text", "text": "there"}]},
                    ],
                }
            ],
        }
        assert extract_plain_text(document) == "Hello there"

    def test_invalid_input(self):
        assert extract_plain_text(None) == ""
        assert extract_plain_text({"type": "doc"}) == ""
