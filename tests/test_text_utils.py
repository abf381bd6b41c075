"""Tests for the text cleaning, HTML stripping and chunking helpers."""

from nexus.src.utils.text_utils import chunk_text, clean_text, html_to_text, prepare_for_embedding


class TestCleanText:
    def test_strips_zero_width_and_control_characters(self):
        assert clean_text("va\u200bult\x07 code") == "vault code"

    def test_collapses_horizontal_whitespace_but_keeps_newlines(self):
        assert clean_text("a   b\t\tc\nd") == "a b c\nd"

    def test_collapses_three_or_more_blank_lines(self):
        assert clean_text("first\n\n\n\n\nsecond") == "first\n\nsecond"

    def test_trims_each_line(self):
        assert clean_text("  one  \n   two ") == "one\ntwo"


class TestHtmlToText:
    def test_drops_script_and_style_blocks(self):
        html = "<html><head><style>body{color:red}</style><script>var x = 1;</script></head><body><p>Hello</p></body></html>"
        assert html_to_text(html) == "Hello"

    def test_tags_become_single_spaces(self):
        assert html_to_text("<h1>Title</h1><p>Body   text</p>") == "Title Body text"

    def test_script_match_is_case_insensitive(self):
        assert html_to_text("<SCRIPT type='x'>alert(1)</SCRIPT>visible") == "visible"


class TestPrepareForEmbedding:
    def test_newlines_become_spaces(self):
        assert prepare_for_embedding("line one\nline two") == "line one line two"


class TestChunkText:
    def test_short_text_is_a_single_chunk(self):
        assert chunk_text("short text", 100) == ["short text"]

    def test_blank_text_yields_no_chunks(self):
        assert chunk_text("   ", 100) == []

    def test_long_text_respects_chunk_size(self):
        text = "\n\n".join(f"Paragraph {i} " + "word " * 30 for i in range(10))
        chunks = chunk_text(text, 200, 20)
        assert len(chunks) > 1
        assert all(len(c) <= 200 for c in chunks)
        assert chunks[0].startswith("Paragraph 0")
