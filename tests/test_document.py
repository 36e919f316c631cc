"""
Test Suite for the Document Encoder
====================================
Unit and integration tests for sanitization, wrapping, pagination,
object-graph construction, byte-exact serialization and validation.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone

import pytest

from flashdeck import pdf_writer
from flashdeck.dedupe import build_deck
from flashdeck.layout import (
    MIN_LINE_CHARS,
    LayoutConfig,
    build_lines,
    format_generated_at,
    paginate,
    sanitize_text,
    wrap_text,
    wrap_with_prefix,
)
from flashdeck.models import Deck, Record
from flashdeck.pdf_writer import (
    Catalog,
    ContentStream,
    Font,
    Page,
    PageTree,
    build_content_stream,
    build_objects,
    encode,
    escape_pdf_text,
    serialize,
)
from flashdeck.state_machine import parse
from flashdeck.validator import DocumentValidator

MOMENT = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)

EXAMPLE_TEXT = "1. Q: What is 2+2?\nA: 4\nQ: Capital of France?\nA: Paris"


def _example_deck() -> Deck:
    return build_deck(parse(EXAMPLE_TEXT), "Quiz", created_at=MOMENT)


def _large_deck(count: int = 30) -> Deck:
    records = [
        Record(question=f"Question {i}?", answer=f"Answer {i}")
        for i in range(1, count + 1)
    ]
    return Deck(title="Large", created_at=MOMENT, records=records)


def _read_xref(data: bytes) -> dict[int, int]:
    """Independent xref reader used to cross-check the encoder."""
    start = int(re.search(rb"startxref\n(\d+)\n%%EOF", data).group(1))
    header = re.match(rb"xref\n0 (\d+)\n", data[start:])
    size = int(header.group(1))
    table = data[start + header.end():]
    offsets = {}
    for obj_id in range(size):
        entry = table[obj_id * 20:(obj_id + 1) * 20]
        if entry.endswith(b" n \n"):
            offsets[obj_id] = int(entry[:10])
    return offsets


# ═══════════════════════════════════════════════════════════════════════════════
# SANITIZATION + WRAPPING TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSanitizeText:
    """Test text sanitization."""

    def test_whitespace_collapsed(self):
        assert sanitize_text("  a\t\tb\n c  ") == "a b c"

    def test_non_printable_replaced(self):
        assert sanitize_text("café ☕") == "caf? ?"

    def test_custom_placeholder(self):
        assert sanitize_text("naïve", placeholder="_") == "na_ve"

    def test_printable_ascii_untouched(self):
        text = "Q&A (x) [y] {z} ~!@#$%^*"
        assert sanitize_text(text) == text


class TestWrapText:
    """Test greedy line wrapping."""

    def test_greedy_packing(self):
        assert wrap_text("the quick brown fox", 10) == ["the quick", "brown fox"]

    def test_exact_fit_stays_on_line(self):
        assert wrap_text("aaaa bbbbb", 10) == ["aaaa bbbbb"]

    def test_long_word_hard_split(self):
        assert wrap_text("abcdefghijkl xy", 5) == ["abcde", "fghij", "kl xy"]

    def test_long_word_after_text_flushes_line(self):
        assert wrap_text("hi abcdefgh", 4) == ["hi", "abcd", "efgh"]

    def test_empty_text_yields_one_line(self):
        assert wrap_text("", 10) == [""]

    def test_no_line_exceeds_width(self):
        text = sanitize_text(
            "Photosynthesis converts light energy into chemical energy "
            "stored in glucose; chlorophyllcontainingorganellesarecalledchloroplasts"
        )
        lines = wrap_text(text, 20)
        assert all(len(line) <= 20 for line in lines)
        assert " ".join(lines).replace(" ", "") == text.replace(" ", "")

    def test_prefix_wrapping_aligns_continuations(self):
        lines = wrap_with_prefix("Q: ", "one two three four", 10)
        assert lines == ["Q: one two", "   three", "   four"]

    def test_prefix_wrapping_respects_width(self):
        lines = wrap_with_prefix("A: ", "x" * 25, 10)
        assert lines == ["A: xxxxxxx", "   xxxxxxx", "   xxxxxxx", "   xxxx"]
        assert all(len(line) <= 10 for line in lines)


# ═══════════════════════════════════════════════════════════════════════════════
# CONTENT ASSEMBLY + PAGINATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestBuildLines:
    """Test flattening a deck into the line block."""

    def test_example_deck_lines(self):
        deck = _example_deck()
        lines = build_lines("Quiz", deck.records, MOMENT)
        assert lines == [
            "Quiz",
            "Generated: 2024-01-02 03:04 UTC",
            "",
            "Card 1",
            "Q: What is 2+2?",
            "A: 4",
            "",
            "Card 2",
            "Q: Capital of France?",
            "A: Paris",
        ]

    def test_multi_line_answer_flattened(self):
        records = parse("Q: Steps?\nA: first\nsecond")
        lines = build_lines("T", records, MOMENT)
        assert lines[-1] == "A: first second"

    def test_no_separator_after_last_record(self):
        lines = build_lines("T", [Record(question="q", answer="a")], MOMENT)
        assert lines[-1] == "A: a"

    def test_generated_at_format(self):
        assert format_generated_at(MOMENT) == "Generated: 2024-01-02 03:04 UTC"

    def test_long_title_wrapped(self):
        layout = LayoutConfig(max_chars=10)
        lines = build_lines("A rather long deck title", [], MOMENT, layout)
        assert lines[:3] == ["A rather", "long deck", "title"]

    def test_escaping_does_not_affect_wrapping(self):
        layout = LayoutConfig(max_chars=20)
        question = "(a)\\(b)\\(c)\\(d)!!"
        line = "Q: " + question
        assert len(line) == layout.max_chars

        lines = build_lines("T", [Record(question=question, answer="x")], MOMENT, layout)
        assert line in lines

        escaped = escape_pdf_text(line)
        assert len(escaped) > layout.max_chars
        stream = build_content_stream(lines, layout)
        assert f"({escaped}) Tj".encode("latin-1") in stream

    def test_narrow_width_rejected(self):
        with pytest.raises(ValueError, match="max_chars"):
            LayoutConfig(max_chars=MIN_LINE_CHARS - 1)

    def test_narrowest_width_stays_in_bounds(self):
        layout = LayoutConfig(max_chars=MIN_LINE_CHARS)
        lines = wrap_with_prefix("Q: ", "hello world", layout.max_chars)
        assert all(len(line) <= layout.max_chars for line in lines)


class TestPaginate:
    """Test line-count pagination."""

    @pytest.mark.parametrize(
        "total,per_page",
        [(1, 1), (5, 5), (6, 5), (46, 46), (47, 46), (100, 7)],
    )
    def test_page_count_and_concatenation(self, total, per_page):
        lines = [f"line {i}" for i in range(total)]
        pages = paginate(lines, per_page)

        assert len(pages) == math.ceil(total / per_page)
        assert all(len(page) <= per_page for page in pages)
        assert [line for page in pages for line in page] == lines

    def test_empty_content_yields_placeholder_page(self):
        assert paginate([], 10) == [["(no content)"]]

    def test_lines_per_page(self):
        assert LayoutConfig().lines_per_page == 46
        assert LayoutConfig(page_height=300).lines_per_page == 11

    def test_lines_per_page_minimum_one(self):
        assert LayoutConfig(page_height=100).lines_per_page == 1


# ═══════════════════════════════════════════════════════════════════════════════
# OBJECT GRAPH TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestObjectGraph:
    """Test id allocation and object rendering."""

    def test_escape_pdf_text(self):
        assert escape_pdf_text("a(b)c\\") == "a\\(b\\)c\\\\"

    def test_id_allocation_two_blocks(self):
        objects = build_objects([["a"], ["b"], ["c"]])

        assert [obj.obj_id for obj in objects] == list(range(1, 10))
        assert isinstance(objects[0], Catalog)
        assert isinstance(objects[1], PageTree)
        assert isinstance(objects[2], Font)
        assert all(isinstance(obj, Page) for obj in objects[3:6])
        assert all(isinstance(obj, ContentStream) for obj in objects[6:9])

        assert objects[1].kids == (4, 5, 6)
        assert [obj.contents_id for obj in objects[3:6]] == [7, 8, 9]
        assert objects[3].lines == ("a",)

    def test_info_dictionary_follows_content_streams(self):
        objects = build_objects([["a"], ["b"]], title="My (Deck)", generated_at=MOMENT)

        info = objects[-1]
        assert info.obj_id == 8
        assert info.render() == (
            b"<< /Title (My \\(Deck\\)) /Producer (flashdeck) "
            b"/CreationDate (D:20240102030400Z) >>"
        )

    def test_content_stream_operators(self):
        data = build_content_stream(["one", "two"], LayoutConfig())
        assert data == (
            b"BT\n/F1 11 Tf\n14 TL\n72 720 Td\n(one) Tj\nT*\n(two) Tj\nET"
        )

    def test_content_stream_single_line_has_no_next_line_operator(self):
        data = build_content_stream(["only"], LayoutConfig())
        assert b"T*" not in data

    def test_content_stream_escapes_after_sanitization(self):
        data = build_content_stream(["f(x) = a\\b"], LayoutConfig())
        assert b"(f\\(x\\) = a\\\\b) Tj" in data

    def test_catalog_and_page_rendering(self):
        objects = build_objects([["x"]])
        assert objects[0].render() == b"<< /Type /Catalog /Pages 2 0 R >>"
        assert objects[1].render() == (
            b"<< /Type /Pages /Kids [4 0 R] /Count 1 >>"
        )
        page = objects[3].render()
        assert b"/Parent 2 0 R" in page
        assert b"/MediaBox [0 0 612 792]" in page
        assert b"/F1 3 0 R" in page
        assert b"/Contents 5 0 R" in page

    def test_info_title_uses_layout_placeholder(self):
        layout = LayoutConfig(placeholder_char="_")
        objects = build_objects([["a"]], layout, title="café", generated_at=MOMENT)
        assert b"/Title (caf_)" in objects[-1].render()

    def test_large_dimensions_written_fixed_point(self):
        layout = LayoutConfig(page_width=612.5, page_height=2000000)
        page, stream = build_objects([["a"]], layout)[3:5]

        assert b"/MediaBox [0 0 612.5 2000000]" in page.render()
        assert b"72 1999928 Td" in stream.data
        assert b"e+" not in page.render() + stream.data

    def test_stream_length_matches_payload(self):
        stream = build_objects([["hello"]])[4]
        rendered = stream.render()
        declared = int(re.search(rb"/Length (\d+)", rendered).group(1))
        assert declared == len(stream.data)


# ═══════════════════════════════════════════════════════════════════════════════
# SERIALIZATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSerialize:
    """Test byte-exact serialization."""

    def test_offsets_point_at_object_headers(self):
        doc = serialize(build_objects([["a"], ["b"]]))
        for obj_id, offset in doc.offsets.items():
            assert doc.data[offset:].startswith(f"{obj_id} 0 obj".encode())

    def test_startxref_is_true_position(self):
        doc = serialize(build_objects([["a"]]))
        assert doc.data[doc.xref_offset:].startswith(b"xref\n0 6\n")
        assert doc.data.endswith(f"startxref\n{doc.xref_offset}\n%%EOF\n".encode())

    def test_xref_entries_fixed_width(self):
        doc = serialize(build_objects([["a"]]))
        body = doc.data[doc.xref_offset:].split(b"\n", 2)[2]
        assert body.startswith(b"0000000000 65535 f \n")
        assert _read_xref(doc.data) == doc.offsets

    def test_out_of_order_objects_rejected(self):
        objects = build_objects([["a"]])
        objects[0], objects[1] = objects[1], objects[0]
        with pytest.raises(ValueError):
            serialize(objects)


class TestEncode:
    """Test the public encode entry point."""

    def test_end_to_end_example(self):
        deck = _example_deck()
        data = encode(deck.title, deck, layout=LayoutConfig(page_height=300))

        assert data.startswith(b"%PDF-1.4\n")
        assert b"trailer\n<< /Size 7 /Root 1 0 R /Info 6 0 R >>" in data
        assert b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>" in data
        assert b"(Q: What is 2+2?) Tj" in data
        assert b"(A: Paris) Tj" in data

        offsets = _read_xref(data)
        assert sorted(offsets) == [1, 2, 3, 4, 5, 6]
        for obj_id, offset in offsets.items():
            assert data[offset:].startswith(f"{obj_id} 0 obj".encode())

    def test_empty_deck_yields_no_document(self):
        assert encode("Empty", Deck(title="Empty")) is None

    def test_missing_encoding_yields_no_document(self, monkeypatch):
        monkeypatch.setattr(pdf_writer, "encoding_available", lambda *a: False)
        assert encode("Quiz", _example_deck()) is None

    def test_deterministic_output(self):
        deck = _example_deck()
        assert encode("Quiz", deck) == encode("Quiz", deck)

    def test_title_defaults_to_deck_title(self):
        deck = _example_deck()
        assert encode(None, deck) == encode("Quiz", deck)

    def test_multi_page_document(self):
        deck = _large_deck(30)
        data = encode(deck.title, deck)

        # 3 header lines + 30 cards * 3 lines + 29 separators = 122 lines
        expected_pages = math.ceil(122 / 46)
        # catalog, tree, font, pages, streams, info, free head
        size = 3 + 2 * expected_pages + 2
        assert f"/Size {size} ".encode() in data
        assert f"/Count {expected_pages} ".encode() in data

        offsets = _read_xref(data)
        assert len(offsets) == size - 1
        for obj_id, offset in offsets.items():
            assert data[offset:].startswith(f"{obj_id} 0 obj".encode())

    def test_non_ascii_replaced(self):
        deck = Deck(
            title="Français",
            created_at=MOMENT,
            records=[Record(question="Qu'est-ce qu'un café?", answer="Un drink ☕")],
        )
        data = encode(deck.title, deck)
        assert b"(Fran?ais) Tj" in data
        assert b"caf?" in data
        assert b"\xe9" not in data.split(b"\n", 2)[2]

    def test_parentheses_escaped_in_stream(self):
        deck = Deck(
            created_at=MOMENT,
            records=[Record(question="What is f(x)?", answer="A \\ function")],
        )
        data = encode("Escapes", deck)
        assert b"(Q: What is f\\(x\\)?) Tj" in data
        assert b"(A: A \\\\ function) Tj" in data

    def test_readable_by_pymupdf(self):
        fitz = pytest.importorskip("fitz")
        deck = _large_deck(30)
        data = encode(deck.title, deck)

        doc = fitz.open(stream=data, filetype="pdf")
        try:
            assert doc.page_count == 3
            assert "Card 1" in doc[0].get_text()
        finally:
            doc.close()


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestDocumentValidator:
    """Test the post-encode validator."""

    def test_valid_document(self):
        deck = _example_deck()
        report = DocumentValidator().validate(encode(deck.title, deck))

        assert report.is_valid
        assert report.problems == []
        assert report.declared_size == 7
        assert report.root_id == 1
        assert report.page_count == 1
        assert sorted(report.offsets) == [1, 2, 3, 4, 5, 6]

    def test_multi_page_report(self):
        deck = _large_deck(30)
        report = DocumentValidator().validate(encode(deck.title, deck))
        assert report.is_valid
        assert report.page_count == 3

    def test_wrong_offset_detected(self):
        doc = serialize(build_objects([["a"], ["b"]]))
        offset = doc.offsets[2]
        bad = doc.data.replace(
            f"{offset:010d} 00000 n \n".encode(),
            f"{offset + 1:010d} 00000 n \n".encode(),
            1,
        )

        report = DocumentValidator().validate(bad)

        assert not report.is_valid
        assert any("object 2" in p for p in report.problems)

    def test_shifted_document_detected(self):
        doc = serialize(build_objects([["a"]]))
        shifted = doc.data[:9] + b"%extra\n" + doc.data[9:]

        report = DocumentValidator().validate(shifted)

        assert not report.is_valid

    def test_garbage_input(self):
        report = DocumentValidator().validate(b"hello")
        assert not report.is_valid
        assert "Missing %PDF- header" in report.problems
        assert "Missing startxref footer" in report.problems


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
