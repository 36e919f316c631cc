"""
PDF Writer
==========
Minimal PDF 1.4 encoder written from first principles (no PDF library).

Object numbering (fixed, part of the output's observable structure):
    1            Catalog
    2            Page tree
    3            Font (Helvetica, standard Type 1, not embedded)
    4 … 3+n      Pages
    4+n … 3+2n   Content streams (one per page)
    4+2n         Document information (title, producer, creation date)

Serialization is forward-only: every object's byte offset is taken from the
sink's position counter immediately before its header is written, and the
cross-reference section is built from those recorded offsets.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Union

from .layout import (
    DEFAULT_LAYOUT,
    LayoutConfig,
    build_lines,
    paginate,
    sanitize_text,
)
from .models import Deck

logger = logging.getLogger(__name__)

TEXT_ENCODING = "latin-1"

HEADER = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"

CATALOG_ID = 1
PAGE_TREE_ID = 2
FONT_ID = 3
FIRST_PAGE_ID = 4

FONT_RESOURCE = "F1"

PRODUCER = "flashdeck"


def _num(value: float) -> str:
    """Fixed-point PDF operand; trailing zeros trimmed, never an exponent."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def escape_pdf_text(text: str) -> str:
    """Escape characters with meaning inside a PDF literal string."""
    return (
        text.replace("\\", "\\\\")
        .replace("(", "\\(")
        .replace(")", "\\)")
    )


# ─── Document Objects ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Catalog:
    obj_id: int
    pages_id: int

    def render(self) -> bytes:
        return f"<< /Type /Catalog /Pages {self.pages_id} 0 R >>".encode("ascii")


@dataclass(frozen=True)
class PageTree:
    obj_id: int
    kids: tuple[int, ...]

    def render(self) -> bytes:
        kids = " ".join(f"{kid} 0 R" for kid in self.kids)
        return (
            f"<< /Type /Pages /Kids [{kids}] /Count {len(self.kids)} >>"
        ).encode("ascii")


@dataclass(frozen=True)
class Font:
    obj_id: int
    base_font: str

    def render(self) -> bytes:
        return (
            f"<< /Type /Font /Subtype /Type1 /BaseFont /{self.base_font} "
            f"/Encoding /WinAnsiEncoding >>"
        ).encode("ascii")


@dataclass(frozen=True)
class Page:
    obj_id: int
    parent_id: int
    font_id: int
    contents_id: int
    width: float
    height: float
    lines: tuple[str, ...]

    def render(self) -> bytes:
        return (
            f"<< /Type /Page /Parent {self.parent_id} 0 R "
            f"/MediaBox [0 0 {_num(self.width)} {_num(self.height)}] "
            f"/Resources << /Font << /{FONT_RESOURCE} {self.font_id} 0 R >> >> "
            f"/Contents {self.contents_id} 0 R >>"
        ).encode("ascii")


@dataclass(frozen=True)
class ContentStream:
    obj_id: int
    data: bytes

    def render(self) -> bytes:
        return (
            f"<< /Length {len(self.data)} >>\nstream\n".encode("ascii")
            + self.data
            + b"\nendstream"
        )


@dataclass(frozen=True)
class DocumentInfo:
    obj_id: int
    title: str
    created: datetime
    producer: str = PRODUCER
    placeholder: str = "?"

    def render(self) -> bytes:
        stamp = self.created.astimezone(timezone.utc).strftime("D:%Y%m%d%H%M%SZ")
        title = escape_pdf_text(sanitize_text(self.title, self.placeholder))
        return (
            f"<< /Title ({title}) "
            f"/Producer ({escape_pdf_text(self.producer)}) "
            f"/CreationDate ({stamp}) >>"
        ).encode(TEXT_ENCODING)


DocumentObject = Union[Catalog, PageTree, Font, Page, ContentStream, DocumentInfo]


def build_content_stream(lines: list[str], layout: LayoutConfig) -> bytes:
    """Text operators for one page: preamble, then one Tj per line."""
    x, y = layout.text_origin
    ops = [
        "BT",
        f"/{FONT_RESOURCE} {_num(layout.font_size)} Tf",
        f"{_num(layout.line_height)} TL",
        f"{_num(x)} {_num(y)} Td",
    ]
    for index, line in enumerate(lines):
        if index:
            ops.append("T*")
        ops.append(f"({escape_pdf_text(line)}) Tj")
    ops.append("ET")
    return "\n".join(ops).encode(TEXT_ENCODING)


def build_objects(
    pages: list[list[str]],
    layout: LayoutConfig = DEFAULT_LAYOUT,
    title: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> list[DocumentObject]:
    """
    Allocate ids and build the object graph, in ascending id order.

    The information dictionary is appended after the content streams only
    when ``title`` is given.
    """
    count = len(pages)
    page_ids = [FIRST_PAGE_ID + i for i in range(count)]
    content_ids = [FIRST_PAGE_ID + count + i for i in range(count)]

    objects: list[DocumentObject] = [
        Catalog(obj_id=CATALOG_ID, pages_id=PAGE_TREE_ID),
        PageTree(obj_id=PAGE_TREE_ID, kids=tuple(page_ids)),
        Font(obj_id=FONT_ID, base_font=layout.font_name),
    ]
    for page_id, content_id, lines in zip(page_ids, content_ids, pages):
        objects.append(Page(
            obj_id=page_id,
            parent_id=PAGE_TREE_ID,
            font_id=FONT_ID,
            contents_id=content_id,
            width=layout.page_width,
            height=layout.page_height,
            lines=tuple(lines),
        ))
    for content_id, lines in zip(content_ids, pages):
        objects.append(ContentStream(
            obj_id=content_id,
            data=build_content_stream(lines, layout),
        ))
    if title is not None:
        objects.append(DocumentInfo(
            obj_id=FIRST_PAGE_ID + 2 * count,
            title=title,
            created=generated_at or datetime.now(timezone.utc),
            placeholder=layout.placeholder_char,
        ))
    return objects


# ─── Serialization ────────────────────────────────────────────────────────────


class ByteSink:
    """Append-only byte buffer with a position counter."""

    def __init__(self):
        self._buffer = bytearray()

    @property
    def position(self) -> int:
        return len(self._buffer)

    def write(self, data: bytes):
        self._buffer.extend(data)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class SerializedDocument(NamedTuple):
    data: bytes
    offsets: dict[int, int]
    xref_offset: int


def serialize(objects: list[DocumentObject]) -> SerializedDocument:
    """
    Emit header, objects, xref, trailer and footer through one sink.

    ``objects`` must be ids 1..n in ascending order; offsets are recorded
    as each object is written, never estimated.
    """
    expected = list(range(1, len(objects) + 1))
    if [obj.obj_id for obj in objects] != expected:
        raise ValueError("Objects must be numbered 1..n in ascending order")

    sink = ByteSink()
    offsets: dict[int, int] = {}

    sink.write(HEADER)

    for obj in objects:
        offsets[obj.obj_id] = sink.position
        sink.write(f"{obj.obj_id} 0 obj\n".encode("ascii"))
        sink.write(obj.render())
        sink.write(b"\nendobj\n")

    xref_offset = sink.position
    size = len(objects) + 1
    sink.write(f"xref\n0 {size}\n".encode("ascii"))
    sink.write(b"0000000000 65535 f \n")
    for obj_id in range(1, size):
        sink.write(f"{offsets[obj_id]:010d} 00000 n \n".encode("ascii"))

    trailer = f"/Size {size} /Root {CATALOG_ID} 0 R"
    info_ids = [obj.obj_id for obj in objects if isinstance(obj, DocumentInfo)]
    if info_ids:
        trailer += f" /Info {info_ids[0]} 0 R"
    sink.write(f"trailer\n<< {trailer} >>\n".encode("ascii"))
    sink.write(f"startxref\n{xref_offset}\n%%EOF\n".encode("ascii"))

    return SerializedDocument(sink.getvalue(), offsets, xref_offset)


# ─── Public Entry Point ───────────────────────────────────────────────────────


def encoding_available(name: str = TEXT_ENCODING) -> bool:
    try:
        codecs.lookup(name)
    except LookupError:
        return False
    return True


class DocumentEncoder:
    """
    Encodes a deck into PDF bytes.

    Stateless between calls: every ``encode`` builds and discards its own
    object graph and offset table, so one encoder may serve parallel calls.
    """

    def __init__(self, layout: Optional[LayoutConfig] = None):
        self.layout = layout or DEFAULT_LAYOUT

    def paginate_deck(
        self,
        title: str,
        deck: Deck,
        generated_at: datetime,
    ) -> list[list[str]]:
        lines = build_lines(title, deck.records, generated_at, self.layout)
        return paginate(
            lines, self.layout.lines_per_page, self.layout.empty_page_line
        )

    def encode(
        self,
        title: Optional[str],
        deck: Deck,
        generated_at: Optional[datetime] = None,
    ) -> Optional[bytes]:
        """
        Return the complete document, or ``None`` when there is nothing
        to encode or the text encoding is unavailable.
        """
        if deck.is_empty:
            logger.warning("Nothing to encode: deck has no records")
            return None

        if not encoding_available():
            logger.warning(f"Text encoding {TEXT_ENCODING!r} unavailable")
            return None

        title = deck.title if title is None else title
        moment = (generated_at or deck.created_at).astimezone(timezone.utc)

        pages = self.paginate_deck(title, deck, moment)
        objects = build_objects(pages, self.layout, title, moment)
        document = serialize(objects)

        logger.info(
            f"Encoded {deck.card_count} cards into {len(pages)} pages "
            f"({len(document.data)} bytes)"
        )
        return document.data


def encode(
    title: Optional[str],
    deck: Deck,
    layout: Optional[LayoutConfig] = None,
    generated_at: Optional[datetime] = None,
) -> Optional[bytes]:
    """Encode ``deck`` under ``title`` with a fresh encoder."""
    return DocumentEncoder(layout).encode(title, deck, generated_at)
