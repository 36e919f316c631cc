"""
Text Layout
===========
Turns a deck into a flat block of printable, pre-wrapped lines and slices
it into pages. Pagination depends only on line counts, so the page count
is known before any document bytes are written.

Pipeline:
    Records → sanitize_text → wrap_with_prefix → build_lines → paginate
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from .models import Record

_WS_RE = re.compile(r"\s+")

QUESTION_PREFIX = "Q: "
ANSWER_PREFIX = "A: "

# Room for a label plus at least one character of text
MIN_LINE_CHARS = max(len(QUESTION_PREFIX), len(ANSWER_PREFIX)) + 1

# Printable base range of the single-byte text encoding
_PRINTABLE_MIN = 0x20
_PRINTABLE_MAX = 0x7E


@dataclass(frozen=True)
class LayoutConfig:
    """Page geometry and text metrics (PDF points unless noted)."""

    page_width: float = 612
    page_height: float = 792
    margin_top: float = 72
    margin_bottom: float = 72
    margin_left: float = 72

    font_name: str = "Helvetica"
    font_size: float = 11
    line_height: float = 14

    # Characters per line
    max_chars: int = 90

    placeholder_char: str = "?"
    empty_page_line: str = "(no content)"

    def __post_init__(self):
        if self.max_chars < MIN_LINE_CHARS:
            raise ValueError(
                f"max_chars must be at least {MIN_LINE_CHARS}, got {self.max_chars}"
            )

    @property
    def lines_per_page(self) -> int:
        usable = self.page_height - self.margin_top - self.margin_bottom
        return max(1, math.floor(usable / self.line_height))

    @property
    def text_origin(self) -> tuple[float, float]:
        """Top-left text position of every page."""
        return (self.margin_left, self.page_height - self.margin_top)


DEFAULT_LAYOUT = LayoutConfig()


# ─── Step 1: Sanitization ─────────────────────────────────────────────────────


def sanitize_text(text: str, placeholder: str = "?") -> str:
    """Collapse whitespace and replace anything outside printable ASCII."""
    collapsed = _WS_RE.sub(" ", text).strip()
    return "".join(
        ch if _PRINTABLE_MIN <= ord(ch) <= _PRINTABLE_MAX else placeholder
        for ch in collapsed
    )


# ─── Step 2: Greedy Wrapping ──────────────────────────────────────────────────


def wrap_text(text: str, width: int) -> list[str]:
    """
    Greedy word wrap at ``width`` characters.

    Words longer than the width are hard-split into width-sized chunks; the
    last chunk starts the next line so following words can share it.
    """
    width = max(1, width)
    lines: list[str] = []
    current = ""

    for word in text.split(" "):
        if not word:
            continue

        if len(word) > width:
            if current:
                lines.append(current)
            chunks = [word[i:i + width] for i in range(0, len(word), width)]
            lines.extend(chunks[:-1])
            current = chunks[-1]
            continue

        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word

    if current or not lines:
        lines.append(current)
    return lines


def wrap_with_prefix(prefix: str, text: str, width: int) -> list[str]:
    """Wrap ``text`` under a label, aligning continuation lines with it."""
    body = wrap_text(text, width - len(prefix))
    indent = " " * len(prefix)
    return [prefix + body[0]] + [indent + line for line in body[1:]]


# ─── Step 3: Content Assembly ─────────────────────────────────────────────────


def format_generated_at(moment: datetime) -> str:
    return f"Generated: {moment.strftime('%Y-%m-%d %H:%M')} UTC"


def build_lines(
    title: str,
    records: Iterable[Record],
    generated_at: datetime,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> list[str]:
    """Flatten a titled deck into the ordered line block."""
    width = layout.max_chars
    placeholder = layout.placeholder_char

    lines = wrap_text(sanitize_text(title, placeholder), width)
    lines.append(format_generated_at(generated_at))
    lines.append("")

    records = list(records)
    for number, record in enumerate(records, start=1):
        lines.append(f"Card {number}")
        lines.extend(wrap_with_prefix(
            QUESTION_PREFIX, sanitize_text(record.question, placeholder), width
        ))
        lines.extend(wrap_with_prefix(
            ANSWER_PREFIX, sanitize_text(record.answer, placeholder), width
        ))
        if number < len(records):
            lines.append("")

    return lines


# ─── Step 4: Pagination ───────────────────────────────────────────────────────


def paginate(
    lines: list[str],
    lines_per_page: int,
    empty_line: str = DEFAULT_LAYOUT.empty_page_line,
) -> list[list[str]]:
    """Slice ``lines`` into consecutive pages of at most ``lines_per_page``."""
    if not lines:
        return [[empty_line]]

    per_page = max(1, lines_per_page)
    return [
        lines[start:start + per_page]
        for start in range(0, len(lines), per_page)
    ]
