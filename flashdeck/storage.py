"""
Filesystem Storage
==================
Writes exported documents and deck snapshots to disk under names derived
from the deck title.

Directory Layout:
    output/
    ├── {export-name}.pdf    # Encoded deck
    └── {export-name}.json   # Deck snapshot (optional)
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from .models import Deck

logger = logging.getLogger(__name__)

# Project root: one level up from /flashdeck/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

OUTPUT_DIR = _PROJECT_ROOT / "output"

FALLBACK_NAME = "flashcards"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def export_filename(title: str, extension: str = "pdf") -> str:
    """
    Derive a download name from a title.
    E.g., 'Biology: Cells & Energy' -> 'biology-cells-energy.pdf'
    """
    stem = _NON_ALNUM.sub("-", title or "").strip("-").lower()[:80].strip("-")
    return f"{stem or FALLBACK_NAME}.{extension}"


def save_document(data: bytes, title: str, output_dir: str | Path = None) -> Path:
    """Write document bytes; returns the absolute path."""
    dest = _ensure_dir(output_dir) / export_filename(title, "pdf")
    dest.write_bytes(data)
    logger.info(f"Document saved: {dest}")
    return dest


def save_deck_json(deck: Deck, output_dir: str | Path = None) -> Path:
    """Write a JSON snapshot of the deck next to its document."""
    dest = _ensure_dir(output_dir) / export_filename(deck.title, "json")
    with open(dest, "w", encoding="utf-8") as f:
        json.dump(
            deck.model_dump(mode="json"), f, indent=2, ensure_ascii=False
        )
    logger.info(f"Deck snapshot saved: {dest}")
    return dest


def _ensure_dir(output_dir: str | Path = None) -> Path:
    path = Path(output_dir) if output_dir else OUTPUT_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path
