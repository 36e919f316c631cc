"""
CRUD Service Layer
==================
High-level deck operations that coordinate parsing, the SQLite store and
document export. This is the ONLY layer that should be called from API
endpoints.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from . import database as db
from . import storage
from .dedupe import build_deck, exclude_known
from .layout import LayoutConfig
from .models import StoredCard, StoredDeck, canonical_key, utc_now
from .pdf_writer import encode
from .state_machine import parse

logger = logging.getLogger(__name__)

DEFAULT_DECK_NAME = "Imported Flashcards"


def new_id() -> str:
    return str(uuid.uuid4())


# ─── Import (Main Flow) ───────────────────────────────────────────────────────


def import_text(
    raw_text: str,
    name: str = "",
    unique_across_decks: bool = False,
    db_path: str = None,
) -> StoredDeck:
    """
    Full parse→dedupe→persist pipeline.

    Args:
        raw_text: AI response text with Q:/A: blocks.
        name: Display name for the deck.
        unique_across_decks: Drop cards already stored in any other deck.
        db_path: Optional database override.

    Returns:
        The stored deck.

    Raises:
        ValueError: If nothing parses, or nothing new remains.
    """
    records = parse(raw_text)
    if not records:
        raise ValueError("Could not parse any Q/A pairs from the response.")

    deck = build_deck(records, name or DEFAULT_DECK_NAME)
    cards = deck.records

    if unique_across_decks:
        known = {
            canonical_key(q, a) for q, a in db.get_all_card_pairs(db_path)
        }
        cards = exclude_known(cards, known)
        if not cards:
            raise ValueError("No new flashcards were generated from this input.")

    stored = StoredDeck(
        id=new_id(),
        name=deck.title,
        imported_at=utc_now().isoformat(),
        cards=[
            StoredCard(id=new_id(), question=r.question, answer=r.answer)
            for r in cards
        ],
    )

    db.insert_deck(
        stored.id,
        stored.name,
        stored.imported_at,
        [c.model_dump() for c in stored.cards],
        db_path=db_path,
    )
    logger.info(f"Imported {stored.card_count} cards into deck {stored.id}")
    return stored


# ─── Queries ──────────────────────────────────────────────────────────────────


def get_deck(deck_id: str, db_path: str = None) -> Optional[StoredDeck]:
    row = db.get_deck(deck_id, db_path=db_path)
    return StoredDeck(**row) if row else None


def list_decks(db_path: str = None) -> list[StoredDeck]:
    return [StoredDeck(**row) for row in db.list_decks(db_path=db_path)]


# ─── Mutations ────────────────────────────────────────────────────────────────


def delete_deck(deck_id: str, db_path: str = None) -> bool:
    deleted = db.delete_deck(deck_id, db_path=db_path)
    if deleted:
        logger.info(f"Deleted deck {deck_id}")
    return deleted


def toggle_card_learned(
    deck_id: str, card_id: str, db_path: str = None
) -> Optional[bool]:
    return db.toggle_card_learned(deck_id, card_id, db_path=db_path)


# ─── Export ───────────────────────────────────────────────────────────────────


def export_deck_pdf(
    deck_id: str,
    layout: Optional[LayoutConfig] = None,
    db_path: str = None,
) -> Optional[tuple[str, bytes]]:
    """Return ``(download_name, pdf_bytes)`` or None if there is nothing."""
    stored = get_deck(deck_id, db_path=db_path)
    if stored is None:
        return None

    data = encode(stored.name, stored.to_deck(), layout=layout)
    if data is None:
        return None
    return storage.export_filename(stored.name), data
