"""
Deduplication
=============
Collapses records sharing a canonical key (case and surrounding whitespace
ignored). The first occurrence wins and keeps its position.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from .models import Deck, Record, canonical_key

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Flashcards"


def dedupe(records: Iterable[Record]) -> list[Record]:
    """Return unique records in first-seen order, with trimmed text."""
    seen: set[str] = set()
    unique: list[Record] = []

    for record in records:
        question = record.question.strip()
        answer = record.answer.strip()
        if not question or not answer:
            continue

        key = canonical_key(question, answer)
        if key in seen:
            continue

        seen.add(key)
        unique.append(Record(question=question, answer=answer))

    return unique


def exclude_known(
    records: Iterable[Record],
    known_keys: set[str],
) -> list[Record]:
    """Drop records whose canonical key already exists elsewhere."""
    return [r for r in records if r.key not in known_keys]


def build_deck(
    records: Iterable[Record],
    title: str = "",
    created_at: Optional[datetime] = None,
) -> Deck:
    """Deduplicate ``records`` into a titled, timestamped Deck."""
    records = list(records)
    unique = dedupe(records)

    if len(unique) < len(records):
        logger.info(
            f"Removed {len(records) - len(unique)} duplicate records"
        )

    deck = Deck(title=title.strip() or DEFAULT_TITLE, records=unique)
    if created_at is not None:
        deck.created_at = created_at
    return deck
