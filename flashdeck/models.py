"""
Data Models
===========
Pydantic models for flashcard records, decks and document reports.
All models are serializable to JSON for API consumption.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Separator between the question and answer halves of a canonical key
KEY_SEPARATOR = "::"


def canonical_key(question: str, answer: str) -> str:
    """Case- and whitespace-insensitive identity of a Q/A pair."""
    return (
        f"{question.strip().lower()}{KEY_SEPARATOR}{answer.strip().lower()}"
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Record / Deck ────────────────────────────────────────────────────────────


class Record(BaseModel):
    """A single question/answer pair recovered by the tokenizer."""
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str

    @property
    def key(self) -> str:
        return canonical_key(self.question, self.answer)


class Deck(BaseModel):
    """
    Ordered, deduplicated collection of records.
    Built once per tokenizer run and owned by the caller.
    """
    title: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    records: list[Record] = Field(default_factory=list)

    @computed_field
    @property
    def card_count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records


# ─── Persisted Deck Models ────────────────────────────────────────────────────


class StoredCard(BaseModel):
    """A persisted flashcard with its study state."""
    id: str
    question: str
    answer: str
    learned: bool = False


class StoredDeck(BaseModel):
    """A persisted deck as returned by the store."""
    id: str
    name: str
    imported_at: str = Field(
        default_factory=lambda: utc_now().isoformat(),
        description="ISO-8601 UTC import timestamp",
    )
    cards: list[StoredCard] = Field(default_factory=list)

    @computed_field
    @property
    def card_count(self) -> int:
        return len(self.cards)

    @computed_field
    @property
    def learned_count(self) -> int:
        return sum(1 for c in self.cards if c.learned)

    @computed_field
    @property
    def progress_percent(self) -> int:
        if not self.cards:
            return 0
        return round(self.learned_count / len(self.cards) * 100)

    def to_deck(self) -> Deck:
        """Rebuild a core Deck (record order preserved) for encoding."""
        created = _parse_timestamp(self.imported_at)
        return Deck(
            title=self.name,
            created_at=created,
            records=[
                Record(question=c.question, answer=c.answer)
                for c in self.cards
            ],
        )


# ─── Document Report ──────────────────────────────────────────────────────────


class DocumentReport(BaseModel):
    """Result of re-reading an encoded document."""
    byte_size: int = 0
    declared_size: int = 0
    root_id: Optional[int] = None
    xref_offset: Optional[int] = None
    page_count: int = 0
    offsets: dict[int, int] = Field(default_factory=dict)
    problems: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.problems and self.declared_size > 0


# ─── Engine Output ────────────────────────────────────────────────────────────


class GenerationResult(BaseModel):
    """Output of a text → deck → document run."""
    deck: Deck
    document_bytes: int = 0
    page_count: int = 0
    pdf_path: str = ""
    deck_json_path: Optional[str] = None


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return utc_now()
