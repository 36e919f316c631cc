"""
SQLite Database Layer
=====================
Persistent storage for imported flashcard decks.
Decks and their cards (with study state) are stored in SQLite.
No in-memory caching — always reads from disk.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default database path: project_root/database.sqlite
_DEFAULT_DB_PATH = str(Path(__file__).parent.parent / "database.sqlite")


def get_db_path() -> str:
    """Return the configured database path."""
    return os.environ.get("FLASHDECK_DB_PATH", _DEFAULT_DB_PATH)


@contextmanager
def get_connection(db_path: str = None):
    """
    Context manager for database connections.
    Ensures proper commit/rollback and connection cleanup.
    """
    db_path = db_path or get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = None):
    """
    Initialize the database schema.
    Safe to call multiple times — uses IF NOT EXISTS.
    """
    db_path = db_path or get_db_path()
    logger.info(f"Initializing database at: {db_path}")

    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS decks (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                imported_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS cards (
                id TEXT PRIMARY KEY,
                deck_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                question TEXT NOT NULL,
                answer TEXT NOT NULL,
                learned INTEGER DEFAULT 0,
                FOREIGN KEY(deck_id) REFERENCES decks(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_cards_deck_id
                ON cards(deck_id, position);
        """)

    logger.info("Database schema initialized successfully")


# ─── Deck CRUD ────────────────────────────────────────────────────────────────


def insert_deck(
    deck_id: str,
    name: str,
    imported_at: str,
    cards: list[dict],
    db_path: str = None,
):
    """Insert a deck and its cards in one transaction."""
    with get_connection(db_path) as conn:
        conn.execute(
            "INSERT INTO decks (id, name, imported_at) VALUES (?, ?, ?)",
            (deck_id, name, imported_at),
        )
        conn.executemany(
            """INSERT INTO cards
               (id, deck_id, position, question, answer, learned)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (
                    card["id"],
                    deck_id,
                    position,
                    card["question"],
                    card["answer"],
                    1 if card.get("learned") else 0,
                )
                for position, card in enumerate(cards)
            ],
        )
        logger.info(f"Inserted deck id={deck_id} name={name!r} cards={len(cards)}")


def get_deck(deck_id: str, db_path: str = None) -> Optional[dict]:
    """Fetch a single deck with its cards, in stored order."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM decks WHERE id = ?", (deck_id,)
        ).fetchone()
        if not row:
            return None
        return _hydrate_deck(conn, dict(row))


def list_decks(db_path: str = None) -> list[dict]:
    """List all decks, newest import first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM decks ORDER BY imported_at DESC"
        ).fetchall()
        return [_hydrate_deck(conn, dict(r)) for r in rows]


def delete_deck(deck_id: str, db_path: str = None) -> bool:
    """Delete a deck and its cards. Returns True if row existed."""
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM decks WHERE id = ?", (deck_id,))
        return cursor.rowcount > 0


# ─── Card Helpers ─────────────────────────────────────────────────────────────


def toggle_card_learned(
    deck_id: str, card_id: str, db_path: str = None
) -> Optional[bool]:
    """Flip a card's learned flag. Returns the new value, None if not found."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT learned FROM cards WHERE id = ? AND deck_id = ?",
            (card_id, deck_id),
        ).fetchone()
        if not row:
            return None
        learned = 0 if row["learned"] else 1
        conn.execute(
            "UPDATE cards SET learned = ? WHERE id = ?", (learned, card_id)
        )
        return bool(learned)


def get_all_card_pairs(db_path: str = None) -> list[tuple[str, str]]:
    """All stored (question, answer) pairs across decks."""
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT question, answer FROM cards").fetchall()
        return [(r["question"], r["answer"]) for r in rows]


def _hydrate_deck(conn: sqlite3.Connection, deck: dict) -> dict:
    cards = conn.execute(
        """SELECT id, question, answer, learned FROM cards
           WHERE deck_id = ? ORDER BY position""",
        (deck["id"],),
    ).fetchall()
    deck["cards"] = [
        {
            "id": c["id"],
            "question": c["question"],
            "answer": c["answer"],
            "learned": bool(c["learned"]),
        }
        for c in cards
    ]
    return deck
