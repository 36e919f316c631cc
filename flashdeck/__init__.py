"""
Flashdeck
=========
Turns AI-generated question/answer text into deduplicated flashcard decks
and offline-readable PDF documents.

Architecture:
    - Tokenizer: Line-oriented state machine recovering Q/A records
    - Deduplicator: Canonical-key dedupe, first occurrence wins
    - Layout: Sanitization, greedy wrapping, pagination
    - PDF Writer: Byte-exact document encoder with offset-accurate xref
    - Validator: Re-reads produced documents and checks every offset

Version: 1.0.0
"""

__version__ = "1.0.0"
