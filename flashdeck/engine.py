"""
Flashcard Engine
================
Main orchestrator that combines tokenization, deduplication, document
encoding, validation and output into a complete text-to-PDF pipeline.

Usage:
    engine = FlashcardEngine(config)
    result = engine.run("path/to/ai_output.txt")
    # result is a GenerationResult with the deck and written paths

Architecture:
    Text → TokenizerStateMachine → Records → build_deck → Deck →
    DocumentEncoder → PDF bytes → DocumentValidator → output/
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import storage
from .dedupe import build_deck
from .layout import LayoutConfig
from .models import Deck, GenerationResult
from .pdf_writer import DocumentEncoder
from .state_machine import TokenizerStateMachine
from .validator import DocumentValidator

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class EngineConfig:
    """Configuration for the flashcard engine."""

    # Page geometry and text metrics
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    # Output settings
    output_dir: str = "output"
    save_deck_json: bool = True

    # Self-check every encoded document
    validate_output: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class FlashcardEngine:
    """
    Main flashcard generation engine.

    Orchestrates the full pipeline:
        1. Tokenization (Q/A state machine)
        2. Deduplication
        3. Document encoding
        4. Validation
        5. Output
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.encoder = DocumentEncoder(self.config.layout)
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("flashdeck")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
            )
            package_logger.addHandler(file_handler)

    def build_deck(self, raw_text: str, title: str = "") -> Deck:
        """Tokenize and deduplicate; an empty deck is returned, not raised."""
        tokenizer = TokenizerStateMachine()
        records = tokenizer.parse(raw_text)
        deck = build_deck(records, title)

        logger.info(
            f"Deck {deck.title!r}: {deck.card_count} cards "
            f"from {len(records)} parsed records"
        )
        return deck

    def render(self, deck: Deck, title: Optional[str] = None) -> Optional[bytes]:
        """Encode a deck; ``None`` when there is nothing to produce."""
        data = self.encoder.encode(title, deck)
        if data is None:
            return None

        if self.config.validate_output:
            report = DocumentValidator().validate(data)
            if not report.is_valid:
                logger.error(
                    f"Encoded document failed validation: {report.problems}"
                )
        return data

    def run(self, text_path: str, title: Optional[str] = None) -> GenerationResult:
        """
        Turn an AI output text file into a deck and a PDF document.

        Args:
            text_path: Path to the UTF-8 text file to parse.
            title: Deck title (defaults to the file stem).

        Returns:
            GenerationResult with the deck and the written paths.

        Raises:
            FileNotFoundError: If the text file doesn't exist.
            ValueError: If no Q/A pairs could be parsed.
        """
        text_path = os.path.abspath(text_path)

        if not os.path.exists(text_path):
            raise FileNotFoundError(f"Text file not found: {text_path}")

        start_time = time.time()
        logger.info(f"Starting run for: {text_path}")

        # ── Step 1: Read input ────────────────────────────────────────
        raw_text = Path(text_path).read_text(encoding="utf-8")

        # ── Step 2: Tokenize + dedupe ─────────────────────────────────
        logger.info("Phase 1: Tokenization")
        deck = self.build_deck(raw_text, title or Path(text_path).stem)
        if deck.is_empty:
            raise ValueError("Could not parse any Q/A pairs from the input.")

        # ── Step 3: Encode ────────────────────────────────────────────
        logger.info("Phase 2: Document encoding")
        data = self.render(deck)
        if data is None:
            raise ValueError("No document could be produced for this deck.")

        page_count = len(self.encoder.paginate_deck(
            deck.title, deck, deck.created_at
        ))

        # ── Step 4: Save output ───────────────────────────────────────
        pdf_path = storage.save_document(data, deck.title, self.config.output_dir)
        json_path = None
        if self.config.save_deck_json:
            json_path = str(storage.save_deck_json(deck, self.config.output_dir))

        elapsed = time.time() - start_time
        logger.info(
            f"Run complete in {elapsed:.2f}s — "
            f"{deck.card_count} cards, {page_count} pages"
        )

        return GenerationResult(
            deck=deck,
            document_bytes=len(data),
            page_count=page_count,
            pdf_path=str(pdf_path),
            deck_json_path=json_path,
        )
