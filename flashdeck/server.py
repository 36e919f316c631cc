"""
HTTP Microservice
=================
Flask-based HTTP API for importing flashcard text and downloading decks
as PDF documents.

Endpoints:
    GET    /api/health                              → Health check
    GET    /api/info                                → Version info
    POST   /api/decks                               → Import text into a new deck
    GET    /api/decks                               → List decks (newest first)
    GET    /api/decks/<id>                          → Get one deck
    DELETE /api/decks/<id>                          → Delete a deck
    POST   /api/decks/<id>/cards/<card_id>/toggle   → Flip a card's learned flag
    GET    /api/decks/<id>/pdf                      → Download a deck as PDF
    POST   /api/export                              → Text → PDF, nothing stored
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from . import __version__
from . import crud
from . import database as db
from . import storage
from .dedupe import build_deck
from .pdf_writer import encode
from .state_machine import parse

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

PDF_MIMETYPE = "application/pdf"
TEXT_SUFFIXES = {".txt"}


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault("DB_PATH", db.get_db_path())
    app.config.setdefault("MAX_CONTENT_LENGTH", 5 * 1024 * 1024)  # 5MB
    app.config.setdefault("UNIQUE_ACROSS_DECKS", False)

    # Initialize persistence layer
    db.init_db(app.config["DB_PATH"])

    return app


def _db_path() -> str:
    return app.config.get("DB_PATH")


def _read_text_input() -> tuple[str, str]:
    """
    Pull (text, name) from a multipart .txt upload or a JSON body.
    Raises ValueError with a client-facing message.
    """
    if "file" in request.files:
        file = request.files["file"]
        if not file.filename:
            raise ValueError("No file selected")
        if Path(file.filename).suffix.lower() not in TEXT_SUFFIXES:
            raise ValueError("Please choose a TXT file.")
        text = file.read().decode("utf-8", errors="replace")
        name = request.form.get("name") or Path(file.filename).stem
        return text, name

    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object with text")
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("The request did not contain any text.")
        name = data.get("name") or data.get("title") or ""
        if not isinstance(name, str):
            raise ValueError("The deck name must be a string.")
        return text, name

    raise ValueError("Provide a file upload or JSON with text")


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "flashdeck",
        "version": __version__,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Version and capability info."""
    return jsonify({
        "version": __version__,
        "capabilities": [
            "qa_tokenization",
            "deduplication",
            "pdf_export",
        ],
        "supported_formats": ["txt"],
    })


# ─── Decks ────────────────────────────────────────────────────────────────────


@app.route("/api/decks", methods=["POST"])
def import_deck():
    """Parse uploaded text into a new stored deck."""
    try:
        text, name = _read_text_input()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        deck = crud.import_text(
            text,
            name=name,
            unique_across_decks=app.config.get("UNIQUE_ACROSS_DECKS", False),
            db_path=_db_path(),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 422

    return jsonify({
        "success": True,
        "message": f'Added {deck.card_count} flashcards from "{deck.name}".',
        "deck": deck.model_dump(),
    }), 201


@app.route("/api/decks", methods=["GET"])
def list_decks():
    decks = crud.list_decks(db_path=_db_path())
    return jsonify({
        "decks": [d.model_dump() for d in decks],
        "total": len(decks),
    })


@app.route("/api/decks/<deck_id>", methods=["GET"])
def get_deck(deck_id: str):
    deck = crud.get_deck(deck_id, db_path=_db_path())
    if not deck:
        return jsonify({"error": "Deck not found"}), 404
    return jsonify(deck.model_dump())


@app.route("/api/decks/<deck_id>", methods=["DELETE"])
def delete_deck(deck_id: str):
    deleted = crud.delete_deck(deck_id, db_path=_db_path())
    if not deleted:
        return jsonify({"error": "Deck not found"}), 404
    return jsonify({"success": True})


@app.route("/api/decks/<deck_id>/cards/<card_id>/toggle", methods=["POST"])
def toggle_card(deck_id: str, card_id: str):
    learned = crud.toggle_card_learned(deck_id, card_id, db_path=_db_path())
    if learned is None:
        return jsonify({"error": "Card not found"}), 404
    return jsonify({"success": True, "learned": learned})


@app.route("/api/decks/<deck_id>/pdf", methods=["GET"])
def download_deck(deck_id: str):
    exported = crud.export_deck_pdf(deck_id, db_path=_db_path())
    if exported is None:
        return jsonify({"error": "Deck not found"}), 404

    filename, data = exported
    return send_file(
        io.BytesIO(data),
        mimetype=PDF_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


# ─── Stateless Export ─────────────────────────────────────────────────────────


@app.route("/api/export", methods=["POST"])
def export_text():
    """Parse text and return the PDF directly without storing anything."""
    try:
        text, title = _read_text_input()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    deck = build_deck(parse(text), title)
    data = encode(deck.title, deck)
    if data is None:
        return jsonify({
            "error": "Could not parse any Q/A pairs from the response."
        }), 422

    return send_file(
        io.BytesIO(data),
        mimetype=PDF_MIMETYPE,
        as_attachment=True,
        download_name=storage.export_filename(deck.title),
    )


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the microservice server."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
