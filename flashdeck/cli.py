"""
CLI Interface
=============
Command-line interface for the flashcard engine.

Usage:
    python -m flashdeck parse <text_path> [options]
    python -m flashdeck export <text_path> [options]
    python -m flashdeck verify <pdf_path>
    python -m flashdeck info <pdf_path>
    python -m flashdeck import <text_path> [options]
    python -m flashdeck decks
    python -m flashdeck serve [options]
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import EngineConfig, FlashcardEngine
from .layout import MIN_LINE_CHARS, LayoutConfig
from .validator import DocumentValidator

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="flashdeck")
def cli():
    """Flashdeck — AI Q/A text to flashcard decks and offline PDFs."""
    pass


@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--title", "-t", default="", help="Deck title (defaults to filename)")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only the deck JSON to stdout (for programmatic use)",
)
def parse(text_path: str, title: str, json_output: bool):
    """Parse a text file into a deduplicated deck."""
    engine = FlashcardEngine(EngineConfig(log_level="ERROR"))
    raw_text = Path(text_path).read_text(encoding="utf-8")
    deck = engine.build_deck(raw_text, title or Path(text_path).stem)

    if json_output:
        print(json.dumps(deck.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return

    if deck.is_empty:
        console.print("[red]Error:[/] Could not parse any Q/A pairs.")
        sys.exit(1)

    _display_deck(deck)


@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--output", "-o", default="output", help="Output directory")
@click.option("--title", "-t", default="", help="Deck title (defaults to filename)")
@click.option("--page-height", default=792.0, type=float, help="Page height (pt)")
@click.option("--page-width", default=612.0, type=float, help="Page width (pt)")
@click.option(
    "--max-chars",
    default=90,
    type=click.IntRange(min=MIN_LINE_CHARS),
    help="Characters per line",
)
@click.option("--no-json", is_flag=True, default=False, help="Skip deck JSON snapshot")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option("--log-file", default=None, help="Path to log file")
def export(
    text_path: str,
    output: str,
    title: str,
    page_height: float,
    page_width: float,
    max_chars: int,
    no_json: bool,
    log_level: str,
    log_file: str,
):
    """Parse a text file and write the deck as a PDF document."""
    config = EngineConfig(
        layout=LayoutConfig(
            page_width=page_width,
            page_height=page_height,
            max_chars=max_chars,
        ),
        output_dir=output,
        save_deck_json=not no_json,
        log_level=log_level,
        log_file=log_file,
    )

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Flashdeck v{__version__}[/]\n"
            f"[dim]Exporting: {os.path.basename(text_path)}[/]",
            border_style="cyan",
        )
    )

    try:
        result = FlashcardEngine(config).run(text_path, title=title or None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    table = Table(title="Export Summary", border_style="green")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Title", result.deck.title)
    table.add_row("Cards", str(result.deck.card_count))
    table.add_row("Pages", str(result.page_count))
    table.add_row("Size", f"{result.document_bytes} bytes")
    table.add_row("PDF", result.pdf_path)
    if result.deck_json_path:
        table.add_row("Deck JSON", result.deck_json_path)
    console.print(table)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
def verify(pdf_path: str):
    """Re-read a produced PDF and check every cross-reference offset."""
    report = DocumentValidator().validate(Path(pdf_path).read_bytes())

    table = Table(title="Document Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Byte Size", str(report.byte_size))
    table.add_row("Declared Objects", str(report.declared_size))
    table.add_row("Root Object", str(report.root_id))
    table.add_row("Pages", str(report.page_count))
    table.add_row("Xref Offset", str(report.xref_offset))
    table.add_row("Status", "[green]✓[/]" if report.is_valid else "[red]✗[/]")
    console.print(table)

    for problem in report.problems:
        console.print(f"[red]•[/] {problem}")

    if not report.is_valid:
        sys.exit(1)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
def info(pdf_path: str):
    """Display PDF file information as seen by PyMuPDF."""

    import fitz

    doc = fitz.open(pdf_path)

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("Pages", str(doc.page_count))
    table.add_row("File Size", f"{os.path.getsize(pdf_path)} bytes")
    table.add_row("Needs Repair", "yes" if doc.is_repaired else "no")

    first_line = ""
    if doc.page_count:
        text = doc[0].get_text().strip()
        first_line = text.splitlines()[0] if text else ""
    table.add_row("First Line", first_line)

    doc.close()
    console.print(table)
    console.print()


@cli.command("import")
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--name", "-n", default="", help="Deck name (defaults to filename)")
@click.option(
    "--unique",
    is_flag=True,
    default=False,
    help="Skip cards that already exist in any stored deck",
)
def import_(text_path: str, name: str, unique: bool):
    """Import a text file into the deck store."""
    from . import crud
    from . import database as db

    db.init_db()
    raw_text = Path(text_path).read_text(encoding="utf-8")
    try:
        deck = crud.import_text(
            raw_text,
            name=name or Path(text_path).stem,
            unique_across_decks=unique,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    console.print(
        f"[green]✓[/] Added {deck.card_count} flashcards to "
        f"[bold]{deck.name}[/] [dim]({deck.id})[/]"
    )


@cli.command()
def decks():
    """List stored decks, newest first."""
    from . import crud
    from . import database as db

    db.init_db()
    stored = crud.list_decks()
    if not stored:
        console.print("[yellow]No decks stored yet.[/]")
        return

    table = Table(title="Stored Decks", border_style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Imported")
    table.add_column("Cards", justify="right")
    table.add_column("Learned", justify="right")
    for deck in stored:
        table.add_row(
            deck.id[:8],
            deck.name,
            deck.imported_at[:10],
            str(deck.card_count),
            f"{deck.learned_count} ({deck.progress_percent}%)",
        )
    console.print(table)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP API server."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Flashdeck API[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_deck(deck):
    """Display a parsed deck as a table."""
    console.print()
    table = Table(
        title=f"{deck.title} ({deck.card_count} cards)",
        border_style="cyan",
        show_lines=True,
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question", style="bold")
    table.add_column("Answer")
    for number, record in enumerate(deck.records, start=1):
        table.add_row(str(number), record.question, record.answer)
    console.print(table)
    console.print()


# ─── Entry point (for python -m flashdeck.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
