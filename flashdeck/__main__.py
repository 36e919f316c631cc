"""
Module entry point for: python -m flashdeck

Allows running the CLI directly as a module:
    python -m flashdeck parse <text_path> [options]
    python -m flashdeck export <text_path> [options]
    python -m flashdeck serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
