"""
Module entry point for: python -m answerkey

Allows running the scorer directly as a module:
    python -m answerkey score <url> [options]
    python -m answerkey score-file <html_path> [options]
    python -m answerkey serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
